import sys

from whattowear.cli import main

sys.exit(main())
