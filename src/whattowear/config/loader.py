"""Configuration file loading.

The configuration file is YAML. Only the ``messages`` section is used here;
sections for the weather API, web server, imaging, MQTT and scheduling belong
to other services and are ignored.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from whattowear.core.exceptions import ConfigurationError
from whattowear.core.messages import Message

logger = logging.getLogger(__name__)


class AppConfig(BaseModel):
    """Parsed configuration file."""
    model_config = ConfigDict(extra="ignore")

    messages: List[Message] = Field(default_factory=list)


def parse_config(data: object, source: str = "<config>") -> AppConfig:
    """Validate an already-parsed configuration mapping.

    Raises:
        ConfigurationError: If the structure is invalid.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration must be a mapping, got {type(data).__name__}",
            context={"source": source},
        )
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration: {e}",
            context={"source": source},
        )


def load_config(path: Union[str, Path]) -> AppConfig:
    """Load and validate a YAML configuration file.

    Raises:
        ConfigurationError: If the file is missing, is not valid YAML, or has
            an invalid structure.
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(
            f"Could not read config file: {e}",
            context={"path": str(path)},
        )

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Could not parse config file: {e}",
            context={"path": str(path)},
        )

    config = parse_config(data, source=str(path))
    logger.info("Loaded configuration", extra={"path": str(path), "messages": len(config.messages)})
    return config
