"""Expression parser: string → expression tree

Parses message expressions like:
- "temperature < 20 && temperature > 10"
- "'Test is ' + test"
- "sprintf('%.1f°C', forecast.maxTemperature(12))"
- "rain1h > 0 ? 'wet' : 'dry'"
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import List, Optional, Any
from .types import Expr, BinaryOp, UnaryOp, Name, Literal, Member, Call, Conditional


class TokenType(Enum):
    """Token types for lexical analysis"""
    # Literals
    IDENTIFIER = auto()
    NUMBER = auto()
    STRING = auto()
    BOOL = auto()
    NIL = auto()

    # Comparison operators
    GTE = auto()        # >=
    LTE = auto()        # <=
    EQ = auto()         # ==
    NEQ = auto()        # !=
    GT = auto()         # >
    LT = auto()         # <

    # Arithmetic operators
    PLUS = auto()       # +
    MINUS = auto()      # -
    STAR = auto()       # *
    SLASH = auto()      # /
    PERCENT = auto()    # %
    POWER = auto()      # **

    # Logical operators
    AND = auto()        # && / and
    OR = auto()         # || / or
    NOT = auto()        # ! / not

    # Punctuation
    LPAREN = auto()
    RPAREN = auto()
    COMMA = auto()
    DOT = auto()
    QUESTION = auto()
    COLON = auto()

    # End of input
    EOF = auto()


@dataclass
class Token:
    """A lexical token"""
    type: TokenType
    value: Any
    position: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, pos={self.position})"


class LexerError(Exception):
    """Raised when lexer encounters invalid input"""

    def __init__(self, message: str, position: int):
        self.position = position
        super().__init__(message)


class ParseError(Exception):
    """Raised when parser encounters invalid syntax"""

    def __init__(self, message: str, position: int):
        self.position = position
        super().__init__(message)


KEYWORDS = {
    "and": (TokenType.AND, "&&"),
    "or": (TokenType.OR, "||"),
    "not": (TokenType.NOT, "!"),
    "true": (TokenType.BOOL, True),
    "false": (TokenType.BOOL, False),
    "nil": (TokenType.NIL, None),
}

TWO_CHAR_OPERATORS = {
    ">=": TokenType.GTE,
    "<=": TokenType.LTE,
    "==": TokenType.EQ,
    "!=": TokenType.NEQ,
    "&&": TokenType.AND,
    "||": TokenType.OR,
    "**": TokenType.POWER,
}

SINGLE_CHAR_OPERATORS = {
    ">": TokenType.GT,
    "<": TokenType.LT,
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.STAR,
    "/": TokenType.SLASH,
    "%": TokenType.PERCENT,
    "!": TokenType.NOT,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    ",": TokenType.COMMA,
    ".": TokenType.DOT,
    "?": TokenType.QUESTION,
    ":": TokenType.COLON,
}

STRING_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "\\": "\\",
    "'": "'",
    '"': '"',
}

COMPARISON_TOKENS = (
    TokenType.GTE, TokenType.LTE, TokenType.EQ,
    TokenType.NEQ, TokenType.GT, TokenType.LT,
)


class Lexer:
    """Tokenize expression strings"""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.current_char: Optional[str] = text[0] if text else None

    def advance(self) -> None:
        """Move to next character"""
        self.pos += 1
        if self.pos >= len(self.text):
            self.current_char = None
        else:
            self.current_char = self.text[self.pos]

    def peek(self, offset: int = 1) -> Optional[str]:
        """Look ahead at next character without consuming"""
        peek_pos = self.pos + offset
        if peek_pos >= len(self.text):
            return None
        return self.text[peek_pos]

    def skip_whitespace(self) -> None:
        """Skip whitespace characters"""
        while self.current_char is not None and self.current_char.isspace():
            self.advance()

    def read_number(self) -> Token:
        """Read integer or float number"""
        start_pos = self.pos
        num_str = ""

        # Read digits and at most one decimal point; a dot not followed by a
        # digit belongs to a member access
        has_decimal = False
        while self.current_char is not None and (self.current_char.isdigit() or self.current_char == '.'):
            if self.current_char == '.':
                if has_decimal:
                    raise LexerError(f"Invalid number format at position {self.pos}", self.pos)
                next_char = self.peek()
                if next_char is None or not next_char.isdigit():
                    break
                has_decimal = True
            num_str += self.current_char
            self.advance()

        if has_decimal:
            value = float(num_str)
        else:
            value = int(num_str)

        return Token(TokenType.NUMBER, value, start_pos)

    def read_string(self, quote_char: str) -> Token:
        """Read string literal with quotes and backslash escapes"""
        start_pos = self.pos
        self.advance()  # Skip opening quote

        chars: List[str] = []
        while self.current_char is not None and self.current_char != quote_char:
            if self.current_char == '\\':
                self.advance()
                if self.current_char is None:
                    break
                if self.current_char not in STRING_ESCAPES:
                    raise LexerError(
                        f"Unknown escape sequence '\\{self.current_char}' at position {self.pos - 1}",
                        self.pos - 1,
                    )
                chars.append(STRING_ESCAPES[self.current_char])
            else:
                chars.append(self.current_char)
            self.advance()

        if self.current_char != quote_char:
            raise LexerError(f"Unclosed string starting at position {start_pos}", start_pos)

        self.advance()  # Skip closing quote
        return Token(TokenType.STRING, "".join(chars), start_pos)

    def read_identifier_or_keyword(self) -> Token:
        """Read identifier or keyword (and, or, not, true, false, nil)"""
        start_pos = self.pos
        identifier = ""

        # Read alphanumeric and underscores
        while self.current_char is not None and (self.current_char.isalnum() or self.current_char == '_'):
            identifier += self.current_char
            self.advance()

        # Keywords are case-sensitive
        if identifier in KEYWORDS:
            token_type, value = KEYWORDS[identifier]
            return Token(token_type, value, start_pos)
        return Token(TokenType.IDENTIFIER, identifier, start_pos)

    def get_next_token(self) -> Token:
        """Get next token from input"""
        while self.current_char is not None:
            # Skip whitespace
            if self.current_char.isspace():
                self.skip_whitespace()
                continue

            # Numbers
            if self.current_char.isdigit():
                return self.read_number()

            # Strings
            if self.current_char in ('"', "'"):
                return self.read_string(self.current_char)

            # Identifiers and keywords
            if self.current_char.isalpha() or self.current_char == '_':
                return self.read_identifier_or_keyword()

            # Two-character operators
            pair = self.current_char + (self.peek() or "")
            if pair in TWO_CHAR_OPERATORS:
                pos = self.pos
                self.advance()
                self.advance()
                return Token(TWO_CHAR_OPERATORS[pair], pair, pos)

            # Single-character operators
            if self.current_char in SINGLE_CHAR_OPERATORS:
                pos = self.pos
                char = self.current_char
                self.advance()
                return Token(SINGLE_CHAR_OPERATORS[char], char, pos)

            # Unknown character
            raise LexerError(f"Unexpected character '{self.current_char}' at position {self.pos}", self.pos)

        # End of input
        return Token(TokenType.EOF, None, self.pos)

    def tokenize(self) -> List[Token]:
        """Tokenize entire input string"""
        tokens = []
        while True:
            token = self.get_next_token()
            tokens.append(token)
            if token.type == TokenType.EOF:
                break
        return tokens


class Parser:
    """Parse tokens into expression tree using recursive descent"""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0
        self.current_token = tokens[0] if tokens else Token(TokenType.EOF, None, 0)

    def advance(self) -> None:
        """Move to next token"""
        self.pos += 1
        if self.pos < len(self.tokens):
            self.current_token = self.tokens[self.pos]
        else:
            self.current_token = Token(TokenType.EOF, None, self.pos)

    def expect(self, token_type: TokenType) -> Token:
        """Consume token of expected type or raise error"""
        if self.current_token.type != token_type:
            raise ParseError(
                f"Expected {token_type.name}, got {self.current_token.type.name} "
                f"at position {self.current_token.position}",
                self.current_token.position,
            )
        token = self.current_token
        self.advance()
        return token

    def parse(self) -> Expr:
        """Parse expression from tokens"""
        expr = self.parse_conditional()
        if self.current_token.type != TokenType.EOF:
            raise ParseError(
                f"Unexpected token {self.current_token.type.name} at position {self.current_token.position}",
                self.current_token.position,
            )
        return expr

    def parse_conditional(self) -> Expr:
        """Parse ternary expression (lowest precedence)

        conditional := or_expr ('?' conditional ':' conditional)?
        """
        test = self.parse_or_expr()

        if self.current_token.type == TokenType.QUESTION:
            position = self.current_token.position
            self.advance()
            if_true = self.parse_conditional()
            self.expect(TokenType.COLON)
            if_false = self.parse_conditional()  # Right-associative
            return Conditional(test, if_true, if_false, position)

        return test

    def parse_or_expr(self) -> Expr:
        """Parse OR expression

        or_expr := and_expr (('||' | 'or') and_expr)*
        """
        left = self.parse_and_expr()

        while self.current_token.type == TokenType.OR:
            position = self.current_token.position
            self.advance()
            right = self.parse_and_expr()
            left = BinaryOp(left, "||", right, position)

        return left

    def parse_and_expr(self) -> Expr:
        """Parse AND expression

        and_expr := comparison (('&&' | 'and') comparison)*
        """
        left = self.parse_comparison()

        while self.current_token.type == TokenType.AND:
            position = self.current_token.position
            self.advance()
            right = self.parse_comparison()
            left = BinaryOp(left, "&&", right, position)

        return left

    def parse_comparison(self) -> Expr:
        """Parse comparison expression (non-associative)

        comparison := additive (comp_op additive)?
        comp_op := '>=' | '<=' | '==' | '!=' | '>' | '<'
        """
        left = self.parse_additive()

        if self.current_token.type in COMPARISON_TOKENS:
            operator = self.current_token.value
            position = self.current_token.position
            self.advance()
            right = self.parse_additive()
            if self.current_token.type in COMPARISON_TOKENS:
                raise ParseError(
                    f"Chained comparison at position {self.current_token.position}; "
                    f"combine comparisons with '&&'",
                    self.current_token.position,
                )
            return BinaryOp(left, operator, right, position)

        return left

    def parse_additive(self) -> Expr:
        """additive := multiplicative (('+' | '-') multiplicative)*"""
        left = self.parse_multiplicative()

        while self.current_token.type in (TokenType.PLUS, TokenType.MINUS):
            operator = self.current_token.value
            position = self.current_token.position
            self.advance()
            right = self.parse_multiplicative()
            left = BinaryOp(left, operator, right, position)

        return left

    def parse_multiplicative(self) -> Expr:
        """multiplicative := unary (('*' | '/' | '%') unary)*"""
        left = self.parse_unary()

        while self.current_token.type in (TokenType.STAR, TokenType.SLASH, TokenType.PERCENT):
            operator = self.current_token.value
            position = self.current_token.position
            self.advance()
            right = self.parse_unary()
            left = BinaryOp(left, operator, right, position)

        return left

    def parse_unary(self) -> Expr:
        """unary := ('!' | 'not' | '-' | '+') unary | power"""
        if self.current_token.type in (TokenType.NOT, TokenType.MINUS, TokenType.PLUS):
            operator = "!" if self.current_token.type == TokenType.NOT else self.current_token.value
            position = self.current_token.position
            self.advance()
            operand = self.parse_unary()  # Right-associative
            return UnaryOp(operator, operand, position)

        return self.parse_power()

    def parse_power(self) -> Expr:
        """power := postfix ('**' unary)?"""
        base = self.parse_postfix()

        if self.current_token.type == TokenType.POWER:
            position = self.current_token.position
            self.advance()
            exponent = self.parse_unary()  # Right-associative
            return BinaryOp(base, "**", exponent, position)

        return base

    def parse_postfix(self) -> Expr:
        """postfix := term ('.' IDENTIFIER | '(' arguments? ')')*"""
        expr = self.parse_term()

        while True:
            if self.current_token.type == TokenType.DOT:
                position = self.current_token.position
                self.advance()
                name = self.expect(TokenType.IDENTIFIER).value
                expr = Member(expr, name, position)
            elif self.current_token.type == TokenType.LPAREN:
                position = self.current_token.position
                self.advance()
                args = self.parse_arguments()
                self.expect(TokenType.RPAREN)
                expr = Call(expr, tuple(args), position)
            else:
                return expr

    def parse_arguments(self) -> List[Expr]:
        """arguments := conditional (',' conditional)*"""
        args: List[Expr] = []
        if self.current_token.type == TokenType.RPAREN:
            return args

        args.append(self.parse_conditional())
        while self.current_token.type == TokenType.COMMA:
            self.advance()
            args.append(self.parse_conditional())
        return args

    def parse_term(self) -> Expr:
        """Parse terminal expression

        term := IDENTIFIER | NUMBER | STRING | BOOL | NIL | '(' conditional ')'
        """
        token = self.current_token

        # Parentheses
        if token.type == TokenType.LPAREN:
            self.advance()
            expr = self.parse_conditional()  # Reset precedence
            self.expect(TokenType.RPAREN)
            return expr

        # Identifier
        if token.type == TokenType.IDENTIFIER:
            self.advance()
            return Name(token.value, token.position)

        # Literals
        if token.type in (TokenType.NUMBER, TokenType.STRING, TokenType.BOOL, TokenType.NIL):
            self.advance()
            return Literal(token.value, token.position)

        # Unexpected token
        raise ParseError(
            f"Unexpected token {token.type.name} at position {token.position}",
            token.position,
        )


def parse_expression(source: str) -> Expr:
    """Parse expression string into expression tree

    Args:
        source: Expression string (e.g., "temperature < 20 && rain1h > 0")

    Returns:
        Expression tree root node

    Raises:
        LexerError: If tokenization fails
        ParseError: If parsing fails

    Examples:
        >>> expr = parse_expression("temperature >= 18")
        >>> isinstance(expr, BinaryOp)
        True
        >>> expr.operator
        '>='
    """
    if not source or not source.strip():
        raise ParseError("Empty expression", 0)

    # Tokenize
    lexer = Lexer(source)
    tokens = lexer.tokenize()

    # Parse
    parser = Parser(tokens)
    return parser.parse()
