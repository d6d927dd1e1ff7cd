"""Message definitions.

A message is a rendered line of advice ("Bring an umbrella") built from:
- an optional condition deciding between the message and its negative form
- variables whose value is picked from an ordered list of guarded choices
- a template expression producing the final string

Field names follow the configuration file format:

    messages:
      - message: "'Today it will be ' + feel"
        negative_message: "'No need for a jacket'"
        condition: "temperature < 15"
        variables:
          - name: feel
            choices:
              - expression: "temperature < 5"
                value: cold
              - expression: "temperature >= 5"
                value: chilly
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from whattowear.expressions.parser import KEYWORDS


class Choice(BaseModel):
    """A candidate value for a variable, taken when its guard is true."""
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    guard: str = Field(alias="expression")
    value: str = ""

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, v: object) -> object:
        # YAML turns bare values like 5 or yes into numbers and bools
        if v is None:
            return ""
        if isinstance(v, (bool, int, float)):
            return str(v).lower() if isinstance(v, bool) else str(v)
        return v

    @field_validator("guard")
    @classmethod
    def validate_guard(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("choice expression cannot be empty")
        return v


class Variable(BaseModel):
    """A named value resolved from its choices on every evaluation pass."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    choices: List[Choice] = Field(default_factory=list)

    @field_validator("choices", mode="before")
    @classmethod
    def none_to_empty(cls, v: object) -> object:
        return [] if v is None else v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.isidentifier():
            raise ValueError(f"variable name must be an identifier, got {v!r}")
        if v in KEYWORDS:
            raise ValueError(f"variable name {v!r} is a reserved word in expressions")
        return v


class Message(BaseModel):
    """A configured message.

    Examples:
        Message(template="'Bring an umbrella'", condition="rain1h > 0")
        Message(
            template="'Bring an umbrella'",
            negative_template="'Leave the umbrella at home'",
            condition="rain1h > 0",
        )
    """
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    template: str = Field(alias="message")
    negative_template: Optional[str] = Field(default=None, alias="negative_message")
    condition: Optional[str] = None
    variables: List[Variable] = Field(default_factory=list)
    name: Optional[str] = None

    @field_validator("variables", mode="before")
    @classmethod
    def none_to_empty(cls, v: object) -> object:
        return [] if v is None else v

    @field_validator("template")
    @classmethod
    def validate_template(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message cannot be empty")
        return v

    @field_validator("negative_template", "condition")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def validate_unique_variables(self) -> "Message":
        seen = set()
        for variable in self.variables:
            if variable.name in seen:
                raise ValueError(f"duplicate variable name: {variable.name}")
            seen.add(variable.name)
        return self

    @property
    def label(self) -> str:
        """Short identity for log lines."""
        return self.name or self.template
