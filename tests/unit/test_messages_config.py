"""Tests for message models and configuration loading."""

import pytest
from pydantic import ValidationError

from whattowear.config.loader import AppConfig, load_config, parse_config
from whattowear.config.settings import Settings
from whattowear.core.exceptions import ConfigurationError
from whattowear.core.messages import Choice, Message, Variable


CONFIG_YAML = """\
openweather:
  apikey: abc
  location: Berlin
messages:
  - message: "'Test is ' + test"
    variables:
      - name: test
        choices:
          - expression: "temperature < 20 && temperature > 10"
            value: test
          - expression: "temperature <= 10"
            value: 5
  - message: "'Bring an umbrella'"
    negative_message: "'Bring two umbrellas'"
    condition: "temperature < 20"
  - message: "'Sunscreen'"
    condition: ""
    variables:
"""


# -----------------------------------------------------------------------------
# Message models
# -----------------------------------------------------------------------------


class TestMessageModels:
    """Tests for Message, Variable and Choice validation."""

    def test_aliases(self):
        message = Message.model_validate({
            "message": "'x'",
            "negative_message": "'y'",
            "condition": "temperature > 1",
        })
        assert message.template == "'x'"
        assert message.negative_template == "'y'"

    def test_field_names_accepted(self):
        message = Message(template="'x'", condition="true")
        assert message.condition == "true"
        assert message.variables == []

    def test_template_required(self):
        with pytest.raises(ValidationError):
            Message.model_validate({"condition": "true"})

    def test_blank_template_rejected(self):
        with pytest.raises(ValidationError):
            Message(template="   ")

    def test_blank_optional_fields_become_none(self):
        message = Message(template="'x'", condition="  ", negative_template="")
        assert message.condition is None
        assert message.negative_template is None

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            Message.model_validate({"message": "'x'", "colour": "red"})

    def test_duplicate_variables_rejected(self):
        with pytest.raises(ValidationError, match="duplicate variable name"):
            Message(template="'x'", variables=[Variable(name="a"), Variable(name="a")])

    def test_variable_name_must_be_identifier(self):
        with pytest.raises(ValidationError):
            Variable(name="my var")

    @pytest.mark.parametrize("name", ["and", "or", "not", "true", "false", "nil"])
    def test_variable_name_cannot_be_keyword(self, name):
        with pytest.raises(ValidationError, match="reserved word"):
            Variable(name=name)

    def test_keyword_prefix_is_a_valid_name(self):
        assert Variable(name="nothing").name == "nothing"

    def test_choice_value_coercion(self):
        assert Choice.model_validate({"expression": "true", "value": 5}).value == "5"
        assert Choice.model_validate({"expression": "true", "value": True}).value == "true"
        assert Choice.model_validate({"expression": "true", "value": None}).value == ""

    def test_choice_guard_required(self):
        with pytest.raises(ValidationError):
            Choice.model_validate({"expression": " ", "value": "x"})

    def test_messages_are_frozen(self):
        message = Message(template="'x'")
        with pytest.raises(ValidationError):
            message.template = "'y'"

    def test_label(self):
        assert Message(template="'x'").label == "'x'"
        assert Message(template="'x'", name="greeting").label == "greeting"


# -----------------------------------------------------------------------------
# Configuration file
# -----------------------------------------------------------------------------


class TestConfigLoading:
    """Tests for load_config / parse_config."""

    def test_load_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(CONFIG_YAML, encoding="utf-8")

        config = load_config(path)

        assert isinstance(config, AppConfig)
        assert len(config.messages) == 3
        first, second, third = config.messages
        assert first.variables[0].choices[1].value == "5"
        assert second.negative_template == "'Bring two umbrellas'"
        assert third.condition is None
        assert third.variables == []

    def test_message_order_preserved(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(CONFIG_YAML, encoding="utf-8")
        templates = [m.template for m in load_config(path).messages]
        assert templates == ["'Test is ' + test", "'Bring an umbrella'", "'Sunscreen'"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Could not read config file"):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("messages: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Could not parse config file"):
            load_config(path)

    def test_invalid_structure(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("messages:\n  - condition: 'true'\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid configuration") as exc_info:
            load_config(path)
        assert exc_info.value.context == {"source": str(path)}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path).messages == []

    def test_non_mapping(self):
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            parse_config(["message"])


# -----------------------------------------------------------------------------
# Settings
# -----------------------------------------------------------------------------


class TestSettings:
    """Tests for environment-backed settings."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        for name in ("CONFIG_FILE", "LOG_LEVEL", "JSON_LOGS", "MAX_WORKERS"):
            monkeypatch.delenv(f"WHATTOWEAR_{name}", raising=False)

    def test_defaults(self):
        settings = Settings()
        assert settings.config_file is None
        assert settings.log_level == "ERROR"
        assert settings.json_logs is False
        assert settings.max_workers == 1

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("WHATTOWEAR_CONFIG_FILE", "/etc/whattowear.yaml")
        monkeypatch.setenv("WHATTOWEAR_MAX_WORKERS", "4")
        monkeypatch.setenv("WHATTOWEAR_JSON_LOGS", "true")
        settings = Settings()
        assert str(settings.config_file) == "/etc/whattowear.yaml"
        assert settings.max_workers == 4
        assert settings.json_logs is True

    def test_invalid_workers(self, monkeypatch):
        monkeypatch.setenv("WHATTOWEAR_MAX_WORKERS", "0")
        with pytest.raises(ValidationError):
            Settings()
