"""Tests for configuration loading."""

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from parley.config import (
    DiscussionSettings,
    Settings,
    _deep_merge,
    _expand_env_vars,
    coerce_round_limit,
    get_settings,
    load_settings,
    read_config_file,
    reset_settings,
)
from parley.errors import InvalidConfigError


class TestExpandEnvVars:
    """Tests for environment variable expansion."""

    def test_expand_simple_var(self) -> None:
        os.environ["PARLEY_TEST_VAR"] = "test_value"
        try:
            assert _expand_env_vars("${PARLEY_TEST_VAR}") == "test_value"
        finally:
            del os.environ["PARLEY_TEST_VAR"]

    def test_expand_missing_var(self) -> None:
        assert _expand_env_vars("${NONEXISTENT_VAR}") is None

    def test_expand_nested(self) -> None:
        os.environ["NESTED_VAR"] = "cost"
        try:
            data = {"discussion": {"focus_topics": ["${NESTED_VAR}", "risk"]}}
            assert _expand_env_vars(data) == {"discussion": {"focus_topics": ["cost", "risk"]}}
        finally:
            del os.environ["NESTED_VAR"]

    def test_literal_empty_string_kept(self) -> None:
        assert _expand_env_vars("") == ""
        assert _expand_env_vars({"focus_topics": [""]}) == {"focus_topics": [""]}

    def test_empty_topic_survives_loading(self, temp_dir: Path, clean_env: None) -> None:
        path = temp_dir / "config.yaml"
        path.write_text("discussion:\n  focus_topics: [\"\", cost]\n")

        settings = load_settings(config_path=path, force_reload=True)

        assert settings.discussion.focus_topics == ["", "cost"]


class TestDeepMerge:
    """Tests for dictionary deep merging."""

    def test_nested_merge(self) -> None:
        base = {"discussion": {"max_rounds": 20, "tool_permissions": {"moderator": True}}}
        override = {"discussion": {"tool_permissions": {"participant": True}}}

        assert _deep_merge(base, override) == {
            "discussion": {
                "max_rounds": 20,
                "tool_permissions": {"moderator": True, "participant": True},
            }
        }

    def test_override_non_dict(self) -> None:
        assert _deep_merge({"a": {"b": 1}}, {"a": 2}) == {"a": 2}


class TestCoerceRoundLimit:
    """Tests for coerce_round_limit."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (0, 1),
            (-5, 1),
            (3.7, 3),
            (1, 1),
            ("12", 12),
            ("abc", 1),
            (None, 1),
            (float("nan"), 1),
            (float("inf"), 1),
        ],
    )
    def test_values(self, value, expected) -> None:
        assert coerce_round_limit(value) == expected


class TestDiscussionSettings:
    """Tests for DiscussionSettings."""

    def test_defaults(self) -> None:
        settings = DiscussionSettings()

        assert settings.max_rounds == 20
        assert settings.tool_permissions == {"moderator": True, "participant": False}
        assert settings.moderation_style == "relaxed"

    def test_camel_case_input(self) -> None:
        settings = DiscussionSettings.model_validate(
            {"maxRounds": 3.7, "toolPermissions": {"participant": True}, "allowConflict": False}
        )

        assert settings.max_rounds == 3
        assert settings.round_limit == 3
        assert settings.tool_permissions == {"participant": True}
        assert settings.allow_conflict is False

    def test_non_bool_permissions_dropped(self) -> None:
        settings = DiscussionSettings(tool_permissions={"moderator": "yes", "participant": True})

        assert settings.tool_permissions == {"participant": True}

    def test_temperature_range(self) -> None:
        with pytest.raises(ValidationError):
            DiscussionSettings(temperature=3.0)

    def test_frozen(self) -> None:
        settings = DiscussionSettings()

        with pytest.raises(ValidationError):
            settings.max_rounds = 5

    def test_merged(self) -> None:
        settings = DiscussionSettings(max_rounds=10, focus_topics=["cost"])

        merged = settings.merged({"maxRounds": 0}, moderation_style="strict")

        assert merged.max_rounds == 1
        assert merged.moderation_style == "strict"
        assert merged.focus_topics == ["cost"]
        assert settings.max_rounds == 10


class TestSettings:
    """Tests for the Settings model."""

    def test_default_settings(self, clean_env: None) -> None:
        settings = Settings()

        assert settings.discussion.max_rounds == 20
        assert settings.logging.level == "INFO"
        assert settings.logging.resolved_file is None

    def test_env_vars(self, clean_env: None) -> None:
        os.environ["PARLEY_DISCUSSION__MAX_ROUNDS"] = "4"
        os.environ["PARLEY_LOGGING__LEVEL"] = "DEBUG"

        settings = Settings()

        assert settings.discussion.max_rounds == 4
        assert settings.logging.level == "DEBUG"

    def test_resolved_log_file(self) -> None:
        settings = Settings(logging={"file": "~/parley.log"})

        assert settings.logging.resolved_file == Path("~/parley.log").expanduser()


class TestLoadSettings:
    """Tests for the load_settings function."""

    def test_load_from_yaml(self, temp_config_file: Path, clean_env: None) -> None:
        settings = load_settings(config_path=temp_config_file, force_reload=True)

        assert settings.discussion.max_rounds == 5
        assert settings.discussion.moderation_style == "strict"
        assert settings.discussion.tool_permissions == {"moderator": True, "participant": True}
        assert settings.logging.level == "DEBUG"

    def test_missing_file_uses_defaults(self, temp_dir: Path, clean_env: None) -> None:
        settings = load_settings(config_path=temp_dir / "missing.yaml", force_reload=True)

        assert settings.discussion.max_rounds == 20
        assert settings.discussion.temperature == 0.7

    def test_caching(self, temp_config_file: Path, clean_env: None) -> None:
        settings1 = load_settings(config_path=temp_config_file, force_reload=True)
        settings2 = load_settings(config_path=temp_config_file)

        assert settings1 is settings2
        assert get_settings() is settings1

    def test_force_reload(self, temp_config_file: Path, clean_env: None) -> None:
        settings1 = load_settings(config_path=temp_config_file, force_reload=True)
        settings2 = load_settings(config_path=temp_config_file, force_reload=True)

        assert settings1 is not settings2
        assert settings1.discussion == settings2.discussion

    def test_reset(self, temp_config_file: Path, clean_env: None) -> None:
        settings1 = load_settings(config_path=temp_config_file, force_reload=True)
        reset_settings()

        assert load_settings(config_path=temp_config_file) is not settings1

    def test_env_overrides_yaml(self, temp_config_file: Path, clean_env: None) -> None:
        os.environ["PARLEY_DISCUSSION__MAX_ROUNDS"] = "2"

        settings = load_settings(config_path=temp_config_file, force_reload=True)

        assert settings.discussion.max_rounds == 2
        assert settings.discussion.moderation_style == "strict"


class TestReadConfigFile:
    """Tests for read_config_file."""

    def test_empty_file(self, temp_dir: Path) -> None:
        path = temp_dir / "empty.yaml"
        path.write_text("")

        assert read_config_file(path) == {}

    def test_invalid_yaml(self, temp_dir: Path) -> None:
        path = temp_dir / "broken.yaml"
        path.write_text("discussion: [unclosed\n")

        with pytest.raises(InvalidConfigError):
            read_config_file(path)

    def test_non_mapping(self, temp_dir: Path) -> None:
        path = temp_dir / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(InvalidConfigError) as exc_info:
            read_config_file(path)
        assert exc_info.value.details["reason"] == "top level must be a mapping"
