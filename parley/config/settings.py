"""Configuration settings models using Pydantic."""

import math
from pathlib import Path
from typing import Any, Literal, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

DEFAULT_MAX_ROUNDS = 20


def coerce_round_limit(value: Any) -> int:
    """Coerce a max-rounds value into a positive integer.

    Non-numeric, non-finite and non-positive values become 1; fractional
    values are truncated toward zero.

    Examples:
        >>> coerce_round_limit(0)
        1
        >>> coerce_round_limit(3.7)
        3
        >>> coerce_round_limit("abc")
        1
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 1
    if math.isnan(number) or math.isinf(number):
        return 1
    return max(1, math.trunc(number))


class DiscussionSettings(BaseModel):
    """Settings that shape a single discussion."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    max_rounds: int = Field(
        default=DEFAULT_MAX_ROUNDS,
        validation_alias=AliasChoices("max_rounds", "maxRounds"),
    )
    tool_permissions: dict[str, bool] = Field(
        default_factory=lambda: {"moderator": True, "participant": False},
        validation_alias=AliasChoices("tool_permissions", "toolPermissions"),
    )
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    moderation_style: Literal["relaxed", "strict"] = Field(
        default="relaxed",
        validation_alias=AliasChoices("moderation_style", "moderationStyle"),
    )
    focus_topics: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("focus_topics", "focusTopics"),
    )
    allow_conflict: bool = Field(
        default=True,
        validation_alias=AliasChoices("allow_conflict", "allowConflict"),
    )

    @field_validator("max_rounds", mode="before")
    @classmethod
    def validate_max_rounds(cls, v: Any) -> int:
        return coerce_round_limit(v)

    @field_validator("tool_permissions", mode="before")
    @classmethod
    def validate_tool_permissions(cls, v: Any) -> dict[str, bool]:
        """Keep only entries with an explicit boolean value."""
        if v is None:
            return {}
        if not isinstance(v, Mapping):
            raise ValueError("tool_permissions must be a mapping of role to bool")
        return {str(role): allowed for role, allowed in v.items() if isinstance(allowed, bool)}

    @property
    def round_limit(self) -> int:
        """Effective round limit derived from max_rounds."""
        return coerce_round_limit(self.max_rounds)

    def merged(self, patch: Optional[Mapping[str, Any]] = None, **overrides: Any) -> "DiscussionSettings":
        """Return a new settings object with a partial update applied.

        Keys may use either snake_case or camelCase spellings.
        """
        data = self.model_dump()
        for key, value in {**dict(patch or {}), **overrides}.items():
            data[_FIELD_ALIASES.get(key, key)] = value
        return DiscussionSettings.model_validate(data)


_FIELD_ALIASES = {
    "maxRounds": "max_rounds",
    "toolPermissions": "tool_permissions",
    "moderationStyle": "moderation_style",
    "focusTopics": "focus_topics",
    "allowConflict": "allow_conflict",
}


class LoggingConfig(BaseModel):
    """Configuration for log output."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    file: Optional[str] = None

    @property
    def resolved_file(self) -> Optional[Path]:
        """Get the resolved log file path with ~ expanded."""
        if not self.file:
            return None
        return Path(self.file).expanduser()


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="PARLEY_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    discussion: DiscussionSettings = Field(default_factory=DiscussionSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # PARLEY_* variables override values loaded from YAML files
        return env_settings, init_settings, dotenv_settings, file_secret_settings
