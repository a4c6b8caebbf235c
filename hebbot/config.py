"""Hebbot configuration management.

Two layers:
- HebbotSettings: process settings from environment variables or .env
- BotConfig: the editorial configuration (rooms, editors, sections, projects)
  loaded from a TOML file and validated once at startup
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings

from .errors import ConfigError
from .reactions import normalize_emoji

logger = logging.getLogger("hebbot.config")


class HebbotSettings(BaseSettings):
    """Settings loaded from environment variables or .env file."""

    # Files
    config_path: str = Field(default="./config.toml", description="Bot configuration (TOML)")
    store_path: str = Field(default="./store.json", description="News store (JSON)")
    template_path: str = Field(default="./template.md", description="Report template (jinja2)")

    # Matrix
    homeserver_url: Optional[str] = Field(default=None, description="Override the homeserver URL")
    bot_password: Optional[str] = Field(default=None, description="Password of the bot account")

    # Logging
    debug: bool = Field(default=False, description="Debug logging")
    log_file: Optional[str] = Field(default=None, description="Also log to this file")

    model_config = {"env_prefix": "HEBBOT_", "env_file": ".env", "extra": "ignore"}


def load_settings() -> HebbotSettings:
    """Load settings from environment."""
    settings = HebbotSettings()

    store_dir = os.path.dirname(os.path.abspath(settings.store_path))
    if not os.path.isdir(store_dir):
        logger.warning(
            f"Store directory {store_dir} does not exist, "
            "every news entry will fail to persist."
        )

    return settings


# ============================================================
# EDITORIAL CONFIGURATION
# ============================================================

class Section(BaseModel):
    """A top-level report category."""

    model_config = ConfigDict(frozen=True)

    name: str
    title: str = ""
    emoji: str = ""
    order: int = 0
    usual_reporters: list[str] = Field(default_factory=list)


class Project(BaseModel):
    """A named subject with a default section and a description template."""

    model_config = ConfigDict(frozen=True)

    name: str
    title: str = ""
    description: str = ""  # may contain {{project}}, replaced by a link to the website
    website: str = ""
    emoji: str = ""
    default_section: str = ""
    usual_reporters: list[str] = Field(default_factory=list)


class BotConfig(BaseModel):
    """Editorial configuration, immutable after loading."""

    model_config = ConfigDict(frozen=True)

    bot_user_id: str
    reporting_room_id: str
    admin_room_id: str
    notice_emoji: str = ""
    # Members may use the notice emoji on their own messages and media
    public_notice: bool = True
    verbs: list[str] = Field(default_factory=lambda: ["reports", "says", "announces"])
    min_length: int = 30
    ack_text: str = ""
    editors: list[str] = Field(default_factory=list)
    sections: list[Section] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    image_markdown: str = "![]({{file}})"
    video_markdown: str = "{{file}}"
    publish_command: Optional[str] = None

    def section_by_name(self, name: str) -> Optional[Section]:
        for section in self.sections:
            if section.name == name:
                return section
        return None

    def project_by_name(self, name: str) -> Optional[Project]:
        for project in self.projects:
            if project.name == name:
                return project
        return None

    def sections_by_usual_reporter(self, reporter_id: str) -> list[Section]:
        return [s for s in self.sections if reporter_id in s.usual_reporters]

    def is_editor(self, user_id: str) -> bool:
        return user_id in self.editors


@dataclass
class ConfigResult:
    config: BotConfig
    warnings: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


def load_config(path: str) -> ConfigResult:
    """Read, parse and validate the TOML bot configuration.

    Raises:
        ConfigError: file missing, not TOML, or failing schema validation
    """
    logger.debug(f"Trying to read config file from path: {path}")
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Unable to open config file: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Unable to parse config file {path}: {e}") from e

    try:
        config = BotConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e

    result = validate_config(config)
    if "restrict_notice" in data:
        result.warnings.append(
            "“restrict_notice” is no longer supported and is ignored. Use “public_notice” "
            f"instead (currently {str(config.public_notice).lower()})."
        )
    return result


def validate_config(config: BotConfig) -> ConfigResult:
    """Collect warnings and notes about a configuration that parsed fine
    but will make the bot misbehave."""
    warnings: list[str] = []
    notes: list[str] = []

    if not config.notice_emoji:
        warnings.append("The notice emoji isn’t configured. The bot will not work properly.")

    if not config.editors:
        warnings.append("No editor is specified, the bot cannot be used without an editor.")

    if not config.sections:
        notes.append("No sections are configured in the configuration file.")

    if not config.projects:
        warnings.append("No projects are configured in the configuration file.")

    if not config.verbs:
        warnings.append("No reporting verbs are configured, “reports” will be used for every news entry.")

    section_names = set()
    for section in config.sections:
        if not section.name:
            warnings.append("Section without name found, this can lead to undefined behavior.")
            continue
        section_names.add(section.name)
        if not section.emoji:
            warnings.append(
                f"Section “{section.name}” doesn’t have an emoji, this can lead to undefined behavior."
            )

    for project in config.projects:
        if not project.name:
            warnings.append("Project without name found, this can lead to undefined behavior.")
            continue
        if not project.emoji:
            warnings.append(
                f"Project “{project.name}” doesn’t have an emoji, this can lead to undefined behavior."
            )
        if not project.default_section:
            warnings.append(
                f"Project “{project.name}” doesn’t have a default section, this can lead to undefined behavior."
            )
            continue
        if project.default_section not in section_names:
            warnings.append(
                f"Project “{project.name}” has an unknown default section “{project.default_section}”, "
                "this can lead to undefined behavior."
            )

    # Duplicated names / emojis. The notice emoji takes part in the emoji
    # check since the classifier tests it first.
    seen_emojis: set[str] = set()
    emoji_duplicates: set[str] = set()
    seen_names: set[str] = set()
    name_duplicates: set[str] = set()

    if config.notice_emoji:
        seen_emojis.add(normalize_emoji(config.notice_emoji))

    for item in [*config.sections, *config.projects]:
        if item.emoji:
            emoji = normalize_emoji(item.emoji)
            if emoji in seen_emojis:
                emoji_duplicates.add(item.emoji)
            seen_emojis.add(emoji)
        if item.name:
            if item.name in seen_names:
                name_duplicates.add(item.name)
            seen_names.add(item.name)

    if emoji_duplicates:
        warnings.append(
            f"At least one emoji is duplicated, this can lead to undefined behavior: {sorted(emoji_duplicates)}"
        )
    if name_duplicates:
        warnings.append(
            f"At least one name is duplicated, this can lead to undefined behavior: {sorted(name_duplicates)}"
        )

    return ConfigResult(config=config, warnings=warnings, notes=notes)
