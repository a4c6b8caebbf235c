"""Reaction classifier — map a reaction emoji to an editorial action."""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .config import BotConfig, Project, Section

# Appended by the bot to the reactions it suggests on a fresh submission.
SUGGESTION_MARKER = " ?"

# Emoji presentation selectors. "❤" and "❤️" are the same reaction.
_VARIATION_SELECTORS = ("\ufe0f", "\ufe0e")


class ReactionKind(Enum):
    NOTICE = "notice"
    SECTION = "section"
    PROJECT = "project"
    NONE = "none"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Reaction:
    """Classifier verdict. ``section``/``project`` are set for their kind only."""
    kind: ReactionKind
    section: Optional["Section"] = None
    project: Optional["Project"] = None


def normalize_emoji(emoji: str) -> str:
    """Strip presentation selectors and the suggestion marker.

    Args:
        emoji: Raw reaction key as sent by the client

    Returns:
        The comparable form of the emoji
    """
    if not emoji:
        return ""
    normalized = emoji.strip()
    if normalized.endswith(SUGGESTION_MARKER):
        normalized = normalized[: -len(SUGGESTION_MARKER)].rstrip()
    for selector in _VARIATION_SELECTORS:
        normalized = normalized.replace(selector, "")
    return normalized


def emoji_cmp(a: str, b: str) -> bool:
    """Return True if both emojis are the same reaction."""
    return normalize_emoji(a) == normalize_emoji(b)


def suggestion_key(emoji: str) -> str:
    """Reaction key the bot uses when suggesting ``emoji``."""
    return f"{emoji}{SUGGESTION_MARKER}"


def classify_reaction(emoji: str, config: "BotConfig") -> Reaction:
    """Classify a reaction emoji.

    The notice emoji is tested first, then sections, then projects,
    in configuration order. The first match wins.
    """
    key = normalize_emoji(emoji)
    if not key:
        return Reaction(ReactionKind.NONE)

    if config.notice_emoji and key == normalize_emoji(config.notice_emoji):
        return Reaction(ReactionKind.NOTICE)

    for section in config.sections:
        if section.emoji and key == normalize_emoji(section.emoji):
            return Reaction(ReactionKind.SECTION, section=section)

    for project in config.projects:
        if project.emoji and key == normalize_emoji(project.emoji):
            return Reaction(ReactionKind.PROJECT, project=project)

    return Reaction(ReactionKind.NONE)
