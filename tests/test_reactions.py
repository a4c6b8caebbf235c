"""Tests for emoji normalization and reaction classification."""

from hebbot.reactions import (
    ReactionKind,
    classify_reaction,
    emoji_cmp,
    normalize_emoji,
    suggestion_key,
)

from conftest import NOTICE, SPOTLIGHT_EMOJI, UPDATES_EMOJI, WIDGET_EMOJI, make_config


class TestEmojiNormalization:
    """Emoji comparison ignoring presentation details."""

    def test_variation_selector_ignored(self):
        """U+FE0F does not make two emoji different."""
        assert emoji_cmp("❤️", "❤")
        assert emoji_cmp("❤", "❤️")

    def test_suggestion_marker_stripped(self):
        """The ` ?` suffix of suggested reactions is ignored."""
        assert normalize_emoji(suggestion_key(UPDATES_EMOJI)) == UPDATES_EMOJI

    def test_suggestion_key_format(self):
        assert suggestion_key("📰") == "📰 ?"

    def test_whitespace_stripped(self):
        assert normalize_emoji("  📰 ") == "📰"

    def test_different_emojis(self):
        assert not emoji_cmp("📰", "🔦")


class TestClassifyReaction:
    """Mapping an emoji to notice, section, project or nothing."""

    def test_notice(self, config):
        assert classify_reaction(NOTICE, config).kind == ReactionKind.NOTICE

    def test_section(self, config):
        verdict = classify_reaction(SPOTLIGHT_EMOJI, config)
        assert verdict.kind == ReactionKind.SECTION
        assert verdict.section.name == "spotlight"

    def test_project(self, config):
        verdict = classify_reaction(WIDGET_EMOJI, config)
        assert verdict.kind == ReactionKind.PROJECT
        assert verdict.project.name == "widget"

    def test_unknown(self, config):
        assert classify_reaction("🍕", config).kind == ReactionKind.NONE

    def test_suggested_reaction_counts(self, config):
        """Joining a suggested reaction counts as the real emoji."""
        verdict = classify_reaction(suggestion_key(UPDATES_EMOJI), config)
        assert verdict.kind == ReactionKind.SECTION
        assert verdict.section.name == "updates"

    def test_notice_wins_over_section(self):
        """Overlapping emoji: notice is tested first."""
        config = make_config(notice_emoji=UPDATES_EMOJI)
        assert classify_reaction(UPDATES_EMOJI, config).kind == ReactionKind.NOTICE

    def test_empty_notice_never_matches(self):
        """An unconfigured notice emoji matches nothing."""
        config = make_config(notice_emoji="")
        assert classify_reaction("", config).kind != ReactionKind.NOTICE
