"""Tests for bot mention detection."""

from hebbot.mentions import MentionMatcher

from conftest import BOT_ID


class TestStartsWithMention:
    """Detecting a mention at the start of a message."""

    def setup_method(self):
        self.matcher = MentionMatcher(BOT_ID)

    def test_user_id_variants(self):
        """Localpart, full id, leading @ and trailing colon are all accepted."""
        for text in [
            "@hebbot:example.org: news",
            "@hebbot:example.org news",
            "hebbot:example.org: news",
            "@hebbot: news",
            "hebbot: news",
            "hebbot news",
            "HEBBOT: news",
        ]:
            assert self.matcher.starts_with_mention(text), text

    def test_not_at_start(self):
        assert not self.matcher.starts_with_mention("news for hebbot")

    def test_display_name(self):
        assert self.matcher.starts_with_mention("The Bot: news", "The Bot")
        assert self.matcher.starts_with_mention("the bot news", "The Bot")
        assert not self.matcher.starts_with_mention("The Bot: news", None)

    def test_display_name_cache_follows_changes(self):
        """A new display name replaces the cached pattern."""
        assert self.matcher.starts_with_mention("Newsbot: hi", "Newsbot")
        assert not self.matcher.starts_with_mention("Newsbot: hi", "Reporter")
        assert self.matcher.starts_with_mention("Reporter: hi", "Reporter")

    def test_display_name_with_regex_characters(self):
        """Display names are matched literally."""
        assert self.matcher.starts_with_mention("bot (beta): hi", "bot (beta)")


class TestIsMentioned:
    """Explicit mentions from m.mentions."""

    def test_explicit_mention(self):
        matcher = MentionMatcher(BOT_ID)
        assert matcher.is_mentioned("Look at this", mentioned_ids=(BOT_ID,))
        assert not matcher.is_mentioned("Look at this", mentioned_ids=("@alice:example.org",))


class TestStrip:
    """Removing the mention from the stored message."""

    def test_strip_user_id(self):
        matcher = MentionMatcher(BOT_ID)
        assert matcher.strip("@hebbot:example.org: Shipped it") == "Shipped it"
        assert matcher.strip("hebbot: Shipped it") == "Shipped it"

    def test_strip_display_name(self):
        matcher = MentionMatcher(BOT_ID)
        assert matcher.strip("The Bot: Shipped it", "The Bot") == "Shipped it"

    def test_no_mention_only_trims(self):
        """Without a mention the text is only trimmed."""
        matcher = MentionMatcher(BOT_ID)
        assert matcher.strip("  Shipped it  ") == "Shipped it"
