"""Bot mention detection — does a message start by addressing the bot?

A mention by user id:
  - is case-insensitive
  - may start with `@`
  - may include the server name (`@hebbot:example.org`)
  - may be followed by `:`

A mention by display name is case-insensitive and may be followed by `:`.
"""

import re
from typing import Optional


def _split_user_id(user_id: str) -> tuple[str, Optional[str]]:
    """Split `@local:server` into (local, server)."""
    local = user_id[1:] if user_id.startswith("@") else user_id
    if ":" in local:
        local, server = local.split(":", 1)
        return local, server
    return local, None


class MentionMatcher:
    """Matches and strips mentions of one bot account.

    The user id never changes while the bot runs, so its regex is compiled
    once. The display name can change at any time; its regex is cached keyed
    by the name it was built from and rebuilt when a different name is passed.
    """

    def __init__(self, user_id: str):
        self.user_id = user_id
        local, server = _split_user_id(user_id)
        server_part = f"(:{re.escape(server)})?" if server else ""
        self._user_id_re = re.compile(
            rf"^@?{re.escape(local)}{server_part}:?", re.IGNORECASE
        )
        self._display_name_key: Optional[str] = None
        self._display_name_re: Optional[re.Pattern] = None

    def _display_name_regex(self, display_name: Optional[str]) -> Optional[re.Pattern]:
        if not display_name:
            # Name was removed, drop the stale regex
            self._display_name_key = None
            self._display_name_re = None
            return None

        if self._display_name_key != display_name:
            self._display_name_re = re.compile(
                rf"^{re.escape(display_name)}:?", re.IGNORECASE
            )
            self._display_name_key = display_name
        return self._display_name_re

    def starts_with_mention(self, text: str, display_name: Optional[str] = None) -> bool:
        """Check whether the message starts with the bot's user id or display name."""
        if self._user_id_re.match(text):
            return True
        regex = self._display_name_regex(display_name)
        return bool(regex and regex.match(text))

    def is_mentioned(
        self,
        text: str,
        display_name: Optional[str] = None,
        mentioned_ids: tuple[str, ...] = (),
    ) -> bool:
        """Textual prefix mention or an explicit mention of the bot id."""
        if self.user_id in mentioned_ids:
            return True
        return self.starts_with_mention(text, display_name)

    def strip(self, text: str, display_name: Optional[str] = None) -> str:
        """Remove a leading mention of the bot and surrounding whitespace.

        Text that doesn't start with a mention is returned unchanged
        (apart from trimming).
        """
        text = self._user_id_re.sub("", text, count=1)
        regex = self._display_name_regex(display_name)
        if regex:
            text = regex.sub("", text, count=1)
        return text.strip()
