"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from hebbot.config import BotConfig, Project, Section
from hebbot.errors import TargetUnresolvableError
from hebbot.events import Audience, ResolvedMessage, Transport
from hebbot.models import MessageKind
from hebbot.store import NewsStore

BOT_ID = "@hebbot:example.org"
EDITOR_ID = "@editor:example.org"
ALICE_ID = "@alice:example.org"
BOB_ID = "@bob:example.org"
REPORTING_ROOM = "!reporting:example.org"
ADMIN_ROOM = "!admin:example.org"

NOTICE = "⭕"
UPDATES_EMOJI = "📰"
SPOTLIGHT_EMOJI = "🔦"
WIDGET_EMOJI = "🧩"

T0 = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)


def at(minutes: float) -> datetime:
    """Timestamp `minutes` after T0."""
    return T0 + timedelta(minutes=minutes)


class FakeTransport(Transport):
    """Records everything sent; resolves messages from a dict."""

    def __init__(self, display_name: Optional[str] = "Hebbot"):
        self.display_name = display_name
        self.messages: dict[str, ResolvedMessage] = {}
        self.notices: list[tuple[Audience, str, bool]] = []
        self.texts: list[tuple[Audience, str]] = []
        self.reactions: list[tuple[str, str]] = []
        self.uploads: list[tuple[bytes, str, str]] = []
        self.files: list[tuple[Audience, str, str]] = []

    def add_message(self, message_id, sender_id, kind=MessageKind.TEXT, timestamp=T0, body=None,
                    display_name=None, locator=None, filename=None):
        self.messages[message_id] = ResolvedMessage(
            id=message_id,
            kind=kind,
            sender_id=sender_id,
            timestamp=timestamp,
            body=body,
            sender_display_name=display_name,
            media_locator=locator,
            media_filename=filename,
        )

    async def resolve_message(self, message_id):
        if message_id not in self.messages:
            raise TargetUnresolvableError(f"unknown message {message_id}")
        return self.messages[message_id]

    async def own_display_name(self):
        return self.display_name

    async def send_notice(self, audience, text, html=True):
        self.notices.append((audience, text, html))

    async def send_text(self, audience, text):
        self.texts.append((audience, text))

    async def send_reaction(self, target_id, key):
        self.reactions.append((target_id, key))

    async def upload(self, data, content_type, filename):
        self.uploads.append((data, content_type, filename))
        return f"mxc://example.org/upload{len(self.uploads)}"

    async def send_file(self, audience, locator, filename):
        self.files.append((audience, locator, filename))

    def media_download_url(self, locator):
        if not locator.startswith("mxc://"):
            return None
        return f"https://example.org/_matrix/media/v3/download/{locator[6:]}"

    def admin_notices(self) -> list[str]:
        return [text for audience, text, _ in self.notices if audience == Audience.ADMIN]


def make_config(**overrides) -> BotConfig:
    values = dict(
        bot_user_id=BOT_ID,
        reporting_room_id=REPORTING_ROOM,
        admin_room_id=ADMIN_ROOM,
        notice_emoji=NOTICE,
        editors=[EDITOR_ID],
        ack_text="Thanks {{user}}, your update was stored!",
        sections=[
            Section(name="updates", title="Updates", emoji=UPDATES_EMOJI, order=1),
            Section(name="spotlight", title="Spotlight", emoji=SPOTLIGHT_EMOJI, order=2,
                    usual_reporters=[BOB_ID]),
        ],
        projects=[
            Project(
                name="widget",
                title="Widget",
                description="{{project}} is a toolkit for dashboards.",
                website="https://widget.example.org",
                emoji=WIDGET_EMOJI,
                default_section="updates",
            ),
        ],
    )
    values.update(overrides)
    return BotConfig(**values)


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def store(tmp_path):
    return NewsStore(str(tmp_path / "store.json"))


@pytest.fixture
def transport():
    return FakeTransport()
