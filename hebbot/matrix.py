"""Matrix transport — the Matrix client-server API over httpx.

Translates sync timeline events into the normalized events of events.py:
- m.room.message (m.text / m.notice)       → MessageCreated
- m.room.message with an m.replace relation → MessageEdited (m.text only)
- m.reaction (m.annotation relation)       → ReactionAdded
- m.room.redaction                         → ReactionRemoved

Everything older than the first sync is skipped, so a restart doesn't
replay the room history into the engine.
"""

import asyncio
import itertools
import logging
import time
from datetime import datetime, timezone
from typing import AsyncIterator, Optional
from urllib.parse import quote

import httpx

from .config import BotConfig
from .errors import TargetUnresolvableError
from .events import (
    Audience,
    InboundEvent,
    MessageCreated,
    MessageEdited,
    ReactionAdded,
    ReactionRemoved,
    ResolvedMessage,
    Transport,
)
from .models import MessageKind

logger = logging.getLogger("hebbot.matrix")

CLIENT_API = "/_matrix/client/v3"
MEDIA_API = "/_matrix/media/v3"

SYNC_TIMEOUT_MS = 30000
SYNC_RETRY_MAX_DELAY = 60.0

_MSGTYPES = {
    "m.text": MessageKind.TEXT,
    "m.notice": MessageKind.NOTICE,
    "m.image": MessageKind.IMAGE,
    "m.video": MessageKind.VIDEO,
}


def _q(value: str) -> str:
    return quote(value, safe="")


def _timestamp(raw: dict) -> datetime:
    ts = raw.get("origin_server_ts")
    if ts is None:
        return datetime.now(timezone.utc)
    return datetime.fromtimestamp(ts / 1000, tz=timezone.utc)


def server_name(user_id: str) -> str:
    """`@hebbot:example.org` → `example.org`."""
    return user_id.split(":", 1)[1] if ":" in user_id else user_id


class MatrixTransport(Transport):
    """Transport for one reporting room and one admin room."""

    def __init__(
        self,
        config: BotConfig,
        homeserver_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
        retry_delay: float = 1.0,
    ):
        self.config = config
        self.retry_delay = retry_delay
        self.homeserver_url = (homeserver_url or f"https://{server_name(config.bot_user_id)}").rstrip("/")
        self._client = client or httpx.AsyncClient(base_url=self.homeserver_url, timeout=timeout)
        self._since: Optional[str] = None
        self._txn_counter = itertools.count()

    async def close(self):
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        response = await self._client.request(method, path, **kwargs)
        response.raise_for_status()
        return response.json()

    # ── Session ──

    async def login(self, password: str):
        """Password login; the access token is used for every later request."""
        localpart = self.config.bot_user_id.lstrip("@").split(":", 1)[0]
        logger.info("Logging in…")
        data = await self._request("POST", f"{CLIENT_API}/login", json={
            "type": "m.login.password",
            "identifier": {"type": "m.id.user", "user": localpart},
            "password": password,
            "initial_device_display_name": "hebbot",
        })
        self._client.headers["Authorization"] = f"Bearer {data['access_token']}"
        logger.info(f"Logged in as {data.get('user_id')}, got device_id {data.get('device_id')}")

    async def join(self, room_id: str):
        await self._request("POST", f"{CLIENT_API}/join/{_q(room_id)}", json={})
        logger.info(f"Joined room {room_id}")

    # ── Sync ──

    async def sync_once(self, timeout_ms: int = 0) -> list[InboundEvent]:
        """One /sync round. The very first round only records the position."""
        params = {"timeout": timeout_ms}
        if self._since:
            params["since"] = self._since
        data = await self._request(
            "GET", f"{CLIENT_API}/sync", params=params,
            timeout=httpx.Timeout(timeout_ms / 1000 + 30),
        )

        first = self._since is None
        self._since = data.get("next_batch", self._since)
        if first:
            logger.info("Initial sync done, skipping room history")
            return []

        events: list[InboundEvent] = []
        joined = data.get("rooms", {}).get("join", {})
        for room_id in (self.config.reporting_room_id, self.config.admin_room_id):
            timeline = joined.get(room_id, {}).get("timeline", {}).get("events", [])
            for raw in timeline:
                event = await self.translate_event(room_id, raw)
                if event is not None:
                    events.append(event)
        return events

    async def events(self) -> AsyncIterator[InboundEvent]:
        """Long-poll /sync forever and yield normalized events.

        Transient sync failures are retried with exponential backoff.
        Rejected credentials (401/403) end the loop.
        """
        logger.info("Started syncing…")
        delay = self.retry_delay
        while True:
            try:
                events = await self.sync_once(SYNC_TIMEOUT_MS)
            except httpx.HTTPStatusError as e:
                if e.response.status_code in (401, 403):
                    raise
                logger.warning(f"Sync failed ({e.response.status_code}), retrying in {delay:.0f}s")
                await asyncio.sleep(delay)
                delay = min(delay * 2, SYNC_RETRY_MAX_DELAY)
                continue
            except httpx.HTTPError as e:
                logger.warning(f"Sync failed ({type(e).__name__}: {e}), retrying in {delay:.0f}s")
                await asyncio.sleep(delay)
                delay = min(delay * 2, SYNC_RETRY_MAX_DELAY)
                continue

            delay = self.retry_delay
            for event in events:
                yield event

    async def translate_event(self, room_id: str, raw: dict) -> Optional[InboundEvent]:
        """Normalize one timeline event, or None if the core doesn't care about it."""
        event_type = raw.get("type")
        content = raw.get("content") or {}
        sender = raw.get("sender", "")

        if event_type == "m.room.redaction":
            redacts = raw.get("redacts") or content.get("redacts")
            if not redacts:
                return None
            return ReactionRemoved(reaction_id=redacts, sender_id=sender, room_id=room_id)

        if event_type == "m.reaction":
            relation = content.get("m.relates_to") or {}
            if relation.get("rel_type") != "m.annotation" or not relation.get("key"):
                return None
            return ReactionAdded(
                reaction_id=raw["event_id"],
                target_id=relation["event_id"],
                sender_id=sender,
                emoji=relation["key"],
                room_id=room_id,
            )

        if event_type != "m.room.message":
            return None

        relation = content.get("m.relates_to") or {}
        if relation.get("rel_type") == "m.replace":
            new_content = content.get("m.new_content") or {}
            if new_content.get("msgtype", "m.text") != "m.text":
                return None
            return MessageEdited(
                original_id=relation["event_id"],
                new_body=new_content.get("body", ""),
                room_id=room_id,
                sender_id=sender,
            )

        kind = _MSGTYPES.get(content.get("msgtype"), MessageKind.OTHER)
        if not kind.is_text:
            return None

        mentions = (content.get("m.mentions") or {}).get("user_ids") or []
        return MessageCreated(
            id=raw["event_id"],
            sender_id=sender,
            body=content.get("body", ""),
            room_id=room_id,
            timestamp=_timestamp(raw),
            kind=kind,
            sender_display_name=await self.member_display_name(room_id, sender),
            mentions=tuple(mentions),
        )

    # ── Lookups ──

    async def resolve_message(self, message_id: str) -> ResolvedMessage:
        room_id = self.config.reporting_room_id
        try:
            raw = await self._request("GET", f"{CLIENT_API}/rooms/{_q(room_id)}/event/{_q(message_id)}")
        except httpx.HTTPError as e:
            raise TargetUnresolvableError(f"Unable to fetch message {message_id}: {e}") from e

        content = raw.get("content") or {}
        sender = raw.get("sender", "")
        kind = MessageKind.OTHER
        if raw.get("type") == "m.room.message":
            kind = _MSGTYPES.get(content.get("msgtype"), MessageKind.OTHER)

        return ResolvedMessage(
            id=raw.get("event_id", message_id),
            kind=kind,
            sender_id=sender,
            timestamp=_timestamp(raw),
            body=content.get("body") if kind.is_text else None,
            sender_display_name=await self.member_display_name(room_id, sender),
            media_locator=content.get("url") if kind.is_media else None,
            media_filename=(content.get("filename") or content.get("body")) if kind.is_media else None,
        )

    async def member_display_name(self, room_id: str, user_id: str) -> Optional[str]:
        try:
            data = await self._request(
                "GET", f"{CLIENT_API}/rooms/{_q(room_id)}/state/m.room.member/{_q(user_id)}"
            )
        except httpx.HTTPError as e:
            logger.debug(f"No member state for {user_id} in {room_id}: {e}")
            return None
        return data.get("displayname")

    async def own_display_name(self) -> Optional[str]:
        try:
            data = await self._request(
                "GET", f"{CLIENT_API}/profile/{_q(self.config.bot_user_id)}/displayname"
            )
        except httpx.HTTPError as e:
            logger.debug(f"Unable to get own display name: {e}")
            return None
        return data.get("displayname")

    # ── Sending ──

    def _room(self, audience: Audience) -> str:
        if audience == Audience.ADMIN:
            return self.config.admin_room_id
        return self.config.reporting_room_id

    def _txn_id(self) -> str:
        return f"hebbot{int(time.time() * 1000)}.{next(self._txn_counter)}"

    async def _send(self, room_id: str, event_type: str, content: dict) -> str:
        path = f"{CLIENT_API}/rooms/{_q(room_id)}/send/{event_type}/{self._txn_id()}"
        data = await self._request("PUT", path, json=content)
        return data.get("event_id", "")

    async def send_notice(self, audience: Audience, text: str, html: bool = True):
        logger.debug(f"Send notice ({audience.value}): {text}")
        content = {"msgtype": "m.notice", "body": text}
        if html:
            content["format"] = "org.matrix.custom.html"
            content["formatted_body"] = text
        await self._send(self._room(audience), "m.room.message", content)

    async def send_text(self, audience: Audience, text: str):
        logger.debug(f"Send text ({audience.value}): {text}")
        await self._send(self._room(audience), "m.room.message", {"msgtype": "m.text", "body": text})

    async def send_reaction(self, target_id: str, key: str):
        await self._send(self.config.reporting_room_id, "m.reaction", {
            "m.relates_to": {"rel_type": "m.annotation", "event_id": target_id, "key": key},
        })

    async def upload(self, data: bytes, content_type: str, filename: str) -> str:
        response = await self._request(
            "POST", f"{MEDIA_API}/upload",
            params={"filename": filename},
            headers={"Content-Type": content_type},
            content=data,
        )
        return response["content_uri"]

    async def send_file(self, audience: Audience, locator: str, filename: str):
        logger.debug(f"Send file (url: {locator}, room: {audience.value})")
        await self._send(self._room(audience), "m.room.message", {
            "msgtype": "m.file",
            "body": filename,
            "filename": filename,
            "url": locator,
        })

    def media_download_url(self, locator: str) -> Optional[str]:
        if not locator.startswith("mxc://"):
            return None
        server, _, media_id = locator[len("mxc://"):].partition("/")
        if not server or not media_id:
            return None
        return f"{self.homeserver_url}{MEDIA_API}/download/{server}/{media_id}"
