"""Annotation engine — turns reporting room events into news store changes.

Event → effect:
- Message addressing the bot        → new news entry (+ suggested reactions)
- Edit of a news message            → message text replaced
- Notice emoji on a text message    → new news entry
- Notice emoji on an image/video    → media attached to the reporter's nearest entry
- Section/project emoji (editors)   → tag added, keyed by the reaction id
- Retraction                        → news entry, media or single tag removed

Every handler returns the messages to send instead of sending them, so no
transport I/O ever happens while the store lock is held. handle_event()
delivers them afterwards; delivery is best-effort and never rolls back
the already persisted change.
"""

import logging
import re
from typing import Optional

from .config import BotConfig
from .errors import DuplicateIdError, InsufficientPrivilegeError, NewsNotFoundError, TargetUnresolvableError
from .events import (
    InboundEvent,
    MessageCreated,
    MessageEdited,
    Outbound,
    ReactionAdded,
    ReactionRemoved,
    ResolvedMessage,
    Transport,
    admin,
    reaction,
    reporting,
)
from .formatting import message_link
from .mentions import MentionMatcher
from .models import AnnotationKind, MediaAttachment, MessageKind, News
from .reactions import Reaction, ReactionKind, classify_reaction, suggestion_key
from .store import NewsStore

logger = logging.getLogger("hebbot.engine")


class AnnotationEngine:
    """Event handling for the reporting room."""

    def __init__(self, config: BotConfig, store: NewsStore, transport: Transport):
        self.config = config
        self.store = store
        self.transport = transport
        self.mentions = MentionMatcher(config.bot_user_id)

    async def handle_event(self, event: InboundEvent) -> list[Outbound]:
        """Process one event and deliver the resulting messages."""
        outbound = await self.process(event)
        await self.deliver(outbound)
        return outbound

    async def process(self, event: InboundEvent) -> list[Outbound]:
        if isinstance(event, MessageCreated):
            return await self.on_message(event)
        if isinstance(event, MessageEdited):
            return await self.on_edit(event)
        if isinstance(event, ReactionAdded):
            return await self.on_reaction(event)
        if isinstance(event, ReactionRemoved):
            return await self.on_retraction(event)
        raise TypeError(f"Unsupported event type: {type(event).__name__}")

    async def deliver(self, outbound: list[Outbound]):
        for item in outbound:
            try:
                await self.transport.deliver(item)
            except Exception as e:
                logger.error(f"Could not deliver {item.audience.value} message: {e}")

    # ============================================================
    # MESSAGES
    # ============================================================

    async def on_message(self, event: MessageCreated) -> list[Outbound]:
        # Notices are bot output, never submissions
        if event.sender_id == self.config.bot_user_id or event.kind != MessageKind.TEXT:
            return []

        display_name = await self.transport.own_display_name()
        if not self.mentions.is_mentioned(event.body, display_name, event.mentions):
            return []

        news = News(
            id=event.id,
            reporter_id=event.sender_id,
            reporter_display_name=event.sender_display_name or event.sender_id,
            message=event.body,
            timestamp=event.timestamp,
        )
        return self._submit(news, display_name, notify_reporter=True)

    async def on_edit(self, event: MessageEdited) -> list[Outbound]:
        if self.store.by_message_id(event.original_id) is None:
            logger.debug(f"Ignoring edit of {event.original_id}, not a news entry")
            return []

        display_name = await self.transport.own_display_name()
        updated = self.mentions.strip(event.new_body, display_name)
        try:
            news = self.store.set_message(event.original_id, updated)
        except NewsNotFoundError:
            # Deleted between lookup and update
            return []

        if not news.is_assigned():
            return []
        return [admin(
            f"⚠️ The news entry by {news.reporter_id} got edited. Check the new text, "
            f"and make sure you want to keep the assigned project/section. [{self._link(news.id)}]"
        )]

    def _submit(self, news: News, display_name: Optional[str], notify_reporter: bool) -> list[Outbound]:
        """Store a new submission after the duplicate and length checks."""
        link = self._link(news.id)
        if self.store.by_message_id(news.id) is not None:
            return [admin(f"⚠️ Cannot resubmit a news item that has already been added. [{link}]")]

        news.message = self.mentions.strip(news.message, display_name)
        if len(news.message) <= self.config.min_length:
            return [reporting(
                f"❌ {news.reporter_display_name}: Your update is too short and was not stored. "
                "This limitation was set-up to limit spam."
            )]

        try:
            self.store.add(news)
        except DuplicateIdError:
            return [admin(f"⚠️ Cannot resubmit a news item that has already been added. [{link}]")]

        logger.info(f"News entry {news.id} submitted by {news.reporter_id}")
        outbound = []
        if notify_reporter and self.config.ack_text:
            outbound.append(reporting(self.config.ack_text.replace("{{user}}", news.reporter_display_name)))
        outbound.append(admin(f"✅ {news.reporter_id} submitted a news entry. [{link}]"))
        outbound.extend(self._suggestions(news))
        return outbound

    def _suggestions(self, news: News) -> list[Outbound]:
        """Pre-populate reactions an editor is likely to apply."""
        suggestions = []
        for project in self.config.projects:
            if not project.emoji:
                continue
            words = [re.escape(w) for w in (project.name, project.title) if w]
            if not words:
                continue
            pattern = "|".join(rf"\b{w}\b" for w in words)
            if re.search(pattern, news.message, re.IGNORECASE):
                suggestions.append(reaction(news.id, suggestion_key(project.emoji)))

        for section in self.config.sections_by_usual_reporter(news.reporter_id):
            if section.emoji:
                suggestions.append(reaction(news.id, suggestion_key(section.emoji)))
        return suggestions

    # ============================================================
    # REACTIONS
    # ============================================================

    async def on_reaction(self, event: ReactionAdded) -> list[Outbound]:
        if event.sender_id == self.config.bot_user_id:
            return []

        verdict = classify_reaction(event.emoji, self.config)
        if verdict.kind == ReactionKind.NONE:
            logger.debug(f"Ignoring emoji reaction, doesn't match any known emoji ({event.emoji!r})")
            return []

        is_editor = self.config.is_editor(event.sender_id)
        try:
            self._check_privilege(verdict, is_editor)
        except InsufficientPrivilegeError as e:
            logger.debug(f"Ignoring reaction {event.reaction_id}: {e}")
            return []

        link = self._link(event.target_id)
        try:
            target = await self.transport.resolve_message(event.target_id)
        except TargetUnresolvableError as e:
            logger.warning(f"Couldn't get reaction related message {event.target_id}: {e}")
            if not is_editor:
                return []
            return [admin(
                f"⚠️ Unable to process {event.sender_id}’s {verdict.kind} reaction, "
                f"the message couldn’t be fetched [{link}]\n(ID {event.target_id})"
            )]

        if target.kind.is_text:
            if verdict.kind == ReactionKind.NOTICE:
                return await self._notice_on_text(event, target, is_editor)
            return self._tag(event, verdict, target)

        if target.kind.is_media:
            if verdict.kind == ReactionKind.NOTICE:
                return self._notice_on_media(event, target, is_editor)
            return [admin(
                f"❌ Invalid reaction emoji {event.emoji} by {event.sender_id} "
                f"for message type {target.kind.value} [{link}]."
            )]

        logger.debug(f"Unsupported message type {target.kind.value} (id {target.id})")
        return []

    def _check_privilege(self, verdict: Reaction, is_editor: bool):
        if is_editor:
            return
        if verdict.kind in (ReactionKind.SECTION, ReactionKind.PROJECT):
            raise InsufficientPrivilegeError(f"{verdict.kind} reactions are reserved to editors")
        if verdict.kind == ReactionKind.NOTICE and not self.config.public_notice:
            raise InsufficientPrivilegeError("notice reactions are restricted to editors")

    def _may_submit(self, event: ReactionAdded, target: ResolvedMessage, is_editor: bool) -> bool:
        # Members may only submit their own messages
        return is_editor or (self.config.public_notice and event.sender_id == target.sender_id)

    async def _notice_on_text(self, event: ReactionAdded, target: ResolvedMessage, is_editor: bool) -> list[Outbound]:
        if not self._may_submit(event, target, is_editor):
            logger.debug(f"Ignoring notice reaction by {event.sender_id} on someone else's message")
            return []

        display_name = await self.transport.own_display_name()
        news = News(
            id=target.id,
            reporter_id=target.sender_id,
            reporter_display_name=target.sender_display_name or target.sender_id,
            message=target.body or "",
            timestamp=target.timestamp,
        )
        return self._submit(news, display_name, notify_reporter=False)

    def _notice_on_media(self, event: ReactionAdded, target: ResolvedMessage, is_editor: bool) -> list[Outbound]:
        if not self._may_submit(event, target, is_editor):
            logger.debug(f"Ignoring notice reaction by {event.sender_id} on someone else's media")
            return []

        kind = target.kind.value
        link = self._link(target.id)
        if not target.media_locator:
            logger.debug(f"Media message {target.id} has no content locator")
            return []

        attachment = MediaAttachment(
            source_id=target.id,
            filename=target.media_filename or target.media_locator.rsplit("/", 1)[-1],
            locator=target.media_locator,
            kind=target.kind,
        )
        news = self.store.attach_media_to_nearest(
            target.sender_id, target.timestamp, event.reaction_id, attachment
        )
        if news is None:
            return [admin(
                f"❌ Unable to save {event.sender_id}’s {kind}, no matching news entry found ({link})."
            )]
        return [admin(
            f"✅ Added {kind} to {news.reporter_id}’s news entry (“{news.summary()}”) [{link}]."
        )]

    def _tag(self, event: ReactionAdded, verdict: Reaction, target: ResolvedMessage) -> list[Outbound]:
        link = self._link(target.id)
        try:
            if verdict.kind == ReactionKind.SECTION:
                news = self.store.add_section_tag(target.id, event.reaction_id, verdict.section.name)
                return [admin(
                    f"✅ {event.sender_id} added {news.reporter_id}’s news entry [{link}] "
                    f"to the “{verdict.section.title}” section."
                )]
            news = self.store.add_project_tag(target.id, event.reaction_id, verdict.project.name)
            return [admin(
                f"✅ {event.sender_id} added the project description “{verdict.project.title}” "
                f"to {news.reporter_id}’s news entry [{link}]."
            )]
        except NewsNotFoundError:
            return [admin(
                f"⚠️ Unable to process {event.sender_id}’s {verdict.kind} reaction, message doesn’t exist "
                f"or isn’t a news submission [{link}]\n(ID {target.id})"
            )]

    # ============================================================
    # RETRACTIONS
    # ============================================================

    async def on_retraction(self, event: ReactionRemoved) -> list[Outbound]:
        redacted_id = event.reaction_id
        redactor = event.sender_id or "Someone"

        # The news message itself
        try:
            news = self.store.remove(redacted_id)
            logger.info(f"News entry {redacted_id} deleted by {redactor}")
            return [admin(f"✅ {news.reporter_id}’s news entry got deleted by {redactor}.")]
        except NewsNotFoundError:
            pass

        # An attached image / video message
        changed = self.store.remove_media_from_source(redacted_id)
        if changed:
            return [
                admin(f"✅ {redactor} deleted an image/video of {news.reporter_id}’s news entry.")
                for news, _ in changed
            ]

        # A tagging / media confirming reaction
        result = self.store.remove_annotation(redacted_id)
        if result is None:
            logger.debug(f"Ignoring redaction, doesn’t match any known event (ID {redacted_id})")
            return []

        news, kind = result
        text = (
            f"✅ {redactor} removed their {kind} reaction from "
            f"{news.reporter_id}’s news entry. [{self._link(news.id)}]"
        )
        if kind != AnnotationKind.MEDIA and not news.is_assigned():
            text += " The news entry is now unassigned."
        return [admin(text)]

    def _link(self, message_id: str) -> str:
        return message_link(self.config.reporting_room_id, message_id)
