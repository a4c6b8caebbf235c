"""Hebbot — event dispatch by room and admin room commands."""

import asyncio
import json
import logging
import shlex
from typing import Optional

import jinja2

from . import __version__
from .config import BotConfig, ConfigResult
from .engine import AnnotationEngine
from .errors import StoreWriteError, classify_error
from .events import Audience, InboundEvent, MessageCreated, Transport
from .formatting import code_block, format_messages, message_link, project_details, section_details
from .models import MessageKind
from .reactions import ReactionKind, classify_reaction
from .render import RenderResult, render
from .store import NewsStore

logger = logging.getLogger("hebbot.bot")

HELP_TEXT = (
    "Available commands: \n\n"
    "!about \n"
    "!clear \n"
    "!details <name> \n"
    "!help \n"
    "!list-config \n"
    "!list-projects \n"
    "!list-sections \n"
    "!publish \n"
    "!render \n"
    "!say <message> \n"
    "!status"
)


class Bot:
    """Routes reporting room events to the engine and runs editor commands."""

    def __init__(
        self,
        config: BotConfig,
        store: NewsStore,
        transport: Transport,
        template: Optional[str] = None,
    ):
        self.config = config
        self.store = store
        self.transport = transport
        self.template = template
        self.engine = AnnotationEngine(config, store, transport)

        self._commands = {
            "!about": self._cmd_about,
            "!clear": self._cmd_clear,
            "!details": self._cmd_details,
            "!help": self._cmd_help,
            "!list-config": self._cmd_list_config,
            "!list-projects": self._cmd_list_projects,
            "!list-sections": self._cmd_list_sections,
            "!publish": self._cmd_publish,
            "!render": self._cmd_render,
            "!say": self._cmd_say,
            "!status": self._cmd_status,
        }

    async def announce_start(self, config_result: Optional[ConfigResult] = None):
        """Post the start notice plus config warnings/notes to the admin room."""
        await self._notice("✅ Started hebbot!", html=False)
        if config_result is None:
            return
        if config_result.warnings:
            await self._notice(format_messages(True, config_result.warnings))
        if config_result.notes:
            await self._notice(format_messages(False, config_result.notes))

    async def on_event(self, event: InboundEvent):
        """Handle one inbound event.

        Only StoreWriteError escapes; anything else is logged and the
        event is dropped.
        """
        try:
            if event.room_id == self.config.admin_room_id:
                if isinstance(event, MessageCreated):
                    await self.on_admin_message(event)
            elif event.room_id == self.config.reporting_room_id:
                await self.engine.handle_event(event)
            else:
                logger.debug(f"Ignoring event from unknown room {event.room_id}")
        except StoreWriteError:
            raise
        except Exception as e:
            logger.error(f"Error handling {type(event).__name__}: {e}", exc_info=True)

    # ============================================================
    # ADMIN ROOM
    # ============================================================

    async def on_admin_message(self, event: MessageCreated):
        msg = event.body.strip()
        if event.kind != MessageKind.TEXT or not msg.startswith("!"):
            return

        if not self.config.is_editor(event.sender_id):
            await self._notice("You don’t have the permission to use commands.", html=False)
            return

        command, _, args = msg.partition(" ")
        command = command.strip()
        args = args.strip()
        logger.info(f"Received command: {command} ({args})")

        handler = self._commands.get(command)
        if handler is None:
            await self._notice("Unrecognized command. Use !help to list available commands.", html=False)
            return

        try:
            await handler(event, args)
        except StoreWriteError:
            raise
        except Exception as e:
            logger.error(f"Command {command} failed: {e}", exc_info=True)
            await self._notice(f"❌ {classify_error(e)}", html=False)

    async def _cmd_help(self, event: MessageCreated, args: str):
        await self._notice(HELP_TEXT, html=False)

    async def _cmd_about(self, event: MessageCreated, args: str):
        await self._notice(f"You are running Hebbot version {__version__}")

    async def _cmd_clear(self, event: MessageCreated, args: str):
        count = self.store.clear()
        logger.info(f"Store cleared by {event.sender_id} ({count} entries)")
        await self._notice(f"✅ Cleared {count} news entries!", html=False)

    async def _cmd_details(self, event: MessageCreated, args: str):
        term = args
        project = self.config.project_by_name(term)
        section = self.config.section_by_name(term)

        if project:
            msg = project_details(project)
        elif section:
            msg = section_details(section)
        else:
            verdict = classify_reaction(term, self.config) if term else None
            if verdict is None or verdict.kind == ReactionKind.NONE:
                msg = f"❌ Unable to find details for “{term}”."
            elif verdict.kind == ReactionKind.NOTICE:
                msg = f"{term} is configured as notice emoji"
            elif verdict.kind == ReactionKind.SECTION:
                msg = section_details(verdict.section)
            else:
                msg = project_details(verdict.project)

        await self._notice(msg)

    async def _cmd_list_config(self, event: MessageCreated, args: str):
        dump = json.dumps(self.config.model_dump(), indent=2, ensure_ascii=False)
        await self._notice(code_block(dump))

    async def _cmd_list_projects(self, event: MessageCreated, args: str):
        lines = "".join(
            f"{p.emoji}: {p.title} - {p.description} ({p.website})\n" for p in self.config.projects
        )
        await self._notice(f"List of projects:\n{code_block(lines)}")

    async def _cmd_list_sections(self, event: MessageCreated, args: str):
        lines = "".join(f"{s.emoji}: {s.title}\n" for s in self.config.sections)
        await self._notice(f"List of sections:\n{code_block(lines)}")

    async def _cmd_say(self, event: MessageCreated, args: str):
        if not args:
            await self._notice("Usage: !say <message>", html=False)
            return
        await self.transport.send_text(Audience.REPORTING, args)

    async def _cmd_status(self, event: MessageCreated, args: str):
        news_list = self.store.list()
        assigned = []
        unassigned = []
        for news in news_list:
            line = f"- [{self._link(news.id)}] {news.reporter_id}: {news.summary()} <br>"
            (assigned if news.is_assigned() else unassigned).append(line)

        msg = (
            f"{len(news_list)} news entries in total <br><br>"
            f"✅ Assigned news entries: ({len(assigned)}): <br>{''.join(assigned)} <br>"
            f"❌ Unassigned / ignored news entries ({len(unassigned)}): <br>{''.join(unassigned)}"
        )
        await self._notice(msg)

    async def _cmd_render(self, event: MessageCreated, args: str):
        result = await self._render(event)
        if result is None:
            return

        locator = await self.transport.upload(
            result.document.encode("utf-8"), "text/plain; charset=utf-8", "rendered.md"
        )
        await self.transport.send_file(Audience.ADMIN, locator, "rendered.md")
        await self._send_diagnostics(result)

    async def _cmd_publish(self, event: MessageCreated, args: str):
        result = await self._render(event)
        if result is None:
            return

        command = self.config.publish_command
        if not command:
            await self._notice(format_messages(True, [
                "No publish_command configured.",
                "Will not perform any action.",
            ]))
        else:
            await self._publish(command, result.document)

        await self._send_diagnostics(result)

    async def _publish(self, command: str, document: str):
        logger.info(f"Running publish command: {command}")
        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await proc.communicate(document.encode("utf-8"))
        except OSError as e:
            logger.error(f"Unable to run publish command: {e}")
            await self._notice(f"❌ Unable to run publish_command: {e}", html=False)
            return

        if proc.returncode == 0:
            await self._notice("publish_command was successful")
            await self._notice(stdout.decode("utf-8", errors="replace"))
        else:
            logger.warning(f"Publish command exited with {proc.returncode}")
            await self._notice(f"ErrorCode: {proc.returncode}")
            await self._notice(stderr.decode("utf-8", errors="replace"))

    async def _render(self, event: MessageCreated) -> Optional[RenderResult]:
        """Render from a store snapshot; template errors are posted, not raised."""
        editor = event.sender_display_name or event.sender_id
        try:
            return render(self.store.list(), self.config, editor, template=self.template)
        except jinja2.TemplateError as e:
            logger.error(f"Could not render template: {e}")
            await self._notice(f"❌ Could not render template: <pre>{e}</pre>")
            return None

    async def _send_diagnostics(self, result: RenderResult):
        if result.warnings:
            await self._notice(format_messages(True, result.warnings))
        if result.notes:
            await self._notice(format_messages(False, result.notes))

        command = curl_command(result, self.transport)
        if command:
            await self._notice("Use this command to download all files:")
            await self._notice(code_block(command))

    # ============================================================
    # HELPERS
    # ============================================================

    async def _notice(self, text: str, html: bool = True):
        await self.transport.send_notice(Audience.ADMIN, text, html=html)

    def _link(self, message_id: str) -> str:
        return message_link(self.config.reporting_room_id, message_id)


def curl_command(result: RenderResult, transport: Transport) -> Optional[str]:
    """One curl invocation downloading every referenced media file, or None.

    URLs and file names come from reporter event content and are shell-quoted.
    """
    parts = ["curl"]
    for attachment in result.media_to_fetch:
        url = transport.media_download_url(attachment.locator)
        if url:
            parts.append(f"{shlex.quote(url)} -o {shlex.quote(attachment.download_name)}")
    if len(parts) == 1:
        return None
    return " ".join(parts)
