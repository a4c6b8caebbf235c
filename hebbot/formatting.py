"""Text snippets shared by the engine, the renderer and the admin commands."""

import html as _html

from .config import Project, Section

_PERMALINK_BASE = "https://matrix.to/#/"


def message_link(room_id: str, message_id: str) -> str:
    """HTML link to a message, for admin room notices."""
    return f'<a href="{_PERMALINK_BASE}{room_id}/{message_id}">open message</a>'


def user_markdown_link(display_name: str, user_id: str) -> str:
    """Markdown link to a user profile, for the rendered report."""
    return f"[{display_name}]({_PERMALINK_BASE}{user_id})"


def format_messages(is_warning: bool, messages: list[str]) -> str:
    """Format warnings or notes as an HTML list."""
    emoji = "⚠️" if is_warning else "ℹ️"
    return "".join(f"- {emoji} {message}<br>" for message in messages)


def code_block(text: str) -> str:
    return f"<pre><code>{_html.escape(text, quote=False)}</code></pre>\n"


def section_details(section: Section) -> str:
    reporters = ", ".join(section.usual_reporters)
    return (
        "<b>Section Details</b><br>"
        f"<b>Emoji</b>: {section.emoji} <br>"
        f"<b>Name</b>: {section.title} ({section.name}) <br>"
        f"<b>Order</b>: {section.order} <br>"
        f"<b>Reporters</b>: {reporters}"
    )


def project_details(project: Project) -> str:
    reporters = ", ".join(project.usual_reporters)
    return (
        "<b>Project Details</b><br>"
        f"<b>Emoji</b>: {project.emoji} <br>"
        f"<b>Name</b>: {project.title} ({project.name}) <br>"
        f"<b>Description</b>: {project.description} <br>"
        f"<b>Website</b>: {project.website} <br>"
        f"<b>Default Section</b>: {project.default_section} <br>"
        f"<b>Usual reporters</b>: {reporters}"
    )
