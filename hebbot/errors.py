"""Hebbot exception hierarchy and user-facing error classification."""

import asyncio

import httpx


# ════════════════════════════════════════════════════════
# Exception hierarchy. The engine catches everything but
# StoreWriteError and turns it into admin room text.
# ════════════════════════════════════════════════════════

class HebbotError(Exception):
    """Base class for all hebbot errors."""
    pass

class DuplicateIdError(HebbotError):
    """A news entry with this message id is already stored."""
    pass

class NewsNotFoundError(HebbotError):
    """No news entry with this message id exists."""
    pass

class TargetUnresolvableError(HebbotError):
    """The message a reaction points at could not be fetched from the transport."""
    pass

class InsufficientPrivilegeError(HebbotError):
    """A non-editor attempted an editor-only action."""
    pass

class StoreWriteError(HebbotError):
    """The news store could not be written to disk. Fatal."""
    pass

class ConfigError(HebbotError):
    """The bot configuration file is missing or invalid."""
    pass


def classify_error(e: Exception) -> str:
    """Classify any exception into a short message for the admin room.

    Returns a string suitable for sending directly to the editors.
    """
    if isinstance(e, TargetUnresolvableError):
        return "Message could not be fetched from the homeserver."
    if isinstance(e, (DuplicateIdError, NewsNotFoundError)):
        return str(e) or "News entry bookkeeping error."
    if isinstance(e, ConfigError):
        return f"Configuration error: {e}"

    if isinstance(e, httpx.HTTPStatusError):
        code = e.response.status_code
        if code == 429:
            return "Homeserver rate limited the bot. Please try again later."
        if code in (401, 403):
            return "Homeserver rejected the bot's credentials."
        if code == 404:
            return "Homeserver could not find the requested resource."
        if 500 <= code < 600:
            return "Homeserver is having server issues. Please try again later."
        return f"Homeserver returned HTTP {code}."

    if isinstance(e, httpx.ConnectError):
        return "Cannot connect to the homeserver."
    if isinstance(e, (httpx.ReadTimeout, httpx.WriteTimeout, httpx.PoolTimeout, httpx.ConnectTimeout)):
        return "Request timed out. Please try again."
    if isinstance(e, asyncio.TimeoutError):
        return "Request timed out. Please try again."

    type_name = type(e).__name__
    return f"Something went wrong ({type_name}). Check logs for details."
