"""Entity model — a submitted news entry and what editors attached to it.

Tags and media are stored as mappings keyed by the id of the reaction
event that added them, so that retracting one reaction undoes exactly
one tag, even when several editors applied the same tag.
"""

import copy
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

# Messages longer than this get a shortened summary
_SUMMARY_THRESHOLD = 60
_SUMMARY_LENGTH = 50

# Download names keep only the leading alphanumeric part of the extension
_SAFE_SUFFIX = re.compile(r"\.[A-Za-z0-9]+")
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class MessageKind(Enum):
    TEXT = "text"
    NOTICE = "notice"
    IMAGE = "image"
    VIDEO = "video"
    OTHER = "other"

    @property
    def is_media(self) -> bool:
        return self in (MessageKind.IMAGE, MessageKind.VIDEO)

    @property
    def is_text(self) -> bool:
        return self in (MessageKind.TEXT, MessageKind.NOTICE)


class AnnotationKind(Enum):
    SECTION = "section"
    PROJECT = "project"
    MEDIA = "media"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class MediaAttachment:
    source_id: str     # the image/video message
    filename: str      # as uploaded by the reporter
    locator: str       # content URI, e.g. mxc://example.org/AbCdEf
    kind: MessageKind = MessageKind.IMAGE

    @property
    def media_id(self) -> str:
        return self.locator.rstrip("/").rsplit("/", 1)[-1] or "no-media-id"

    @property
    def download_name(self) -> str:
        """File name used in the report and the download command."""
        match = _SAFE_SUFFIX.match(os.path.splitext(self.filename)[1])
        media_id = _UNSAFE_CHARS.sub("", self.media_id) or "no-media-id"
        return f"{media_id}{match.group(0) if match else ''}"

    def to_dict(self) -> dict:
        return {
            "source_id": self.source_id,
            "filename": self.filename,
            "locator": self.locator,
            "kind": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MediaAttachment":
        return cls(
            source_id=data["source_id"],
            filename=data["filename"],
            locator=data["locator"],
            kind=MessageKind(data.get("kind", MessageKind.IMAGE.value)),
        )


@dataclass
class News:
    """One submitted report."""

    id: str
    reporter_id: str
    reporter_display_name: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    section_tags: dict[str, str] = field(default_factory=dict)
    project_tags: dict[str, str] = field(default_factory=dict)
    media: dict[str, MediaAttachment] = field(default_factory=dict)

    # ── Derived state ──

    def is_assigned(self) -> bool:
        return bool(self.section_tags) or bool(self.project_tags)

    def section_names(self) -> list[str]:
        """Distinct section names, sorted."""
        return sorted(set(self.section_tags.values()))

    def project_names(self) -> list[str]:
        """Distinct project names, sorted."""
        return sorted(set(self.project_tags.values()))

    def has_single_section(self) -> bool:
        return len(self.section_names()) == 1

    def has_single_project(self) -> bool:
        return len(self.project_names()) == 1

    def summary(self) -> str:
        """Shortened message for admin room listings."""
        if len(self.message) > _SUMMARY_THRESHOLD:
            return f"{self.message[:_SUMMARY_LENGTH]} …"
        return self.message

    def images(self) -> list[MediaAttachment]:
        return self._unique_media(MessageKind.IMAGE)

    def videos(self) -> list[MediaAttachment]:
        return self._unique_media(MessageKind.VIDEO)

    def _unique_media(self, kind: MessageKind) -> list[MediaAttachment]:
        # Two editors confirming the same file yield two entries with one locator
        unique: dict[str, MediaAttachment] = {}
        for attachment in self.media.values():
            if attachment.kind == kind and attachment.locator not in unique:
                unique[attachment.locator] = attachment
        return list(unique.values())

    def relates_to(self, annotation_id: str) -> bool:
        return (
            annotation_id in self.section_tags
            or annotation_id in self.project_tags
            or annotation_id in self.media
        )

    # ── Mutation (idempotent per annotation id) ──

    def add_section_tag(self, annotation_id: str, section_name: str):
        self.section_tags[annotation_id] = section_name

    def add_project_tag(self, annotation_id: str, project_name: str):
        self.project_tags[annotation_id] = project_name

    def add_media(self, annotation_id: str, attachment: MediaAttachment):
        self.media[annotation_id] = attachment

    def remove_annotation(self, annotation_id: str) -> Optional[AnnotationKind]:
        """Remove whatever the annotation added.

        Returns:
            The kind of the removed entry, or None if the id is unknown
            (nothing is changed in that case)
        """
        if self.section_tags.pop(annotation_id, None) is not None:
            return AnnotationKind.SECTION
        if self.project_tags.pop(annotation_id, None) is not None:
            return AnnotationKind.PROJECT
        if self.media.pop(annotation_id, None) is not None:
            return AnnotationKind.MEDIA
        return None

    def remove_media_from_source(self, source_id: str) -> list[MediaAttachment]:
        """Drop every attachment taken from the given media message."""
        removed = []
        for annotation_id in [a for a, m in self.media.items() if m.source_id == source_id]:
            removed.append(self.media.pop(annotation_id))
        return removed

    def copy(self) -> "News":
        return copy.deepcopy(self)

    # ── Serialization ──

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reporter_id": self.reporter_id,
            "reporter_display_name": self.reporter_display_name,
            "timestamp": self.timestamp.isoformat(),
            "message": self.message,
            "section_tags": dict(self.section_tags),
            "project_tags": dict(self.project_tags),
            "media": {aid: m.to_dict() for aid, m in self.media.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "News":
        timestamp = datetime.fromisoformat(data["timestamp"])
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(
            id=data["id"],
            reporter_id=data["reporter_id"],
            reporter_display_name=data.get("reporter_display_name") or data["reporter_id"],
            message=data.get("message", ""),
            timestamp=timestamp,
            section_tags=dict(data.get("section_tags", {})),
            project_tags=dict(data.get("project_tags", {})),
            media={
                aid: MediaAttachment.from_dict(m)
                for aid, m in data.get("media", {}).items()
            },
        )
