"""News store — the in-memory news collection with synchronous JSON persistence.

Every public method runs under one lock. Mutations write the whole
collection to disk before returning; a failed write raises StoreWriteError,
which the bot treats as fatal. Callers get copies, never the stored objects,
so nothing is mutated outside the lock.
"""

import json
import logging
import os
import threading
from datetime import datetime
from typing import Callable, Optional

from .errors import DuplicateIdError, NewsNotFoundError, StoreWriteError
from .models import AnnotationKind, MediaAttachment, News

logger = logging.getLogger("hebbot.store")


class NewsStore:
    """News entries keyed by the id of the message they were submitted with."""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._news: dict[str, News] = {}

    @classmethod
    def read(cls, path: str) -> "NewsStore":
        """Load the store from ``path``; a missing file yields an empty store.

        A file that exists but can't be parsed raises, since starting over
        with an empty store would overwrite it on the next mutation.
        """
        store = cls(path)
        logger.debug(f"Trying to read stored news file from path: {path}")
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.warning(f"Unable to open news store file {path}, starting empty")
            return store

        for news_id, entry in data.items():
            entry.setdefault("id", news_id)
            store._news[news_id] = News.from_dict(entry)
        logger.info(f"Loaded {len(store._news)} news entries from {path}")
        return store

    # ── Queries ──

    def by_message_id(self, news_id: str) -> Optional[News]:
        with self._lock:
            news = self._news.get(news_id)
            return news.copy() if news else None

    def by_annotation_id(self, annotation_id: str) -> Optional[News]:
        with self._lock:
            news = self._find_by_annotation(annotation_id)
            return news.copy() if news else None

    def find_nearest_by_reporter_and_time(self, reporter_id: str, timestamp: datetime) -> Optional[News]:
        """News by ``reporter_id`` submitted closest in time to ``timestamp``.

        There is no distance cutoff. On equal distance the entry stored
        first wins.
        """
        with self._lock:
            news = self._find_nearest(reporter_id, timestamp)
            return news.copy() if news else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._news)

    # ── Mutations ──

    def add(self, news: News):
        with self._lock:
            if news.id in self._news:
                raise DuplicateIdError(f"News entry {news.id} already exists")
            self._news[news.id] = news.copy()
            logger.debug(f"Store {news.id} by {news.reporter_id}")
            self._write()

    def remove(self, news_id: str) -> News:
        with self._lock:
            news = self._news.pop(news_id, None)
            if news is None:
                raise NewsNotFoundError(f"News entry {news_id} not found")
            logger.debug(f"Removed {news_id}")
            self._write()
            return news

    def clear(self) -> int:
        """Remove all news entries, returning how many there were."""
        with self._lock:
            count = len(self._news)
            self._news.clear()
            self._write()
            return count

    def set_message(self, news_id: str, message: str) -> News:
        return self._mutate(news_id, lambda n: setattr(n, "message", message))

    def add_section_tag(self, news_id: str, annotation_id: str, section_name: str) -> News:
        return self._mutate(news_id, lambda n: n.add_section_tag(annotation_id, section_name))

    def add_project_tag(self, news_id: str, annotation_id: str, project_name: str) -> News:
        return self._mutate(news_id, lambda n: n.add_project_tag(annotation_id, project_name))

    def attach_media_to_nearest(
        self,
        reporter_id: str,
        timestamp: datetime,
        annotation_id: str,
        attachment: MediaAttachment,
    ) -> Optional[News]:
        """Attach media to the reporter's news entry closest in time.

        Lookup and insert happen under one lock hold.

        Returns:
            Copy of the updated news entry, or None if the reporter has none
        """
        with self._lock:
            news = self._find_nearest(reporter_id, timestamp)
            if news is None:
                return None
            news.add_media(annotation_id, attachment)
            self._write()
            return news.copy()

    def remove_annotation(self, annotation_id: str) -> Optional[tuple[News, AnnotationKind]]:
        """Undo one reaction.

        Returns:
            (copy of the updated news entry, kind of removed entry),
            or None if no news entry knows the annotation
        """
        with self._lock:
            news = self._find_by_annotation(annotation_id)
            if news is None:
                return None
            kind = news.remove_annotation(annotation_id)
            self._write()
            return news.copy(), kind

    def remove_media_from_source(self, source_id: str) -> list[tuple[News, list[MediaAttachment]]]:
        """Drop every attachment taken from a deleted media message."""
        with self._lock:
            changed = []
            for news in self._news.values():
                removed = news.remove_media_from_source(source_id)
                if removed:
                    changed.append((news.copy(), removed))
            if changed:
                self._write()
            return changed

    # ── Internals (lock held) ──

    def _mutate(self, news_id: str, func: Callable[[News], None]) -> News:
        with self._lock:
            news = self._news.get(news_id)
            if news is None:
                raise NewsNotFoundError(f"News entry {news_id} not found")
            func(news)
            self._write()
            return news.copy()

    def _find_by_annotation(self, annotation_id: str) -> Optional[News]:
        for news in self._news.values():
            if news.relates_to(annotation_id):
                return news
        return None

    def _find_nearest(self, reporter_id: str, timestamp: datetime) -> Optional[News]:
        nearest = None
        shortest = None
        for news in self._news.values():
            if news.reporter_id != reporter_id:
                continue
            diff = abs((news.timestamp - timestamp).total_seconds())
            if shortest is None or diff < shortest:
                nearest = news
                shortest = diff
        return nearest

    def _write(self):
        """Write the whole collection as JSON, replacing the file atomically."""
        logger.debug("Writing data…")
        data = {news_id: news.to_dict() for news_id, news in self._news.items()}
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.critical(f"Unable to write news store {self.path}: {e}")
            raise StoreWriteError(f"Unable to write news store {self.path}: {e}") from e

    # Defined last: the name shadows the builtin inside the class body.
    def list(self) -> list[News]:
        """Snapshot of all news entries, in insertion order."""
        with self._lock:
            return [n.copy() for n in self._news.values()]
