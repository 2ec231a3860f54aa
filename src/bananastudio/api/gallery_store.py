"""Gallery document storage for the Banana Studio API.

This module isolates the gallery JSON persistence logic from
``bananastudio.api.main`` so route handlers can focus on HTTP concerns while
the file-backed gallery store remains testable as a small unit.

The gallery is intentionally simple:

- every entry lives in a single ``gallery.json`` array
- list order is reverse-chronological (newest first)
- the array never grows beyond ``max_items``; the oldest entries are evicted
- the only mutations are insert-at-front and remove-by-id

Concurrency
-----------
Each mutation is a read-modify-write of the whole document.  All
:class:`GalleryStore` instances opened on the same file share one
``threading.Lock``, and every mutation runs entirely under it, so concurrent
inserts and removals cannot clobber one another.

Writes go to a temporary file in the same directory which is then moved over
the document with :func:`os.replace` after being flushed and fsynced.  A
failed write removes its temporary file.  Readers therefore observe either the
old document or the new one, never a truncated file.  Reads do not take the
lock.
"""

from __future__ import annotations

import hmac
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import NamedTuple

from pydantic import ValidationError as PydanticValidationError

from bananastudio.api.models import GalleryEntry
from bananastudio.core.errors import StorageError

logger = logging.getLogger(__name__)

_document_locks: dict[Path, threading.Lock] = {}
_document_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    """Return the process-wide lock guarding the document at *path*."""
    key = path.resolve()
    with _document_locks_guard:
        lock = _document_locks.get(key)
        if lock is None:
            lock = _document_locks[key] = threading.Lock()
        return lock


def _discard(tmp_path: str) -> None:
    """Remove a temporary file left behind by a failed write."""
    try:
        os.unlink(tmp_path)
    except FileNotFoundError:
        pass


class RemovalResult(NamedTuple):
    """Outcome of :meth:`GalleryStore.remove_by_id`.

    Attributes:
        found: Whether an entry with the requested id existed.
        authorized: Whether the supplied token matched.  Always ``False``
            when ``found`` is ``False``.
    """

    found: bool
    authorized: bool

    @property
    def removed(self) -> bool:
        return self.found and self.authorized


class GalleryStore:
    """File-backed, bounded, most-recent-first gallery collection.

    Args:
        gallery_db: Path to ``gallery.json``.  Created as ``[]`` if absent.
        max_items: Maximum number of entries kept after any insert.

    Raises:
        StorageError: The empty document could not be created.
    """

    def __init__(self, gallery_db: Path, max_items: int):
        if max_items < 1:
            raise ValueError("max_items must be at least 1")

        self.gallery_db = Path(gallery_db)
        self.max_items = max_items
        self._lock = _lock_for(self.gallery_db)

        with self._lock:
            if not self.gallery_db.exists():
                self._save([])
                logger.info(f"Initialized empty gallery at {self.gallery_db}")

    def _load(self) -> list[GalleryEntry]:
        """Load the document, degrading to an empty gallery on any failure.

        The rule is intentionally forgiving:

        - if the file is missing, unreadable or invalid JSON, return ``[]``
        - if the document is not a list, return ``[]``
        - if an individual entry does not validate, drop it
        """
        try:
            with open(self.gallery_db, encoding="utf-8") as handle:
                raw_entries = json.load(handle)
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable gallery document {self.gallery_db}: {e}")
            return []

        if not isinstance(raw_entries, list):
            logger.warning(f"Gallery document {self.gallery_db} is not a list; ignoring it")
            return []

        entries: list[GalleryEntry] = []
        for raw in raw_entries:
            try:
                entries.append(GalleryEntry.model_validate(raw))
            except PydanticValidationError:
                logger.warning("Dropping malformed gallery entry")
        return entries

    def _save(self, entries: list[GalleryEntry]) -> None:
        """Persist *entries* atomically.

        Raises:
            StorageError: The document could not be written.
        """
        directory = self.gallery_db.parent

        try:
            payload = [entry.model_dump(mode="json") for entry in entries]
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.gallery_db.name}.", suffix=".tmp", dir=directory
            )
        except (OSError, ValueError) as e:
            raise StorageError(f"Could not write gallery document {self.gallery_db}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=False)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.gallery_db)
        except (OSError, ValueError) as e:
            # ValueError covers UnicodeEncodeError from unencodable text.
            _discard(tmp_path)
            raise StorageError(f"Could not write gallery document {self.gallery_db}: {e}") from e
        except BaseException:
            _discard(tmp_path)
            raise

    def read_all(self) -> list[GalleryEntry]:
        """Return every entry, newest first.  Never raises."""
        return self._load()

    def insert(self, entry: GalleryEntry) -> None:
        """Prepend *entry*, evict past ``max_items``, and persist.

        Raises:
            StorageError: The updated document could not be written.
        """
        with self._lock:
            entries = self._load()
            entries.insert(0, entry)

            evicted = entries[self.max_items :]
            del entries[self.max_items :]

            self._save(entries)

        if evicted:
            logger.info(f"Evicted {len(evicted)} oldest gallery entries")

    def remove_by_id(self, entry_id: str, token: str) -> RemovalResult:
        """Remove the entry *entry_id* if *token* matches its delete token.

        Args:
            entry_id: Identifier of the entry to remove.
            token: Delete token supplied by the caller.

        Returns:
            ``RemovalResult(found, authorized)``.  The document is only
            rewritten when both are ``True``.

        Raises:
            StorageError: The updated document could not be written.
        """
        with self._lock:
            entries = self._load()
            index = next((i for i, e in enumerate(entries) if e.id == entry_id), None)
            if index is None:
                return RemovalResult(found=False, authorized=False)

            stored_token = entries[index].delete_token
            if not hmac.compare_digest(stored_token.encode(), (token or "").encode()):
                return RemovalResult(found=True, authorized=False)

            del entries[index]
            self._save(entries)

        return RemovalResult(found=True, authorized=True)
