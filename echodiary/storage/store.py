"""
Local JSON storage for diary entries.

Every write reads the whole document, changes it in memory and replaces the
file atomically through a temporary file in the same directory. There is no
locking: two processes writing at once may lose an update.
"""

import json
import logging
import os
import random
import re
import string
import tempfile
import time
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .models import (
    STORAGE_VERSION,
    DateRange,
    DiaryEntry,
    DiaryFilter,
    DiarySort,
    DiaryStats,
    DiaryStorage,
    NewEntry,
)

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")
BASE36_ALPHABET = string.digits + string.ascii_lowercase

# Fields the update operation may change
UPDATABLE_FIELDS = ("date", "audio_text", "image_path", "prompt", "style", "mood")
IMMUTABLE_FIELDS = ("id", "created_at", "updated_at")


class StorageError(Exception):
    """Base exception for diary storage errors."""
    pass


class ValidationError(StorageError):
    """Raised when an entry is missing a required field or is malformed."""
    pass


class StorageFormatError(StorageError):
    """Raised when the storage file exists but cannot be understood."""
    pass


def utc_now_iso() -> str:
    """Current UTC time as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_entry_id(date: str) -> str:
    """Build an id from the entry date, the clock and a random suffix."""
    timestamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(random.choices(BASE36_ALPHABET, k=4))
    return f"{date}-{timestamp}-{suffix}"


def validate_entry(entry: Union[NewEntry, DiaryEntry]) -> None:
    """
    Check the required fields of an entry.

    Raises:
        ValidationError: On the first missing or malformed field.
    """
    if not entry.audio_text or not entry.audio_text.strip():
        raise ValidationError("audioText is required and cannot be empty")
    if not entry.image_path or not entry.image_path.strip():
        raise ValidationError("imagePath is required and cannot be empty")
    if not entry.prompt or not entry.prompt.strip():
        raise ValidationError("prompt is required and cannot be empty")
    if not entry.date or not DATE_PATTERN.fullmatch(entry.date):
        raise ValidationError("date must be in YYYY-MM-DD format")


class DiaryStore:
    """
    CRUD and query operations over a single JSON diary file.

    Args:
        path: Location of the JSON document. Missing parent directories are
            created on the first write.

    Example:
        >>> store = DiaryStore(Path("data/diaries.json"))
        >>> entry = store.save(NewEntry(
        ...     date="2026-07-01", audio_text="公園で遊んだ",
        ...     image_path="data/images/1.png", prompt="..."))
        >>> store.get(entry.id) == entry
        True
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    # ------------------------------------------------------------------
    # File access
    # ------------------------------------------------------------------

    def load(self) -> DiaryStorage:
        """
        Read the storage document.

        Returns:
            The stored document, or a fresh empty one if the file is absent.

        Raises:
            StorageFormatError: If the file is not valid JSON or has no
                ``diaries`` list.
        """
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug(f"No storage file at {self.path}, starting empty")
            return self._empty_storage()

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise StorageFormatError(f"Invalid storage file {self.path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("diaries"), list):
            raise StorageFormatError(
                'Invalid storage format: missing or invalid "diaries" array'
            )

        try:
            diaries = [DiaryEntry.from_dict(item) for item in data["diaries"]]
        except (KeyError, TypeError, AttributeError) as e:
            raise StorageFormatError(f"Invalid diary entry in {self.path}: {e}") from e

        return DiaryStorage(
            version=data.get("version", STORAGE_VERSION),
            diaries=diaries,
            last_modified=data.get("lastModified", ""),
        )

    def _empty_storage(self) -> DiaryStorage:
        return DiaryStorage(
            version=STORAGE_VERSION,
            diaries=[],
            last_modified=utc_now_iso(),
        )

    def _write(self, storage: DiaryStorage) -> None:
        """Stamp lastModified and atomically replace the storage file."""
        storage.last_modified = utc_now_iso()
        content = json.dumps(storage.to_dict(), ensure_ascii=False, indent=2)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self.path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

        logger.debug(f"Wrote {len(storage.diaries)} entries to {self.path}")

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def save(self, new_entry: NewEntry) -> DiaryEntry:
        """
        Validate and append a new entry.

        Args:
            new_entry: Caller-supplied fields

        Returns:
            The stored entry with its id and created_at assigned.

        Raises:
            ValidationError: If a required field is missing or malformed.
        """
        validate_entry(new_entry)

        storage = self.load()
        entry = DiaryEntry(
            id=generate_entry_id(new_entry.date),
            date=new_entry.date,
            audio_text=new_entry.audio_text,
            image_path=new_entry.image_path,
            prompt=new_entry.prompt,
            created_at=utc_now_iso(),
            style=new_entry.style,
            mood=new_entry.mood,
        )
        storage.diaries.append(entry)
        self._write(storage)

        logger.info(f"Saved diary entry {entry.id}")
        return entry

    def get(self, entry_id: str) -> Optional[DiaryEntry]:
        """Return the entry with the given id, or None."""
        storage = self.load()
        for entry in storage.diaries:
            if entry.id == entry_id:
                return entry
        return None

    def update(self, entry_id: str, **changes: Any) -> Optional[DiaryEntry]:
        """
        Merge changes into an existing entry.

        ``id`` and ``created_at`` are never changed; ``updated_at`` is always
        stamped with the current time.

        Args:
            entry_id: Entry to update
            **changes: New values keyed by attribute name (``audio_text``,
                ``style``, ...)

        Returns:
            The updated entry, or None if no entry has that id.

        Raises:
            ValidationError: If a field name is unknown or the merged entry
                is invalid.
        """
        unknown = set(changes) - set(UPDATABLE_FIELDS) - set(IMMUTABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown diary fields: {', '.join(sorted(unknown))}")
        allowed = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}

        storage = self.load()
        index = self._index_of(storage, entry_id)
        if index is None:
            return None

        current = storage.diaries[index]
        updated = replace(current, **allowed)
        validate_entry(updated)
        updated.updated_at = self._fresh_timestamp(current)

        storage.diaries[index] = updated
        self._write(storage)

        logger.info(f"Updated diary entry {entry_id}")
        return updated

    def delete(self, entry_id: str) -> bool:
        """
        Remove an entry.

        Returns:
            True if an entry was removed. The file is left untouched
            otherwise.
        """
        storage = self.load()
        index = self._index_of(storage, entry_id)
        if index is None:
            return False

        del storage.diaries[index]
        self._write(storage)

        logger.info(f"Deleted diary entry {entry_id}")
        return True

    @staticmethod
    def _index_of(storage: DiaryStorage, entry_id: str) -> Optional[int]:
        for index, entry in enumerate(storage.diaries):
            if entry.id == entry_id:
                return index
        return None

    @staticmethod
    def _fresh_timestamp(entry: DiaryEntry) -> str:
        # Never move backwards relative to what the entry already carries
        now = utc_now_iso()
        previous = entry.updated_at or entry.created_at
        return max(now, previous)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list(
        self,
        filter: Optional[DiaryFilter] = None,
        sort: Optional[DiarySort] = None,
        limit: Optional[int] = None,
    ) -> List[DiaryEntry]:
        """
        Query entries: filter, then sort, then truncate.

        Args:
            filter: Criteria every returned entry must match
            sort: Ordering (date descending when omitted)
            limit: Maximum number of entries; falsy means no limit

        Returns:
            Matching entries.
        """
        entries = self.load().diaries

        if filter is not None:
            entries = [entry for entry in entries if filter.matches(entry)]

        entries = sort_entries(entries, sort or DiarySort())

        if limit:
            entries = entries[:limit]

        return entries

    def search(
        self,
        search_text: str,
        filter: Optional[DiaryFilter] = None,
        sort: Optional[DiarySort] = None,
        limit: Optional[int] = None,
    ) -> List[DiaryEntry]:
        """Text search across audio text and prompt, combined with a filter."""
        base = filter or DiaryFilter()
        return self.list(replace(base, search_text=search_text), sort, limit)

    def by_date(self, date: str) -> List[DiaryEntry]:
        """Entries of one day in creation order."""
        return self.list(
            DiaryFilter(start_date=date, end_date=date),
            DiarySort(field="createdAt", order="asc"),
        )

    def stats(self) -> DiaryStats:
        """Count entries, find the date range and tally styles."""
        diaries = self.load().diaries
        if not diaries:
            return DiaryStats(total_entries=0, date_range=None, style_counts={})

        dates = sorted(entry.date for entry in diaries)
        style_counts: Dict[str, int] = {}
        for entry in diaries:
            if entry.style:
                style_counts[entry.style] = style_counts.get(entry.style, 0) + 1

        return DiaryStats(
            total_entries=len(diaries),
            date_range=DateRange(earliest=dates[0], latest=dates[-1]),
            style_counts=style_counts,
        )

    def rebuild_index(self) -> int:
        """
        Re-sort the stored entries by date.

        Entries of the same day keep their relative order, and ids are left
        untouched so existing references keep resolving.

        Returns:
            Number of entries rewritten.
        """
        storage = self.load()
        storage.diaries = sorted(storage.diaries, key=lambda e: e.date)
        self._write(storage)

        logger.info(f"Rebuilt index for {len(storage.diaries)} entries")
        return len(storage.diaries)


def sort_entries(entries: List[DiaryEntry], sort: DiarySort) -> List[DiaryEntry]:
    """Stable sort on the string value of the chosen field."""
    return sorted(
        entries,
        key=lambda entry: entry.sort_value(sort.field),
        reverse=sort.order == "desc",
    )
