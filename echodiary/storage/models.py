"""
Diary data structures.

Entries are kept as dataclasses in memory and serialized with the camelCase
keys of the on-disk JSON document.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

STORAGE_VERSION = "1.0.0"

SORT_FIELDS = ("date", "createdAt", "updatedAt")
SORT_ORDERS = ("asc", "desc")

# Attribute name -> JSON key for every persisted entry field
ENTRY_FIELDS = {
    "id": "id",
    "date": "date",
    "audio_text": "audioText",
    "image_path": "imagePath",
    "prompt": "prompt",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
    "style": "style",
    "mood": "mood",
}

OPTIONAL_FIELDS = ("updated_at", "style", "mood")
ATTRS_BY_KEY = {key: attr for attr, key in ENTRY_FIELDS.items()}


@dataclass
class DiaryEntry:
    """One diary record."""
    id: str
    date: str                           # YYYY-MM-DD
    audio_text: str                     # Transcribed voice input
    image_path: str                     # Generated illustration
    prompt: str                         # Prompt used for the illustration
    created_at: str                     # ISO timestamp, never changes
    updated_at: Optional[str] = None
    style: Optional[str] = None
    mood: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for attr, key in ENTRY_FIELDS.items():
            value = getattr(self, attr)
            if value is None and attr in OPTIONAL_FIELDS:
                continue
            data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiaryEntry":
        """
        Build an entry from its JSON form.

        Raises:
            KeyError: If a required key is missing.
        """
        kwargs = {}
        for attr, key in ENTRY_FIELDS.items():
            if attr in OPTIONAL_FIELDS:
                kwargs[attr] = data.get(key)
            else:
                kwargs[attr] = data[key]
        return cls(**kwargs)

    def sort_value(self, sort_field: str) -> str:
        """Value used for ordering; falls back to created_at when unset."""
        return getattr(self, ATTRS_BY_KEY[sort_field]) or self.created_at


@dataclass
class NewEntry:
    """Fields supplied by the caller when saving a new entry."""
    date: str
    audio_text: str
    image_path: str
    prompt: str
    style: Optional[str] = None
    mood: Optional[str] = None


@dataclass
class DiaryStorage:
    """The whole persisted document."""
    version: str
    diaries: List[DiaryEntry]
    last_modified: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "diaries": [entry.to_dict() for entry in self.diaries],
            "lastModified": self.last_modified,
        }


@dataclass
class DiaryFilter:
    """Filter criteria; every set criterion must match."""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    search_text: Optional[str] = None
    style: Optional[str] = None
    mood: Optional[str] = None

    def matches(self, entry: DiaryEntry) -> bool:
        if self.start_date and entry.date < self.start_date:
            return False
        if self.end_date and entry.date > self.end_date:
            return False

        if self.search_text:
            needle = self.search_text.lower()
            if needle not in entry.audio_text.lower() and needle not in entry.prompt.lower():
                return False

        if self.style and entry.style != self.style:
            return False
        if self.mood and entry.mood != self.mood:
            return False

        return True


@dataclass
class DiarySort:
    """Sort options."""
    field: str = "date"
    order: str = "desc"

    def __post_init__(self):
        if self.field not in SORT_FIELDS:
            raise ValueError(f"Sort field must be one of {SORT_FIELDS}, got {self.field!r}")
        if self.order not in SORT_ORDERS:
            raise ValueError(f"Sort order must be one of {SORT_ORDERS}, got {self.order!r}")


@dataclass
class DateRange:
    earliest: str
    latest: str


@dataclass
class DiaryStats:
    """Aggregate view over all entries."""
    total_entries: int
    date_range: Optional[DateRange]
    style_counts: Dict[str, int] = field(default_factory=dict)
