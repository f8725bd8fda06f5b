"""
Business knowledge: a YAML document split into keyword-tagged chunks.

The document is parsed once into an immutable :class:`KnowledgeBase`. Lookups
are plain keyword substring matches against the lowercased question; there
is no ranking, chunks come back in the order they were built. A missing or
malformed document leaves the base empty, which degrades answers but never
fails a request. :class:`KnowledgeStore` owns the live instance and swaps in
a freshly built one on reload.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence

import yaml

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="knowledge")

HOURS_KEYWORDS = frozenset({
    "hours", "open", "close", "time", "schedule", "brunch", "lunch", "dinner", "happy hour",
})
CONTACT_KEYWORDS = frozenset({
    "address", "phone", "email", "website", "contact", "location", "directions",
})
POLICIES_KEYWORDS = frozenset({
    "policy", "policies", "reservation", "reservations", "reserve", "booking", "book",
    "table", "tables", "pet", "pets", "dog", "dogs",
})
AMENITIES_KEYWORDS = frozenset({
    "amenity", "amenities", "music", "live", "patio", "outdoor", "seating",
})
BASIC_INFO_KEYWORDS = frozenset({
    "name", "type", "business", "cellar", "wine", "bar", "cafe",
})

PROMPT_HEADER = "Business Information:"


@dataclass(frozen=True)
class KnowledgeChunk:
    """One labeled block of business facts and the words that should pull it in."""
    type: str
    content: str
    keywords: frozenset[str]


def _pairs(section: Mapping[str, Any]) -> list[str]:
    return [f"{key}: {value}" for key, value in section.items()]


def build_chunks(document: Mapping[str, Any]) -> list[KnowledgeChunk]:
    """Turn a parsed business-info document into chunks (hours, contact, policies, amenities, basic info)."""
    business = document.get("business")
    if not isinstance(business, Mapping):
        logger.error("No business section found in knowledge document")
        return []

    chunks: list[KnowledgeChunk] = []

    hours = document.get("hours")
    if isinstance(hours, Mapping) and hours.get("regular") and hours.get("service_notes"):
        content = (
            f"Regular hours: {', '.join(_pairs(hours['regular']))}. "
            f"Service notes: {', '.join(_pairs(hours['service_notes']))}"
        )
        chunks.append(KnowledgeChunk("hours", content, HOURS_KEYWORDS))

    contact = business.get("contact")
    if isinstance(contact, Mapping):
        parts = [f"Address: {business.get('address')}"] if business.get("address") else []
        for label, field in (("Phone", "phone"), ("Email", "email"), ("Website", "website")):
            if contact.get(field):
                parts.append(f"{label}: {contact[field]}")
        chunks.append(KnowledgeChunk("contact", ". ".join(parts), CONTACT_KEYWORDS))

    policies = document.get("policies")
    if isinstance(policies, Mapping) and policies:
        chunks.append(KnowledgeChunk("policies", ". ".join(_pairs(policies)), POLICIES_KEYWORDS))

    amenities = document.get("amenities")
    if isinstance(amenities, Mapping) and amenities:
        chunks.append(KnowledgeChunk("amenities", ". ".join(_pairs(amenities)), AMENITIES_KEYWORDS))

    if business.get("name") and business.get("type") and business.get("address"):
        content = f"{business['name']} is a {business['type']} located in {business['address']}"
        chunks.append(KnowledgeChunk("basic_info", content, BASIC_INFO_KEYWORDS))

    return chunks


class KnowledgeBase:
    """Immutable set of chunks built from one business-info document."""

    def __init__(
        self,
        chunks: Iterable[KnowledgeChunk] = (),
        business_info: Optional[Mapping[str, Any]] = None,
        source: str | None = None,
    ):
        self._chunks = tuple(chunks)
        self._business_info = business_info
        self.source = source

    @property
    def chunks(self) -> tuple[KnowledgeChunk, ...]:
        return self._chunks

    @property
    def business_info(self) -> Optional[Mapping[str, Any]]:
        """The parsed document, or None when nothing usable was loaded."""
        return self._business_info

    @classmethod
    def empty(cls, source: str | None = None) -> "KnowledgeBase":
        return cls((), None, source)

    @classmethod
    def from_document(cls, document: Any, source: str | None = None) -> "KnowledgeBase":
        if not isinstance(document, Mapping):
            logger.error("Knowledge document is not a mapping", extra={"source": source})
            return cls.empty(source)
        chunks = build_chunks(document)
        if not chunks and not isinstance(document.get("business"), Mapping):
            return cls.empty(source)
        return cls(chunks, document, source)

    @classmethod
    def from_file(cls, path: str | Path) -> "KnowledgeBase":
        """Load a YAML document; any read/parse problem yields an empty base."""
        path = Path(path)
        logger.info("Loading business knowledge from %s", path)
        if not path.exists():
            logger.error("Knowledge file not found at %s", path)
            return cls.empty(str(path))
        try:
            with path.open("r", encoding="utf-8") as fh:
                document = yaml.safe_load(fh)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            logger.error("Failed to load business knowledge from %s: %s", path, exc)
            return cls.empty(str(path))

        base = cls.from_document(document, source=str(path))
        logger.info("Business knowledge loaded: %d chunks", len(base.chunks))
        return base

    def retrieve_relevant_chunks(self, query: str) -> list[KnowledgeChunk]:
        """Chunks with at least one keyword inside the lowercased ``query``, in build order."""
        lower_query = query.lower()
        relevant = [
            chunk for chunk in self._chunks
            if any(keyword.lower() in lower_query for keyword in chunk.keywords)
        ]
        logger.debug("Retrieved %d relevant chunks for %r", len(relevant), query)
        return relevant

    @staticmethod
    def format_chunks_for_prompt(chunks: Sequence[KnowledgeChunk]) -> str:
        """Render chunks as a prompt block; empty input gives an empty string."""
        if not chunks:
            return ""
        body = "\n\n".join(f"{chunk.type.upper()}: {chunk.content}" for chunk in chunks)
        return f"\n\n{PROMPT_HEADER}\n{body}"


class KnowledgeStore:
    """Holds the live KnowledgeBase; reload builds a new one and swaps the reference."""

    def __init__(self, path: str | Path, initial: KnowledgeBase | None = None):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._current = initial if initial is not None else KnowledgeBase.from_file(self.path)

    @property
    def current(self) -> KnowledgeBase:
        return self._current

    def reload(self) -> KnowledgeBase:
        fresh = KnowledgeBase.from_file(self.path)
        with self._lock:
            self._current = fresh
        return fresh
