"""
Keyword classification shared by the intent router and the chat orchestrator.

Both call sites ask the same question, "does this message need weather and/or
business context?", through :func:`classify`. They pass different keyword
lists (the chat context list also treats outdoor-seating words as a reason to
fetch weather), but the matching logic lives here once.

The tables themselves are data in ``routing_tables.yaml`` so adding a
business alias or a facet trigger does not touch code.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, NamedTuple

import yaml

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="classifier")

DEFAULT_TABLES_PATH = Path(__file__).resolve().parent / "routing_tables.yaml"


class Capabilities(NamedTuple):
    """What context a message calls for."""
    needs_weather: bool
    needs_business_context: bool


@dataclass(frozen=True)
class RoutingTables:
    """Static keyword tables; all entries are stored lowercased."""
    default_business_id: str
    router_weather_keywords: tuple[str, ...]
    context_weather_keywords: tuple[str, ...]
    business_keywords: tuple[str, ...]
    now_keywords: tuple[str, ...]
    relative_timeframes: tuple[str, ...]
    facet_triggers: tuple[tuple[str, tuple[str, ...]], ...]
    business_aliases: tuple[tuple[str, str], ...]

    @property
    def facet_names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.facet_triggers)

    @classmethod
    def from_mapping(cls, data: Mapping) -> "RoutingTables":
        def words(key: str) -> tuple[str, ...]:
            return tuple(str(w).lower() for w in data.get(key) or ())

        facets = data.get("facet_triggers") or {}
        aliases = data.get("business_aliases") or ()
        default_id = data.get("default_business_id")
        if not default_id:
            raise ValueError("routing tables must define default_business_id")
        return cls(
            default_business_id=str(default_id),
            router_weather_keywords=words("router_weather_keywords"),
            context_weather_keywords=words("context_weather_keywords"),
            business_keywords=words("business_keywords"),
            now_keywords=words("now_keywords"),
            relative_timeframes=words("relative_timeframes"),
            facet_triggers=tuple(
                (str(name), tuple(str(t).lower() for t in triggers))
                for name, triggers in facets.items()
            ),
            business_aliases=tuple((str(alias).lower(), str(bid)) for alias, bid in aliases),
        )


def load_routing_tables(path: str | Path | None = None) -> RoutingTables:
    """Read the routing tables YAML (the packaged copy when ``path`` is None)."""
    path = Path(path) if path else DEFAULT_TABLES_PATH
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    tables = RoutingTables.from_mapping(data)
    logger.debug(
        "Loaded routing tables from %s: %d facets, %d aliases",
        path, len(tables.facet_triggers), len(tables.business_aliases),
    )
    return tables


def contains_any(text: str, keywords: Iterable[str]) -> bool:
    """True if any keyword is a substring of ``text`` (``text`` is expected lowercased)."""
    return any(keyword in text for keyword in keywords)


def classify(message: str, *, weather_keywords: Iterable[str], business_keywords: Iterable[str]) -> Capabilities:
    """Keyword-classify ``message`` into the context it needs."""
    lower = message.lower()
    return Capabilities(
        needs_weather=contains_any(lower, weather_keywords),
        needs_business_context=contains_any(lower, business_keywords),
    )
