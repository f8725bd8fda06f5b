"""Deterministic intent routing: route, timeframe, business facets and business id."""
from __future__ import annotations

import re
from enum import Enum
from typing import Literal

from pydantic import BaseModel

from .classifier import RoutingTables, classify, contains_any
from .errors import InvalidArgumentError
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="router")

ISO_DATE_PATTERN = re.compile(r"(\d{4}-\d{2}-\d{2})")
NOW = "now"


class Route(str, Enum):
    WEATHER = "weather"
    BUSINESS = "business"
    BOTH = "both"
    FALLBACK = "fallback"


class RouteLocation(BaseModel):
    type: Literal["business_id"] = "business_id"
    value: str


class RouteResult(BaseModel):
    """Classification of one message."""
    route: Route
    location: RouteLocation
    timeframe: str
    business_facets: list[str]


def pick_route(needs_weather: bool, needs_business: bool) -> Route:
    if needs_weather and needs_business:
        return Route.BOTH
    if needs_weather:
        return Route.WEATHER
    if needs_business:
        return Route.BUSINESS
    return Route.FALLBACK


class IntentRouter:
    """Keyword router over a fixed set of tables; holds no per-request state."""

    def __init__(self, tables: RoutingTables):
        self.tables = tables

    def extract_timeframe(self, lower_message: str) -> str:
        """``now``, ``relative:<phrase>`` or ``explicit:<YYYY-MM-DD>``; first rule that matches wins."""
        if contains_any(lower_message, self.tables.now_keywords):
            return NOW
        for phrase in self.tables.relative_timeframes:
            if phrase in lower_message:
                return f"relative:{phrase}"
        match = ISO_DATE_PATTERN.search(lower_message)
        if match:
            return f"explicit:{match.group(1)}"
        return NOW

    def extract_business_facets(self, lower_message: str) -> list[str]:
        """Every facet with at least one trigger in the message, in table order."""
        return [
            facet for facet, triggers in self.tables.facet_triggers
            if contains_any(lower_message, triggers)
        ]

    def infer_business_id(self, lower_message: str) -> str:
        for alias, business_id in self.tables.business_aliases:
            if alias in lower_message:
                return business_id
        return self.tables.default_business_id

    def route_message(self, message: str, business_id: str | None = None) -> RouteResult:
        if not message:
            raise InvalidArgumentError("message must not be empty")

        lower = message.lower()
        capabilities = classify(
            lower,
            weather_keywords=self.tables.router_weather_keywords,
            business_keywords=self.tables.business_keywords,
        )
        route = pick_route(capabilities.needs_weather, capabilities.needs_business_context)
        facets = self.extract_business_facets(lower)

        logger.debug("Routed message to: %s with facets: %s", route.value, ", ".join(facets))
        return RouteResult(
            route=route,
            location=RouteLocation(value=business_id or self.infer_business_id(lower)),
            timeframe=self.extract_timeframe(lower),
            business_facets=facets,
        )
