"""
Request pipeline: classify, gather weather + business knowledge, prompt, complete.

Weather and knowledge are best-effort context: a failure in either is logged
and the request carries on without it. Provider failures on the completion
call turn into a fixed apology so the blocking endpoints always answer with
text. Only local problems (a missing completion key, an empty message)
propagate to the caller.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

import requests
from pydantic import BaseModel

from .classifier import RoutingTables, classify
from .completion_client import CompletionClient
from .config import Settings
from .errors import ConciergeError, InvalidArgumentError, TransportError, UpstreamError
from .knowledge import KnowledgeStore
from .prompts import FALLBACK_REPLY, PromptContext, build_chat_messages, build_system_prompt, shape_reply
from .router import IntentRouter, Route
from .weather import WeatherReading, WeatherService
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="orchestrator")


@dataclass(frozen=True)
class BusinessProfile:
    """The business the fixed-profile chat answers for."""
    name: str = "The Cellar"
    type: str = "wine_bar_cafe"
    location: str = "San Clemente, CA"
    business_id: str = "cellar-sc"


class WeatherInfo(BaseModel):
    location: str
    tempF: float
    tempC: float

    @classmethod
    def from_reading(cls, reading: WeatherReading) -> "WeatherInfo":
        return cls(location=reading.location, tempF=reading.tempF, tempC=reading.tempC)


class BusinessInfo(BaseModel):
    name: str
    location: str
    type: str


class ChatResult(BaseModel):
    """Blocking chat reply plus the context that shaped it."""
    response: str
    weatherInfo: Optional[WeatherInfo] = None
    businessInfo: Optional[BusinessInfo] = None


class SimpleChatResult(ChatResult):
    """Fixed-profile reply, with the router's view of the message attached."""
    route: Route
    business_facets: list[str]


class ChatOrchestrator:
    """Composes router, weather, knowledge and completions; one instance serves all requests."""

    def __init__(
        self,
        weather: WeatherService,
        knowledge: KnowledgeStore,
        completion: CompletionClient,
        router: IntentRouter,
        tables: RoutingTables,
        settings: Settings,
        profile: BusinessProfile | None = None,
    ):
        self.weather = weather
        self.knowledge = knowledge
        self.completion = completion
        self.router = router
        self.tables = tables
        self.settings = settings
        self.profile = profile or BusinessProfile()

    def needs_weather(self, message: str) -> bool:
        """Weather goes into the prompt for weather words and outdoor-seating words alike."""
        return classify(
            message,
            weather_keywords=self.tables.context_weather_keywords,
            business_keywords=self.tables.business_keywords,
        ).needs_weather

    def _fetch_weather(self, location: str) -> Optional[WeatherReading]:
        try:
            reading = self.weather.get_weather(q=location)
        except (ConciergeError, requests.RequestException) as exc:
            logger.error("Failed to fetch weather for %s: %s", location, exc)
            return None
        logger.debug("Weather fetched for %s: %s°F", location, reading.tempF)
        return reading

    def _knowledge_text(self, message: str) -> str:
        try:
            base = self.knowledge.current
            return base.format_chunks_for_prompt(base.retrieve_relevant_chunks(message))
        except Exception as exc:
            logger.warning("Knowledge retrieval failed; continuing without it", extra={"error": str(exc)})
            return ""

    def build_context(
        self,
        message: str,
        *,
        business_name: str | None,
        business_type: str | None,
        location: str,
        include_weather: bool,
    ) -> PromptContext:
        return PromptContext(
            business_name=business_name,
            business_type=business_type,
            location=location,
            weather=self._fetch_weather(location) if include_weather else None,
            knowledge_text=self._knowledge_text(message),
        )

    def _messages_for(self, message: str, context: PromptContext) -> list[dict]:
        system_prompt = build_system_prompt(context)
        logger.debug(
            "Prompt lengths (chars): system=%d user=%d weather=%s knowledge=%d",
            len(system_prompt), len(message), context.weather is not None, len(context.knowledge_text),
        )
        return build_chat_messages(system_prompt, message)

    def _complete(self, messages: list[dict]) -> str:
        try:
            raw_reply = self.completion.chat(messages)
        except (UpstreamError, TransportError) as exc:
            logger.error("Completion API error: %s", exc)
            return FALLBACK_REPLY
        return shape_reply(raw_reply)

    @staticmethod
    def _require_message(message: str) -> None:
        if not message:
            raise InvalidArgumentError("message must not be empty")

    def process_message(
        self,
        message: str,
        business_name: str | None = None,
        business_type: str | None = None,
        business_location: str | None = None,
    ) -> ChatResult:
        """Answer ``message`` in one blocking round trip."""
        self._require_message(message)
        location = business_location or self.settings.default_business_location
        context = self.build_context(
            message,
            business_name=business_name,
            business_type=business_type,
            location=location,
            include_weather=self.needs_weather(message),
        )
        response = self._complete(self._messages_for(message, context))

        return ChatResult(
            response=response,
            weatherInfo=WeatherInfo.from_reading(context.weather) if context.weather else None,
            businessInfo=BusinessInfo(
                name=business_name,
                location=location,
                type=business_type or "business",
            ) if business_name else None,
        )

    def stream_message(
        self,
        message: str,
        business_name: str | None = None,
        business_type: str | None = None,
        business_location: str | None = None,
    ) -> Iterator[str]:
        """Same context as :meth:`process_message`, answered as a lazy token stream."""
        self._require_message(message)
        location = business_location or self.settings.default_business_location
        context = self.build_context(
            message,
            business_name=business_name,
            business_type=business_type,
            location=location,
            include_weather=self.needs_weather(message),
        )
        return self.completion.stream_chat(self._messages_for(message, context))

    def process_simple_message(self, message: str) -> SimpleChatResult:
        """Blocking chat for the fixed business profile, annotated with its route."""
        routed = self.router.route_message(message, business_id=self.profile.business_id)
        logger.debug("Routed message to: %s with facets: %s",
                     routed.route.value, ", ".join(routed.business_facets))

        result = self.process_message(
            message,
            business_name=self.profile.name,
            business_type=self.profile.type,
            business_location=self.profile.location,
        )
        return SimpleChatResult(
            **result.model_dump(),
            route=routed.route,
            business_facets=routed.business_facets,
        )

    def stream_simple_message(self, message: str) -> Iterator[str]:
        """Streamed fixed-profile chat; here the router's route decides whether weather is fetched."""
        routed = self.router.route_message(message, business_id=self.profile.business_id)
        context = self.build_context(
            message,
            business_name=self.profile.name,
            business_type=self.profile.type,
            location=self.profile.location,
            include_weather=routed.route in (Route.WEATHER, Route.BOTH),
        )
        return self.completion.stream_chat(self._messages_for(message, context))
