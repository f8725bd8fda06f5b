"""Build the service graph (clients, cache, knowledge, router, orchestrator) at startup."""

from __future__ import annotations

from dataclasses import dataclass

from concierge import config
from concierge.cache import KeyedCache
from concierge.classifier import RoutingTables, load_routing_tables
from concierge.completion_client import CompletionClient
from concierge.geocoder import Geocoder
from concierge.http_client import ResilientHttpClient
from concierge.knowledge import KnowledgeStore
from concierge.orchestrator import ChatOrchestrator
from concierge.router import IntentRouter
from concierge.weather import WeatherService
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="services")


@dataclass
class Services:
    """Long-lived collaborators shared by every request."""
    settings: config.Settings
    cache: KeyedCache
    tables: RoutingTables
    knowledge: KnowledgeStore
    geocoder: Geocoder
    weather: WeatherService
    completion: CompletionClient
    router: IntentRouter
    orchestrator: ChatOrchestrator


def build_services(settings: config.Settings | None = None) -> Services:
    """Instantiate every component from ``settings`` (the module singleton by default)."""
    settings = settings or config.settings

    cache = KeyedCache(max_entries=settings.cache_max_entries)
    provider_http = ResilientHttpClient(
        timeout_seconds=settings.http_timeout_seconds,
        max_attempts=settings.http_max_attempts,
    )
    completion_http = ResilientHttpClient(
        timeout_seconds=settings.completion_timeout_seconds,
        max_attempts=settings.http_max_attempts,
    )

    tables = load_routing_tables(settings.routing_tables_path)
    knowledge = KnowledgeStore(settings.knowledge_path)
    geocoder = Geocoder(provider_http, cache, settings)
    weather = WeatherService(provider_http, cache, geocoder, settings)
    completion = CompletionClient(completion_http, settings)
    router = IntentRouter(tables)
    orchestrator = ChatOrchestrator(weather, knowledge, completion, router, tables, settings)

    logger.info(
        "Services ready",
        extra={
            "knowledge_chunks": len(knowledge.current.chunks),
            "cache_ttl_seconds": settings.cache_ttl_seconds,
        },
    )
    return Services(
        settings=settings,
        cache=cache,
        tables=tables,
        knowledge=knowledge,
        geocoder=geocoder,
        weather=weather,
        completion=completion,
        router=router,
        orchestrator=orchestrator,
    )
