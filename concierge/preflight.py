"""Startup checks for provider credentials and business knowledge."""

import os
import sys
from typing import Any, Dict

from .config import Settings
from .knowledge import KnowledgeStore
from utils.logging_utils import setup_logging, get_tagged_logger

setup_logging(level=os.getenv("LOG_LEVEL", "INFO"))
logger = get_tagged_logger(__name__, tag="preflight")


def get_provider_status(settings: Settings, knowledge: KnowledgeStore | None = None) -> Dict[str, Any]:
    """
    Non-fatal probe of what the service can do right now.

    Returns a dict like:
    {
      "ok": bool,                   # completion provider usable
      "completion_configured": bool,
      "weather_configured": bool,   # without it answers skip the weather line
      "knowledge_chunks": int,      # 0 means answers run without business facts
      "knowledge_source": "...",
      "missing": [...],             # names of env vars still unset
    }

    Makes no network calls; suitable for health checks.
    """
    missing = []
    if not settings.openai_api_key:
        missing.append("CONCIERGE_OPENAI_API_KEY")
    if not settings.tomorrow_api_key:
        missing.append("CONCIERGE_TOMORROW_API_KEY")

    base = knowledge.current if knowledge is not None else None
    status: Dict[str, Any] = {
        "completion_configured": bool(settings.openai_api_key),
        "weather_configured": bool(settings.tomorrow_api_key),
        "knowledge_chunks": len(base.chunks) if base is not None else 0,
        "knowledge_source": base.source if base is not None else None,
        "missing": missing,
    }
    status["ok"] = status["completion_configured"]
    return status


def check_providers(settings: Settings, knowledge: KnowledgeStore | None = None) -> None:
    """
    "Hard" check for startup.

    Exits with status 1 when the completion key is missing, since every chat
    request would fail. A missing weather key or empty knowledge only warns.
    """
    status = get_provider_status(settings, knowledge)

    if not status["completion_configured"]:
        logger.error("Completion provider is not configured.\n"
                     "   Set CONCIERGE_OPENAI_API_KEY (and CONCIERGE_OPENAI_BASE_URL for a non-OpenAI endpoint).")
        sys.exit(1)

    if not status["weather_configured"]:
        logger.warning("CONCIERGE_TOMORROW_API_KEY is not set; replies will not include weather.")
    if knowledge is not None and not status["knowledge_chunks"]:
        logger.warning(f"No business knowledge loaded from {status['knowledge_source']}; "
                       f"replies will offer to connect instead of answering.")

    logger.info(f"Providers configured (knowledge chunks: {status['knowledge_chunks']})")
