import os

import uvicorn

from concierge.config import settings
from concierge.knowledge import KnowledgeStore
from concierge.preflight import check_providers
from utils.logging_utils import setup_logging, get_tagged_logger

logger = get_tagged_logger(__name__, tag="server")


def maybe_check_providers() -> None:
    """
    Optionally run the provider preflight. Controlled by:
    - CONCIERGE_SKIP_PREFLIGHT=true to skip entirely (useful in dev/tests)
    """
    if os.getenv("CONCIERGE_SKIP_PREFLIGHT", "false").lower() in ("1", "true", "yes"):
        logger.info("Skipping provider preflight (CONCIERGE_SKIP_PREFLIGHT=true)")
        return

    try:
        check_providers(settings, KnowledgeStore(settings.knowledge_path))
    except SystemExit:
        logger.error("Provider preflight failed; set CONCIERGE_SKIP_PREFLIGHT=true to bypass during dev/tests.")
        raise


if __name__ == "__main__":
    setup_logging(level=os.getenv("LOG_LEVEL", "INFO"), job_name="concierge-api")
    maybe_check_providers()

    uvicorn.run(
        "concierge.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=False,
    )
