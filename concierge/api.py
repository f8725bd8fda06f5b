"""HTTP API for the local business concierge."""

import hmac
from typing import Iterator, Optional

import requests
from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from .config import settings
from .errors import (
    ConciergeError,
    ConfigurationError,
    InvalidArgumentError,
    NotFoundError,
    TransportError,
    UpstreamError,
)
from .orchestrator import ChatResult, SimpleChatResult
from .preflight import get_provider_status
from .router import RouteResult
from .services import build_services
from .weather import WeatherReading
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="api")

# Optional Redis client for API key checks; fallback to a static key
try:
    import redis  # type: ignore
except ImportError:  # pragma: no cover - exercised implicitly
    redis = None

_redis_client = None
if settings.api_key_redis_url and redis:
    try:
        _redis_client = redis.Redis.from_url(settings.api_key_redis_url)
        logger.info("API key checks will use Redis backend")
    except Exception as exc:  # pragma: no cover - bad redis url
        logger.warning("Failed to connect to Redis for API key checks; falling back to static key",
                       extra={"error": str(exc)})


def require_api_key(x_api_key: str | None = Header(default=None)):
    """Validate X-API-Key against Redis (if configured) or the static api_key setting."""
    if not settings.api_key and not _redis_client:
        return

    if not x_api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")

    if _redis_client:
        try:
            if _redis_client.sismember(settings.api_key_redis_set, x_api_key):
                return
        except Exception as e:  # pragma: no cover - redis outage
            logger.warning("Redis API key lookup error; falling back to static key",
                           extra={"error": str(e)})

    if settings.api_key and hmac.compare_digest(str(x_api_key), str(settings.api_key)):
        return

    logger.debug("Invalid API key provided")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


router = APIRouter(dependencies=[Depends(require_api_key)])
SERVICES = build_services(settings)

_ERROR_STATUS = {
    InvalidArgumentError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    UpstreamError: status.HTTP_502_BAD_GATEWAY,
    TransportError: status.HTTP_504_GATEWAY_TIMEOUT,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _http_error(exc: ConciergeError) -> HTTPException:
    """Translate a concierge error into the matching HTTP status."""
    code = next(
        (code for err_type, code in _ERROR_STATUS.items() if isinstance(exc, err_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if code >= 500:
        logger.error("Request failed with %s: %s", type(exc).__name__, exc)
    return HTTPException(status_code=code, detail=str(exc))


class RouterRequest(BaseModel):
    """Incoming routing request."""
    message: str = Field(min_length=1)
    businessId: Optional[str] = None


class ChatRequest(BaseModel):
    """Incoming chat message, optionally naming the business it is about."""
    message: str = Field(min_length=1)
    businessLocation: Optional[str] = None
    businessName: Optional[str] = None
    businessType: Optional[str] = None


class SimpleChatRequest(BaseModel):
    """Incoming message for the fixed business profile."""
    message: str = Field(min_length=1)


def _check_length(message: str) -> None:
    if len(message) > settings.max_user_message_chars:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Message too long; limit {settings.max_user_message_chars} characters.")


def _guarded(tokens: Iterator[str]) -> Iterator[str]:
    """Pass tokens through; an upstream read failure ends the body early."""
    try:
        yield from tokens
    except requests.RequestException as exc:
        logger.error("Upstream stream interrupted: %s", type(exc).__name__)
    finally:
        close = getattr(tokens, "close", None)
        if callable(close):
            close()


def _stream_response(tokens: Iterator[str]) -> StreamingResponse:
    return StreamingResponse(
        _guarded(tokens),
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-cache"},
    )


@router.post("/router", response_model=RouteResult)
def route_message(req: RouterRequest):
    """Classify a message into route, timeframe and business facets."""
    try:
        return SERVICES.router.route_message(req.message, business_id=req.businessId)
    except ConciergeError as exc:
        raise _http_error(exc)


@router.get("/weather", response_model=WeatherReading)
def get_weather(
    lat: Optional[float] = Query(default=None),
    lon: Optional[float] = Query(default=None),
    q: Optional[str] = Query(default=None, min_length=1),
):
    """Current weather for coordinates or a free-text place."""
    if lat is not None and not -90 <= lat <= 90:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="lat must be between -90 and 90")
    if lon is not None and not -180 <= lon <= 180:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="lon must be between -180 and 180")
    try:
        return SERVICES.weather.get_weather(lat=lat, lon=lon, q=q)
    except ConciergeError as exc:
        raise _http_error(exc)


@router.post("/chat", response_model=ChatResult)
def chat(req: ChatRequest):
    """Answer a message in one blocking call."""
    _check_length(req.message)
    try:
        return SERVICES.orchestrator.process_message(
            req.message,
            business_name=req.businessName,
            business_type=req.businessType,
            business_location=req.businessLocation,
        )
    except ConciergeError as exc:
        raise _http_error(exc)


@router.post("/chat/stream")
def chat_stream(req: ChatRequest):
    """Answer a message as a chunked text/plain body of raw tokens."""
    _check_length(req.message)
    try:
        tokens = SERVICES.orchestrator.stream_message(
            req.message,
            business_name=req.businessName,
            business_type=req.businessType,
            business_location=req.businessLocation,
        )
    except ConciergeError as exc:
        raise _http_error(exc)
    return _stream_response(tokens)


@router.post("/chat-simple", response_model=SimpleChatResult)
def chat_simple(req: SimpleChatRequest):
    """Blocking chat for the built-in business profile, with routing info."""
    _check_length(req.message)
    try:
        return SERVICES.orchestrator.process_simple_message(req.message)
    except ConciergeError as exc:
        raise _http_error(exc)


@router.post("/chat-simple/stream")
def chat_simple_stream(req: SimpleChatRequest):
    """Streamed chat for the built-in business profile."""
    _check_length(req.message)
    try:
        tokens = SERVICES.orchestrator.stream_simple_message(req.message)
    except ConciergeError as exc:
        raise _http_error(exc)
    return _stream_response(tokens)


@router.get("/health")
def health():
    """Report configured providers and loaded knowledge without calling out."""
    return get_provider_status(SERVICES.settings, SERVICES.knowledge)
