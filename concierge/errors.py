"""Error taxonomy shared by the provider clients, the orchestrator and the API."""


class ConciergeError(Exception):
    """Base class for every error the concierge raises on purpose."""


class InvalidArgumentError(ConciergeError):
    """Caller input cannot be acted on (rejected before any I/O)."""


class NotFoundError(ConciergeError):
    """A provider answered but had nothing for the query (e.g. zero geocode hits)."""


class UpstreamError(ConciergeError):
    """A provider answered with a non-OK status or an unusable body."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransportError(ConciergeError):
    """The request never produced a response: network failure, timeout, exhausted retries."""


class ConfigurationError(ConciergeError):
    """A required setting (usually a provider credential) is missing."""
