from __future__ import annotations


class LeadEngineError(Exception):
    """Base class for every error raised by the lead engine."""


class ProviderError(LeadEngineError):
    """Upstream provider call failed or returned a payload we could not read."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message


class ConfigNotFoundError(LeadEngineError):
    def __init__(self, source: str) -> None:
        super().__init__(f"Lead source config for {source} not found")
        self.source = source


class StoreError(LeadEngineError):
    """Persistence failure. Callers must not assume a partial write happened."""


class QuotaExceededError(LeadEngineError):
    """
    Reserved for callers that want hard quota enforcement.
    The default fetch paths treat quota as advisory and never raise this.
    """

    def __init__(self, source: str, used: int, limit: int) -> None:
        super().__init__(f"{source}: daily quota exhausted ({used}/{limit})")
        self.source = source
        self.used = used
        self.limit = limit
