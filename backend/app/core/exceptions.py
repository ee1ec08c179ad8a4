"""
Error taxonomy for the offline gateway.

None of these ever reach a page as-is: the strategy engine turns every
failure into a cached response, a canned payload or a synthetic 503.
A cache miss is not an error and is represented by ``None``.
"""
from typing import Any, Dict, Optional


class OfflineGatewayError(Exception):
    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        context_str = f" - Context: {self.context}" if self.context else ""
        return f"{self.__class__.__name__}: {self.message}{context_str}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, context={self.context!r})"


class NetworkFailure(OfflineGatewayError):
    """Origin fetch rejected or timed out."""

    def __init__(self, message: str, url: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        ctx = dict(context or {})
        if url:
            ctx["url"] = url
        super().__init__(message, ctx)


class StorageFailure(OfflineGatewayError):
    """A cache partition read or write failed (quota, IO)."""

    def __init__(self, message: str, partition: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        ctx = dict(context or {})
        if partition:
            ctx["partition"] = partition
        super().__init__(message, ctx)


class StaticSeedFailure(OfflineGatewayError):
    """One manifest entry could not be fetched during install."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if url:
            ctx["url"] = url
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message, ctx)


class SyncStepFailure(OfflineGatewayError):
    def __init__(self, message: str, step: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        ctx = dict(context or {})
        if step:
            ctx["step"] = step
        super().__init__(message, ctx)


class LifecycleError(OfflineGatewayError):
    """Install/activate requested from a state that does not allow it."""

    def __init__(self, message: str, state: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        ctx = dict(context or {})
        if state:
            ctx["state"] = state
        super().__init__(message, ctx)
