from .client import BackendClient, BackendError, RateLimitedError, UpdateResponse

__all__ = [
    "BackendClient",
    "BackendError",
    "RateLimitedError",
    "UpdateResponse",
]
