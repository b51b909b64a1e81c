"""Error taxonomy for playlist ingestion, catalog queries and the proxy endpoint."""
from __future__ import annotations

from typing import Optional


class CatalogError(Exception):
    """Base class for every failure surfaced to catalog callers."""

    # HTTP status used when the error is returned by the catalog API
    status_code = 500


class FormatError(CatalogError):
    """The playlist text does not start with the ``#EXTM3U`` header."""

    status_code = 422


class ApiError(CatalogError):
    """An upstream call answered with a non-success status or an unusable body.

    ``call`` names the failing call: ``"categories"``, ``"streams"`` or
    ``"playlist"``.
    """

    status_code = 502

    def __init__(self, call: str, message: str = "", status_code: Optional[int] = None):
        self.call = call
        self.upstream_status = status_code
        if not message:
            message = f"Upstream {call} request failed"
            if status_code is not None:
                message += f" with status {status_code}"
        super().__init__(message)


class NetworkError(CatalogError):
    """The resource could not be fetched at all (DNS, connect, timeout...)."""

    status_code = 502


class EmptyResultError(CatalogError):
    """Ingestion finished but produced zero channels."""

    status_code = 422


class ProxyUpstreamError(CatalogError):
    """The proxy endpoint could not reach its target."""

    status_code = 502


class InternalError(CatalogError):
    """Unexpected failure inside the background execution host."""

    status_code = 500


_ERROR_TYPES: dict[str, type[CatalogError]] = {
    cls.__name__: cls
    for cls in (FormatError, ApiError, NetworkError, EmptyResultError, ProxyUpstreamError, InternalError)
}


def error_class(error_type: str) -> type[CatalogError]:
    """Return the exception class registered under *error_type* (InternalError if unknown)."""
    return _ERROR_TYPES.get(error_type, InternalError)


def error_from_reply(error_type: str, message: str, call: Optional[str] = None) -> CatalogError:
    """Rebuild a caller-side exception from a structured error reply."""
    cls = error_class(error_type)
    if cls is ApiError:
        return ApiError(call or "unknown", message)
    return cls(message)
