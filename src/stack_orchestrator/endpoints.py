"""Readiness endpoints of the stack, derived from settings."""

from .constants import (
    API_HEALTH_PATH,
    INGESTION_HEALTH_PATH,
    SEARCH_ALIAS_PATH,
    SEARCH_HEALTH_PATH,
    SEARCH_INDICES_PATH,
    SERVICE_API,
    SERVICE_INGESTION,
    SERVICE_SEARCH,
)
from .models import ServiceEndpoint
from .settings import Settings, get_settings


def ingestion_endpoint(settings: Settings | None = None) -> ServiceEndpoint:
    """Health endpoint of the ingestion server (``GET /``)."""
    settings = settings or get_settings()
    return ServiceEndpoint(name=SERVICE_INGESTION, url=f"{settings.ingestion_url}{INGESTION_HEALTH_PATH}")


def api_endpoint(settings: Settings | None = None) -> ServiceEndpoint:
    """Health endpoint of the media API (``GET /healthcheck/``)."""
    settings = settings or get_settings()
    return ServiceEndpoint(name=SERVICE_API, url=f"{settings.api_url}{API_HEALTH_PATH}")


def search_endpoint(settings: Settings | None = None) -> ServiceEndpoint:
    """Cluster health endpoint of the search backend."""
    settings = settings or get_settings()
    return ServiceEndpoint(name=SERVICE_SEARCH, url=f"{settings.search_url}{SEARCH_HEALTH_PATH}")


def index_endpoint(index: str, settings: Settings | None = None) -> ServiceEndpoint:
    """Presence check of a search index.

    ``_cat/indices/<name>`` answers 200 and lists the index once it exists.
    """
    if not index:
        raise ValueError("Index name must not be empty")
    settings = settings or get_settings()
    return ServiceEndpoint(
        name=f"index:{index}",
        url=f"{settings.search_url}{SEARCH_INDICES_PATH}{index}",
        expected_text=index,
    )


def alias_endpoint(alias: str, index: str, settings: Settings | None = None) -> ServiceEndpoint:
    """Check that ``alias`` currently points at ``index``.

    ``_alias/<alias>`` lists the indices behind the alias and answers 404 while
    the alias does not exist.
    """
    if not alias or not index:
        raise ValueError("Alias and index names must not be empty")
    settings = settings or get_settings()
    return ServiceEndpoint(
        name=f"alias:{alias}",
        url=f"{settings.search_url}{SEARCH_ALIAS_PATH}{alias}",
        expected_text=f'"{index}"',
    )


def all_service_endpoints(settings: Settings | None = None) -> dict[str, ServiceEndpoint]:
    """Return the service endpoints keyed by service name."""
    return {
        SERVICE_SEARCH: search_endpoint(settings),
        SERVICE_INGESTION: ingestion_endpoint(settings),
        SERVICE_API: api_endpoint(settings),
    }
