"""Tests for endpoint construction from settings."""

import pytest

from stack_orchestrator.endpoints import (
    alias_endpoint,
    all_service_endpoints,
    api_endpoint,
    index_endpoint,
    ingestion_endpoint,
    search_endpoint,
)
from stack_orchestrator.settings import Settings


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        ingestion_url="http://ingestion:8001/",
        api_url="http://web:8000",
        search_url="http://es:9200",
    )


def test_service_endpoints(settings: Settings):
    assert ingestion_endpoint(settings).url == "http://ingestion:8001/"
    assert api_endpoint(settings).url == "http://web:8000/healthcheck/"
    assert search_endpoint(settings).url == "http://es:9200/_cluster/health"


def test_default_ports():
    endpoints = all_service_endpoints()

    assert list(endpoints) == ["search", "ingestion_server", "api"]
    assert endpoints["ingestion_server"].url == "http://localhost:50281/"
    assert endpoints["api"].url == "http://localhost:50280/healthcheck/"
    assert endpoints["search"].url == "http://localhost:50292/_cluster/health"


def test_index_endpoint(settings: Settings):
    endpoint = index_endpoint("image-init", settings)

    assert endpoint.name == "index:image-init"
    assert endpoint.url == "http://es:9200/_cat/indices/image-init"
    assert endpoint.expected_text == "image-init"


def test_alias_endpoint(settings: Settings):
    endpoint = alias_endpoint("image", "image-init", settings)

    assert endpoint.url == "http://es:9200/_alias/image"
    assert endpoint.expected_text == '"image-init"'


@pytest.mark.parametrize("factory", [lambda: index_endpoint(""), lambda: alias_endpoint("", "image-init")])
def test_empty_names_rejected(factory):
    with pytest.raises(ValueError):
        factory()
