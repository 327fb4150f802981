import pytest

from documents.bootstrap import build_services
from documents.config import CacheConfig
from documents.fetcher import ResourceFetcher, RestDocumentFetcher
from documents.queries import DocumentRequest
from documents.results import ResourceResult
from monitor.probes import NullProbe


class StaticFetcher(ResourceFetcher):
    async def fetch_resource(self, request):
        return ResourceResult(kind=request.kind, data={"id": request.document_id})


def test_default_fetcher_is_rest():
    services = build_services(CacheConfig.from_dict({"api": {"key": "k"}}))
    assert isinstance(services.resources.fetcher, RestDocumentFetcher)


@pytest.mark.asyncio
async def test_services_share_one_store():
    config = CacheConfig.from_dict({"cache": {"capacity": 5}, "single_flight": False})
    services = build_services(config, fetcher=StaticFetcher(), probe=NullProbe())

    await services.resources.get(DocumentRequest("1"))

    assert services.resources.store is services.store
    assert services.store.capacity == 5
    assert services.resources.single_flight is False
    assert services.telemetry.sample().cache_size == 1

    services.telemetry.clear_cache()
    assert services.store.stats().size == 0
