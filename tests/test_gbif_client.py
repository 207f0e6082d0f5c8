import asyncio

import httpx
import pytest

from evotree.clients import gbif
from evotree.errors import RemoteServiceError

PREFIX = httpx.URL(gbif.BASE).path.rstrip("/")


@pytest.fixture
def mock_gbif(monkeypatch):
    """Cliente global con MockTransport; devuelve (requests vistas, respuestas por path)."""
    seen = []
    responses = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        reply = responses.get(request.url.path)
        if isinstance(reply, Exception):
            raise reply
        if reply is None:
            return httpx.Response(404, json={})
        return reply

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    monkeypatch.setattr(gbif, "_http_client", client)
    yield seen, responses
    monkeypatch.setattr(gbif, "_http_client", None)


def test_search_omits_empty_filters(mock_gbif):
    seen, responses = mock_gbif
    responses[PREFIX + "/species/search"] = httpx.Response(200, json={"results": [{"key": 1}]})

    out = asyncio.run(gbif.species_search("lion", q_field="VERNACULAR", rank="SPECIES"))
    assert out == {"results": [{"key": 1}]}

    params = seen[0].url.params
    assert params["q"] == "lion"
    assert params["qField"] == "VERNACULAR"
    assert params["rank"] == "SPECIES"
    assert params["limit"] == "50"
    assert "kingdomKey" not in params
    assert "status" not in params


def test_vernacular_names_sends_paging(mock_gbif):
    seen, responses = mock_gbif
    responses[PREFIX + "/species/5219404/vernacularNames"] = httpx.Response(
        200, json={"results": [], "endOfRecords": True}
    )
    asyncio.run(gbif.vernacular_names(5219404, offset=100))
    assert seen[0].url.params["offset"] == "100"
    assert seen[0].url.params["limit"] == "100"


def test_http_error_status_raises(mock_gbif):
    _, responses = mock_gbif
    responses[PREFIX + "/species/match"] = httpx.Response(503, text="unavailable")
    with pytest.raises(RemoteServiceError) as exc:
        asyncio.run(gbif.species_match("Panthera leo"))
    assert "HTTP 503" in str(exc.value)


def test_invalid_json_raises(mock_gbif):
    _, responses = mock_gbif
    responses[PREFIX + "/species/1"] = httpx.Response(200, text="<html>oops</html>")
    with pytest.raises(RemoteServiceError):
        asyncio.run(gbif.species_get(1))


def test_transport_error_raises(mock_gbif):
    _, responses = mock_gbif
    responses[PREFIX + "/species/match"] = httpx.ConnectError("boom")
    with pytest.raises(RemoteServiceError) as exc:
        asyncio.run(gbif.species_match("Panthera leo"))
    assert "ConnectError" in str(exc.value)


def test_close_http_client_resets_global(monkeypatch):
    monkeypatch.setattr(gbif, "_http_client", httpx.AsyncClient())
    asyncio.run(gbif.close_http_client())
    assert gbif._http_client is None
