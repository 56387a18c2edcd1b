"""Tests for HTTP-based nutrient sources."""

import asyncio
import json

import httpx
import pytest

from prenatal_nutrition.adapters.fdc_client import HttpxFdcClient
from prenatal_nutrition.adapters.openfoodfacts_client import OpenFoodFactsClient
from prenatal_nutrition.domain.errors import MalformedSourceRecord
from tests.conftest import BARCODE, fdc_food, off_product

OFF_URL = "https://world.openfoodfacts.org"
FDC_URL = "https://api.nal.usda.gov/fdc/v1"


def _off_client(handler) -> OpenFoodFactsClient:  # type: ignore[no-untyped-def]
    async_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenFoodFactsClient(
        base_url=OFF_URL, user_agent="tests", http_client=async_client
    )


def _fdc_client(handler) -> HttpxFdcClient:  # type: ignore[no-untyped-def]
    async_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpxFdcClient(api_key="key", base_url=FDC_URL, http_client=async_client)


def test_open_food_facts_barcode_lookup() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == f"/api/v2/product/{BARCODE}.json"
        assert "nutriments" in request.url.params["fields"]
        return httpx.Response(
            200,
            json={"status": 1, "product": off_product(**{"iron_100g": 0.008})},
        )

    record = asyncio.run(_off_client(handler).lookup_by_barcode(BARCODE))

    assert record is not None
    assert record["nutriments"] == {"iron_100g": 0.008}


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(404, json={"status": 0}),
        httpx.Response(200, json={"status": 0, "status_verbose": "product not found"}),
    ],
)
def test_open_food_facts_not_found(response: httpx.Response) -> None:
    record = asyncio.run(
        _off_client(lambda _request: response).lookup_by_barcode(BARCODE)
    )

    assert record is None


def test_open_food_facts_server_error_raises() -> None:
    client = _off_client(lambda _request: httpx.Response(503))

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.lookup_by_barcode(BARCODE))


def test_open_food_facts_invalid_json_is_malformed() -> None:
    client = _off_client(lambda _request: httpx.Response(200, content=b"<html>"))

    with pytest.raises(MalformedSourceRecord):
        asyncio.run(client.lookup_by_barcode(BARCODE))


def test_open_food_facts_search() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/cgi/search.pl"
        assert request.url.params["search_terms"] == "spinach"
        assert request.url.params["page_size"] == "2"
        products = [off_product(str(code)) for code in range(3)]
        return httpx.Response(200, json={"products": [*products, "junk"]})

    results = asyncio.run(_off_client(handler).search_by_name("spinach", limit=2))

    assert [product["code"] for product in results] == ["0", "1"]


def test_fdc_barcode_lookup_matches_gtin() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/fdc/v1/foods/search"
        assert request.url.params["api_key"] == "key"
        body = json.loads(request.content.decode())
        assert body["dataType"] == ["Branded"]
        other = fdc_food(fdc_id=1) | {"gtinUpc": "999"}
        match = fdc_food(fdc_id=2) | {"gtinUpc": f"0{BARCODE}"}
        return httpx.Response(200, json={"foods": [other, match]})

    record = asyncio.run(_fdc_client(handler).lookup_by_barcode(BARCODE))

    assert record is not None
    assert record["fdcId"] == 2


def test_fdc_barcode_lookup_without_match_is_not_found() -> None:
    client = _fdc_client(lambda _request: httpx.Response(200, json={"foods": []}))

    assert asyncio.run(client.lookup_by_barcode(BARCODE)) is None


def test_fdc_search_by_name() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content.decode())
        assert body == {"query": "spinach", "pageSize": 5}
        return httpx.Response(200, json={"foods": [fdc_food(n1089=2.7)]})

    results = asyncio.run(_fdc_client(handler).search_by_name("spinach"))

    assert results[0]["description"] == "Spinach, raw"


def test_fdc_get_food() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/fdc/v1/food/123"
        return httpx.Response(200, json={"fdcId": 123})

    payload = asyncio.run(_fdc_client(handler).get_food(123))

    assert payload == {"fdcId": 123}


def test_clients_close_http_sessions() -> None:
    off = _off_client(lambda _request: httpx.Response(200))
    fdc = _fdc_client(lambda _request: httpx.Response(200))

    asyncio.run(off.close())
    asyncio.run(fdc.close())

    assert off.http_client.is_closed
    assert fdc.http_client.is_closed
