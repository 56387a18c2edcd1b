"""Open Food Facts API client."""

from dataclasses import dataclass

import httpx

from prenatal_nutrition.domain.errors import MalformedSourceRecord
from prenatal_nutrition.domain.foods import ReferenceKind
from prenatal_nutrition.services.normalizer import OPEN_FOOD_FACTS
from prenatal_nutrition.services.resolver import NutrientSource

_PRODUCT_FIELDS = "code,product_name,product_name_en,brands,nutriments"
_NOT_FOUND = 404


@dataclass
class OpenFoodFactsClient(NutrientSource):
    """HTTPX-backed Open Food Facts client."""

    base_url: str
    user_agent: str
    http_client: httpx.AsyncClient
    name: str = "openfoodfacts"
    schema_tag: str = OPEN_FOOD_FACTS

    @classmethod
    def create(cls, base_url: str, user_agent: str) -> "OpenFoodFactsClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=base_url,
            user_agent=user_agent,
            http_client=httpx.AsyncClient(headers={"User-Agent": user_agent}),
        )

    def supports(self, kind: ReferenceKind) -> bool:
        return kind in (ReferenceKind.BARCODE, ReferenceKind.NAME)

    async def lookup_by_barcode(self, code: str) -> dict[str, object] | None:
        """Return the product document for a barcode."""
        response = await self.http_client.get(
            f"{self.base_url}/api/v2/product/{code}.json",
            params={"fields": _PRODUCT_FIELDS},
            timeout=15,
        )
        if response.status_code == _NOT_FOUND:
            return None
        response.raise_for_status()
        payload = _json(response)
        product = payload.get("product")
        if payload.get("status") in (0, "0") or not isinstance(product, dict):
            return None
        return product

    async def search_by_name(
        self, text: str, limit: int = 5
    ) -> list[dict[str, object]]:
        """Search products by free text."""
        response = await self.http_client.get(
            f"{self.base_url}/cgi/search.pl",
            params={
                "search_terms": text,
                "search_simple": 1,
                "action": "process",
                "json": 1,
                "page_size": limit,
                "fields": _PRODUCT_FIELDS,
            },
            timeout=15,
        )
        response.raise_for_status()
        products = _json(response).get("products")
        if not isinstance(products, list):
            return []
        return [product for product in products if isinstance(product, dict)][:limit]

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def _json(response: httpx.Response) -> dict[str, object]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise MalformedSourceRecord(OPEN_FOOD_FACTS, str(exc)) from exc
    if not isinstance(payload, dict):
        raise MalformedSourceRecord(OPEN_FOOD_FACTS, "response is not a JSON object")
    return payload
