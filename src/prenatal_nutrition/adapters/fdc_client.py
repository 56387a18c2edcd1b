"""USDA FoodData Central API client."""

from dataclasses import dataclass

import httpx

from prenatal_nutrition.domain.foods import ReferenceKind
from prenatal_nutrition.services.normalizer import FDC
from prenatal_nutrition.services.resolver import NutrientSource


@dataclass
class HttpxFdcClient(NutrientSource):
    """HTTPX-backed FDC client."""

    api_key: str
    base_url: str
    http_client: httpx.AsyncClient
    name: str = "usda_fdc"
    schema_tag: str = FDC

    @classmethod
    def create(cls, api_key: str, base_url: str) -> "HttpxFdcClient":
        """Create an FDC client with a managed httpx session."""
        return cls(api_key=api_key, base_url=base_url, http_client=httpx.AsyncClient())

    def supports(self, kind: ReferenceKind) -> bool:
        return kind in (ReferenceKind.BARCODE, ReferenceKind.NAME)

    async def search_foods(
        self, query: str, page_size: int = 10, data_types: list[str] | None = None
    ) -> dict[str, object]:
        """Search foods by query."""
        url = f"{self.base_url}/foods/search"
        body: dict[str, object] = {"query": query, "pageSize": page_size}
        if data_types:
            body["dataType"] = data_types
        response = await self.http_client.post(
            url,
            params={"api_key": self.api_key},
            json=body,
            timeout=15,
        )
        response.raise_for_status()
        return response.json()

    async def get_food(self, fdc_id: int) -> dict[str, object]:
        """Fetch a food by FDC id."""
        url = f"{self.base_url}/food/{fdc_id}"
        response = await self.http_client.get(
            url,
            params={"api_key": self.api_key},
            timeout=15,
        )
        response.raise_for_status()
        return response.json()

    async def lookup_by_barcode(self, code: str) -> dict[str, object] | None:
        """Find the branded food whose GTIN/UPC matches the barcode."""
        payload = await self.search_foods(code, page_size=5, data_types=["Branded"])
        wanted = code.lstrip("0")
        for food in _foods(payload):
            gtin = str(food.get("gtinUpc") or "").lstrip("0")
            if gtin and gtin == wanted:
                return food
        return None

    async def search_by_name(
        self, text: str, limit: int = 5
    ) -> list[dict[str, object]]:
        """Search foods by description."""
        payload = await self.search_foods(text, page_size=limit)
        return _foods(payload)[:limit]

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def _foods(payload: dict[str, object]) -> list[dict[str, object]]:
    foods = payload.get("foods")
    if not isinstance(foods, list):
        return []
    return [food for food in foods if isinstance(food, dict)]
