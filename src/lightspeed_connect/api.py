"""Convenience calls on top of :meth:`LightspeedClient.request`.

These cover the handful of Retail API resources the diagnostic chat and the
dashboard read: items, customers, categories and sales.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from lightspeed_connect.client import LightspeedClient


def _data(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, Mapping):
        data = payload.get("data")
        if isinstance(data, list):
            return data
    return []


def _is_service(item: Mapping[str, Any]) -> bool:
    return (
        str(item.get("type") or "").lower() == "service"
        or str(item.get("category") or "").lower() == "services"
    )


class RetailApi:
    """Typed-ish wrappers around common Retail API resources."""

    def __init__(self, client: LightspeedClient) -> None:
        self.client = client

    async def get_items(self, **params: Any) -> Any:
        return await self.client.request("/items", params=params or None)

    async def get_customers(self, **params: Any) -> Any:
        return await self.client.request("/customers", params=params or None)

    async def get_customer(self, customer_id: str | int) -> Any:
        return await self.client.request(f"/customers/{customer_id}")

    async def get_categories(self) -> Any:
        return await self.client.request("/categories")

    async def list_service_items(self) -> dict[str, list[dict[str, Any]]]:
        """Return service items.

        Uses the category named "Services" when the store has one, otherwise
        filters a general item listing.
        """
        categories = _data(await self.get_categories())
        services_cat = next(
            (c for c in categories if str(c.get("name") or "").lower() == "services"),
            None,
        )
        if services_cat is not None:
            items = await self.get_items(category_id=services_cat["id"], limit=50)
            return {"data": _data(items)}

        items = await self.get_items(limit=100)
        return {"data": [i for i in _data(items) if _is_service(i)]}

    async def get_sales_by_customer(self, customer_id: str | int, **params: Any) -> Any:
        query: dict[str, Any] = {"customer_id": customer_id, "limit": 50}
        query.update(params)
        return await self.client.request("/sales", params=query)

    async def create_estimate(
        self,
        customer_id: str | int,
        lines: Iterable[Mapping[str, Any]] = (),
        note: str | None = None,
    ) -> Any:
        """Create a sale in ``quote`` status."""
        payload = {
            "customer_id": customer_id,
            "note": note,
            "status": "quote",
            "line_items": [
                {
                    "item_id": line.get("item_id"),
                    "quantity": line.get("quantity"),
                    "price": line.get("price"),
                }
                for line in lines
            ],
        }
        return await self.client.request("/sales", method="POST", json=payload)
