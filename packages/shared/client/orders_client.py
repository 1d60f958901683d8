from __future__ import annotations

from typing import Any

import httpx
from packages.shared.client.session import OrderSessionStore
from packages.shared.schemas.order_v1 import OrderStatusV1, OrderV1


class OrderClientError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return str(body)[:200]


class OrderClient:
    """Customer-facing calls against the order API.

    Takes any httpx.Client (FastAPI's TestClient included) so the caller owns base URL,
    timeouts and transport.
    """

    def __init__(self, http: httpx.Client) -> None:
        self._http = http

    def create_order(
        self,
        lines: list[dict[str, Any]],
        total_cents: int,
        customer_email: str | None = None,
        customer_phone: str | None = None,
    ) -> str:
        payload: dict[str, Any] = {"lines": lines, "total_cents": total_cents}
        if customer_email:
            payload["customer_email"] = customer_email
        if customer_phone:
            payload["customer_phone"] = customer_phone

        response = self._http.post("/orders", json=payload)
        if response.status_code != 201:
            raise OrderClientError(
                f"Order create failed ({response.status_code}): {_detail(response)}",
                status_code=response.status_code,
            )

        order_id = response.json().get("id")
        if not isinstance(order_id, str) or not order_id:
            raise OrderClientError("No order id returned")
        return order_id

    def get_order(self, order_id: str) -> OrderV1 | None:
        response = self._http.get(f"/orders/{order_id}")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise OrderClientError(
                f"Order fetch failed ({response.status_code}): {_detail(response)}",
                status_code=response.status_code,
            )
        return OrderV1.model_validate(response.json())

    def start_payment(self, order_id: str) -> str:
        response = self._http.post("/payments/start", json={"orderId": order_id})
        if response.status_code != 200:
            raise OrderClientError(
                f"Payment start failed ({response.status_code}): {_detail(response)}",
                status_code=response.status_code,
            )
        return response.json()["redirectUrl"]

    def place_order(
        self,
        session: OrderSessionStore,
        lines: list[dict[str, Any]],
        total_cents: int,
        customer_phone: str | None = None,
    ) -> str:
        order_id = self.create_order(lines, total_cents, customer_phone=customer_phone)
        session.add(order_id)
        return order_id

    def refresh(self, session: OrderSessionStore) -> list[tuple[str, OrderV1 | None]]:
        """Fetch every tracked order. Open orders come first, picked-up ones last.

        Orders the API no longer knows about are reported as None and left in the session;
        forgetting them is the caller's decision.
        """

        results = [(order_id, self.get_order(order_id)) for order_id in session.ids()]
        done = [r for r in results if _is_picked_up(r[1])]
        open_orders = [r for r in results if not _is_picked_up(r[1])]
        return open_orders + done

    @staticmethod
    def has_open_orders(results: list[tuple[str, OrderV1 | None]]) -> bool:
        return any(o is not None and not _is_picked_up(o) for _, o in results)


def _is_picked_up(order: OrderV1 | None) -> bool:
    return order is not None and order.status == OrderStatusV1.PICKED_UP
