from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from packages.shared.client.orders_client import OrderClient, OrderClientError
from packages.shared.client.session import OrderSessionStore
from packages.shared.schemas.order_v1 import OrderStatusV1

PIN = {"x-kitchen-pin": "4321"}
LINES = [{"item": {"name": "Dürüm", "price_cents": 1300}, "qty": 1, "note": "extra scharf"}]


@pytest.fixture()
def http(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{tmp_path / 'shop_client.db'}")
    monkeypatch.setenv("SHOP_DB_AUTO_CREATE", "true")
    monkeypatch.setenv("SHOP_KITCHEN_PIN", "4321")
    monkeypatch.setenv("SHOP_PAYMENT_ADAPTER", "mock")

    from services.api.app.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture()
def session(tmp_path: Path) -> OrderSessionStore:
    return OrderSessionStore(tmp_path / "device" / "orders.json")


def test_session_store_keeps_newest_first(session: OrderSessionStore) -> None:
    assert session.ids() == []

    session.add("a")
    session.add("b")
    session.add("a")
    assert session.ids() == ["b", "a"]

    session.remove("b")
    assert session.ids() == ["a"]

    session.clear()
    assert session.ids() == []


def test_session_store_ignores_corrupt_file(session: OrderSessionStore) -> None:
    session.path.parent.mkdir(parents=True)
    session.path.write_text("{not json", encoding="utf-8")
    assert session.ids() == []

    session.path.write_text('{"ids": ["x"]}', encoding="utf-8")
    assert session.ids() == []


def test_place_order_and_follow_it(http: TestClient, session: OrderSessionStore) -> None:
    client = OrderClient(http)

    order_id = client.place_order(session, LINES, 1300, customer_phone="079 123 45 67")
    assert session.ids() == [order_id]

    order = client.get_order(order_id)
    assert order is not None
    assert order.status == OrderStatusV1.IN_QUEUE
    assert order.lines == LINES

    http.patch(f"/orders/{order_id}", json={"status": "picked_up"}, headers=PIN)
    second = client.place_order(session, LINES, 1300)

    results = client.refresh(session)
    assert [oid for oid, _ in results] == [second, order_id]
    assert OrderClient.has_open_orders(results)


def test_refresh_reports_unknown_orders(http: TestClient, session: OrderSessionStore) -> None:
    session.add("gone")

    results = OrderClient(http).refresh(session)
    assert results == [("gone", None)]
    assert not OrderClient.has_open_orders(results)
    assert session.ids() == ["gone"]


def test_create_order_surfaces_validation_error(http: TestClient) -> None:
    with pytest.raises(OrderClientError) as exc_info:
        OrderClient(http).create_order([], 1300)
    assert exc_info.value.status_code == 400


def test_start_payment_returns_redirect(http: TestClient, session: OrderSessionStore) -> None:
    client = OrderClient(http)
    order_id = client.place_order(session, LINES, 1300)

    assert client.start_payment(order_id).endswith(f"/checkout/success?order={order_id}")

    with pytest.raises(OrderClientError) as exc_info:
        client.start_payment("nope")
    assert exc_info.value.status_code == 404
