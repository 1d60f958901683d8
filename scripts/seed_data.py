from __future__ import annotations

import argparse
from datetime import timedelta

from services.api.app.db.database import db_session
from services.api.app.db.init_db import init_db
from services.api.app.db.models import utcnow
from services.api.app.services.order_store import OrderStore

_DEMO_ORDERS = (
    (
        [{"item": {"id": "doener", "name": "Döner", "price_cents": 1900}, "qty": 2}],
        3800,
        "in_queue",
    ),
    (
        [
            {
                "item": {"id": "duerum", "name": "Dürüm", "price_cents": 2000},
                "qty": 1,
                "specs": {"sauce": ["knoblauch"]},
                "note": "ohne Zwiebeln",
            }
        ],
        2000,
        "preparing",
    ),
    (
        [{"item": {"id": "ayran", "name": "Ayran", "price_cents": 450}, "qty": 2}],
        900,
        "ready",
    ),
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed demo orders for the kitchen dashboard")
    parser.add_argument(
        "--with-archive",
        action="store_true",
        help="Also add a picked-up order old enough to show in the archive",
    )
    args = parser.parse_args()

    init_db()

    db = db_session()
    try:
        # No notifier: seeding must never text anyone.
        store = OrderStore(db, notifier=None)

        for lines, total_cents, status in _DEMO_ORDERS:
            order = store.create(lines=lines, total_cents=total_cents)
            if status != "in_queue":
                store.set_status(order.id, status)
            print(f"Seeded order={order.id} status={status}")

        if args.with_archive:
            falafel = {"id": "falafel", "name": "Falafel", "price_cents": 1700}
            order = store.create(lines=[{"item": falafel, "qty": 1}], total_cents=1700)
            store.set_status(order.id, "picked_up")
            order.updated_at = utcnow() - timedelta(minutes=10)
            db.commit()
            print(f"Seeded order={order.id} status=picked_up (archived)")

        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
