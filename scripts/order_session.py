from __future__ import annotations

import argparse
import json
import os
import time
from pathlib import Path

import httpx
from packages.shared.client.orders_client import OrderClient, OrderClientError
from packages.shared.client.session import OrderSessionStore


def _print_status(client: OrderClient, session: OrderSessionStore) -> bool:
    results = client.refresh(session)
    if not results:
        print("No orders in this session yet.")
        return False

    for order_id, order in results:
        if order is None:
            print(f"#{order_id}  (unknown to the shop)")
            continue
        amount = f"{order.total_cents / 100:.2f} {order.currency}"
        print(f"#{order_id}  {order.status.value:<10} {amount}")
    return OrderClient.has_open_orders(results)


def main() -> int:
    parser = argparse.ArgumentParser(description="Place and follow takeaway orders from a terminal")
    parser.add_argument(
        "--api-url",
        default=os.getenv("SHOP_API_URL", "http://localhost:8000"),
        help="Order API base URL (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--session-file",
        default=os.getenv("SHOP_SESSION_FILE", ".local/order_session.json"),
        help="Where this device keeps its order ids (default: .local/order_session.json)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    place = sub.add_parser("place", help="Submit an order and remember its id")
    place.add_argument("--lines-json", required=True, help='e.g. [{"item": "Döner", "qty": 2}]')
    place.add_argument("--total-cents", type=int, required=True)
    place.add_argument("--phone", default=None, help="Number for the ready SMS")

    status = sub.add_parser("status", help="Show the status of every order in this session")
    status.add_argument("--watch", action="store_true", help="Poll until all orders are picked up")
    status.add_argument("--interval", type=float, default=4.0)

    forget = sub.add_parser("forget", help="Drop an order id from this session")
    forget.add_argument("order_id")

    pay = sub.add_parser("pay", help="Start a payment session and print the redirect URL")
    pay.add_argument("order_id")

    args = parser.parse_args()

    session = OrderSessionStore(Path(args.session_file))

    with httpx.Client(base_url=args.api_url, timeout=10.0) as http:
        client = OrderClient(http)
        try:
            if args.command == "place":
                order_id = client.place_order(
                    session,
                    lines=json.loads(args.lines_json),
                    total_cents=args.total_cents,
                    customer_phone=args.phone,
                )
                print(f"Order placed: {order_id}")
            elif args.command == "status":
                while _print_status(client, session) and args.watch:
                    time.sleep(args.interval)
                    print()
            elif args.command == "forget":
                session.remove(args.order_id)
                print(f"Forgot {args.order_id}")
            elif args.command == "pay":
                print(client.start_payment(args.order_id))
        except (OrderClientError, httpx.HTTPError) as e:
            raise SystemExit(f"Error: {e}") from e

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
