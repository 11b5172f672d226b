"""End-to-end smoke test for the order lifecycle and its WebSocket events.

Prerequisites:
1. The server must be running (`python manage.py runserver` or daphne).
2. An admin exists (`python manage.py bootstrap_admin`), plus one customer,
   one active vehicle type and one verified driver (create them in /admin/).
3. Install the script dependencies once: `pip install -e ".[scripts]"`.

The script will:
- Log the admin in via the REST API.
- Open the driver WebSocket and send driver_join (driver goes online).
- Create an order, assign it to the driver and wait for order.assigned on
  the driver socket.
- Complete the order and check the driver is available again.
"""

from __future__ import annotations

import json
import os
import queue
import threading
from typing import Dict

import requests
import websocket  # type: ignore

BASE_URL = os.environ.get("DISPATCH_BASE_URL", "http://127.0.0.1:8000")
API_ROOT = f"{BASE_URL}/api"

ADMIN_CREDS = {
    "username": os.environ.get("DISPATCH_ADMIN_USERNAME", "admin"),
    "password": os.environ.get("DISPATCH_ADMIN_PASSWORD", "admin1234"),
}
CUSTOMER_ID = int(os.environ.get("DISPATCH_SMOKE_CUSTOMER_ID", 1))
DRIVER_ID = int(os.environ.get("DISPATCH_SMOKE_DRIVER_ID", 1))
VEHICLE_TYPE = os.environ.get("DISPATCH_SMOKE_VEHICLE_TYPE", "bike")

LOCATIONS = {
    "pickup": {"address": "Connaught Place", "coordinates": [77.2090, 28.6139]},
    "dropoff": {"address": "India Gate", "coordinates": [77.2295, 28.6129]},
}


def _login(session: requests.Session) -> Dict:
    resp = session.post(f"{API_ROOT}/auth/login/", json=ADMIN_CREDS, timeout=10)
    resp.raise_for_status()
    data = resp.json()
    session.headers.update({"Authorization": f"Bearer {data['tokens']['access']}"})
    return data["user"]


def _open_driver_socket(ready_evt: threading.Event, queue_out: queue.Queue) -> None:
    ws_url = BASE_URL.replace("http", "ws") + "/ws/driver/"

    def on_open(ws):  # type: ignore[no-untyped-def]
        ws.send(json.dumps({"type": "driver_join", "driver_id": DRIVER_ID}))

    def on_message(ws, message):  # type: ignore[no-untyped-def]
        payload = json.loads(message)
        print(f"[WS] {payload.get('type')}")
        if payload.get("type") == "driver_joined":
            ready_evt.set()
        elif payload.get("type") == "error":
            print(f"[WS] Error from server: {payload.get('message')}")
            ready_evt.set()
        elif payload.get("type") == "order.assigned":
            queue_out.put(payload)

    def on_error(ws, error):  # type: ignore[no-untyped-def]
        print(f"[WS] Error: {error}")
        ready_evt.set()

    ws_app = websocket.WebSocketApp(
        ws_url,
        header=[f"Origin: {BASE_URL}"],
        on_open=on_open,
        on_message=on_message,
        on_error=on_error,
    )
    ws_app.run_forever()


def _call(session: requests.Session, method: str, path: str, **kwargs) -> Dict:
    resp = session.request(method, f"{API_ROOT}{path}", timeout=10, **kwargs)
    body = resp.json()
    if not body.get("success"):
        raise RuntimeError(f"{method} {path} failed ({resp.status_code}): {body.get('message')}")
    return body


def main() -> None:
    session = requests.Session()
    admin = _login(session)
    print(f"[HTTP] Logged in as {admin['username']}")

    ready_evt = threading.Event()
    events: queue.Queue = queue.Queue()
    threading.Thread(target=_open_driver_socket, args=(ready_evt, events), daemon=True).start()
    if not ready_evt.wait(timeout=5):
        raise TimeoutError("Driver WebSocket failed to join within 5 seconds")

    order = _call(session, "POST", "/orders/", json={
        "customer_id": CUSTOMER_ID,
        "vehicle_type": VEHICLE_TYPE,
        "locations": LOCATIONS,
        "fare": {"base_fare": "20.00", "distance_charge": "35.50", "total": "55.50"},
    })["data"]
    print(f"[HTTP] Created order {order['booking_id']}")

    _call(session, "PATCH", f"/orders/{order['id']}/assign/", json={"driver_id": DRIVER_ID})
    try:
        payload = events.get(timeout=10)
    except queue.Empty:
        raise TimeoutError("Driver did not receive order.assigned within 10 seconds")
    print(f"[RESULT] Driver received {payload['data']['booking_id']} status={payload['data']['status']}")

    _call(session, "PATCH", f"/orders/{order['id']}/status/", json={"status": "completed"})
    drivers = _call(session, "GET", "/drivers/", params={"status": "available"})["data"]
    if not any(driver["id"] == DRIVER_ID for driver in drivers):
        raise RuntimeError("Driver was not released after completion")

    print("[DONE] Order lifecycle smoke check completed.")


if __name__ == "__main__":
    main()
