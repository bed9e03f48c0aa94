#!/usr/bin/env python3
"""
run_demo.py - End-to-end demo for the mediashop service
- Mints dev access tokens for a customer and an admin (JWT_SECRET)
- Customer fills a cart, checks out and gets an OTP challenge
- Tries a wrong code, then confirms with the right one
- Lists the library and checks product access
- Shows payment history with the order snapshot

Run `python scripts/seed.py` first so products 7, 9 and 11 exist.
"""

import json
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import jwt
import requests

class DemoRunner:
    def __init__(self):
        self.base_url = os.getenv("MEDIASHOP_URL", "http://localhost:8000")
        self.api_url = f"{self.base_url}/v1"
        self.jwt_secret = os.getenv("JWT_SECRET", "devsecret")
        self.otp_code = os.getenv("OTP_STATIC_CODE", "123456")

        self.cust_email = "cust@example.com"
        self.admin_email = "admin@example.com"

        self.cust_hdrs = {"Authorization": f"Bearer {self.mint_token(self.cust_email, 'customer')}"}
        self.admin_hdrs = {"Authorization": f"Bearer {self.mint_token(self.admin_email, 'admin')}"}

    # ---------- helpers ----------
    def show_step(self, title: str):
        print(f"\n=== {title} ===")

    def mint_token(self, email: str, role: str) -> str:
        payload = {
            "sub": email,
            "role": role,
            "type": "access",
            "exp": datetime.now(timezone.utc) + timedelta(minutes=30),
        }
        return jwt.encode(payload, self.jwt_secret, algorithm="HS256")

    def call_api(
        self,
        method: str,
        url: str,
        headers: Optional[Dict] = None,
        data: Optional[Any] = None,
        params: Optional[Dict] = None,
        expected_status: List[int] = [200],
        timeout: int = 30,
    ):
        print(f"\n-> {method} {url}")
        if data is not None:
            print(f"   Body: {json.dumps(data)}")
        try:
            resp = requests.request(method=method, url=url, headers=headers, json=data, params=params, timeout=timeout)
        except requests.exceptions.RequestException as e:
            print(f"   Error: \033[91m{e}\033[0m")
            return {"status": None, "data": None}

        status_color = "\033[92m" if resp.status_code in expected_status else "\033[93m"
        print(f"   Status: {status_color}{resp.status_code}\033[0m")
        try:
            js = resp.json()
        except json.JSONDecodeError:
            print(f"   Content: {resp.text}")
            return {"status": resp.status_code, "data": None}
        print(json.dumps(js, indent=2))
        return {"status": resp.status_code, "data": js}

    # ---------- flow ----------
    def run_demo(self):
        print("Starting Mediashop Demo")
        print("=" * 50)

        self.show_step("Preflight: health")
        if self.call_api("GET", f"{self.base_url}/health").get("status") != 200:
            print("\033[91mService not reachable, is uvicorn running?\033[0m")
            return

        # 1) Cart
        self.show_step("Customer: add items to cart")
        self.call_api("POST", f"{self.api_url}/orders/items", headers=self.cust_hdrs,
                      data={"product_id": 7, "quantity": 1, "payment_method": "qr"}, expected_status=[200, 404])
        added = self.call_api("POST", f"{self.api_url}/orders/items", headers=self.cust_hdrs,
                              data={"product_id": 9, "quantity": 2}, expected_status=[200, 404])
        order = added.get("data") or {}
        order_id = order.get("id")
        if not order_id:
            print("\033[93mHint: product 404 usually means the catalog was not seeded.\033[0m")
            return

        self.call_api("GET", f"{self.api_url}/cart/count", headers=self.cust_hdrs)

        # 2) Checkout
        self.show_step("Customer: checkout")
        co = self.call_api("POST", f"{self.api_url}/orders/checkout", headers=self.cust_hdrs,
                           data={"order_id": order_id})
        payment_id = (co.get("data") or {}).get("payment_id")
        if not payment_id:
            print("Skipping confirmation - no payment")
            return
        challenge = co["data"]["challenge"]
        print(f"Payment ID: {payment_id}; scan {challenge['qr_url']} before {challenge['expires_at']}")

        # 3) Confirm
        self.show_step("Customer: confirm with a wrong code")
        self.call_api("POST", f"{self.api_url}/payments/{payment_id}/confirm-otp", headers=self.cust_hdrs,
                      data={"otp": "000000"})

        self.show_step("Customer: confirm with the right code")
        self.call_api("POST", f"{self.api_url}/payments/{payment_id}/confirm-otp", headers=self.cust_hdrs,
                      data={"otp": challenge.get("otp") or self.otp_code})

        self.show_step("Customer: confirm again (already processed)")
        self.call_api("POST", f"{self.api_url}/payments/{payment_id}/confirm-otp", headers=self.cust_hdrs,
                      data={"otp": self.otp_code}, expected_status=[400])

        # 4) Access
        self.show_step("Customer: library and access")
        self.call_api("GET", f"{self.api_url}/library", headers=self.cust_hdrs)
        self.call_api("GET", f"{self.api_url}/library", headers=self.cust_hdrs, params={"kind": "podcast"})
        for pid in (7, 11):
            self.call_api("GET", f"{self.api_url}/products/{pid}/access", headers=self.cust_hdrs)

        # 5) History
        self.show_step("Customer: payment history")
        self.call_api("GET", f"{self.api_url}/payment-history", headers=self.cust_hdrs, params={"order_id": order_id})

        self.show_step("Admin: refund order (status only)")
        self.call_api("PATCH", f"{self.api_url}/admin/orders/{order_id}/status", headers=self.admin_hdrs,
                      data={"status": "refunded"})

        print("\n\033[92m=== DEMO COMPLETE ===\033[0m")


if __name__ == "__main__":
    DemoRunner().run_demo()
