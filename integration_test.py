#   Copyright 2026 UCP Authors
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Integration tests for the storefront checkout server."""

from absl.testing import absltest
import storefront_testing
from storefront_testing import auth_headers
from storefront_testing import cart_line
from storefront_testing import REMOTE_POSTAL_CODE


class IntegrationTest(storefront_testing.StorefrontTestCase):
  """End-to-end checkout journeys through the HTTP surface."""

  def test_checkout_with_coupon_until_paid(self) -> None:
    """Quote, coupon, order, preference, webhook, order lookup."""
    self.add_coupon("BEMVINDO10", "percent", 10, min_subtotal=50)
    lines = [
        cart_line(101, price=50.0, quantity=1),
        cart_line(301, price=40.0, quantity=1, color="Verde"),
    ]

    with self.client:
      # 1. Shipping quote
      response = self.client.post(
          "/shipping/quote",
          json={
              "postal_code": REMOTE_POSTAL_CODE,
              "items": [
                  {"variant_id": 101, "quantity": 1},
                  {"variant_id": 301, "quantity": 1},
              ],
          },
      )
      self.assertEqual(response.status_code, 200, response.text)
      options = response.json()
      self.assertEqual([option["id"] for option in options], ["1", "2"])
      self.assertEqual(self.carrier_requests[0]["package"]["weight"], 0.3)
      selected = options[0]

      # 2. Coupon
      response = self.client.post(
          "/coupons/validate",
          json={"coupon_code": "bemvindo10", "subtotal": 90.0},
      )
      self.assertEqual(response.status_code, 200, response.text)
      self.assertEqual(response.json()["value"], 10)

      # 3. Order
      response = self.client.post(
          "/checkout/orders",
          json={
              "items": lines,
              "shipping_cost": selected["price"],
              "coupon_code": "BEMVINDO10",
              "coupon_discount": 9.0,
          },
          headers=auth_headers(),
      )
      self.assertEqual(response.status_code, 201, response.text)
      order_id = response.json()["order_id"]

      # 4. Payment preference
      response = self.client.post(
          "/payments/preference",
          json={"order_id": order_id},
          headers=auth_headers(),
      )
      self.assertEqual(response.status_code, 201, response.text)
      self.assertTrue(response.json()["init_point"].startswith("https://"))

      # 5. Gateway notifies the approved payment
      self.gateway_payments["123456"] = {
          "id": 123456,
          "status": "approved",
          "external_reference": order_id,
      }
      response = self.client.post(
          "/payments/webhook",
          json={
              "action": "payment.updated",
              "type": "payment",
              "data": {"id": "123456"},
          },
      )
      self.assertEqual(response.status_code, 200, response.text)
      self.assertEqual(response.json(), {"success": True})

      # 6. Order tracking
      response = self.client.get(f"/orders/{order_id}", headers=auth_headers())
      self.assertEqual(response.status_code, 200, response.text)
      order = response.json()

    self.assertEqual(order["status"], "paid")
    self.assertEqual(order["payment_status"], "approved")
    self.assertEqual(order["subtotal"], 90.0)
    self.assertEqual(order["shipping_cost"], 22.5)
    self.assertEqual(order["discount_total"], 9.0)
    self.assertEqual(order["total"], 103.5)
    self.assertEqual(order["coupon_code"], "BEMVINDO10")
    self.assertEqual(
        [item["variant_id"] for item in order["items"]], [101, 301]
    )

  def test_carrier_outage_still_allows_pickup_checkout(self) -> None:
    """A carrier outage degrades to pickup without blocking the order."""
    self.carrier_down = True

    response = self.client.post(
        "/shipping/quote",
        json={
            "postal_code": storefront_testing.STORE_POSTAL_CODE,
            "items": [{"variant_id": 201, "quantity": 1}],
        },
    )
    self.assertEqual(response.status_code, 200, response.text)
    self.assertEqual(response.json()[0]["id"], "pickup")

    order_id = self.create_order(
        [cart_line(201, price=125.0, quantity=1)], shipping_cost=0
    )
    response = self.client.post(
        "/payments/preference",
        json={"order_id": order_id},
        headers=auth_headers(),
    )
    self.assertEqual(response.status_code, 201, response.text)
    self.assertNotIn(
        "shipping",
        [item["id"] for item in self.preference_requests[0]["items"]],
    )

  def test_error_response_shape(self) -> None:
    response = self.client.post(
        "/coupons/validate", json={"coupon_code": "NADA", "subtotal": 10}
    )

    self.assertEqual(response.status_code, 404)
    self.assertEqual(
        response.json(),
        {"detail": "Coupon not found", "code": "COUPON_NOT_FOUND"},
    )


if __name__ == "__main__":
  absltest.main()
