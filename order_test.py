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

"""Tests for order creation and order lookup."""

import asyncio
from unittest import mock

from absl.testing import absltest
import db
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import SQLAlchemyError
import storefront_testing
from storefront_testing import auth_headers
from storefront_testing import cart_line


class OrderTest(storefront_testing.StorefrontTestCase):
  """Tests for POST /checkout/orders and GET /orders/{id}."""

  def _post_order(self, payload, token=storefront_testing.USER_TOKEN):
    headers = auth_headers(token) if token else {}
    return self.client.post("/checkout/orders", json=payload, headers=headers)

  def test_create_order(self) -> None:
    lines = [
        cart_line(101, price=50.0, quantity=2),
        cart_line(201, price=125.0, quantity=1, color="Azul", size="40"),
    ]

    response = self._post_order({"items": lines, "shipping_cost": 22.5})

    self.assertEqual(response.status_code, 201, response.text)
    order = self.load_order(response.json()["order_id"])
    self.assertEqual(order.user_id, storefront_testing.USER_ID)
    self.assertEqual(order.status, "created")
    self.assertEqual(order.payment_status, "pending")
    self.assertEqual(order.subtotal, 225.0)
    self.assertEqual(order.shipping_cost, 22.5)
    self.assertEqual(order.discount_total, 0)
    self.assertEqual(order.total, 247.5)
    self.assertIsNone(order.coupon_code)
    self.assertLen(order.items, 2)
    first = order.items[0]
    self.assertEqual(first.variant_id, 101)
    self.assertEqual(first.name_snapshot, "Camiseta Básica")
    self.assertEqual(first.unit_price, 50.0)
    self.assertEqual(first.quantity, 2)
    self.assertEqual(first.color, "Preto")

  def test_requires_session(self) -> None:
    payload = {"items": [cart_line()], "shipping_cost": 0}
    for token in [None, "not-a-token", storefront_testing.EXPIRED_TOKEN]:
      with self.subTest(token=token):
        response = self._post_order(payload, token=token)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["code"], "UNAUTHORIZED")
    self.assertEqual(self.count_rows(db.Order), 0)

  def test_empty_cart_is_rejected(self) -> None:
    response = self._post_order({"items": [], "shipping_cost": 10})

    self.assertEqual(response.status_code, 400)
    self.assertEqual(response.json()["code"], "VALIDATION_FAILED")
    self.assertEqual(self.count_rows(db.Order), 0)

  def test_invalid_line_writes_nothing(self) -> None:
    lines = [cart_line(101), cart_line(201, quantity=0)]

    response = self._post_order({"items": lines, "shipping_cost": 10})

    self.assertEqual(response.status_code, 400)
    self.assertEqual(self.count_rows(db.Order), 0)
    self.assertEqual(self.count_rows(db.OrderItem), 0)

  def test_negative_shipping_cost_is_rejected(self) -> None:
    response = self._post_order({"items": [cart_line()], "shipping_cost": -1})

    self.assertEqual(response.status_code, 400)
    self.assertEqual(self.count_rows(db.Order), 0)

  def test_database_failure(self) -> None:
    with mock.patch.object(
        db,
        "create_order_with_items",
        side_effect=OperationalError("INSERT", {}, Exception("disk I/O")),
    ):
      response = self._post_order({"items": [cart_line()], "shipping_cost": 0})

    self.assertEqual(response.status_code, 500)
    self.assertEqual(response.json()["code"], "ORDER_CREATION_FAILED")
    self.assertEqual(response.json()["detail"], "Failed to create order")
    self.assertIn("disk I/O", response.json()["details"])

  def test_failed_item_insert_leaves_no_order(self) -> None:
    async def create():
      async with self.transactions_session_factory() as session:
        await db.create_order_with_items(
            session,
            storefront_testing.USER_ID,
            [cart_line(101), cart_line(201, image_url=object())],
            shipping_cost=10.0,
        )

    with self.assertRaises(SQLAlchemyError):
      asyncio.run(create())

    self.assertEqual(self.count_rows(db.Order), 0)
    self.assertEqual(self.count_rows(db.OrderItem), 0)

  def test_coupon_discount_is_applied(self) -> None:
    self.add_coupon("BEMVINDO10", "percent", 10)

    order_id = self.create_order(
        [cart_line(price=50.0, quantity=2)],
        shipping_cost=20.0,
        coupon_code="bemvindo10",
        coupon_discount=10.0,
    )

    order = self.load_order(order_id)
    self.assertEqual(order.coupon_code, "BEMVINDO10")
    self.assertEqual(order.discount_total, 10.0)
    self.assertEqual(order.total, 110.0)

  def test_coupon_discount_is_capped(self) -> None:
    self.add_coupon("BEMVINDO10", "percent", 10)

    order_id = self.create_order(
        [cart_line(price=50.0, quantity=2)],
        shipping_cost=20.0,
        coupon_code="BEMVINDO10",
        coupon_discount=90.0,
    )

    order = self.load_order(order_id)
    self.assertEqual(order.discount_total, 10.0)
    self.assertEqual(order.total, 110.0)

  def test_free_shipping_coupon_covers_shipping(self) -> None:
    self.add_coupon("FRETEGRATIS", "free_shipping", 0)

    order_id = self.create_order(
        [cart_line(price=50.0, quantity=1)],
        shipping_cost=22.5,
        coupon_code="FRETEGRATIS",
        coupon_discount=22.5,
    )

    order = self.load_order(order_id)
    self.assertEqual(order.discount_total, 22.5)
    self.assertEqual(order.total, 50.0)

  def test_unknown_coupon_grants_nothing(self) -> None:
    order_id = self.create_order(
        [cart_line(price=50.0, quantity=1)],
        shipping_cost=10.0,
        coupon_code="INVENTADO",
        coupon_discount=30.0,
    )

    order = self.load_order(order_id)
    self.assertIsNone(order.coupon_code)
    self.assertEqual(order.discount_total, 0)
    self.assertEqual(order.total, 60.0)

  def test_get_order(self) -> None:
    order_id = self.create_order([cart_line(quantity=2)], shipping_cost=22.5)

    response = self.client.get(f"/orders/{order_id}", headers=auth_headers())

    self.assertEqual(response.status_code, 200, response.text)
    body = response.json()
    self.assertEqual(body["id"], order_id)
    self.assertEqual(body["status"], "created")
    self.assertEqual(body["payment_status"], "pending")
    self.assertEqual(body["total"], 122.5)
    self.assertLen(body["items"], 1)
    self.assertEqual(body["items"][0]["name_snapshot"], "Camiseta Básica")
    self.assertNotIn("user_id", body)

  def test_get_order_of_another_user(self) -> None:
    order_id = self.create_order()

    response = self.client.get(
        f"/orders/{order_id}",
        headers=auth_headers(storefront_testing.OTHER_USER_TOKEN),
    )

    self.assertEqual(response.status_code, 404)
    self.assertEqual(response.json()["code"], "ORDER_NOT_FOUND")

  def test_get_unknown_order(self) -> None:
    response = self.client.get("/orders/does-not-exist", headers=auth_headers())

    self.assertEqual(response.status_code, 404)


if __name__ == "__main__":
  absltest.main()
