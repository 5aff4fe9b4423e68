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

"""Tests for the shipping quote endpoint."""

import asyncio
import datetime

from absl.testing import absltest
import db
import storefront_testing
from storefront_testing import REMOTE_POSTAL_CODE
from storefront_testing import STORE_POSTAL_CODE


class ShippingQuoteTest(storefront_testing.StorefrontTestCase):
  """Tests for POST /shipping/quote."""

  def _quote(self, postal_code, items):
    return self.client.post(
        "/shipping/quote", json={"postal_code": postal_code, "items": items}
    )

  def _cached_entry(self, postal_code, total_weight_g):
    async def fetch():
      async with self.transactions_session_factory() as session:
        return await db.get_shipping_quote(
            session, postal_code, total_weight_g
        )

    return asyncio.run(fetch())

  def test_free_shipping_with_pickup(self) -> None:
    response = self._quote(
        STORE_POSTAL_CODE, [{"variant_id": 101, "quantity": 4}]
    )

    self.assertEqual(response.status_code, 200, response.text)
    self.assertEqual(
        [option["id"] for option in response.json()], ["pickup", "free"]
    )
    pickup, free = response.json()
    self.assertEqual(pickup["name"], "Retirada em Loja")
    self.assertEqual(pickup["price"], 0)
    self.assertEqual(pickup["delivery_time_days"], 0)
    self.assertEqual(free["name"], "Frete Grátis")
    self.assertEqual(free["delivery_time_days"], 5)
    self.assertEmpty(self.carrier_requests)

  def test_free_shipping_skips_carrier(self) -> None:
    response = self._quote(
        REMOTE_POSTAL_CODE, [{"variant_id": 101, "quantity": 5}]
    )

    self.assertEqual(response.status_code, 200, response.text)
    self.assertEqual(
        response.json(),
        [{
            "id": "free",
            "name": "Frete Grátis",
            "price": 0,
            "delivery_time_days": 5,
        }],
    )
    self.assertEmpty(self.carrier_requests)

  def test_carrier_options_below_threshold(self) -> None:
    response = self._quote(
        REMOTE_POSTAL_CODE, [{"variant_id": 101, "quantity": 1}]
    )

    self.assertEqual(response.status_code, 200, response.text)
    self.assertEqual(
        response.json(),
        [
            {"id": "1", "name": "PAC", "price": 22.5, "delivery_time_days": 7},
            {
                "id": "2",
                "name": "SEDEX",
                "price": 41.9,
                "delivery_time_days": 2,
            },
        ],
    )
    self.assertLen(self.carrier_requests, 1)
    request = self.carrier_requests[0]
    self.assertEqual(request["from"], {"postal_code": STORE_POSTAL_CODE})
    self.assertEqual(request["to"], {"postal_code": REMOTE_POSTAL_CODE})
    self.assertEqual(request["package"]["weight"], 0.2)
    self.assertEqual(request["package"]["width"], 15)
    self.assertEqual(request["package"]["height"], 5)
    self.assertEqual(request["package"]["length"], 20)

  def test_pickup_precedes_carrier_options(self) -> None:
    response = self._quote(
        STORE_POSTAL_CODE, [{"variant_id": 101, "quantity": 1}]
    )

    self.assertEqual(response.status_code, 200, response.text)
    self.assertEqual(
        [option["id"] for option in response.json()], ["pickup", "1", "2"]
    )

  def test_errored_carrier_quotes_are_skipped(self) -> None:
    self.carrier_quotes = [
        {"id": 17, "name": "Mini Envios", "error": "Peso excede o limite"},
        {"id": 3, "name": ".Package", "price": 19.0, "delivery_time": 6},
    ]

    response = self._quote(
        REMOTE_POSTAL_CODE, [{"variant_id": 101, "quantity": 1}]
    )

    self.assertEqual(response.status_code, 200, response.text)
    self.assertEqual([option["id"] for option in response.json()], ["3"])

  def test_cache_hit_skips_carrier(self) -> None:
    items = [{"variant_id": 101, "quantity": 1}]
    first = self._quote(REMOTE_POSTAL_CODE, items)
    second = self._quote(REMOTE_POSTAL_CODE, items)

    self.assertEqual(first.status_code, 200, first.text)
    self.assertEqual(second.status_code, 200, second.text)
    self.assertEqual(first.json(), second.json())
    self.assertLen(self.carrier_requests, 1)

    entry = self._cached_entry(REMOTE_POSTAL_CODE, 200)
    self.assertIsNotNone(entry)
    self.assertEqual([quote["id"] for quote in entry.quotes], ["1", "2"])

  def test_fresh_cache_entry_is_served(self) -> None:
    cached = [
        {"id": "9", "name": "Jadlog", "price": 15.0, "delivery_time_days": 4}
    ]
    self.add_cached_quote(
        REMOTE_POSTAL_CODE, 200, cached, datetime.timedelta(minutes=5)
    )

    response = self._quote(
        REMOTE_POSTAL_CODE, [{"variant_id": 101, "quantity": 1}]
    )

    self.assertEqual(response.status_code, 200, response.text)
    self.assertEqual(response.json(), cached)
    self.assertEmpty(self.carrier_requests)

  def test_stale_cache_entry_is_refreshed(self) -> None:
    cached = [
        {"id": "9", "name": "Jadlog", "price": 15.0, "delivery_time_days": 4}
    ]
    self.add_cached_quote(
        REMOTE_POSTAL_CODE, 200, cached, datetime.timedelta(minutes=31)
    )

    response = self._quote(
        REMOTE_POSTAL_CODE, [{"variant_id": 101, "quantity": 1}]
    )

    self.assertEqual(response.status_code, 200, response.text)
    self.assertEqual([option["id"] for option in response.json()], ["1", "2"])
    self.assertLen(self.carrier_requests, 1)
    entry = self._cached_entry(REMOTE_POSTAL_CODE, 200)
    self.assertEqual([quote["id"] for quote in entry.quotes], ["1", "2"])
    age = datetime.datetime.now(datetime.timezone.utc) - db.parse_timestamp(
        entry.created_at
    )
    self.assertLess(age, datetime.timedelta(minutes=1))

  def test_cache_is_keyed_by_weight(self) -> None:
    self._quote(REMOTE_POSTAL_CODE, [{"variant_id": 101, "quantity": 1}])
    self._quote(REMOTE_POSTAL_CODE, [{"variant_id": 101, "quantity": 2}])

    self.assertLen(self.carrier_requests, 2)
    self.assertEqual(self.carrier_requests[1]["package"]["weight"], 0.4)

  def test_carrier_unreachable_returns_local_options(self) -> None:
    self.carrier_down = True

    at_store = self._quote(
        STORE_POSTAL_CODE, [{"variant_id": 101, "quantity": 1}]
    )
    remote = self._quote(
        REMOTE_POSTAL_CODE, [{"variant_id": 101, "quantity": 1}]
    )

    self.assertEqual(at_store.status_code, 200, at_store.text)
    self.assertEqual([option["id"] for option in at_store.json()], ["pickup"])
    self.assertEqual(remote.status_code, 200, remote.text)
    self.assertEqual(remote.json(), [])
    self.assertIsNone(self._cached_entry(REMOTE_POSTAL_CODE, 200))

  def test_carrier_error_status_returns_local_options(self) -> None:
    self.carrier_status = 500

    response = self._quote(
        REMOTE_POSTAL_CODE, [{"variant_id": 101, "quantity": 1}]
    )

    self.assertEqual(response.status_code, 200, response.text)
    self.assertEqual(response.json(), [])

  def test_carrier_schema_mismatch_returns_local_options(self) -> None:
    bad_payloads = {
        "negative_price": [
            {"id": 1, "name": "PAC", "price": -1, "delivery_time": 7}
        ],
        "negative_delivery_time": [
            {"id": 2, "name": "SEDEX", "price": 41.9, "delivery_time": -2}
        ],
        "not_a_list": {"message": "Unauthenticated."},
        "missing_name": [{"id": 1, "price": 22.5, "delivery_time": 7}],
    }
    for label, payload in bad_payloads.items():
      with self.subTest(label=label):
        self.carrier_quotes = payload

        at_store = self._quote(
            STORE_POSTAL_CODE, [{"variant_id": 101, "quantity": 1}]
        )
        remote = self._quote(
            REMOTE_POSTAL_CODE, [{"variant_id": 101, "quantity": 1}]
        )

        self.assertEqual(at_store.status_code, 200, at_store.text)
        self.assertEqual(
            [option["id"] for option in at_store.json()], ["pickup"]
        )
        self.assertEqual(remote.status_code, 200, remote.text)
        self.assertEqual(remote.json(), [])
        self.assertIsNone(self._cached_entry(REMOTE_POSTAL_CODE, 200))

  def test_duplicate_variants_are_summed(self) -> None:
    response = self._quote(
        REMOTE_POSTAL_CODE,
        [
            {"variant_id": 101, "quantity": 1},
            {"variant_id": 101, "quantity": 1},
        ],
    )

    self.assertEqual(response.status_code, 200, response.text)
    self.assertEqual(self.carrier_requests[0]["package"]["weight"], 0.4)

  def test_missing_weight_uses_default(self) -> None:
    response = self._quote(
        REMOTE_POSTAL_CODE, [{"variant_id": 301, "quantity": 3}]
    )

    self.assertEqual(response.status_code, 200, response.text)
    self.assertEqual(self.carrier_requests[0]["package"]["weight"], 0.3)

  def test_unknown_variant(self) -> None:
    response = self._quote(
        REMOTE_POSTAL_CODE,
        [
            {"variant_id": 101, "quantity": 1},
            {"variant_id": 999, "quantity": 1},
        ],
    )

    self.assertEqual(response.status_code, 404)
    self.assertEqual(response.json()["code"], "VARIANT_NOT_FOUND")
    self.assertEqual(
        response.json()["detail"], "Some products were not found"
    )
    self.assertEmpty(self.carrier_requests)

  def test_invalid_postal_code(self) -> None:
    for postal_code in ["01310-000", "1234567", "abcdefgh", ""]:
      with self.subTest(postal_code=postal_code):
        response = self._quote(
            postal_code, [{"variant_id": 101, "quantity": 1}]
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "VALIDATION_FAILED")

  def test_empty_items(self) -> None:
    response = self._quote(REMOTE_POSTAL_CODE, [])

    self.assertEqual(response.status_code, 400)
    self.assertEqual(response.json()["code"], "VALIDATION_FAILED")

  def test_invalid_quantity(self) -> None:
    response = self._quote(
        REMOTE_POSTAL_CODE, [{"variant_id": 101, "quantity": 0}]
    )

    self.assertEqual(response.status_code, 400)
    self.assertEqual(response.json()["code"], "VALIDATION_FAILED")


if __name__ == "__main__":
  absltest.main()
