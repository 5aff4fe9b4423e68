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

"""Shared fixtures for the storefront server tests.

`StorefrontTestCase` gives each test its own pair of temporary SQLite
databases, fixed store settings, and fake Melhor Envio and Mercado Pago
backends served through `httpx.MockTransport`. Every request the fakes
receive is recorded so tests can assert on upstream traffic.
"""

import asyncio
import datetime
import json
import os
import shutil
import tempfile
from typing import Any, AsyncGenerator, Dict, List, Optional

from absl.testing import absltest
from clients.melhor_envio import MelhorEnvioClient
from clients.mercado_pago import MercadoPagoClient
import config
import db
import dependencies
from fastapi.testclient import TestClient
import httpx
from server import app
from sqlalchemy import func
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

CARRIER_URL = "https://melhorenvio.test/api/v2/me/shipment/calculate"
GATEWAY_URL = "https://mercadopago.test"
BASE_URL = "https://loja.test"

STORE_POSTAL_CODE = "01001000"
REMOTE_POSTAL_CODE = "01310000"
FREE_SHIPPING_SUBTOTAL = 199.0

USER_TOKEN = "token-ana"
USER_ID = "user-ana"
OTHER_USER_TOKEN = "token-bia"
OTHER_USER_ID = "user-bia"
EXPIRED_TOKEN = "token-expired"

DEFAULT_CARRIER_QUOTES = [
    {"id": 1, "name": "PAC", "price": 22.5, "delivery_time": 7},
    {"id": 2, "name": "SEDEX", "price": 41.9, "delivery_time": 2},
    {"id": 3, "name": ".Package", "price": 19.0, "delivery_time": 6},
    {"id": 17, "name": "Mini Envios", "error": "Peso excede o limite"},
]


def auth_headers(token: str = USER_TOKEN) -> Dict[str, str]:
  return {"Authorization": f"Bearer {token}"}


def cart_line(
    variant_id: int = 101,
    price: float = 50.0,
    quantity: int = 1,
    **overrides: Any,
) -> Dict[str, Any]:
  line = {
      "variant_id": variant_id,
      "product_id": 10,
      "name": "Camiseta Básica",
      "image_url": "https://cdn.loja.test/camiseta.jpg",
      "price": price,
      "quantity": quantity,
      "color": "Preto",
      "size": "M",
  }
  line.update(overrides)
  return line


class StorefrontTestCase(absltest.TestCase):
  """Base test case wiring the app to temporary databases and fakes."""

  def setUp(self) -> None:
    super().setUp()
    self.test_dir = tempfile.mkdtemp()
    self.products_db = os.path.join(self.test_dir, "test_products.db")
    self.transactions_db = os.path.join(self.test_dir, "test_transactions.db")

    # NullPool keeps connections from outliving the event loop that opened
    # them; setUp and the TestClient each run their own loop.
    prod_url = f"sqlite+aiosqlite:///{self.products_db}"
    self.products_engine = create_async_engine(prod_url, poolclass=NullPool)
    self.products_session_factory = sessionmaker(
        self.products_engine, expire_on_commit=False, class_=AsyncSession
    )

    trans_url = f"sqlite+aiosqlite:///{self.transactions_db}"
    self.transactions_engine = create_async_engine(
        trans_url, poolclass=NullPool
    )
    self.transactions_session_factory = sessionmaker(
        self.transactions_engine, expire_on_commit=False, class_=AsyncSession
    )

    async def init_schemas() -> None:
      async with self.products_engine.begin() as conn:
        await conn.run_sync(db.ProductBase.metadata.create_all)
      async with self.transactions_engine.begin() as conn:
        await conn.run_sync(db.TransactionBase.metadata.create_all)

    asyncio.run(init_schemas())

    self.settings = config.StoreSettings(
        store_postal_code=STORE_POSTAL_CODE,
        pickup_postal_codes=[STORE_POSTAL_CODE],
        free_shipping_subtotal=FREE_SHIPPING_SUBTOTAL,
        shipping_cache_ttl_minutes=30,
        melhor_envio_api_url=CARRIER_URL,
        melhor_envio_api_token="me-test-token",
        mercado_pago_api_url=GATEWAY_URL,
        mercado_pago_access_token="mp-test-token",
        base_url=BASE_URL,
    )

    # Fake upstream state.
    self.carrier_requests: List[Dict[str, Any]] = []
    self.carrier_quotes: Any = list(DEFAULT_CARRIER_QUOTES)
    self.carrier_status = 200
    self.carrier_down = False
    self.preference_requests: List[Dict[str, Any]] = []
    self.payment_lookups: List[str] = []
    self.gateway_payments: Dict[str, Dict[str, Any]] = {}
    self.gateway_status = 200

    async def override_get_products_db() -> AsyncGenerator[AsyncSession, None]:
      async with self.products_session_factory() as session:
        yield session

    async def override_get_transactions_db() -> (
        AsyncGenerator[AsyncSession, None]
    ):
      async with self.transactions_session_factory() as session:
        yield session

    app.dependency_overrides[dependencies.get_products_db] = (
        override_get_products_db
    )
    app.dependency_overrides[dependencies.get_transactions_db] = (
        override_get_transactions_db
    )
    app.dependency_overrides[config.get_settings] = lambda: self.settings
    app.dependency_overrides[dependencies.get_carrier_client] = (
        self.make_carrier_client
    )
    app.dependency_overrides[dependencies.get_payment_gateway] = (
        self.make_payment_gateway
    )

    self.client = TestClient(app)
    asyncio.run(self._seed_base_data())

  def tearDown(self) -> None:
    app.dependency_overrides.clear()

    async def dispose_engines() -> None:
      await self.products_engine.dispose()
      await self.transactions_engine.dispose()

    asyncio.run(dispose_engines())

    shutil.rmtree(self.test_dir)
    super().tearDown()

  # --- Fake upstreams ---

  def make_carrier_client(self) -> MelhorEnvioClient:
    return MelhorEnvioClient(
        CARRIER_URL,
        "me-test-token",
        transport=httpx.MockTransport(self._carrier_handler),
    )

  def make_payment_gateway(self) -> MercadoPagoClient:
    return MercadoPagoClient(
        GATEWAY_URL,
        "mp-test-token",
        transport=httpx.MockTransport(self._gateway_handler),
    )

  def _carrier_handler(self, request: httpx.Request) -> httpx.Response:
    self.carrier_requests.append(json.loads(request.content))
    if self.carrier_down:
      raise httpx.ConnectError("carrier unreachable", request=request)
    if self.carrier_status != 200:
      return httpx.Response(self.carrier_status, json={"message": "error"})
    return httpx.Response(200, json=self.carrier_quotes)

  def _gateway_handler(self, request: httpx.Request) -> httpx.Response:
    if self.gateway_status != 200:
      return httpx.Response(self.gateway_status, json={"message": "error"})

    path = request.url.path
    if request.method == "POST" and path == "/checkout/preferences":
      body = json.loads(request.content)
      self.preference_requests.append(body)
      preference_id = f"pref-{len(self.preference_requests)}"
      return httpx.Response(
          201,
          json={
              "id": preference_id,
              "init_point": (
                  f"https://mp.test/checkout?pref_id={preference_id}"
              ),
          },
      )
    if request.method == "GET" and path.startswith("/v1/payments/"):
      payment_id = path.rsplit("/", 1)[-1]
      self.payment_lookups.append(payment_id)
      if payment_id not in self.gateway_payments:
        return httpx.Response(404, json={"message": "Payment not found"})
      return httpx.Response(200, json=self.gateway_payments[payment_id])
    return httpx.Response(404, json={"message": "Not found"})

  # --- Seeding helpers ---

  async def _seed_base_data(self) -> None:
    async with self.products_session_factory() as session:
      session.add_all([
          db.Variant(
              id=101,
              product_id=10,
              name="Camiseta Básica",
              price=50.0,
              weight_g=200,
              color="Preto",
              size="M",
          ),
          db.Variant(
              id=201,
              product_id=20,
              name="Calça Jeans Slim",
              price=125.0,
              weight_g=650,
              color="Azul",
              size="40",
          ),
          db.Variant(
              id=301,
              product_id=30,
              name="Jaqueta Corta-Vento",
              price=40.0,
              weight_g=None,
              color="Verde",
              size="M",
          ),
      ])
      await session.commit()

    expired_at = (
        datetime.datetime.now(datetime.timezone.utc)
        - datetime.timedelta(hours=1)
    ).isoformat()
    async with self.transactions_session_factory() as session:
      session.add_all([
          db.AuthSession(access_token=USER_TOKEN, user_id=USER_ID),
          db.AuthSession(access_token=OTHER_USER_TOKEN, user_id=OTHER_USER_ID),
          db.AuthSession(
              access_token=EXPIRED_TOKEN,
              user_id=USER_ID,
              expires_at=expired_at,
          ),
      ])
      await session.commit()

  def add_coupon(self, code: str, type_: str, value: float, **fields) -> None:
    async def insert() -> None:
      async with self.transactions_session_factory() as session:
        session.add(db.Coupon(code=code, type=type_, value=value, **fields))
        await session.commit()

    asyncio.run(insert())

  def add_cached_quote(
      self,
      postal_code: str,
      total_weight_g: int,
      quotes: List[Dict[str, Any]],
      age: datetime.timedelta,
  ) -> None:
    created_at = datetime.datetime.now(datetime.timezone.utc) - age

    async def insert() -> None:
      async with self.transactions_session_factory() as session:
        session.add(
            db.ShippingQuote(
                postal_code=postal_code,
                total_weight_g=total_weight_g,
                quotes=quotes,
                created_at=created_at.isoformat(),
            )
        )
        await session.commit()

    asyncio.run(insert())

  def load_order(self, order_id: str) -> Optional[db.Order]:
    async def fetch() -> Optional[db.Order]:
      async with self.transactions_session_factory() as session:
        return await db.get_order(session, order_id)

    return asyncio.run(fetch())

  def count_rows(self, model) -> int:
    async def count() -> int:
      async with self.transactions_session_factory() as session:
        result = await session.execute(
            select(func.count()).select_from(model)
        )
        return result.scalar_one()

    return asyncio.run(count())

  def create_order(self, lines=None, shipping_cost: float = 22.5, **extra):
    """Creates an order through the API and returns its id."""
    payload = {
        "items": lines or [cart_line(quantity=2)],
        "shipping_cost": shipping_cost,
    }
    payload.update(extra)
    response = self.client.post(
        "/checkout/orders", json=payload, headers=auth_headers()
    )
    self.assertEqual(response.status_code, 201, response.text)
    return response.json()["order_id"]
