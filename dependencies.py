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

"""FastAPI dependencies for the storefront server.

This module contains dependency injection logic for FastAPI endpoints,
including:
- Database session management (Products and Transactions DBs).
- Caller authentication from the `Authorization: Bearer` session token.
- Upstream client instantiation (Melhor Envio, Mercado Pago).
- Service instantiation (coupon, shipping, order and payment services).
"""

from typing import AsyncGenerator, Optional

from clients.melhor_envio import MelhorEnvioClient
from clients.mercado_pago import MercadoPagoClient
import config
import db
from exceptions import UnauthorizedError
from fastapi import Depends
from fastapi import Header
from fastapi import Request
from pydantic import BaseModel
from services.coupon_service import CouponService
from services.order_service import OrderService
from services.payment_service import PaymentService
from services.shipping_service import ShippingQuoteService
from sqlalchemy.ext.asyncio import AsyncSession


class AuthenticatedUser(BaseModel):
  """The caller resolved from a valid session token."""

  id: str


async def get_products_db() -> AsyncGenerator[AsyncSession, None]:
  """Dependency provider for Products DB session."""
  async with db.manager.products_session_factory() as session:
    yield session


async def get_transactions_db() -> AsyncGenerator[AsyncSession, None]:
  """Dependency provider for Transactions DB session."""
  async with db.manager.transactions_session_factory() as session:
    yield session


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
  if not authorization:
    return None
  scheme, _, token = authorization.partition(" ")
  if scheme.lower() != "bearer" or not token.strip():
    return None
  return token.strip()


async def get_current_user(
    authorization: Optional[str] = Header(None),
    transactions_session: AsyncSession = Depends(get_transactions_db),
) -> AuthenticatedUser:
  """Resolves the caller from the session token or raises 401."""
  token = _bearer_token(authorization)
  if not token:
    raise UnauthorizedError()

  auth = await db.get_auth_session(transactions_session, token)
  if not auth:
    raise UnauthorizedError()
  return AuthenticatedUser(id=auth.user_id)


def get_base_url(
    request: Request,
    settings: config.StoreSettings = Depends(config.get_settings),
) -> str:
  """Public base URL, falling back to the URL the request came in on."""
  return (settings.base_url or str(request.base_url)).rstrip("/")


def get_carrier_client(
    settings: config.StoreSettings = Depends(config.get_settings),
) -> MelhorEnvioClient:
  """Dependency provider for the Melhor Envio client."""
  return MelhorEnvioClient(
      settings.melhor_envio_api_url,
      settings.melhor_envio_api_token,
      timeout=settings.upstream_timeout_seconds,
  )


def get_payment_gateway(
    settings: config.StoreSettings = Depends(config.get_settings),
) -> MercadoPagoClient:
  """Dependency provider for the Mercado Pago client."""
  return MercadoPagoClient(
      settings.mercado_pago_api_url,
      settings.mercado_pago_access_token,
      timeout=settings.upstream_timeout_seconds,
  )


def get_coupon_service(
    transactions_session: AsyncSession = Depends(get_transactions_db),
) -> CouponService:
  """Dependency provider for CouponService."""
  return CouponService(transactions_session)


def get_shipping_service(
    products_session: AsyncSession = Depends(get_products_db),
    transactions_session: AsyncSession = Depends(get_transactions_db),
    carrier: MelhorEnvioClient = Depends(get_carrier_client),
    settings: config.StoreSettings = Depends(config.get_settings),
) -> ShippingQuoteService:
  """Dependency provider for ShippingQuoteService."""
  return ShippingQuoteService(
      products_session, transactions_session, carrier, settings
  )


def get_order_service(
    transactions_session: AsyncSession = Depends(get_transactions_db),
) -> OrderService:
  """Dependency provider for OrderService."""
  return OrderService(transactions_session)


def get_payment_service(
    transactions_session: AsyncSession = Depends(get_transactions_db),
    gateway: MercadoPagoClient = Depends(get_payment_gateway),
    settings: config.StoreSettings = Depends(config.get_settings),
    base_url: str = Depends(get_base_url),
) -> PaymentService:
  """Dependency provider for PaymentService."""
  return PaymentService(transactions_session, gateway, settings, base_url)
