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

"""Database management and persistence layer for the storefront server.

This module provides the schema definitions, database session management, and
asynchronous data access helpers used by the server. It utilizes SQLAlchemy
with SQLite (via aiosqlite) and separates catalog data from transactional
data (orders, coupons, quote cache and sessions).

Key features include:
- `DatabaseManager`: Handles asynchronous engine initialization and session
  factory setup for both 'Products' and 'Transactions' databases.
- WAL Mode: Automatically enables SQLite Write-Ahead Logging so the server
  and the webhook deliveries can write concurrently.
- Atomic procedures: `create_order_with_items` and `apply_payment_update`
  each run as a single transaction that either commits fully or leaves no
  trace.
- Data Access Helpers: asynchronous lookups used by the services.
"""

import datetime
import logging
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional
import uuid

from enums import CouponType
from enums import OrderStatus
from enums import PaymentStatus
from exceptions import InvalidTransitionError
from exceptions import OrderNotFoundError
from sqlalchemy import Boolean
from sqlalchemy import Column
from sqlalchemy import Float
from sqlalchemy import ForeignKey
from sqlalchemy import Integer
from sqlalchemy import JSON
from sqlalchemy import select
from sqlalchemy import String
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import relationship
from sqlalchemy.orm import selectinload
from sqlalchemy.orm import sessionmaker

logger = logging.getLogger(__name__)

ProductBase = declarative_base()
TransactionBase = declarative_base()

DEFAULT_ITEM_WEIGHT_G = 100


class DatabaseManager:
  """Manages database engines and sessions without using global variables."""

  def __init__(self) -> None:
    self.products_engine: Optional[AsyncEngine] = None
    self.transactions_engine: Optional[AsyncEngine] = None
    self.products_session_factory: Optional[sessionmaker] = None
    self.transactions_session_factory: Optional[sessionmaker] = None

  async def init_dbs(self, products_path: str, transactions_path: str) -> None:
    """Initializes database engines and creates tables."""
    self.products_engine = await _open_engine(products_path, ProductBase)
    self.products_session_factory = sessionmaker(
        self.products_engine, expire_on_commit=False, class_=AsyncSession
    )

    self.transactions_engine = await _open_engine(
        transactions_path, TransactionBase
    )
    self.transactions_session_factory = sessionmaker(
        self.transactions_engine, expire_on_commit=False, class_=AsyncSession
    )

  async def close(self) -> None:
    """Closes all database engines."""
    if self.products_engine:
      await self.products_engine.dispose()
    if self.transactions_engine:
      await self.transactions_engine.dispose()


async def _open_engine(path: str, base) -> AsyncEngine:
  engine = create_async_engine(f"sqlite+aiosqlite:///{path}", echo=False)

  async with engine.connect() as conn:
    await conn.execute(text("PRAGMA journal_mode=WAL"))

  async with engine.begin() as conn:
    await conn.run_sync(base.metadata.create_all)
  return engine


# Global manager instance (to be initialized via lifespan)
manager = DatabaseManager()


def _now() -> datetime.datetime:
  return datetime.datetime.now(datetime.timezone.utc)


def parse_timestamp(value: str) -> datetime.datetime:
  """Parses a stored ISO timestamp, treating naive values as UTC."""
  parsed = datetime.datetime.fromisoformat(value)
  if parsed.tzinfo is None:
    parsed = parsed.replace(tzinfo=datetime.timezone.utc)
  return parsed


class Variant(ProductBase):
  __tablename__ = "variants"

  id = Column(Integer, primary_key=True)
  product_id = Column(Integer, index=True)
  name = Column(String)
  price = Column(Float)
  weight_g = Column(Integer, nullable=True)
  color = Column(String, nullable=True)
  size = Column(String, nullable=True)


class AuthSession(TransactionBase):
  __tablename__ = "auth_sessions"

  access_token = Column(String, primary_key=True)
  user_id = Column(String, index=True)
  expires_at = Column(String, nullable=True)


class Coupon(TransactionBase):
  __tablename__ = "coupons"

  id = Column(Integer, primary_key=True, autoincrement=True)
  code = Column(String, unique=True, index=True)  # Always upper-case
  type = Column(String)  # 'percent', 'fixed' or 'free_shipping'
  value = Column(Float, default=0)
  description = Column(String, nullable=True)
  min_subtotal = Column(Float, nullable=True)
  max_uses = Column(Integer, nullable=True)
  used_count = Column(Integer, default=0)
  ends_at = Column(String, nullable=True)
  is_active = Column(Boolean, default=True)


class ShippingQuote(TransactionBase):
  __tablename__ = "shipping_quotes"

  postal_code = Column(String, primary_key=True)
  total_weight_g = Column(Integer, primary_key=True)
  quotes = Column(JSON)
  created_at = Column(String)


class Order(TransactionBase):
  __tablename__ = "orders"

  id = Column(String, primary_key=True)
  user_id = Column(String, index=True)
  status = Column(String, default=OrderStatus.CREATED.value)
  payment_status = Column(String, default=PaymentStatus.PENDING.value)
  payment_id = Column(String, nullable=True)
  subtotal = Column(Float)
  shipping_cost = Column(Float)
  discount_total = Column(Float, default=0)
  total = Column(Float)
  coupon_code = Column(String, nullable=True)
  created_at = Column(String)
  updated_at = Column(String)

  items = relationship(
      "OrderItem",
      back_populates="order",
      cascade="all, delete-orphan",
      order_by="OrderItem.id",
  )


class OrderItem(TransactionBase):
  __tablename__ = "order_items"

  id = Column(Integer, primary_key=True, autoincrement=True)
  order_id = Column(String, ForeignKey("orders.id"), index=True)
  variant_id = Column(Integer)
  product_id = Column(Integer)
  name_snapshot = Column(String)
  image_url = Column(String, nullable=True)
  unit_price = Column(Float)
  quantity = Column(Integer)
  color = Column(String, nullable=True)
  size = Column(String, nullable=True)

  order = relationship("Order", back_populates="items")


# --- Data Access Helpers ---


async def get_variants(
    session: AsyncSession, variant_ids: Iterable[int]
) -> List[Variant]:
  """Retrieves the variants matching the given ids in a single query."""
  result = await session.execute(
      select(Variant).where(Variant.id.in_(list(variant_ids)))
  )
  return list(result.scalars().all())


async def get_auth_session(
    session: AsyncSession, access_token: str
) -> Optional[AuthSession]:
  """Retrieves an unexpired auth session by its access token."""
  auth = await session.get(AuthSession, access_token)
  if auth and auth.expires_at and parse_timestamp(auth.expires_at) <= _now():
    return None
  return auth


async def get_coupon_by_code(
    session: AsyncSession, code: str
) -> Optional[Coupon]:
  """Retrieves a coupon by its canonical (upper-case) code."""
  result = await session.execute(
      select(Coupon).where(Coupon.code == code.upper())
  )
  return result.scalar_one_or_none()


async def get_shipping_quote(
    session: AsyncSession, postal_code: str, total_weight_g: int
) -> Optional[ShippingQuote]:
  """Retrieves the cached carrier quotes for a destination/weight pair."""
  return await session.get(ShippingQuote, (postal_code, total_weight_g))


async def save_shipping_quote(
    session: AsyncSession,
    postal_code: str,
    total_weight_g: int,
    quotes: List[Dict[str, Any]],
) -> None:
  """Saves or overwrites the cached quotes for a destination/weight pair."""
  created_at = _now().isoformat()
  existing = await get_shipping_quote(session, postal_code, total_weight_g)
  if existing:
    existing.quotes = quotes
    existing.created_at = created_at
  else:
    session.add(
        ShippingQuote(
            postal_code=postal_code,
            total_weight_g=total_weight_g,
            quotes=quotes,
            created_at=created_at,
        )
    )
  await session.commit()


async def get_order(
    session: AsyncSession, order_id: str
) -> Optional[Order]:
  """Retrieves an order together with its item snapshots."""
  result = await session.execute(
      select(Order)
      .options(selectinload(Order.items))
      .where(Order.id == order_id)
  )
  return result.scalar_one_or_none()


async def list_orders(session: AsyncSession) -> List[Order]:
  """Retrieves all orders, oldest first."""
  result = await session.execute(select(Order).order_by(Order.created_at))
  return list(result.scalars().all())


def max_coupon_discount(
    coupon: Coupon, subtotal: float, shipping_cost: float
) -> float:
  """Returns the largest discount a coupon grants for the given amounts."""
  if coupon.type == CouponType.PERCENT.value:
    discount = subtotal * (coupon.value or 0) / 100
  elif coupon.type == CouponType.FIXED.value:
    discount = coupon.value or 0
  elif coupon.type == CouponType.FREE_SHIPPING.value:
    discount = shipping_cost
  else:
    discount = 0
  return round(min(max(discount, 0), subtotal + shipping_cost), 2)


async def create_order_with_items(
    session: AsyncSession,
    user_id: str,
    cart_items: List[Dict[str, Any]],
    shipping_cost: float,
    coupon_code: Optional[str] = None,
    coupon_discount: float = 0,
) -> str:
  """Creates an order and its item snapshots in a single transaction.

  The requested coupon discount is honored only up to what the persisted
  coupon grants; an unknown code yields no discount.

  Args:
    session: The transactions database session.
    user_id: Owner of the new order.
    cart_items: Cart lines with variant_id, product_id, name, image_url,
      price, quantity, color and size.
    shipping_cost: Cost of the selected shipping option.
    coupon_code: Optional coupon code applied by the client.
    coupon_discount: Discount the client computed for the coupon.

  Returns:
    The new order id.

  Raises:
    SQLAlchemyError: If any statement fails. Nothing is persisted.
  """
  subtotal = round(
      sum(item["price"] * item["quantity"] for item in cart_items), 2
  )

  try:
    applied_code = None
    discount = 0.0
    if coupon_code:
      coupon = await get_coupon_by_code(session, coupon_code)
      if coupon:
        applied_code = coupon.code
        discount = min(
            max(coupon_discount, 0),
            max_coupon_discount(coupon, subtotal, shipping_cost),
        )
      else:
        logger.warning("Ignoring unknown coupon %s on new order", coupon_code)

    timestamp = _now().isoformat()
    order = Order(
        id=str(uuid.uuid4()),
        user_id=user_id,
        status=OrderStatus.CREATED.value,
        payment_status=PaymentStatus.PENDING.value,
        subtotal=subtotal,
        shipping_cost=round(shipping_cost, 2),
        discount_total=round(discount, 2),
        total=round(max(subtotal + shipping_cost - discount, 0), 2),
        coupon_code=applied_code,
        created_at=timestamp,
        updated_at=timestamp,
        items=[
            OrderItem(
                variant_id=item["variant_id"],
                product_id=item["product_id"],
                name_snapshot=item["name"],
                image_url=item.get("image_url"),
                unit_price=item["price"],
                quantity=item["quantity"],
                color=item.get("color"),
                size=item.get("size"),
            )
            for item in cart_items
        ],
    )
    session.add(order)
    await session.commit()
  except SQLAlchemyError:
    await session.rollback()
    raise

  return order.id


# Gateway payment status -> (order status, payment status).
GATEWAY_STATUS_MAP = {
    "pending": (OrderStatus.AWAITING_PAYMENT, PaymentStatus.PENDING),
    "in_process": (OrderStatus.AWAITING_PAYMENT, PaymentStatus.PENDING),
    "in_mediation": (OrderStatus.AWAITING_PAYMENT, PaymentStatus.PENDING),
    "authorized": (OrderStatus.AWAITING_PAYMENT, PaymentStatus.PENDING),
    "approved": (OrderStatus.PAID, PaymentStatus.APPROVED),
    "rejected": (OrderStatus.AWAITING_PAYMENT, PaymentStatus.REJECTED),
    "cancelled": (OrderStatus.CANCELED, PaymentStatus.EXPIRED),
    "refunded": (OrderStatus.REFUNDED, PaymentStatus.REFUNDED),
    "charged_back": (OrderStatus.REFUNDED, PaymentStatus.REFUNDED),
}

# Order status -> statuses a payment update may move it to. Staying in the
# same status is always allowed so replayed notifications converge.
ALLOWED_ORDER_TRANSITIONS = {
    OrderStatus.CREATED: {
        OrderStatus.AWAITING_PAYMENT,
        OrderStatus.PAID,
        OrderStatus.CANCELED,
    },
    OrderStatus.AWAITING_PAYMENT: {OrderStatus.PAID, OrderStatus.CANCELED},
    OrderStatus.PAID: {OrderStatus.REFUNDED},
    OrderStatus.SEPARATING: {OrderStatus.REFUNDED},
    OrderStatus.SHIPPED: {OrderStatus.REFUNDED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELED: set(),
    OrderStatus.REFUNDED: set(),
}

# Orders already being fulfilled keep their status on a late "approved".
_FULFILLMENT_STATUSES = {
    OrderStatus.SEPARATING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
}


async def apply_payment_update(
    session: AsyncSession,
    order_id: str,
    gateway_status: str,
    payment_id: Optional[str] = None,
) -> Order:
  """Moves an order to the state matching the gateway payment status.

  Args:
    session: The transactions database session.
    order_id: The order the payment refers to (the external reference).
    gateway_status: The payment status reported by the gateway.
    payment_id: The gateway payment id, stored for traceability.

  Returns:
    The updated order.

  Raises:
    OrderNotFoundError: If the order does not exist.
    InvalidTransitionError: If the status is unknown or the order cannot
      move to the mapped status.
    SQLAlchemyError: If the update fails. Nothing is persisted.
  """
  if gateway_status not in GATEWAY_STATUS_MAP:
    raise InvalidTransitionError(f"Unknown payment status '{gateway_status}'")
  target_status, target_payment_status = GATEWAY_STATUS_MAP[gateway_status]

  try:
    order = await session.get(Order, order_id)
    if not order:
      raise OrderNotFoundError(f"Order {order_id} not found")

    current = OrderStatus(order.status)
    if current in _FULFILLMENT_STATUSES and target_status == OrderStatus.PAID:
      target_status = current
    if (
        target_status != current
        and target_status not in ALLOWED_ORDER_TRANSITIONS[current]
    ):
      raise InvalidTransitionError(
          f"Order {order_id} cannot move from {current.value} to"
          f" {target_status.value}"
      )

    order.status = target_status.value
    order.payment_status = target_payment_status.value
    if payment_id:
      order.payment_id = payment_id
    order.updated_at = _now().isoformat()
    await session.commit()
  except SQLAlchemyError:
    await session.rollback()
    raise

  return order
