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

"""Order service for materializing carts into orders and reading them back."""

import logging

import db
from exceptions import OrderCreationFailedError
from exceptions import OrderNotFoundError
from models import OrderCreateRequest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class OrderService:
  """Service for creating and retrieving orders."""

  def __init__(self, transactions_session: AsyncSession):
    self.transactions_session = transactions_session

  async def create_order(
      self, user_id: str, order_req: OrderCreateRequest
  ) -> str:
    """Creates an order with item snapshots from a validated cart.

    The whole order is written by one atomic database procedure, so a
    failure leaves no partial order behind.

    Args:
      user_id: The authenticated buyer.
      order_req: Cart lines, shipping cost and optional coupon.

    Returns:
      The new order id.

    Raises:
      OrderCreationFailedError: If the database transaction fails.
    """
    logger.info(
        "Creating order for user %s with %d items",
        user_id,
        len(order_req.items),
    )
    try:
      order_id = await db.create_order_with_items(
          self.transactions_session,
          user_id=user_id,
          cart_items=[line.model_dump() for line in order_req.items],
          shipping_cost=order_req.shipping_cost,
          coupon_code=order_req.coupon_code,
          coupon_discount=order_req.coupon_discount,
      )
    except SQLAlchemyError as e:
      logger.error("Order creation failed for user %s: %s", user_id, e)
      raise OrderCreationFailedError(details=str(getattr(e, "orig", e))) from e

    logger.info("Created order %s for user %s", order_id, user_id)
    return order_id

  async def get_order(self, user_id: str, order_id: str) -> db.Order:
    """Retrieves an order owned by the given user."""
    order = await db.get_order(self.transactions_session, order_id)
    if not order or order.user_id != user_id:
      raise OrderNotFoundError()
    return order
