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

"""Coupon validation service.

Validation is read-only: it never increments the usage count. Applying the
discount happens on the client and, capped, when the order is created.
"""

import datetime
import logging
from typing import Optional

import db
from exceptions import CouponNotFoundError
from exceptions import CouponRejectedError
from exceptions import ValidationFailedError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class CouponService:
  """Service for validating coupon codes against a cart subtotal."""

  def __init__(self, transactions_session: AsyncSession):
    self.transactions_session = transactions_session

  async def validate(
      self,
      code: str,
      subtotal: float,
      now: Optional[datetime.datetime] = None,
  ) -> db.Coupon:
    """Checks that a coupon can be applied to the given subtotal.

    Rules are evaluated in order and the first failing one wins: inactive,
    expired, exhausted, below minimum subtotal.

    Args:
      code: The coupon code as typed by the buyer (case-insensitive).
      subtotal: The cart subtotal the coupon would apply to.
      now: Reference time for the expiration check. Defaults to now.

    Returns:
      The coupon record.

    Raises:
      ValidationFailedError: If the code is empty or the subtotal is not
        positive.
      CouponNotFoundError: If no coupon has this code.
      CouponRejectedError: If a validation rule rejects the coupon.
    """
    if not code or not code.strip():
      raise ValidationFailedError("Coupon code is required")
    if subtotal <= 0:
      raise ValidationFailedError("Subtotal must be a positive value")

    coupon = await db.get_coupon_by_code(
        self.transactions_session, code.strip()
    )
    if not coupon:
      raise CouponNotFoundError()

    now = now or datetime.datetime.now(datetime.timezone.utc)

    if not coupon.is_active:
      raise CouponRejectedError("This coupon is inactive", "COUPON_INACTIVE")
    if coupon.ends_at and db.parse_timestamp(coupon.ends_at) < now:
      raise CouponRejectedError("This coupon has expired", "COUPON_EXPIRED")
    if coupon.max_uses and (coupon.used_count or 0) >= coupon.max_uses:
      raise CouponRejectedError(
          "This coupon has reached its usage limit", "COUPON_EXHAUSTED"
      )
    if coupon.min_subtotal and subtotal < coupon.min_subtotal:
      raise CouponRejectedError(
          "The minimum subtotal for this coupon is"
          f" R$ {coupon.min_subtotal:.2f}",
          "COUPON_BELOW_MINIMUM",
      )

    logger.info("Coupon %s accepted for subtotal %.2f", coupon.code, subtotal)
    return coupon
