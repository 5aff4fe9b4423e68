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

"""Shipping quote service.

Combines store rules (in-store pickup, free shipping above a subtotal) with
carrier rates from Melhor Envio. Carrier rates are cached per destination and
package weight for a short window; a carrier outage degrades the answer to
the store options instead of failing the request.
"""

import datetime
import logging
import re
from typing import List, Optional

from clients.melhor_envio import MelhorEnvioClient
from config import StoreSettings
import db
from exceptions import UpstreamDegradedError
from exceptions import ValidationFailedError
from exceptions import VariantNotFoundError
from models import ShippingOption
from models import ShippingQuoteItem
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

PICKUP_OPTION_ID = "pickup"
FREE_SHIPPING_OPTION_ID = "free"
FREE_SHIPPING_DELIVERY_DAYS = 5
MAX_CARRIER_OPTIONS = 2

_POSTAL_CODE_RE = re.compile(r"^\d{8}$")


def pickup_option() -> ShippingOption:
  return ShippingOption(
      id=PICKUP_OPTION_ID,
      name="Retirada em Loja",
      price=0,
      delivery_time_days=0,
  )


def free_shipping_option() -> ShippingOption:
  return ShippingOption(
      id=FREE_SHIPPING_OPTION_ID,
      name="Frete Grátis",
      price=0,
      delivery_time_days=FREE_SHIPPING_DELIVERY_DAYS,
  )


class ShippingQuoteService:
  """Service for quoting shipping options for a cart."""

  def __init__(
      self,
      products_session: AsyncSession,
      transactions_session: AsyncSession,
      carrier: MelhorEnvioClient,
      settings: StoreSettings,
  ):
    self.products_session = products_session
    self.transactions_session = transactions_session
    self.carrier = carrier
    self.settings = settings

  async def quote(
      self, postal_code: str, items: List[ShippingQuoteItem]
  ) -> List[ShippingOption]:
    """Returns the shipping options for delivering the items.

    Store options come first: pickup when the destination is eligible, then
    free shipping when the subtotal reaches the threshold. Free shipping
    short-circuits the carrier lookup entirely.

    Args:
      postal_code: 8-digit destination postal code.
      items: Variants and quantities in the cart.

    Returns:
      The ordered list of shipping options.

    Raises:
      ValidationFailedError: If the postal code or the item list is invalid.
      VariantNotFoundError: If any variant does not exist.
    """
    if not postal_code or not _POSTAL_CODE_RE.match(postal_code):
      raise ValidationFailedError("Postal code must have 8 digits")
    if not items:
      raise ValidationFailedError("At least one item is required")
    if any(item.quantity < 1 for item in items):
      raise ValidationFailedError("Item quantities must be at least 1")

    variant_ids = {item.variant_id for item in items}
    variants = await db.get_variants(self.products_session, variant_ids)
    if len(variants) != len(variant_ids):
      raise VariantNotFoundError()
    variants_by_id = {variant.id: variant for variant in variants}

    subtotal = 0.0
    total_weight_g = 0
    for item in items:
      variant = variants_by_id[item.variant_id]
      subtotal += variant.price * item.quantity
      weight_g = variant.weight_g or db.DEFAULT_ITEM_WEIGHT_G
      total_weight_g += weight_g * item.quantity

    options = []
    if postal_code in self.settings.pickup_postal_codes:
      options.append(pickup_option())

    if subtotal >= self.settings.free_shipping_subtotal:
      options.append(free_shipping_option())
      return options

    cached = await self._get_cached_options(postal_code, total_weight_g)
    if cached is not None:
      return options + cached

    try:
      carrier_options = await self._fetch_carrier_options(
          postal_code, total_weight_g
      )
    except UpstreamDegradedError as e:
      logger.error("Melhor Envio API error for %s: %s", postal_code, e.message)
      return options

    await self._save_cached_options(
        postal_code, total_weight_g, carrier_options
    )
    return options + carrier_options

  async def _get_cached_options(
      self, postal_code: str, total_weight_g: int
  ) -> Optional[List[ShippingOption]]:
    """Returns the cached carrier options if the entry is still fresh."""
    entry = await db.get_shipping_quote(
        self.transactions_session, postal_code, total_weight_g
    )
    if not entry:
      return None

    ttl = datetime.timedelta(minutes=self.settings.shipping_cache_ttl_minutes)
    age = datetime.datetime.now(datetime.timezone.utc) - db.parse_timestamp(
        entry.created_at
    )
    if age >= ttl:
      return None

    try:
      return [ShippingOption.model_validate(q) for q in entry.quotes or []]
    except ValidationError as e:
      logger.warning(
          "Discarding malformed cached quote for %s/%dg: %s",
          postal_code,
          total_weight_g,
          e,
      )
      return None

  async def _fetch_carrier_options(
      self, postal_code: str, total_weight_g: int
  ) -> List[ShippingOption]:
    quotes = await self.carrier.calculate(
        self.settings.store_postal_code, postal_code, total_weight_g
    )
    usable = [quote for quote in quotes if quote.is_usable]
    return [
        ShippingOption(
            id=str(quote.id),
            name=quote.name,
            price=quote.price,
            delivery_time_days=quote.delivery_time,
        )
        for quote in usable[:MAX_CARRIER_OPTIONS]
    ]

  async def _save_cached_options(
      self,
      postal_code: str,
      total_weight_g: int,
      options: List[ShippingOption],
  ) -> None:
    try:
      await db.save_shipping_quote(
          self.transactions_session,
          postal_code,
          total_weight_g,
          [option.model_dump(mode="json") for option in options],
      )
    except SQLAlchemyError as e:
      # A concurrent writer may have inserted the same key first.
      await self.transactions_session.rollback()
      logger.error("Error saving shipping quote to cache: %s", e)
