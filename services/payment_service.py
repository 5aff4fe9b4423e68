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

"""Payment service for Mercado Pago checkout preferences and webhooks.

This module provides the `PaymentService` class, which:
- Creates a hosted checkout preference for an order, using the order id as
  the gateway's external reference.
- Reconciles asynchronous payment notifications by re-fetching the payment
  from the gateway and applying the matching order status transition.

Webhook processing never fails towards the gateway: internal errors are
logged and reported as `success=False` with a 200 status, so the gateway does
not keep redelivering a notification the store cannot process yet.
"""

import logging
from typing import Any, Dict, List

from clients.mercado_pago import MercadoPagoClient
from config import StoreSettings
import db
from exceptions import OrderNotFoundError
from exceptions import StorefrontError
from models import PaymentNotification
from models import PaymentPreferenceResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

PAYMENT_TYPE = "payment"
PAYMENT_UPDATED_ACTION = "payment.updated"
SHIPPING_ITEM_ID = "shipping"


class PaymentService:
  """Service for payment preferences and payment status reconciliation."""

  def __init__(
      self,
      transactions_session: AsyncSession,
      gateway: MercadoPagoClient,
      settings: StoreSettings,
      base_url: str,
  ):
    self.transactions_session = transactions_session
    self.gateway = gateway
    self.settings = settings
    self.base_url = base_url.rstrip("/")

  def _preference_items(self, order: db.Order) -> List[Dict[str, Any]]:
    items = [
        {
            "id": str(item.variant_id),
            "title": item.name_snapshot,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "currency_id": self.settings.currency,
        }
        for item in order.items
    ]
    if order.shipping_cost and order.shipping_cost > 0:
      items.append({
          "id": SHIPPING_ITEM_ID,
          "title": "Frete",
          "quantity": 1,
          "unit_price": order.shipping_cost,
          "currency_id": self.settings.currency,
      })
    return items

  async def create_preference(
      self, user_id: str, order_id: str
  ) -> PaymentPreferenceResponse:
    """Creates a gateway checkout session for an order.

    Each call creates a new session; callers retrying after a failure get a
    fresh one.

    Args:
      user_id: The authenticated buyer, who must own the order.
      order_id: The order to pay.

    Returns:
      The redirect target and the optional embeddable QR code.

    Raises:
      OrderNotFoundError: If the order does not exist or is not the
        caller's.
      UpstreamFailedError: If the gateway rejects or fails the request.
    """
    order = await db.get_order(self.transactions_session, order_id)
    if not order or order.user_id != user_id:
      raise OrderNotFoundError()

    body = {
        "items": self._preference_items(order),
        "external_reference": order.id,
        "back_urls": {
            "success": f"{self.base_url}/meus-pedidos/{order.id}",
            "failure": f"{self.base_url}/sacola",
        },
        "notification_url": f"{self.base_url}/payments/webhook",
    }
    preference = await self.gateway.create_preference(body)
    logger.info(
        "Created payment preference %s for order %s", preference.id, order.id
    )

    return PaymentPreferenceResponse(
        preference_id=preference.id,
        init_point=preference.init_point,
        qr_code_base64=preference.qr_code_base64,
    )

  async def handle_notification(
      self, notification: PaymentNotification
  ) -> bool:
    """Reconciles an order with the payment a notification refers to.

    Only `payment.updated` notifications of type `payment` are processed.
    The payment status is always re-fetched from the gateway; only the
    notification's payment id is trusted.

    Args:
      notification: The validated webhook body.

    Returns:
      False if processing failed internally, True otherwise (including
      ignored notifications).
    """
    if (
        notification.type != PAYMENT_TYPE
        or notification.action != PAYMENT_UPDATED_ACTION
    ):
      logger.info(
          "Ignoring %s notification with action %s",
          notification.type,
          notification.action,
      )
      return True

    payment_id = notification.data.id
    try:
      payment = await self.gateway.get_payment(payment_id)
      if not payment.external_reference or not payment.status:
        logger.warning(
            "Payment %s has no external reference or status", payment_id
        )
        return True

      order = await db.apply_payment_update(
          self.transactions_session,
          payment.external_reference,
          payment.status,
          str(payment.id),
      )
    except (StorefrontError, SQLAlchemyError) as e:
      logger.error("Failed to reconcile payment %s: %s", payment_id, e)
      return False

    logger.info(
        "Order %s is now %s (payment %s)",
        order.id,
        order.status,
        order.payment_status,
    )
    return True
