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

"""Payment routes: checkout preference creation and gateway webhook."""

import dependencies
from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from models import PaymentNotification
from models import PaymentPreferenceRequest
from models import PaymentPreferenceResponse
from models import WebhookAck
from services.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/preference",
    response_model=PaymentPreferenceResponse,
    status_code=201,
    operation_id="create_payment_preference",
)
async def create_payment_preference(
    preference_req: PaymentPreferenceRequest = Body(...),
    user: dependencies.AuthenticatedUser = Depends(
        dependencies.get_current_user
    ),
    payment_service: PaymentService = Depends(
        dependencies.get_payment_service
    ),
) -> PaymentPreferenceResponse:
  """Create a Mercado Pago checkout preference for an order."""
  return await payment_service.create_preference(
      user.id, str(preference_req.order_id)
  )


@router.post(
    "/webhook",
    response_model=WebhookAck,
    status_code=200,
    operation_id="payment_webhook",
)
async def payment_webhook(
    notification: PaymentNotification = Body(...),
    payment_service: PaymentService = Depends(
        dependencies.get_payment_service
    ),
) -> WebhookAck:
  """Receive a Mercado Pago notification.

  Always acknowledges a well-formed body with 200; `success` is False when
  the store could not reconcile the payment.
  """
  # TODO: verify the x-signature header once the webhook secret is
  # provisioned.
  success = await payment_service.handle_notification(notification)
  return WebhookAck(success=success)
