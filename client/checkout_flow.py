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

"""Client-side checkout workflow.

The checkout runs in three steps, `ADDRESS -> SHIPPING -> PAYMENT`, driven by
the buyer. The only automatic backward move is `SHIPPING -> ADDRESS` when the
shipping quote fails; any other jump raises `InvalidTransitionError`.

Errors from the storefront API are raised as `CheckoutStepError` and kept in
`CheckoutFlow.error` so the current step can show them inline; the flow does
not advance and the buyer may retry the same step.

The payment result is owned by the server (it learns it from the gateway
webhook). `confirm_payment` only reads the order back; the cart is cleared
once the payment shows as approved.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from client.cart_store import CartStore
from enums import CheckoutStep
from enums import PaymentStatus
import httpx
from models import Address
from models import CartLine
from models import CouponResponse
from models import OrderResponse
from models import PaymentPreferenceResponse
from models import ShippingOption
from pydantic import TypeAdapter
from pydantic import ValidationError

logger = logging.getLogger(__name__)

TRANSITIONS = {
    CheckoutStep.ADDRESS: {CheckoutStep.SHIPPING},
    CheckoutStep.SHIPPING: {CheckoutStep.PAYMENT, CheckoutStep.ADDRESS},
    CheckoutStep.PAYMENT: set(),
}

_SHIPPING_OPTIONS = TypeAdapter(List[ShippingOption])


class StorefrontApiError(Exception):
  """Raised when a storefront endpoint answers with an error."""

  def __init__(self, status_code: int, code: str, message: str):
    self.status_code = status_code
    self.code = code
    self.message = message
    super().__init__(f"{status_code} {code}: {message}")


class CheckoutStepError(Exception):
  """Raised when a checkout step fails; the message is shown to the buyer."""


class InvalidTransitionError(Exception):
  """Raised when an action is not allowed in the current checkout step."""


class StorefrontApi:
  """Synchronous client for the storefront checkout endpoints."""

  def __init__(self, client: httpx.Client, access_token: Optional[str] = None):
    self.client = client
    self.access_token = access_token

  def _headers(self) -> Dict[str, str]:
    if not self.access_token:
      return {}
    return {"Authorization": f"Bearer {self.access_token}"}

  def _request(
      self, method: str, path: str, json: Optional[Dict[str, Any]] = None
  ) -> Any:
    try:
      response = self.client.request(
          method, path, json=json, headers=self._headers()
      )
    except httpx.HTTPError as e:
      raise StorefrontApiError(0, "NETWORK_ERROR", str(e)) from e

    if response.is_success:
      return response.json()

    try:
      body = response.json()
    except ValueError:
      body = {}
    if not isinstance(body, dict):
      body = {}
    raise StorefrontApiError(
        response.status_code,
        body.get("code", "UNKNOWN_ERROR"),
        body.get("detail") or response.reason_phrase,
    )

  def quote_shipping(
      self, postal_code: str, items: List[CartLine]
  ) -> List[ShippingOption]:
    data = self._request(
        "POST",
        "/shipping/quote",
        json={
            "postal_code": postal_code,
            "items": [
                {"variant_id": line.variant_id, "quantity": line.quantity}
                for line in items
            ],
        },
    )
    return _SHIPPING_OPTIONS.validate_python(data)

  def validate_coupon(self, code: str, subtotal: float) -> CouponResponse:
    data = self._request(
        "POST",
        "/coupons/validate",
        json={"coupon_code": code, "subtotal": subtotal},
    )
    return CouponResponse.model_validate(data)

  def create_order(
      self,
      items: List[CartLine],
      shipping_cost: float,
      coupon_code: Optional[str] = None,
      coupon_discount: float = 0,
  ) -> str:
    data = self._request(
        "POST",
        "/checkout/orders",
        json={
            "items": [line.model_dump(mode="json") for line in items],
            "shipping_cost": shipping_cost,
            "coupon_code": coupon_code,
            "coupon_discount": coupon_discount,
        },
    )
    return data["order_id"]

  def create_payment_preference(
      self, order_id: str
  ) -> PaymentPreferenceResponse:
    data = self._request(
        "POST", "/payments/preference", json={"order_id": order_id}
    )
    return PaymentPreferenceResponse.model_validate(data)

  def get_order(self, order_id: str) -> OrderResponse:
    return OrderResponse.model_validate(
        self._request("GET", f"/orders/{order_id}")
    )


class CheckoutFlow:
  """In-memory state machine for one buyer's checkout."""

  def __init__(self, api: StorefrontApi, cart_store: CartStore):
    self.api = api
    self.cart_store = cart_store
    self._reset()

  def _reset(self) -> None:
    self.step = CheckoutStep.ADDRESS
    self.address: Optional[Address] = None
    self.shipping_options: List[ShippingOption] = []
    self.selected_option: Optional[ShippingOption] = None
    self.order_id: Optional[str] = None
    self.payment: Optional[PaymentPreferenceResponse] = None
    self.payment_submitted = False
    self.error: Optional[str] = None

  def _transition(self, target: CheckoutStep) -> None:
    if target not in TRANSITIONS[self.step]:
      raise InvalidTransitionError(
          f"Cannot go from {self.step.value} to {target.value}"
      )
    logger.info("Checkout step %s -> %s", self.step.value, target.value)
    self.step = target

  def _require_step(self, step: CheckoutStep) -> None:
    if self.step != step:
      raise InvalidTransitionError(
          f"Action requires the {step.value} step, current step is"
          f" {self.step.value}"
      )

  def _fail(self, message: str) -> CheckoutStepError:
    self.error = message
    return CheckoutStepError(message)

  def submit_address(
      self, address: Union[Address, Dict[str, Any]]
  ) -> List[ShippingOption]:
    """Validates the address, moves to SHIPPING and fetches the quote.

    If the quote fails, or no option is available, the flow returns to
    ADDRESS.
    """
    self._require_step(CheckoutStep.ADDRESS)
    try:
      address = Address.model_validate(address)
    except ValidationError as e:
      raise self._fail("Please check the delivery address") from e

    cart = self.cart_store.get_state()
    if not cart.items:
      raise self._fail("Your cart is empty")

    self.address = address
    self.error = None
    self._transition(CheckoutStep.SHIPPING)

    try:
      options = self.api.quote_shipping(address.postal_code, cart.items)
    except StorefrontApiError as e:
      self._transition(CheckoutStep.ADDRESS)
      raise self._fail(e.message) from e

    if not options:
      self._transition(CheckoutStep.ADDRESS)
      raise self._fail("No shipping options available for this postal code")

    self.shipping_options = options
    self.selected_option = None
    return options

  def select_option(self, option_id: str) -> ShippingOption:
    """Records the buyer's explicit choice among the quoted options."""
    self._require_step(CheckoutStep.SHIPPING)
    for option in self.shipping_options:
      if option.id == option_id:
        self.selected_option = option
        self.error = None
        return option
    raise self._fail(f"Unknown shipping option '{option_id}'")

  def confirm_shipping(self) -> PaymentPreferenceResponse:
    """Creates the order, then its payment preference, and moves to PAYMENT.

    Any failure keeps the flow in SHIPPING.
    """
    self._require_step(CheckoutStep.SHIPPING)
    if not self.selected_option:
      raise self._fail("Select a shipping option to continue")

    cart = self.cart_store.get_state()
    if not cart.items:
      raise self._fail("Your cart is empty")

    shipping_cost = self.selected_option.price
    coupon_code = None
    coupon_discount = 0.0
    if cart.coupon:
      coupon_code = cart.coupon.code
      coupon_discount = cart.coupon.discount_for(cart.subtotal, shipping_cost)

    try:
      order_id = self.api.create_order(
          cart.items, shipping_cost, coupon_code, coupon_discount
      )
      payment = self.api.create_payment_preference(order_id)
    except StorefrontApiError as e:
      raise self._fail(e.message) from e

    self.order_id = order_id
    self.payment = payment
    self.error = None
    self._transition(CheckoutStep.PAYMENT)
    return payment

  def mark_payment_submitted(self) -> None:
    """Notes that the payment UI reported a submission. Advisory only."""
    self._require_step(CheckoutStep.PAYMENT)
    self.payment_submitted = True

  def confirm_payment(self) -> bool:
    """Checks the order's payment status; clears the cart once approved."""
    self._require_step(CheckoutStep.PAYMENT)
    try:
      order = self.api.get_order(self.order_id)
    except StorefrontApiError as e:
      raise self._fail(e.message) from e

    if order.payment_status != PaymentStatus.APPROVED.value:
      return False
    self.cart_store.clear_state()
    return True

  def abandon(self) -> None:
    """Drops the checkout from any step. Created orders stay on the server."""
    logger.info("Checkout abandoned at step %s", self.step.value)
    self._reset()
