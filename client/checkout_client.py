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

"""Checkout client script for the storefront server.

This script walks the checkout journey with the cart stored in a local file:
1. Optionally validating a coupon code and attaching it to the cart.
2. Submitting the delivery address and fetching shipping options.
3. Selecting the cheapest shipping option.
4. Creating the order and its Mercado Pago payment preference.
5. Optionally polling the order until the webhook marks it paid.

Usage:
  uv run python -m client.checkout_client --server_url=http://localhost:8182 \
    --access_token=... --cart_file=cart.json --postal_code=01310000
"""

import argparse
import logging
import time

from client.cart_store import AppliedCoupon
from client.cart_store import CartStore
from client.checkout_flow import CheckoutFlow
from client.checkout_flow import CheckoutStepError
from client.checkout_flow import StorefrontApi
from client.checkout_flow import StorefrontApiError
import httpx


def main() -> None:
  parser = argparse.ArgumentParser()
  parser.add_argument(
      "--server_url",
      default="http://localhost:8182",
      help="Base URL of the storefront server",
  )
  parser.add_argument("--access_token", required=True, help="Session token")
  parser.add_argument(
      "--cart_file", default="cart.json", help="Path of the local cart file"
  )
  parser.add_argument("--postal_code", required=True, help="8-digit CEP")
  parser.add_argument("--street", default="Avenida Paulista")
  parser.add_argument("--number", default="1000")
  parser.add_argument("--city", default="São Paulo")
  parser.add_argument("--state", default="SP")
  parser.add_argument("--coupon", default=None, help="Coupon code to apply")
  parser.add_argument(
      "--wait_for_payment_seconds",
      type=int,
      default=0,
      help="Poll the order until paid for up to this many seconds",
  )
  args = parser.parse_args()

  # Configure Logging
  logging.basicConfig(
      level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
  )
  logger = logging.getLogger(__name__)

  with httpx.Client(base_url=args.server_url) as client:
    api = StorefrontApi(client, access_token=args.access_token)
    cart_store = CartStore(args.cart_file)
    flow = CheckoutFlow(api, cart_store)

    cart = cart_store.get_state()
    if not cart.items:
      logger.error("Cart at %s is empty", args.cart_file)
      return
    logger.info(
        "Cart has %d lines, subtotal R$ %.2f", len(cart.items), cart.subtotal
    )

    try:
      if args.coupon:
        coupon = api.validate_coupon(args.coupon, cart.subtotal)
        cart.coupon = AppliedCoupon(
            code=coupon.code, type=coupon.type, value=coupon.value
        )
        cart_store.set_state(cart)
        logger.info("Applied coupon %s", coupon.code)

      options = flow.submit_address({
          "postal_code": args.postal_code,
          "street": args.street,
          "number": args.number,
          "city": args.city,
          "state": args.state,
      })
      for option in options:
        logger.info(
            " - %s: %s R$ %.2f (%d days)",
            option.id,
            option.name,
            option.price,
            option.delivery_time_days,
        )

      cheapest = min(options, key=lambda o: (o.price, o.delivery_time_days))
      flow.select_option(cheapest.id)
      payment = flow.confirm_shipping()
    except (CheckoutStepError, StorefrontApiError) as e:
      logger.error("Checkout failed at step %s: %s", flow.step.value, e)
      return

    logger.info("Order %s created", flow.order_id)
    logger.info("Pay at: %s", payment.init_point)

    deadline = time.monotonic() + args.wait_for_payment_seconds
    while time.monotonic() < deadline:
      try:
        if flow.confirm_payment():
          logger.info("Payment approved, cart cleared")
          return
      except CheckoutStepError as e:
        logger.warning("Could not read order status: %s", e)
      time.sleep(5)


if __name__ == "__main__":
  main()
