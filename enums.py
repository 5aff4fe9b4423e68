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

"""Enumerations for the storefront checkout server.

This module defines standard enums used throughout the server and the
checkout client to represent the state of orders, payments, coupons and the
client-side checkout steps.
"""

import enum


class OrderStatus(str, enum.Enum):
  CREATED = "created"
  AWAITING_PAYMENT = "awaiting_payment"
  PAID = "paid"
  SEPARATING = "separating"
  SHIPPED = "shipped"
  DELIVERED = "delivered"
  CANCELED = "canceled"
  REFUNDED = "refunded"


class PaymentStatus(str, enum.Enum):
  PENDING = "pending"
  APPROVED = "approved"
  REJECTED = "rejected"
  REFUNDED = "refunded"
  EXPIRED = "expired"


class CouponType(str, enum.Enum):
  PERCENT = "percent"
  FIXED = "fixed"
  FREE_SHIPPING = "free_shipping"


class CheckoutStep(str, enum.Enum):
  ADDRESS = "address"
  SHIPPING = "shipping"
  PAYMENT = "payment"
