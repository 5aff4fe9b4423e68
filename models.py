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

"""Request and response models for the storefront server.

These models describe the JSON exchanged between the storefront client and
the checkout endpoints. Upstream payloads (carrier and payment gateway) have
their own boundary schemas next to their clients.
"""

from typing import List, Optional
import uuid

from enums import CouponType
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

POSTAL_CODE_PATTERN = r"^\d{8}$"


class Address(BaseModel):
  """Delivery address collected during checkout. Never persisted."""

  postal_code: str = Field(pattern=POSTAL_CODE_PATTERN)
  street: str = Field(min_length=3)
  number: str = Field(min_length=1)
  complement: Optional[str] = None
  city: str = Field(min_length=3)
  state: str = Field(min_length=2)


class ShippingQuoteItem(BaseModel):
  variant_id: int
  quantity: int = Field(ge=1)


class ShippingQuoteRequest(BaseModel):
  postal_code: str = Field(pattern=POSTAL_CODE_PATTERN)
  items: List[ShippingQuoteItem] = Field(min_length=1)


class ShippingOption(BaseModel):
  id: str
  name: str
  price: float = Field(ge=0)
  delivery_time_days: int = Field(ge=0)


class CartLine(BaseModel):
  variant_id: int
  product_id: int
  name: str = Field(min_length=1)
  image_url: Optional[str] = None
  price: float = Field(ge=0)
  quantity: int = Field(ge=1)
  color: str
  size: str


class OrderCreateRequest(BaseModel):
  items: List[CartLine] = Field(min_length=1)
  shipping_cost: float = Field(ge=0)
  coupon_code: Optional[str] = None
  coupon_discount: float = Field(default=0, ge=0)


class OrderCreateResponse(BaseModel):
  order_id: str


class OrderItemResponse(BaseModel):
  model_config = ConfigDict(from_attributes=True)

  variant_id: int
  product_id: int
  name_snapshot: str
  image_url: Optional[str] = None
  unit_price: float
  quantity: int
  color: Optional[str] = None
  size: Optional[str] = None


class OrderResponse(BaseModel):
  """Order as shown on the order tracking page."""

  model_config = ConfigDict(from_attributes=True)

  id: str
  status: str
  payment_status: str
  subtotal: float
  shipping_cost: float
  discount_total: float
  total: float
  coupon_code: Optional[str] = None
  created_at: str
  updated_at: str
  items: List[OrderItemResponse]


class PaymentPreferenceRequest(BaseModel):
  order_id: uuid.UUID


class PaymentPreferenceResponse(BaseModel):
  preference_id: str
  init_point: str
  qr_code_base64: Optional[str] = None


class NotificationData(BaseModel):
  id: str


class PaymentNotification(BaseModel):
  """Body of a payment gateway webhook delivery."""

  action: str
  type: str
  data: NotificationData


class WebhookAck(BaseModel):
  success: bool


class CouponValidationRequest(BaseModel):
  coupon_code: str = Field(min_length=1)
  subtotal: float = Field(gt=0)


class CouponResponse(BaseModel):
  """Coupon projection without usage bookkeeping fields."""

  model_config = ConfigDict(from_attributes=True)

  id: int
  code: str
  type: CouponType
  value: float
  description: Optional[str] = None
  min_subtotal: Optional[float] = None
  is_active: bool
