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

"""Custom exceptions for the storefront checkout server."""

from typing import Any, Optional


class StorefrontError(Exception):
  """Base class for all storefront exceptions."""

  def __init__(
      self,
      message: str,
      code: str = "INTERNAL_ERROR",
      status_code: int = 500,
      details: Optional[Any] = None,
  ):
    self.message = message
    self.code = code
    self.status_code = status_code
    self.details = details
    super().__init__(self.message)


class ValidationFailedError(StorefrontError):
  """Raised when the request is malformed or misses required fields."""

  def __init__(self, message: str, details: Optional[Any] = None):
    super().__init__(
        message, code="VALIDATION_FAILED", status_code=400, details=details
    )


class UnauthorizedError(StorefrontError):
  """Raised when the caller has no valid session."""

  def __init__(self, message: str = "Unauthorized"):
    super().__init__(message, code="UNAUTHORIZED", status_code=401)


class ResourceNotFoundError(StorefrontError):
  """Raised when a requested resource is not found."""

  def __init__(self, message: str, code: str = "RESOURCE_NOT_FOUND"):
    super().__init__(message, code=code, status_code=404)


class CouponNotFoundError(ResourceNotFoundError):

  def __init__(self, message: str = "Coupon not found"):
    super().__init__(message, code="COUPON_NOT_FOUND")


class VariantNotFoundError(ResourceNotFoundError):

  def __init__(self, message: str = "Some products were not found"):
    super().__init__(message, code="VARIANT_NOT_FOUND")


class OrderNotFoundError(ResourceNotFoundError):

  def __init__(self, message: str = "Order not found"):
    super().__init__(message, code="ORDER_NOT_FOUND")


class CouponRejectedError(StorefrontError):
  """Raised when a coupon exists but cannot be applied.

  The code tells which validation rule rejected it (COUPON_INACTIVE,
  COUPON_EXPIRED, COUPON_EXHAUSTED or COUPON_BELOW_MINIMUM).
  """

  def __init__(self, message: str, code: str):
    super().__init__(message, code=code, status_code=400)


class UpstreamDegradedError(StorefrontError):
  """Raised by an optional upstream whose failure the caller absorbs."""

  def __init__(self, message: str):
    super().__init__(message, code="UPSTREAM_DEGRADED", status_code=503)


class UpstreamFailedError(StorefrontError):
  """Raised when a required upstream (payment gateway) fails."""

  def __init__(self, message: str = "Payment gateway request failed"):
    super().__init__(message, code="UPSTREAM_FAILED", status_code=500)


class InternalFailureError(StorefrontError):
  """Raised when a database operation fails."""

  def __init__(
      self,
      message: str = "Internal Server Error",
      code: str = "INTERNAL_FAILURE",
      details: Optional[Any] = None,
  ):
    super().__init__(message, code=code, status_code=500, details=details)


class OrderCreationFailedError(InternalFailureError):

  def __init__(self, details: Optional[Any] = None):
    super().__init__(
        "Failed to create order", code="ORDER_CREATION_FAILED", details=details
    )


class InvalidTransitionError(StorefrontError):
  """Raised when an order status change is not in the transition table."""

  def __init__(self, message: str):
    super().__init__(message, code="INVALID_TRANSITION", status_code=409)
