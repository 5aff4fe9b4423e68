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

"""Coupon validation route."""

import dependencies
from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from models import CouponResponse
from models import CouponValidationRequest
from services.coupon_service import CouponService

router = APIRouter(tags=["coupons"])


@router.post(
    "/coupons/validate",
    response_model=CouponResponse,
    operation_id="validate_coupon",
)
async def validate_coupon(
    coupon_req: CouponValidationRequest = Body(...),
    coupon_service: CouponService = Depends(dependencies.get_coupon_service),
) -> CouponResponse:
  """Validate a coupon code against a cart subtotal."""
  coupon = await coupon_service.validate(
      coupon_req.coupon_code, coupon_req.subtotal
  )
  return CouponResponse.model_validate(coupon)
