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

"""Shipping quote route."""

from typing import List

import dependencies
from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from models import ShippingOption
from models import ShippingQuoteRequest
from services.shipping_service import ShippingQuoteService

router = APIRouter(tags=["shipping"])


@router.post(
    "/shipping/quote",
    response_model=List[ShippingOption],
    operation_id="quote_shipping",
)
async def quote_shipping(
    quote_req: ShippingQuoteRequest = Body(...),
    shipping_service: ShippingQuoteService = Depends(
        dependencies.get_shipping_service
    ),
) -> List[ShippingOption]:
  """Quote shipping options for a destination and a set of variants."""
  return await shipping_service.quote(quote_req.postal_code, quote_req.items)
