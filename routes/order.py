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

"""Order routes: cart-to-order creation and order status lookup."""

import dependencies
from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from fastapi import Path
from models import OrderCreateRequest
from models import OrderCreateResponse
from models import OrderResponse
from services.order_service import OrderService

router = APIRouter(tags=["orders"])


@router.post(
    "/checkout/orders",
    response_model=OrderCreateResponse,
    status_code=201,
    operation_id="create_order",
)
async def create_order(
    order_req: OrderCreateRequest = Body(...),
    user: dependencies.AuthenticatedUser = Depends(
        dependencies.get_current_user
    ),
    order_service: OrderService = Depends(dependencies.get_order_service),
) -> OrderCreateResponse:
  """Create an order from the caller's cart."""
  order_id = await order_service.create_order(user.id, order_req)
  return OrderCreateResponse(order_id=order_id)


@router.get(
    "/orders/{id}",
    response_model=OrderResponse,
    operation_id="get_order",
)
async def get_order(
    order_id: str = Path(..., alias="id"),
    user: dependencies.AuthenticatedUser = Depends(
        dependencies.get_current_user
    ),
    order_service: OrderService = Depends(dependencies.get_order_service),
) -> OrderResponse:
  """Get one of the caller's orders with its items."""
  order = await order_service.get_order(user.id, order_id)
  return OrderResponse.model_validate(order)
