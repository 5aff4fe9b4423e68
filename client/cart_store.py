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

"""Client-local cart state persisted as a JSON blob.

The store only knows how to read, replace and clear the whole state. It
survives restarts of the client on the same machine; there is no
synchronization across devices.
"""

import logging
import os
import pathlib
import tempfile
from typing import List, Optional, Union

from enums import CouponType
from models import CartLine
from pydantic import BaseModel
from pydantic import ValidationError

logger = logging.getLogger(__name__)


class AppliedCoupon(BaseModel):
  """A coupon the server validated for this cart."""

  code: str
  type: CouponType
  value: float

  def discount_for(self, subtotal: float, shipping_cost: float) -> float:
    if self.type == CouponType.PERCENT:
      discount = subtotal * self.value / 100
    elif self.type == CouponType.FIXED:
      discount = self.value
    else:
      discount = shipping_cost
    return round(min(max(discount, 0), subtotal + shipping_cost), 2)


class CartState(BaseModel):
  items: List[CartLine] = []
  coupon: Optional[AppliedCoupon] = None

  @property
  def subtotal(self) -> float:
    return round(sum(line.price * line.quantity for line in self.items), 2)


class CartStore:
  """Reads and writes the cart state to a single JSON file."""

  def __init__(self, path: Union[str, pathlib.Path]):
    self.path = pathlib.Path(path)

  def get_state(self) -> CartState:
    if not self.path.exists():
      return CartState()
    try:
      return CartState.model_validate_json(self.path.read_text("utf-8"))
    except (OSError, ValidationError) as e:
      logger.warning("Discarding unreadable cart at %s: %s", self.path, e)
      return CartState()

  def set_state(self, state: CartState) -> None:
    self.path.parent.mkdir(parents=True, exist_ok=True)
    # Write to a sibling file first so a crash never leaves half a cart.
    fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
    try:
      with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(state.model_dump_json())
      os.replace(tmp_path, self.path)
    except OSError:
      os.unlink(tmp_path)
      raise

  def clear_state(self) -> None:
    self.set_state(CartState())
