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

"""Melhor Envio shipment calculation client.

Only the rate lookup used by the shipping quote service is implemented. Any
failure (network error, non-success status, unexpected payload) is reported
as `UpstreamDegradedError` so the caller can fall back to local options.
"""

from typing import List, Optional, Union

from exceptions import UpstreamDegradedError
import httpx
from pydantic import BaseModel
from pydantic import Field
from pydantic import TypeAdapter
from pydantic import ValidationError


USER_AGENT = "Storefront Checkout (contato@loja.com)"

# Fixed package dimensions in centimeters.
PACKAGE_WIDTH_CM = 15
PACKAGE_HEIGHT_CM = 5
PACKAGE_LENGTH_CM = 20


class CarrierQuote(BaseModel):
  """One service returned by the calculate endpoint."""

  id: Union[int, str]
  name: str
  price: Optional[float] = Field(default=None, ge=0)
  delivery_time: Optional[int] = Field(default=None, ge=0)
  error: Optional[str] = None

  @property
  def is_usable(self) -> bool:
    return (
        not self.error
        and self.price is not None
        and self.delivery_time is not None
    )


_QUOTES = TypeAdapter(List[CarrierQuote])


class MelhorEnvioClient:
  """Thin async client for the Melhor Envio rate calculation API."""

  def __init__(
      self,
      api_url: str,
      api_token: str,
      timeout: float = 10.0,
      transport: Optional[httpx.AsyncBaseTransport] = None,
  ):
    self.api_url = api_url
    self.api_token = api_token
    self.timeout = timeout
    self._transport = transport

  async def calculate(
      self,
      origin_postal_code: str,
      destination_postal_code: str,
      weight_g: int,
  ) -> List[CarrierQuote]:
    """Requests rates for a single package.

    Args:
      origin_postal_code: Postal code the package ships from.
      destination_postal_code: Postal code of the buyer.
      weight_g: Total package weight in grams.

    Returns:
      The quotes in the order the carrier returned them, errored ones
      included.

    Raises:
      UpstreamDegradedError: If the carrier cannot be reached or answers
        with something other than a list of quotes.
    """
    payload = {
        "from": {"postal_code": origin_postal_code},
        "to": {"postal_code": destination_postal_code},
        "package": {
            "weight": round(weight_g / 1000, 2),
            "width": PACKAGE_WIDTH_CM,
            "height": PACKAGE_HEIGHT_CM,
            "length": PACKAGE_LENGTH_CM,
        },
    }
    headers = {
        "Accept": "application/json",
        "Authorization": f"Bearer {self.api_token}",
        "User-Agent": USER_AGENT,
    }

    try:
      async with httpx.AsyncClient(
          transport=self._transport, timeout=self.timeout
      ) as client:
        response = await client.post(
            self.api_url, json=payload, headers=headers
        )
    except httpx.HTTPError as e:
      raise UpstreamDegradedError(f"Melhor Envio request failed: {e}") from e

    if not response.is_success:
      raise UpstreamDegradedError(
          f"Melhor Envio API responded with status {response.status_code}"
      )

    try:
      return _QUOTES.validate_python(response.json())
    except (ValueError, ValidationError) as e:
      raise UpstreamDegradedError(
          f"Unexpected Melhor Envio response: {e}"
      ) from e
