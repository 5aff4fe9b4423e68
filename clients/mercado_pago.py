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

"""Mercado Pago client for checkout preferences and payment lookups."""

import logging
from typing import Any, Dict, Optional, Union

from exceptions import UpstreamFailedError
import httpx
from pydantic import BaseModel
from pydantic import ValidationError

logger = logging.getLogger(__name__)


class TransactionData(BaseModel):
  qr_code_base64: Optional[str] = None


class PointOfInteraction(BaseModel):
  transaction_data: Optional[TransactionData] = None


class GatewayPreference(BaseModel):
  id: str
  init_point: str
  point_of_interaction: Optional[PointOfInteraction] = None

  @property
  def qr_code_base64(self) -> Optional[str]:
    if self.point_of_interaction and self.point_of_interaction.transaction_data:
      return self.point_of_interaction.transaction_data.qr_code_base64
    return None


class GatewayPayment(BaseModel):
  id: Union[int, str]
  status: Optional[str] = None
  external_reference: Optional[str] = None


class MercadoPagoClient:
  """Thin async client for the Mercado Pago REST API."""

  def __init__(
      self,
      api_url: str,
      access_token: str,
      timeout: float = 10.0,
      transport: Optional[httpx.AsyncBaseTransport] = None,
  ):
    self.api_url = api_url.rstrip("/")
    self.access_token = access_token
    self.timeout = timeout
    self._transport = transport

  async def _request(
      self, method: str, path: str, json: Optional[Dict[str, Any]] = None
  ) -> Any:
    url = f"{self.api_url}{path}"
    try:
      async with httpx.AsyncClient(
          transport=self._transport, timeout=self.timeout
      ) as client:
        response = await client.request(
            method,
            url,
            json=json,
            headers={"Authorization": f"Bearer {self.access_token}"},
        )
    except httpx.HTTPError as e:
      logger.error(
          "Network error calling Mercado Pago %s %s: %s", method, url, e
      )
      raise UpstreamFailedError() from e

    if not response.is_success:
      logger.error(
          "Mercado Pago %s %s responded with status %d: %s",
          method,
          url,
          response.status_code,
          response.text,
      )
      raise UpstreamFailedError()

    try:
      return response.json()
    except ValueError as e:
      logger.error("Failed to decode Mercado Pago response from %s: %s", url, e)
      raise UpstreamFailedError() from e

  async def create_preference(self, body: Dict[str, Any]) -> GatewayPreference:
    """Creates a checkout preference (hosted payment session)."""
    data = await self._request("POST", "/checkout/preferences", json=body)
    try:
      return GatewayPreference.model_validate(data)
    except ValidationError as e:
      logger.error("Failed to validate Mercado Pago preference: %s", e)
      raise UpstreamFailedError() from e

  async def get_payment(self, payment_id: str) -> GatewayPayment:
    """Fetches the authoritative state of a payment."""
    data = await self._request("GET", f"/v1/payments/{payment_id}")
    try:
      return GatewayPayment.model_validate(data)
    except ValidationError as e:
      logger.error(
          "Failed to validate Mercado Pago payment %s: %s", payment_id, e
      )
      raise UpstreamFailedError() from e
