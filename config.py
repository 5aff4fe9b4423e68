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

"""Shared configuration and startup logic for the storefront server.

Every setting is an absl flag whose default comes from the environment, so a
deployment can be configured with either `--flag=value` or the matching
environment variable.
"""

import contextlib
import os
from typing import List, Optional

from absl import flags
import db
from fastapi import FastAPI
from pydantic import BaseModel

FLAGS = flags.FLAGS

SERVER_VERSION = "1.0.0"

DEFAULT_MELHOR_ENVIO_URL = (
    "https://www.melhorenvio.com.br/api/v2/me/shipment/calculate"
)
DEFAULT_MERCADO_PAGO_URL = "https://api.mercadopago.com"


def _env_list(name: str) -> List[str]:
  return [v.strip() for v in os.environ.get(name, "").split(",") if v.strip()]


# Define flags only if they haven't been defined yet (to avoid duplicates
# during tests or re-imports)
try:
  flags.DEFINE_string("products_db_path", None, "Path to products DB")
  flags.DEFINE_string("transactions_db_path", None, "Path to transactions DB")
  flags.DEFINE_integer("port", None, "Port to run the server on")
  flags.DEFINE_string(
      "store_postal_code",
      os.environ.get("STORE_POSTAL_CODE", "01001000"),
      "Postal code shipments leave from",
  )
  flags.DEFINE_list(
      "pickup_postal_codes",
      _env_list("PICKUP_POSTAL_CODES"),
      "Postal codes eligible for in-store pickup",
  )
  flags.DEFINE_float(
      "free_shipping_subtotal",
      float(os.environ.get("FREE_SHIPPING_SUBTOTAL", "9999")),
      "Cart subtotal from which shipping is free",
  )
  flags.DEFINE_integer(
      "shipping_cache_ttl_minutes", 30, "Freshness window of cached quotes"
  )
  flags.DEFINE_string(
      "melhor_envio_api_url",
      os.environ.get("MELHOR_ENVIO_API_URL", DEFAULT_MELHOR_ENVIO_URL),
      "Melhor Envio shipment calculation endpoint",
  )
  flags.DEFINE_string(
      "melhor_envio_api_token",
      os.environ.get("MELHOR_ENVIO_API_TOKEN", ""),
      "Melhor Envio bearer token",
  )
  flags.DEFINE_string(
      "mercado_pago_api_url",
      os.environ.get("MERCADO_PAGO_API_URL", DEFAULT_MERCADO_PAGO_URL),
      "Mercado Pago API base URL",
  )
  flags.DEFINE_string(
      "mercado_pago_access_token",
      os.environ.get("MP_ACCESS_TOKEN", ""),
      "Mercado Pago access token",
  )
  flags.DEFINE_string(
      "base_url",
      os.environ.get("STOREFRONT_BASE_URL", ""),
      "Public base URL used to build redirect and webhook URLs",
  )
  flags.DEFINE_string("currency", "BRL", "Operating currency")
  flags.DEFINE_float(
      "upstream_timeout_seconds", 10.0, "Timeout for carrier/gateway calls"
  )
except flags.DuplicateFlagError:
  pass


class StoreSettings(BaseModel):
  """Snapshot of the flags consumed by the checkout services."""

  store_postal_code: str = "01001000"
  pickup_postal_codes: List[str] = []
  free_shipping_subtotal: float = 9999.0
  shipping_cache_ttl_minutes: int = 30
  melhor_envio_api_url: str = DEFAULT_MELHOR_ENVIO_URL
  melhor_envio_api_token: str = ""
  mercado_pago_api_url: str = DEFAULT_MERCADO_PAGO_URL
  mercado_pago_access_token: str = ""
  base_url: str = ""
  currency: str = "BRL"
  upstream_timeout_seconds: float = 10.0


def _flag(name: str):
  # Reading through the Flag object works before absl has parsed argv,
  # which is the case under test runners and ASGI hosts.
  return FLAGS[name].value


def get_settings() -> StoreSettings:
  """Builds the settings from the current flag values."""
  return StoreSettings(
      store_postal_code=_flag("store_postal_code"),
      pickup_postal_codes=list(_flag("pickup_postal_codes") or []),
      free_shipping_subtotal=_flag("free_shipping_subtotal"),
      shipping_cache_ttl_minutes=_flag("shipping_cache_ttl_minutes"),
      melhor_envio_api_url=_flag("melhor_envio_api_url"),
      melhor_envio_api_token=_flag("melhor_envio_api_token"),
      mercado_pago_api_url=_flag("mercado_pago_api_url"),
      mercado_pago_access_token=_flag("mercado_pago_access_token"),
      base_url=_flag("base_url"),
      currency=_flag("currency"),
      upstream_timeout_seconds=_flag("upstream_timeout_seconds"),
  )


def get_db_paths() -> tuple[Optional[str], Optional[str]]:
  return _flag("products_db_path"), _flag("transactions_db_path")


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
  """Shared lifespan manager for initializing databases."""
  del app  # Unused.
  # In tests or if flags aren't set, these might be None, handled by caller
  products_path, transactions_path = get_db_paths()
  if products_path and transactions_path:
    await db.manager.init_dbs(products_path, transactions_path)
  yield
  await db.manager.close()
