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

"""Storefront Checkout Server (Python/FastAPI)."""

import logging
import sys
from typing import Sequence

from absl import app as absl_app
import config
from exceptions import StorefrontError
from fastapi import FastAPI
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from routes.coupon import router as coupon_router
from routes.order import router as order_router
from routes.payment import router as payment_router
from routes.shipping import router as shipping_router
import uvicorn

# --- App Setup ---

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Storefront Checkout Service",
    version=config.SERVER_VERSION,
    description=(
        "Shipping quotes, coupon validation, order creation and Mercado Pago"
        " payment reconciliation for the storefront"
    ),
    lifespan=config.lifespan,
)


@app.exception_handler(StorefrontError)
async def storefront_exception_handler(request: Request, exc: StorefrontError):
  """Handles storefront exceptions and converts them to JSON responses."""
  del request  # Unused.
  content = {"detail": exc.message, "code": exc.code}
  if exc.details is not None:
    content["details"] = exc.details
  return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
):
  """Reports malformed request bodies as 400 VALIDATION_FAILED."""
  del request  # Unused.
  return JSONResponse(
      status_code=400,
      content={
          "detail": "Invalid request",
          "code": "VALIDATION_FAILED",
          "errors": jsonable_encoder(exc.errors()),
      },
  )


app.include_router(shipping_router)
app.include_router(coupon_router)
app.include_router(order_router)
app.include_router(payment_router)


def main(argv: Sequence[str]) -> None:
  """Main entry point for the storefront server."""
  del argv  # Unused.

  products_path, transactions_path = config.get_db_paths()
  if (
      products_path is None
      or transactions_path is None
      or config.FLAGS.port is None
  ):
    logger.error(
        "--products_db_path, --transactions_db_path, and --port must all be"
        " provided."
    )
    print("\nUsage:")
    print(config.FLAGS.main_module_help())
    sys.exit(1)

  uvicorn.run(app, host="0.0.0.0", port=config.FLAGS.port)


if __name__ == "__main__":
  absl_app.run(main)
