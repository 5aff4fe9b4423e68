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

"""Database initialization script for the storefront server.

This script imports catalog variants, coupons and auth sessions from CSV
files into the configured SQLite databases. It clears any existing rows in
those tables before populating them, and leaves orders and the shipping quote
cache untouched.

Usage:
  uv run import_csv.py --products_db_path=... --transactions_db_path=...
  --data_dir=...
"""

import asyncio
import csv
import logging
import os
from typing import Optional

from absl import app as absl_app
from absl import flags
import db
from db import AuthSession
from db import Coupon
from db import Variant
from sqlalchemy import delete

FLAGS = flags.FLAGS
flags.DEFINE_string("products_db_path", "products.db", "Path to products DB")
flags.DEFINE_string(
    "transactions_db_path", "transactions.db", "Path to transactions DB"
)
flags.DEFINE_string(
    "data_dir",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "data"),
    "Directory containing variants.csv, coupons.csv and auth_sessions.csv",
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _optional_float(value: Optional[str]) -> Optional[float]:
  return float(value) if value else None


def _optional_int(value: Optional[str]) -> Optional[int]:
  return int(value) if value else None


def _parse_bool(value: Optional[str]) -> bool:
  return (value or "true").strip().lower() in ("1", "true", "yes")


def _read_rows(path: str):
  with open(path, "r", encoding="utf-8") as f:
    return list(csv.DictReader(f))


async def import_csv_data() -> None:
  """Reads CSV files and populates the database."""
  data_dir = FLAGS.data_dir
  # Ensure tables exist
  await db.manager.init_dbs(FLAGS.products_db_path, FLAGS.transactions_db_path)

  try:
    async with db.manager.products_session_factory() as session:
      logger.info("Clearing existing variants...")
      await session.execute(delete(Variant))

      logger.info("Importing Variants from CSV...")
      variants = [
          Variant(
              id=int(row["id"]),
              product_id=int(row["product_id"]),
              name=row["name"],
              price=float(row["price"]),
              weight_g=_optional_int(row.get("weight_g")),
              color=row.get("color") or None,
              size=row.get("size") or None,
          )
          for row in _read_rows(os.path.join(data_dir, "variants.csv"))
      ]
      session.add_all(variants)
      await session.commit()
      logger.info("Imported %d variants", len(variants))

    async with db.manager.transactions_session_factory() as session:
      logger.info("Clearing existing coupons...")
      await session.execute(delete(Coupon))

      logger.info("Importing Coupons from CSV...")
      coupons_path = os.path.join(data_dir, "coupons.csv")
      if os.path.exists(coupons_path):
        coupons = [
            Coupon(
                code=row["code"].strip().upper(),
                type=row["type"],
                value=float(row.get("value") or 0),
                description=row.get("description") or None,
                min_subtotal=_optional_float(row.get("min_subtotal")),
                max_uses=_optional_int(row.get("max_uses")),
                used_count=int(row.get("used_count") or 0),
                ends_at=row.get("ends_at") or None,
                is_active=_parse_bool(row.get("is_active")),
            )
            for row in _read_rows(coupons_path)
        ]
        session.add_all(coupons)
        logger.info("Imported %d coupons", len(coupons))

      logger.info("Clearing existing auth sessions...")
      await session.execute(delete(AuthSession))

      logger.info("Importing Auth Sessions from CSV...")
      sessions_path = os.path.join(data_dir, "auth_sessions.csv")
      if os.path.exists(sessions_path):
        auth_sessions = [
            AuthSession(
                access_token=row["access_token"],
                user_id=row["user_id"],
                expires_at=row.get("expires_at") or None,
            )
            for row in _read_rows(sessions_path)
        ]
        session.add_all(auth_sessions)

      await session.commit()

    logger.info("Database populated from CSVs.")
  finally:
    await db.manager.close()


def main(argv) -> None:
  """Main entry point for the CSV import script."""
  del argv
  asyncio.run(import_csv_data())


if __name__ == "__main__":
  absl_app.run(main)
