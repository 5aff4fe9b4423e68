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

"""Utility script to dump orders.

This script reads the orders from the configured transactions SQLite database
and outputs them to standard output in CSV format, oldest first.

Usage:
  uv run dump_orders.py --transactions_db_path=... [--status=paid]
"""

import asyncio
import csv
import sys

from absl import app as absl_app
from absl import flags
import db
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker

FLAGS = flags.FLAGS
flags.DEFINE_string("transactions_db_path", None, "Path to transactions DB")
flags.DEFINE_string("status", None, "Only dump orders in this status")

COLUMNS = [
    "id",
    "user_id",
    "status",
    "payment_status",
    "payment_id",
    "subtotal",
    "shipping_cost",
    "discount_total",
    "total",
    "coupon_code",
    "created_at",
    "updated_at",
]


async def dump_orders():
  """Queries the database and prints the orders."""
  if not FLAGS.transactions_db_path:
    print("Error: --transactions_db_path is required.")
    sys.exit(1)

  db_url = f"sqlite+aiosqlite:///{FLAGS.transactions_db_path}"
  engine = create_async_engine(db_url, echo=False)
  session_factory = sessionmaker(
      engine, expire_on_commit=False, class_=AsyncSession
  )

  try:
    async with session_factory() as session:
      orders = await db.list_orders(session)

      writer = csv.writer(sys.stdout)
      writer.writerow(COLUMNS)
      for order in orders:
        if FLAGS.status and order.status != FLAGS.status:
          continue
        writer.writerow([getattr(order, column) for column in COLUMNS])
  finally:
    await engine.dispose()


def main(argv):
  """Main entry point for the order dump script."""
  del argv
  asyncio.run(dump_orders())


if __name__ == "__main__":
  absl_app.run(main)
