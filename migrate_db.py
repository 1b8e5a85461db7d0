"""
One-time schema migration.

Creates any missing tables, then upgrades expense tables written by the
legacy schema, which tracked a boolean ``is_reimbursed`` instead of
``payment_status``. Running it again is a no-op.
"""

import logging

from sqlalchemy import inspect, text

from database import Base, engine
from schemas import PaymentStatus

logger = logging.getLogger(__name__)


def migrate_db(bind=None) -> int:
    """Returns the number of legacy expense rows that were backfilled."""
    bind = bind or engine
    Base.metadata.create_all(bind=bind)

    columns = {column["name"] for column in inspect(bind).get_columns("expenses")}
    if "is_reimbursed" not in columns or "payment_status" in columns:
        logger.info("No legacy expense columns to migrate")
        return 0

    with bind.begin() as conn:
        # DDL does not take bound parameters
        conn.execute(
            text(
                "ALTER TABLE expenses ADD COLUMN payment_status VARCHAR "
                f"NOT NULL DEFAULT '{PaymentStatus.PENDING.value}'"
            )
        )
        result = conn.execute(
            text(
                "UPDATE expenses SET payment_status = CASE "
                "WHEN is_reimbursed THEN :paid ELSE :pending END"
            ),
            {"paid": PaymentStatus.PAID.value, "pending": PaymentStatus.PENDING.value},
        )
    logger.info("Backfilled payment_status on %s expenses", result.rowcount)
    return result.rowcount


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    migrate_db()
