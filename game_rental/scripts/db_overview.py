#!/usr/bin/env python3
"""Database overview and integrity checks for the game rental store."""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

APP_DIR = Path(__file__).resolve().parents[1]
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from db.session import build_engine, init_db  # noqa: E402


EXPECTED_TABLES = [
    "Categories",
    "Games",
    "Customers",
    "Rentals",
]

EXPECTED_COLUMNS: dict[str, list[str]] = {
    "Categories": ["CategoryID", "Name"],
    "Games": ["GameID", "Name", "Image", "StockTotal", "CategoryID", "PricePerDay"],
    "Customers": ["CustomerID", "Name", "Phone", "Cpf", "Birthday"],
    "Rentals": [
        "RentalID",
        "CustomerID",
        "GameID",
        "RentDate",
        "DaysRented",
        "ReturnDate",
        "OriginalPrice",
        "DelayFee",
    ],
}

# name -> query counting offending rows
INTEGRITY_QUERIES: dict[str, tuple[list[str], str]] = {
    "games:negative_stock": (
        ["Games"],
        'SELECT COUNT(*) FROM "Games" WHERE "StockTotal" < 0',
    ),
    "rentals:open_with_delay_fee": (
        ["Rentals"],
        'SELECT COUNT(*) FROM "Rentals" WHERE "ReturnDate" IS NULL AND "DelayFee" IS NOT NULL',
    ),
    "rentals:returned_before_rented": (
        ["Rentals"],
        'SELECT COUNT(*) FROM "Rentals" WHERE "ReturnDate" IS NOT NULL AND "ReturnDate" < "RentDate"',
    ),
    "rentals:orphan_gameid": (
        ["Rentals", "Games"],
        """
        SELECT COUNT(*)
        FROM "Rentals" r
        LEFT JOIN "Games" g ON g."GameID" = r."GameID"
        WHERE g."GameID" IS NULL
        """,
    ),
    "rentals:orphan_customerid": (
        ["Rentals", "Customers"],
        """
        SELECT COUNT(*)
        FROM "Rentals" r
        LEFT JOIN "Customers" c ON c."CustomerID" = r."CustomerID"
        WHERE c."CustomerID" IS NULL
        """,
    ),
}


@dataclass
class CheckResult:
    name: str
    ok: bool
    detail: str


def _print_section(title: str) -> None:
    print(f"\n=== {title} ===")


def _scalar(engine: Engine, sql: str, params: dict | None = None):
    with engine.connect() as conn:
        return conn.execute(text(sql), params or {}).scalar()


def _rows(engine: Engine, sql: str, params: dict | None = None):
    with engine.connect() as conn:
        return conn.execute(text(sql), params or {}).all()


def _table_names(engine: Engine) -> set[str]:
    return set(inspect(engine).get_table_names())


def run_existence_checks(engine: Engine) -> list[CheckResult]:
    present = _table_names(engine)
    results: list[CheckResult] = []
    for table in EXPECTED_TABLES:
        exists = table in present
        results.append(CheckResult(f"table:{table}", exists, "present" if exists else "missing"))
    return results


def run_column_checks(engine: Engine) -> list[CheckResult]:
    present = _table_names(engine)
    inspector = inspect(engine)
    results: list[CheckResult] = []
    for table, expected in EXPECTED_COLUMNS.items():
        if table not in present:
            results.append(CheckResult(f"columns:{table}", False, "table missing"))
            continue
        actual = {column["name"] for column in inspector.get_columns(table)}
        missing = [name for name in expected if name not in actual]
        results.append(
            CheckResult(
                f"columns:{table}",
                not missing,
                "ok" if not missing else f"missing={','.join(missing)}",
            )
        )
    return results


def run_integrity_checks(engine: Engine) -> list[CheckResult]:
    present = _table_names(engine)
    checks: list[CheckResult] = []
    for name, (tables, sql) in INTEGRITY_QUERIES.items():
        if any(table not in present for table in tables):
            continue
        count = int(_scalar(engine, sql) or 0)
        checks.append(CheckResult(name, count == 0, f"count={count}"))
    return checks


def _print_results(title: str, rows: Iterable[CheckResult]) -> None:
    _print_section(title)
    for row in rows:
        status = "OK" if row.ok else "FAIL"
        print(f"[{status}] {row.name} :: {row.detail}")


def _print_row_counts(engine: Engine) -> None:
    _print_section("Row Counts")
    present = _table_names(engine)
    for table in EXPECTED_TABLES:
        if table not in present:
            print(f"{table}: missing")
            continue
        count = _scalar(engine, f'SELECT COUNT(*) FROM "{table}"')
        print(f"{table}: {int(count or 0)}")


def _print_stock_summary(engine: Engine, sample_size: int) -> None:
    _print_section("Stock vs Open Rentals")
    present = _table_names(engine)
    if "Games" not in present or "Rentals" not in present:
        print("Games/Rentals: missing")
        return
    rows = _rows(
        engine,
        """
        SELECT g."GameID", g."Name", g."StockTotal",
               (SELECT COUNT(*) FROM "Rentals" r
                 WHERE r."GameID" = g."GameID" AND r."ReturnDate" IS NULL) AS open_rentals
        FROM "Games" g
        ORDER BY g."GameID"
        LIMIT :n
        """,
        {"n": max(1, sample_size)},
    )
    for row in rows:
        print(f"  - {tuple(row)}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Game rental DB overview")
    parser.add_argument("--db-url", default=os.environ.get("GAME_RENTAL_DB_URL", ""))
    parser.add_argument("--samples", type=int, default=5)
    parser.add_argument("--create-schema", action="store_true", help="Create missing tables before checking.")
    args = parser.parse_args()

    db_url = (args.db_url or "").strip()
    if not db_url:
        print("GAME_RENTAL_DB_URL is not set. Provide --db-url or export env first.")
        return 2

    try:
        engine = build_engine(db_url)
        _scalar(engine, "SELECT 1")
        if args.create_schema:
            init_db(engine)
    except Exception as exc:
        print(f"Could not connect to DB: {exc}")
        return 3

    _print_results("Table Existence", run_existence_checks(engine))
    _print_results("Column Checks", run_column_checks(engine))
    _print_results("Integrity Checks", run_integrity_checks(engine))
    _print_row_counts(engine)
    _print_stock_summary(engine, args.samples)
    return 0


if __name__ == "__main__":
    sys.exit(main())
