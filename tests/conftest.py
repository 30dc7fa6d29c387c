"""Pytest configuration and shared fixtures."""

import csv
import sqlite3
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

# Ensure project root is on sys.path to allow `import ecommerce_pipeline`, `import utils`, etc.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from ecommerce_pipeline.schemas import CUSTOMER_SCHEMA, SHIPPING_SCHEMA  # noqa: E402


def customer_row(**overrides: Any) -> Dict[str, Any]:
    """A complete, already clean customer row; keyword arguments replace fields."""
    row = {name: 0 for name in CUSTOMER_SCHEMA.column_names}
    row.update({
        "ID": 1,
        "Year_Birth": 1970,
        "Education": "Graduation",
        "Marital_Status": "Single",
        "Income": 50000,
        "Dt_Customer": "2013-05-04",
        "Recency": 10,
        "Z_CostContact": 3,
        "Z_Revenue": 11,
    })
    row.update(overrides)
    return row


def shipment_row(**overrides: Any) -> Dict[str, Any]:
    """A complete, already clean shipment row without an id; keyword arguments replace fields."""
    row = {
        "Customer_care_calls": 4,
        "Customer_rating": 3,
        "Prior_purchases": 3,
        "Discount_offered": 10,
        "Weight_in_gms": 1200,
        "Warehouse_block": "A",
        "Mode_of_Shipment": "Ship",
        "Product_importance": "low",
        "Gender": "F",
        "Class": 1,
    }
    row.update(overrides)
    return row


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "ecommerce_analysis.db"


@pytest.fixture
def conn(db_path: Path):
    """Open SQLite connection to a fresh database file."""
    connection = sqlite3.connect(db_path)
    yield connection
    connection.close()


@pytest.fixture
def write_csv(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing rows to a CSV file under tmp_path and returning its path."""

    def _write(name: str, rows: List[Dict[str, Any]], fieldnames: Optional[List[str]] = None) -> Path:
        path = tmp_path / name
        if fieldnames is None:
            fieldnames = list(rows[0]) if rows else []
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            writer.writerows(rows)
        return path

    return _write


@pytest.fixture
def load_customers(conn, write_csv) -> Callable[[List[Dict[str, Any]]], None]:
    """Load customer rows into the customer_data staging table."""
    from ecommerce_pipeline.bronze import ingest_customers

    def _load(rows: List[Dict[str, Any]]) -> None:
        ingest_customers(conn, str(write_csv("customers.csv", rows, list(CUSTOMER_SCHEMA.column_names))))

    return _load


@pytest.fixture
def load_shipments(conn, write_csv) -> Callable[[List[Dict[str, Any]]], None]:
    """Load shipment rows into the shipping_ecommerce staging table.

    Rows carrying an "id" key keep it; otherwise ids are assigned in order.
    """
    from ecommerce_pipeline.bronze import ingest_shipments

    def _load(rows: List[Dict[str, Any]]) -> None:
        columns = list(SHIPPING_SCHEMA.required_columns)
        if rows and "id" in rows[0]:
            columns = ["id"] + columns
        ingest_shipments(conn, str(write_csv("shipments.csv", rows, columns)))

    return _load
