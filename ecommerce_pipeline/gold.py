"""
Gold layer: link shipments to customers and build the summary views.

The customer link on shipments is synthetic. Each shipment is pointed at a
customer picked by an assignment strategy (uniform random by default); it
exists only so the two tables can be joined, not to record a real purchase.
"""

import sqlite3
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import numpy as np
import pandas as pd

from .errors import ForeignKeyUnresolved
from .schemas import CUSTOMER_TABLE, SHIPPING_TABLE, SPENDING_COLUMNS

logger = logging.getLogger("ETL_Pipeline.GoldLayer")

CUSTOMER_LINK_COLUMN = "customer_id"

CUSTOMER_SPENDING_VIEW = "customer_spending_summary"
SHIPMENT_PERFORMANCE_VIEW = "shipment_performance"

VIEW_DEFINITIONS = {
    CUSTOMER_SPENDING_VIEW: f"""
        CREATE VIEW {CUSTOMER_SPENDING_VIEW} AS
        SELECT
            ID,
            Income,
            ({' + '.join(SPENDING_COLUMNS)}) AS Total_Spending
        FROM {CUSTOMER_TABLE}
    """,
    SHIPMENT_PERFORMANCE_VIEW: f"""
        CREATE VIEW {SHIPMENT_PERFORMANCE_VIEW} AS
        SELECT
            Mode_of_Shipment,
            AVG(Discount_offered) AS avg_discount,
            AVG(Weight_in_gms) AS avg_weight,
            COUNT(*) AS total_shipments
        FROM {SHIPPING_TABLE}
        GROUP BY Mode_of_Shipment
    """,
}

# index name -> (table, column)
INDEX_DEFINITIONS = {
    "idx_customer_id": (SHIPPING_TABLE, CUSTOMER_LINK_COLUMN),
    "idx_income": (CUSTOMER_TABLE, "Income"),
    "idx_mode": (SHIPPING_TABLE, "Mode_of_Shipment"),
}

AssignmentStrategy = Callable[[Sequence[int], Sequence[int]], List[int]]


class RandomCustomerAssignment:
    """
    Pick a customer for every shipment uniformly at random, with replacement.

    Args:
        seed: Seed for the random generator; None draws fresh entropy each run
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def __call__(self, shipment_ids: Sequence[int], customer_ids: Sequence[int]) -> List[int]:
        if not shipment_ids:
            return []
        # Draw positions, not values: numpy would coerce mixed-type keys to one dtype
        positions = self._rng.integers(0, len(customer_ids), size=len(shipment_ids))
        return [customer_ids[i] for i in positions]


class MappingCustomerAssignment:
    """Assign customers through an explicit shipment id -> customer id function."""

    def __init__(self, mapping: Callable[[int], int]):
        self.mapping = mapping

    def __call__(self, shipment_ids: Sequence[int], customer_ids: Sequence[int]) -> List[int]:
        return [self.mapping(shipment_id) for shipment_id in shipment_ids]


@dataclass
class ReconcileReport:
    shipments_linked: int
    distinct_customers_linked: int
    views: List[str]
    indexes: List[str]


def ensure_customer_link_column(conn: sqlite3.Connection) -> bool:
    """
    Add the customer_id column to the shipping table if it is missing.

    Returns:
        True if the column was added, False if it already existed
    """
    columns = [row[1] for row in conn.execute(f"PRAGMA table_info({SHIPPING_TABLE})")]
    if CUSTOMER_LINK_COLUMN in columns:
        return False
    conn.execute(f"ALTER TABLE {SHIPPING_TABLE} ADD COLUMN {CUSTOMER_LINK_COLUMN} INTEGER")
    logger.info(f"Added {CUSTOMER_LINK_COLUMN} column to {SHIPPING_TABLE}")
    return True


def _plain_key(key):
    """Unwrap numpy scalars so sqlite3 binds them as numbers rather than BLOBs."""
    if isinstance(key, np.generic):
        return key.item()
    return key


def assign_customer_ids(conn: sqlite3.Connection, strategy: Optional[AssignmentStrategy] = None) -> int:
    """
    Point every shipment at an existing customer.

    Args:
        conn: Open SQLite connection
        strategy: Assignment strategy (default: unseeded RandomCustomerAssignment)

    Returns:
        Number of shipments linked

    Raises:
        ForeignKeyUnresolved: There are shipments but no customers, or the
            strategy returned a key that is not a customer
    """
    strategy = strategy or RandomCustomerAssignment()
    with conn:
        # ALTER TABLE must be inside the transaction so a failed link drops the new column too
        if not conn.in_transaction:
            conn.execute("BEGIN TRANSACTION")
        ensure_customer_link_column(conn)
        customer_ids = [row[0] for row in conn.execute(f"SELECT ID FROM {CUSTOMER_TABLE} ORDER BY ID")]
        shipment_ids = [row[0] for row in conn.execute(f"SELECT id FROM {SHIPPING_TABLE} ORDER BY id")]

        if not shipment_ids:
            logger.info("No shipments to link to customers.")
            return 0
        if not customer_ids:
            raise ForeignKeyUnresolved(
                f"Cannot link {len(shipment_ids)} shipments: {CUSTOMER_TABLE} is empty"
            )

        assigned = strategy(shipment_ids, customer_ids)
        if len(assigned) != len(shipment_ids):
            raise ForeignKeyUnresolved(
                f"Assignment strategy returned {len(assigned)} customer ids for {len(shipment_ids)} shipments"
            )
        assigned = [_plain_key(key) for key in assigned]
        known = set(customer_ids)
        unknown = sorted({
            repr(key) for key in assigned
            if isinstance(key, bool) or not isinstance(key, (int, float, str)) or key not in known
        })
        if unknown:
            raise ForeignKeyUnresolved(
                f"Assigned customer ids not present in {CUSTOMER_TABLE}: {', '.join(unknown[:10])}"
            )

        conn.executemany(
            f"UPDATE {SHIPPING_TABLE} SET {CUSTOMER_LINK_COLUMN} = ? WHERE id = ?",
            zip(assigned, shipment_ids),
        )

    logger.info(f"Linked {len(shipment_ids)} shipments to {len(set(assigned))} distinct customers.")
    return len(shipment_ids)


def create_views(conn: sqlite3.Connection) -> List[str]:
    """
    (Re)define the summary views.

    Views are stored queries: selecting from them always reflects the current
    contents of the base tables.
    """
    with conn:
        for name, definition in VIEW_DEFINITIONS.items():
            conn.execute(f"DROP VIEW IF EXISTS {name}")
            conn.execute(definition)
    logger.info(f"Created views: {', '.join(VIEW_DEFINITIONS)}")
    return list(VIEW_DEFINITIONS)


def create_indexes(conn: sqlite3.Connection) -> List[str]:
    """
    Create the lookup indexes for the join, income filter and mode grouping.
    """
    with conn:
        for name, (table, column) in INDEX_DEFINITIONS.items():
            conn.execute(f"CREATE INDEX IF NOT EXISTS {name} ON {table}({column})")
    logger.info(f"Created indexes: {', '.join(INDEX_DEFINITIONS)}")
    return list(INDEX_DEFINITIONS)


def list_indexes(conn: sqlite3.Connection, table: str) -> pd.DataFrame:
    """
    List the indexes defined on a table.

    Returns:
        DataFrame with columns index_name, is_unique, origin and columns
        (comma-separated indexed column names)
    """
    records = []
    for _, name, unique, origin, _partial in conn.execute(f"PRAGMA index_list({table})").fetchall():
        columns = [row[2] for row in conn.execute(f"PRAGMA index_info('{name}')").fetchall()]
        records.append({
            "index_name": name,
            "is_unique": bool(unique),
            "origin": origin,
            "columns": ", ".join(columns),
        })
    return pd.DataFrame(records, columns=["index_name", "is_unique", "origin", "columns"])


def read_customer_spending_summary(conn: sqlite3.Connection) -> pd.DataFrame:
    return pd.read_sql(f"SELECT * FROM {CUSTOMER_SPENDING_VIEW} ORDER BY ID", conn)


def read_shipment_performance(conn: sqlite3.Connection) -> pd.DataFrame:
    return pd.read_sql(f"SELECT * FROM {SHIPMENT_PERFORMANCE_VIEW} ORDER BY Mode_of_Shipment", conn)


def reconcile(
    conn: sqlite3.Connection,
    strategy: Optional[AssignmentStrategy] = None,
    build_indexes: bool = True,
) -> ReconcileReport:
    """
    Run the gold layer: link shipments, build the views and the indexes.

    Args:
        conn: Open SQLite connection
        strategy: Customer assignment strategy (default: unseeded random)
        build_indexes: Whether to create the lookup indexes

    Returns:
        ReconcileReport summarising the stage
    """
    linked = assign_customer_ids(conn, strategy)
    distinct = conn.execute(
        f"SELECT COUNT(DISTINCT {CUSTOMER_LINK_COLUMN}) FROM {SHIPPING_TABLE}"
    ).fetchone()[0]
    views = create_views(conn)
    indexes = create_indexes(conn) if build_indexes else []
    return ReconcileReport(
        shipments_linked=linked,
        distinct_customers_linked=distinct,
        views=views,
        indexes=indexes,
    )
