"""
Silver layer: in-place cleaning of the two staging tables.

Each rule is a targeted UPDATE/DELETE scoped to the rows that violate it, so
running the whole cleaner a second time changes nothing. Every rule step runs
in its own transaction; a failing step is rolled back and recorded, the
remaining independent steps still run, and the table is reported as
incompletely cleaned at the end.
"""

import sqlite3
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import UnknownCategoryPolicy
from .errors import CleaningError, CleaningIncomplete, EmptyAggregateDomain, UnrecognizedCategory
from .schemas import CUSTOMER_SCHEMA, SHIPMENT_DEDUP_COLUMNS, SHIPPING_SCHEMA, TableSchema

logger = logging.getLogger("ETL_Pipeline.SilverLayer")

# Characters stripped when deciding whether a raw value is a blank placeholder.
_BLANK_CHARS = "' ' || char(9) || char(10) || char(13)"


@dataclass(frozen=True)
class CategoricalRule:
    """
    Canonical vocabulary of one categorical field.

    Matching is case-insensitive and ignores surrounding whitespace. Each
    canonical value matches itself; ``variants`` adds known misspellings,
    keyed in lower case.
    """

    column: str
    canonical: Tuple[str, ...]
    variants: Dict[str, str] = field(default_factory=dict)

    def canonicalize(self, raw: Any) -> Optional[str]:
        """Return the canonical form of ``raw``, or None if it is not a known variant."""
        if raw is None:
            return None
        key = str(raw).strip().lower()
        for value in self.canonical:
            if value.lower() == key:
                return value
        return self.variants.get(key)


EDUCATION_RULE = CategoricalRule(
    "Education",
    ("Graduation", "Master", "PhD", "Basic", "2nd Cycle"),
    {"2n cycle": "2nd Cycle"},
)
MARITAL_STATUS_RULE = CategoricalRule(
    "Marital_Status",
    ("Single", "Married", "Divorced", "Together", "Widow"),
    {"singl": "Single", "widowed": "Widow"},
)
PRODUCT_IMPORTANCE_RULE = CategoricalRule("Product_importance", ("low", "medium", "high"))
SHIPMENT_MODE_RULE = CategoricalRule("Mode_of_Shipment", ("Ship", "Road", "Flight"))
WAREHOUSE_BLOCK_RULE = CategoricalRule("Warehouse_block", ("A", "B", "C", "D", "E", "F"))
GENDER_RULE = CategoricalRule("Gender", ("M", "F"))


@dataclass(frozen=True)
class CleaningPlan:
    """Which rules apply to which fields of one table."""

    schema: TableSchema
    fill_fields: Tuple[str, ...] = ()
    categorical_rules: Tuple[CategoricalRule, ...] = ()
    dedup_fields: Tuple[str, ...] = ()

    @property
    def table(self) -> str:
        return self.schema.name

    @property
    def nullable_fields(self) -> Tuple[str, ...]:
        return tuple(c for c in self.schema.column_names if c != self.schema.key)


CUSTOMER_PLAN = CleaningPlan(
    schema=CUSTOMER_SCHEMA,
    fill_fields=("Income",),
    categorical_rules=(EDUCATION_RULE, MARITAL_STATUS_RULE),
)

SHIPPING_PLAN = CleaningPlan(
    schema=SHIPPING_SCHEMA,
    categorical_rules=(PRODUCT_IMPORTANCE_RULE, SHIPMENT_MODE_RULE, WAREHOUSE_BLOCK_RULE, GENDER_RULE),
    dedup_fields=SHIPMENT_DEDUP_COLUMNS,
)


@dataclass
class CleaningReport:
    table: str
    nulls_normalized: Dict[str, int] = field(default_factory=dict)
    invalid_numeric: Dict[str, int] = field(default_factory=dict)
    filled: Dict[str, int] = field(default_factory=dict)
    fill_values: Dict[str, float] = field(default_factory=dict)
    canonicalized: Dict[str, int] = field(default_factory=dict)
    unrecognized: Dict[str, List[str]] = field(default_factory=dict)
    duplicates_removed: int = 0
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def total_changes(self) -> int:
        """Number of values rewritten plus rows removed."""
        return (
            sum(self.nulls_normalized.values())
            + sum(self.invalid_numeric.values())
            + sum(self.filled.values())
            + sum(self.canonicalized.values())
            + self.duplicates_removed
        )


def normalize_nulls(conn: sqlite3.Connection, table: str, column: str) -> int:
    """Rewrite empty or whitespace-only values of a column to NULL."""
    cursor = conn.execute(
        f"UPDATE {table} SET {column} = NULL "
        f"WHERE {column} IS NOT NULL AND TRIM({column}, {_BLANK_CHARS}) = ''"
    )
    return cursor.rowcount


def invalidate_non_numeric(conn: sqlite3.Connection, table: str, column: str) -> int:
    """Rewrite values that are not non-negative numbers to NULL."""
    cursor = conn.execute(
        f"UPDATE {table} SET {column} = NULL "
        f"WHERE {column} IS NOT NULL AND (typeof({column}) NOT IN ('integer', 'real') OR {column} < 0)"
    )
    return cursor.rowcount


def fill_with_mean(conn: sqlite3.Connection, table: str, column: str) -> Tuple[int, Optional[float]]:
    """
    Replace NULL values of a column with the mean of its present values.

    The mean is read once before anything is written, so it is the mean of the
    pre-fill population and never includes filled rows.

    Returns:
        Tuple of (rows filled, fill value); the fill value is None when nothing was missing

    Raises:
        EmptyAggregateDomain: Values are missing but none are present to average over
    """
    missing = conn.execute(f"SELECT COUNT(*) FROM {table} WHERE {column} IS NULL").fetchone()[0]
    if missing == 0:
        return 0, None

    mean = conn.execute(f"SELECT AVG({column}) FROM {table} WHERE {column} IS NOT NULL").fetchone()[0]
    if mean is None:
        raise EmptyAggregateDomain(table, column)

    cursor = conn.execute(f"UPDATE {table} SET {column} = ? WHERE {column} IS NULL", (mean,))
    return cursor.rowcount, mean


def canonicalize_field(
    conn: sqlite3.Connection,
    table: str,
    rule: CategoricalRule,
    policy: UnknownCategoryPolicy = UnknownCategoryPolicy.PASS_THROUGH,
) -> Tuple[int, List[str]]:
    """
    Rewrite known variants of a categorical field to their canonical value.

    Only raw values that differ from their canonical form are updated, one
    UPDATE per distinct raw value. Unrecognized values are left as they are
    unless the policy rejects them.

    Returns:
        Tuple of (rows rewritten, sorted unrecognized raw values)

    Raises:
        UnrecognizedCategory: Unrecognized values exist and the policy is REJECT
    """
    values = [row[0] for row in conn.execute(
        f"SELECT DISTINCT {rule.column} FROM {table} WHERE {rule.column} IS NOT NULL"
    )]

    rewrites = {}
    unrecognized = []
    for raw in values:
        canonical = rule.canonicalize(raw)
        if canonical is None:
            unrecognized.append(str(raw))
        elif canonical != raw:
            rewrites[raw] = canonical
    unrecognized.sort()

    if unrecognized:
        if policy is UnknownCategoryPolicy.REJECT:
            raise UnrecognizedCategory(table, rule.column, unrecognized)
        if policy is UnknownCategoryPolicy.LOG_AND_PASS_THROUGH:
            logger.warning(f"Keeping unrecognized {table}.{rule.column} values as-is: {unrecognized}")

    changed = 0
    for raw, canonical in rewrites.items():
        cursor = conn.execute(f"UPDATE {table} SET {rule.column} = ? WHERE {rule.column} = ?", (canonical, raw))
        changed += cursor.rowcount
    return changed, unrecognized


def remove_duplicates(conn: sqlite3.Connection, table: str, key: str, columns: Tuple[str, ...]) -> int:
    """
    Delete rows that repeat another row's values on ``columns``.

    The row with the smallest key in each group survives.
    """
    group_by = ", ".join(columns)
    cursor = conn.execute(
        f"DELETE FROM {table} WHERE {key} NOT IN "
        f"(SELECT MIN({key}) FROM {table} GROUP BY {group_by})"
    )
    return cursor.rowcount


def _run_step(
    conn: sqlite3.Connection,
    report: CleaningReport,
    step: str,
    func: Callable[..., Any],
    *args: Any,
) -> Tuple[bool, Any]:
    """Run one rule in its own transaction, recording a failure instead of raising."""
    try:
        with conn:
            return True, func(conn, *args)
    except (CleaningError, sqlite3.Error) as e:
        logger.error(f"Cleaning step {step} on {report.table} failed: {e}")
        report.failures[step] = str(e)
        return False, None


def clean_table(
    conn: sqlite3.Connection,
    plan: CleaningPlan,
    policy: UnknownCategoryPolicy = UnknownCategoryPolicy.PASS_THROUGH,
) -> CleaningReport:
    """
    Apply a cleaning plan to its table.

    Order: null normalization for every non-key field, numeric validation and
    mean fill for the fill fields, categorical canonicalization, duplicate
    removal. A fill is not attempted when normalization or validation of the
    same field failed.

    Args:
        conn: Open SQLite connection
        plan: Rules to apply
        policy: Handling of unrecognized categorical values

    Returns:
        CleaningReport with per-rule change counts

    Raises:
        CleaningIncomplete: At least one step failed; carries the report
    """
    table = plan.table
    report = CleaningReport(table=table)
    logger.info(f"Cleaning {table}...")

    for column in plan.nullable_fields:
        ok, count = _run_step(conn, report, f"normalize_nulls:{column}", normalize_nulls, table, column)
        if ok:
            report.nulls_normalized[column] = count
    normalized = sum(report.nulls_normalized.values())
    if normalized:
        logger.info(f"Converted {normalized} blank values to NULL in {table}")

    for column in plan.fill_fields:
        fill_step = f"fill_mean:{column}"
        if f"normalize_nulls:{column}" in report.failures:
            report.failures[fill_step] = f"blocked by failed normalize_nulls:{column}"
            continue

        ok, count = _run_step(conn, report, f"numeric_validity:{column}", invalidate_non_numeric, table, column)
        if not ok:
            report.failures[fill_step] = f"blocked by failed numeric_validity:{column}"
            continue
        report.invalid_numeric[column] = count
        if count:
            logger.warning(f"Discarded {count} non-numeric or negative {table}.{column} values")

        ok, result = _run_step(conn, report, fill_step, fill_with_mean, table, column)
        if ok:
            filled, value = result
            report.filled[column] = filled
            if filled:
                report.fill_values[column] = value
                logger.info(f"Filled {filled} missing {table}.{column} values with mean {value:.2f}")

    for rule in plan.categorical_rules:
        ok, result = _run_step(
            conn, report, f"canonicalize:{rule.column}", canonicalize_field, table, rule, policy
        )
        if ok:
            changed, unrecognized = result
            report.canonicalized[rule.column] = changed
            if unrecognized:
                report.unrecognized[rule.column] = unrecognized
            if changed:
                logger.info(f"Standardized {changed} {table}.{rule.column} values")

    if plan.dedup_fields:
        ok, removed = _run_step(
            conn, report, "remove_duplicates", remove_duplicates, table, plan.schema.key, plan.dedup_fields
        )
        if ok:
            report.duplicates_removed = removed
            if removed:
                logger.info(f"Removed {removed} duplicate rows from {table}")

    if report.failures:
        raise CleaningIncomplete(report)

    logger.info(f"Cleaned {table}: {report.total_changes} changes applied.")
    return report


def clean_customers(
    conn: sqlite3.Connection,
    policy: UnknownCategoryPolicy = UnknownCategoryPolicy.PASS_THROUGH,
) -> CleaningReport:
    return clean_table(conn, CUSTOMER_PLAN, policy)


def clean_shipments(
    conn: sqlite3.Connection,
    policy: UnknownCategoryPolicy = UnknownCategoryPolicy.PASS_THROUGH,
) -> CleaningReport:
    return clean_table(conn, SHIPPING_PLAN, policy)
