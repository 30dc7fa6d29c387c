"""
Read-only analysis queries over the cleaned tables and views.

Each helper runs one statement against the store and returns a DataFrame.
They cover filtering, sorting, grouping, joins, subqueries and aggregates,
plus a data-quality profile used before and after cleaning.
"""

import sqlite3
from typing import Dict

import pandas as pd

from .gold import CUSTOMER_LINK_COLUMN
from .schemas import CUSTOMER_TABLE, SHIPMENT_DEDUP_COLUMNS, SHIPPING_TABLE


# Data quality

def data_quality_profile(conn: sqlite3.Connection) -> Dict[str, int]:
    """
    Count missing and duplicated values the cleaner is responsible for.

    Blank strings count as missing, so the profile can be taken on the raw
    staging tables as well as on cleaned ones.
    """
    customers = conn.execute(f"""
        SELECT
            SUM(CASE WHEN Income IS NULL OR TRIM(Income) = '' THEN 1 ELSE 0 END),
            SUM(CASE WHEN Dt_Customer IS NULL OR TRIM(Dt_Customer) = '' THEN 1 ELSE 0 END)
        FROM {CUSTOMER_TABLE}
    """).fetchone()
    shipments = conn.execute(f"""
        SELECT
            SUM(CASE WHEN Warehouse_block = '' OR Warehouse_block IS NULL THEN 1 ELSE 0 END),
            SUM(CASE WHEN Mode_of_Shipment = '' OR Mode_of_Shipment IS NULL THEN 1 ELSE 0 END),
            SUM(CASE WHEN Product_importance = '' OR Product_importance IS NULL THEN 1 ELSE 0 END),
            SUM(CASE WHEN Gender = '' OR Gender IS NULL THEN 1 ELSE 0 END)
        FROM {SHIPPING_TABLE}
    """).fetchone()
    duplicates = len(duplicate_shipment_groups(conn))
    values = {
        "missing_income": customers[0],
        "missing_dates": customers[1],
        "missing_warehouse": shipments[0],
        "missing_mode": shipments[1],
        "missing_importance": shipments[2],
        "missing_gender": shipments[3],
        "duplicate_shipment_groups": duplicates,
    }
    # SUM over an empty table is NULL
    return {name: int(value or 0) for name, value in values.items()}


def duplicate_shipment_groups(conn: sqlite3.Connection) -> pd.DataFrame:
    """Groups of shipments sharing all dedup fields, with their size."""
    group_by = ", ".join(SHIPMENT_DEDUP_COLUMNS)
    return pd.read_sql(f"""
        SELECT {group_by}, COUNT(*) AS cnt
        FROM {SHIPPING_TABLE}
        GROUP BY {group_by}
        HAVING COUNT(*) > 1
    """, conn)


# Select, filter, sort, group

def first_customers(conn: sqlite3.Connection, limit: int = 10) -> pd.DataFrame:
    return pd.read_sql(
        f"SELECT ID, Education, Income FROM {CUSTOMER_TABLE} ORDER BY ID LIMIT ?",
        conn, params=(limit,),
    )


def customers_with_income_above(conn: sqlite3.Connection, threshold: float = 100000) -> pd.DataFrame:
    return pd.read_sql(
        f"SELECT ID, Income, Marital_Status FROM {CUSTOMER_TABLE} WHERE Income > ? ORDER BY ID",
        conn, params=(threshold,),
    )


def top_wine_spenders(conn: sqlite3.Connection, limit: int = 10) -> pd.DataFrame:
    return pd.read_sql(
        f"SELECT ID, MntWines FROM {CUSTOMER_TABLE} ORDER BY MntWines DESC, ID LIMIT ?",
        conn, params=(limit,),
    )


def customers_per_education(conn: sqlite3.Connection) -> pd.DataFrame:
    return pd.read_sql(f"""
        SELECT Education, COUNT(*) AS total_customers
        FROM {CUSTOMER_TABLE}
        GROUP BY Education
        ORDER BY Education
    """, conn)


# Joins

def customer_shipments(conn: sqlite3.Connection, limit: int = 20) -> pd.DataFrame:
    """Inner join: customers that have at least one shipment."""
    return pd.read_sql(f"""
        SELECT c.ID, c.Income, s.Mode_of_Shipment
        FROM {CUSTOMER_TABLE} c
        INNER JOIN {SHIPPING_TABLE} s
        ON c.ID = s.{CUSTOMER_LINK_COLUMN}
        ORDER BY c.ID, s.id
        LIMIT ?
    """, conn, params=(limit,))


def all_customers_with_shipments(conn: sqlite3.Connection) -> pd.DataFrame:
    """Left join: every customer, with NULL shipment mode when they have none."""
    return pd.read_sql(f"""
        SELECT c.ID, c.Education, s.Mode_of_Shipment
        FROM {CUSTOMER_TABLE} c
        LEFT JOIN {SHIPPING_TABLE} s
        ON c.ID = s.{CUSTOMER_LINK_COLUMN}
        ORDER BY c.ID, s.id
    """, conn)


def all_shipments_with_customers(conn: sqlite3.Connection) -> pd.DataFrame:
    """
    Every shipment with its customer's income (NULL when the link does not resolve).

    Written as a LEFT JOIN from shipments, which is the same as a RIGHT JOIN
    from customers and works on SQLite builds without RIGHT JOIN support.
    """
    return pd.read_sql(f"""
        SELECT s.id AS shipment_id, s.Mode_of_Shipment, c.Income
        FROM {SHIPPING_TABLE} s
        LEFT JOIN {CUSTOMER_TABLE} c
        ON s.{CUSTOMER_LINK_COLUMN} = c.ID
        ORDER BY s.id
    """, conn)


# Subqueries

def customers_above_average_income(conn: sqlite3.Connection) -> pd.DataFrame:
    return pd.read_sql(f"""
        SELECT ID, Income
        FROM {CUSTOMER_TABLE}
        WHERE Income > (SELECT AVG(Income) FROM {CUSTOMER_TABLE})
        ORDER BY ID
    """, conn)


def shipments_above_average_discount(conn: sqlite3.Connection) -> pd.DataFrame:
    return pd.read_sql(f"""
        SELECT id, Discount_offered
        FROM {SHIPPING_TABLE}
        WHERE Discount_offered > (SELECT AVG(Discount_offered) FROM {SHIPPING_TABLE})
        ORDER BY id
    """, conn)


def top_wine_customers(conn: sqlite3.Connection) -> pd.DataFrame:
    """Customer(s) whose wine spend equals the maximum."""
    return pd.read_sql(f"""
        SELECT ID, MntWines
        FROM {CUSTOMER_TABLE}
        WHERE MntWines = (SELECT MAX(MntWines) FROM {CUSTOMER_TABLE})
        ORDER BY ID
    """, conn)


# Aggregates

def revenue_proxy(conn: sqlite3.Connection) -> pd.DataFrame:
    """Wine + meat + gold spend per customer, highest first."""
    return pd.read_sql(f"""
        SELECT
            ID,
            (MntWines + MntMeatProducts + MntGoldProds) AS Total_Spending
        FROM {CUSTOMER_TABLE}
        ORDER BY Total_Spending DESC, ID
    """, conn)


def average_shipment_weight(conn: sqlite3.Connection) -> float:
    return conn.execute(f"SELECT AVG(Weight_in_gms) FROM {SHIPPING_TABLE}").fetchone()[0]


def shipments_per_mode(conn: sqlite3.Connection) -> pd.DataFrame:
    return pd.read_sql(f"""
        SELECT Mode_of_Shipment, COUNT(*) AS total_shipments
        FROM {SHIPPING_TABLE}
        GROUP BY Mode_of_Shipment
        ORDER BY Mode_of_Shipment
    """, conn)
