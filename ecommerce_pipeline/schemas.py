"""
Table schemas for the two datasets.

Column names follow the source CSV headers exactly; the header of a file is
matched against these names to map values into the staging tables.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

CUSTOMER_TABLE = "customer_data"
SHIPPING_TABLE = "shipping_ecommerce"

SPENDING_COLUMNS = (
    "MntWines", "MntFruits", "MntMeatProducts",
    "MntFishProducts", "MntSweetProducts", "MntGoldProds",
)

SHIPMENT_DEDUP_COLUMNS = (
    "Customer_care_calls", "Customer_rating", "Prior_purchases",
    "Discount_offered", "Weight_in_gms",
)


@dataclass(frozen=True)
class TableSchema:
    """Name, key and ordered column types of a staging table."""

    name: str
    key: str
    columns: Dict[str, str]
    # A key column that may be absent from the source file and is then
    # assigned by the database.
    optional_key: bool = False

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(self.columns)

    @property
    def required_columns(self) -> Tuple[str, ...]:
        if self.optional_key:
            return tuple(c for c in self.columns if c != self.key)
        return self.column_names

    def create_statement(self) -> str:
        body = ",\n            ".join(f"{name} {sql_type}" for name, sql_type in self.columns.items())
        return f"""
        CREATE TABLE IF NOT EXISTS {self.name} (
            {body}
        )
        """


CUSTOMER_SCHEMA = TableSchema(
    name=CUSTOMER_TABLE,
    key="ID",
    columns={
        "ID": "INT NOT NULL PRIMARY KEY",
        "Year_Birth": "INTEGER",
        "Education": "TEXT",
        "Marital_Status": "TEXT",
        "Income": "REAL",
        "Kidhome": "INTEGER",
        "Teenhome": "INTEGER",
        "Dt_Customer": "TEXT",
        "Recency": "INTEGER",
        "MntWines": "INTEGER",
        "MntFruits": "INTEGER",
        "MntMeatProducts": "INTEGER",
        "MntFishProducts": "INTEGER",
        "MntSweetProducts": "INTEGER",
        "MntGoldProds": "INTEGER",
        "NumDealsPurchases": "INTEGER",
        "NumWebPurchases": "INTEGER",
        "NumCatalogPurchases": "INTEGER",
        "NumStorePurchases": "INTEGER",
        "NumWebVisitsMonth": "INTEGER",
        "AcceptedCmp3": "INTEGER",
        "AcceptedCmp4": "INTEGER",
        "AcceptedCmp5": "INTEGER",
        "AcceptedCmp1": "INTEGER",
        "AcceptedCmp2": "INTEGER",
        "Complain": "INTEGER",
        "Z_CostContact": "INTEGER",
        "Z_Revenue": "INTEGER",
        "Response": "INTEGER",
    },
)

SHIPPING_SCHEMA = TableSchema(
    name=SHIPPING_TABLE,
    key="id",
    columns={
        "id": "INTEGER PRIMARY KEY",
        "Customer_care_calls": "INTEGER",
        "Customer_rating": "INTEGER",
        "Prior_purchases": "INTEGER",
        "Discount_offered": "INTEGER",
        "Weight_in_gms": "INTEGER",
        "Warehouse_block": "TEXT",
        "Mode_of_Shipment": "TEXT",
        "Product_importance": "TEXT",
        "Gender": "TEXT",
        "Class": "INTEGER",
    },
    optional_key=True,
)
