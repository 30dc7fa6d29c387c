import os
from datetime import datetime, timedelta
from typing import Optional

import numpy as np
import pandas as pd

# Raw spellings seen in the source extracts, canonical and not.
EDUCATION_VALUES = ["Graduation", "GRADUATION", "graduation", "Master", "master", "PhD", "phd",
                    "Basic", "2n Cycle", "2nd cycle", "2N cycle"]
MARITAL_VALUES = ["Single", "single", "singl", "Married", "MARRIED", "Divorced", "Together",
                  "Widow", "widowed", "Alone", "YOLO"]
IMPORTANCE_VALUES = ["low", "Low", "LOW", "medium", "Medium", "high", "HIGH"]
MODE_VALUES = ["Ship", "SHIP", "ship", "Road", "road", "Flight", "FLIGHT"]
BLOCK_VALUES = ["A", "a", "B", "b", "C", "D", "d", "F", "f"]
GENDER_VALUES = ["M", "m", "F", "f"]


def generate_customer_data(num_records: int = 500, rng: Optional[np.random.Generator] = None,
                           blank_income_rate: float = 0.02):
    rng = rng or np.random.default_rng()
    records = []
    start = datetime(2012, 7, 30)
    for customer_id in rng.choice(np.arange(1, 100000), size=num_records, replace=False):
        income = "" if rng.random() < blank_income_rate else str(int(rng.integers(1730, 162397)))
        record = {
            "ID": int(customer_id),
            "Year_Birth": int(rng.integers(1940, 2000)),
            "Education": rng.choice(EDUCATION_VALUES),
            "Marital_Status": rng.choice(MARITAL_VALUES),
            "Income": income,
            "Kidhome": int(rng.integers(0, 3)),
            "Teenhome": int(rng.integers(0, 3)),
            "Dt_Customer": (start + timedelta(days=int(rng.integers(0, 700)))).strftime("%Y-%m-%d"),
            "Recency": int(rng.integers(0, 100)),
            "MntWines": int(rng.integers(0, 1500)),
            "MntFruits": int(rng.integers(0, 200)),
            "MntMeatProducts": int(rng.integers(0, 1700)),
            "MntFishProducts": int(rng.integers(0, 260)),
            "MntSweetProducts": int(rng.integers(0, 260)),
            "MntGoldProds": int(rng.integers(0, 360)),
            "NumDealsPurchases": int(rng.integers(0, 16)),
            "NumWebPurchases": int(rng.integers(0, 28)),
            "NumCatalogPurchases": int(rng.integers(0, 29)),
            "NumStorePurchases": int(rng.integers(0, 14)),
            "NumWebVisitsMonth": int(rng.integers(0, 21)),
            "AcceptedCmp3": int(rng.integers(0, 2)),
            "AcceptedCmp4": int(rng.integers(0, 2)),
            "AcceptedCmp5": int(rng.integers(0, 2)),
            "AcceptedCmp1": int(rng.integers(0, 2)),
            "AcceptedCmp2": int(rng.integers(0, 2)),
            "Complain": int(rng.random() < 0.01),
            "Z_CostContact": 3,
            "Z_Revenue": 11,
            "Response": int(rng.integers(0, 2)),
        }
        records.append(record)
    return records


def generate_shipping_data(num_records: int = 1000, rng: Optional[np.random.Generator] = None,
                           duplicate_rate: float = 0.05):
    rng = rng or np.random.default_rng()
    records = []
    for _ in range(num_records):
        if records and rng.random() < duplicate_rate:
            # Same behavioural fields as an earlier shipment, different categorical spelling
            record = dict(records[int(rng.integers(0, len(records)))])
            record["Mode_of_Shipment"] = rng.choice(MODE_VALUES)
        else:
            record = {
                "Customer_care_calls": int(rng.integers(2, 8)),
                "Customer_rating": int(rng.integers(1, 6)),
                "Prior_purchases": int(rng.integers(2, 11)),
                "Discount_offered": int(rng.integers(1, 66)),
                "Weight_in_gms": int(rng.integers(1001, 7847)),
                "Warehouse_block": rng.choice(BLOCK_VALUES),
                "Mode_of_Shipment": rng.choice(MODE_VALUES),
                "Product_importance": rng.choice(IMPORTANCE_VALUES),
                "Gender": rng.choice(GENDER_VALUES),
                "Class": int(rng.integers(0, 2)),
            }
        records.append(record)
    return records


def write_sample_data(output_dir: str, num_customers: int = 500, num_shipments: int = 1000,
                      seed: Optional[int] = None):
    """Write customer_data.csv and shipping_ecommerce.csv into output_dir and return their paths."""
    rng = np.random.default_rng(seed)
    os.makedirs(output_dir, exist_ok=True)
    customers_file = os.path.join(output_dir, "customer_data.csv")
    shipments_file = os.path.join(output_dir, "shipping_ecommerce.csv")
    pd.DataFrame(generate_customer_data(num_customers, rng)).to_csv(customers_file, index=False)
    pd.DataFrame(generate_shipping_data(num_shipments, rng)).to_csv(shipments_file, index=False)
    return customers_file, shipments_file


if __name__ == "__main__":
    BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__)))
    output_dir = os.path.join(BASE_DIR, "data", "sample")
    customers_file, shipments_file = write_sample_data(output_dir)
    print(f"Generated CSV files at: {customers_file}, {shipments_file}")
