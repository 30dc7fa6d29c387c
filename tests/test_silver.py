"""Tests for the silver (cleaning) layer."""

import logging

import pandas as pd
import pytest

from conftest import customer_row, shipment_row
from ecommerce_pipeline.config import UnknownCategoryPolicy
from ecommerce_pipeline.errors import CleaningIncomplete, EmptyAggregateDomain
from ecommerce_pipeline.schemas import CUSTOMER_SCHEMA, SHIPPING_SCHEMA
from ecommerce_pipeline.silver import (
    EDUCATION_RULE,
    GENDER_RULE,
    MARITAL_STATUS_RULE,
    PRODUCT_IMPORTANCE_RULE,
    SHIPMENT_MODE_RULE,
    WAREHOUSE_BLOCK_RULE,
    CleaningPlan,
    clean_customers,
    clean_shipments,
    clean_table,
    fill_with_mean,
)


@pytest.mark.parametrize(
    "rule, raw, expected",
    [
        (EDUCATION_RULE, "GRADUATION", "Graduation"),
        (EDUCATION_RULE, "2N cycle", "2nd Cycle"),
        (EDUCATION_RULE, "2n Cycle", "2nd Cycle"),
        (EDUCATION_RULE, " phd ", "PhD"),
        (EDUCATION_RULE, "xyz", None),
        (MARITAL_STATUS_RULE, "singl", "Single"),
        (MARITAL_STATUS_RULE, "WIDOWED", "Widow"),
        (MARITAL_STATUS_RULE, "YOLO", None),
        (PRODUCT_IMPORTANCE_RULE, "HIGH", "high"),
        (SHIPMENT_MODE_RULE, "flight", "Flight"),
        (WAREHOUSE_BLOCK_RULE, "b", "B"),
        (GENDER_RULE, "m", "M"),
        (GENDER_RULE, None, None),
    ],
)
def test_categorical_rule_canonicalize(rule, raw, expected):
    assert rule.canonicalize(raw) == expected


def test_blank_values_become_null(conn, load_customers):
    load_customers([customer_row(ID=1, Dt_Customer="", Kidhome="")])

    clean_customers(conn)

    row = conn.execute("SELECT Dt_Customer, Kidhome FROM customer_data").fetchone()
    assert row == (None, None)


def test_no_blank_placeholders_remain(conn, load_customers):
    load_customers([
        customer_row(ID=1, Education="", Income=""),
        customer_row(ID=2, Marital_Status=" ", Income="70000", Dt_Customer=""),
    ])

    clean_customers(conn)

    for column in CUSTOMER_SCHEMA.column_names:
        blanks = conn.execute(
            f"SELECT COUNT(*) FROM customer_data WHERE TRIM({column}) = ''"
        ).fetchone()[0]
        assert blanks == 0, column


def test_income_filled_with_pre_fill_mean(conn, load_customers):
    load_customers([
        customer_row(ID=1, Income="100"),
        customer_row(ID=2, Income="200"),
        customer_row(ID=3, Income=""),
        customer_row(ID=4, Income=""),
    ])

    report = clean_customers(conn)

    incomes = dict(conn.execute("SELECT ID, Income FROM customer_data").fetchall())
    assert incomes[3] == pytest.approx(150.0)
    assert incomes[4] == pytest.approx(150.0)
    assert report.filled == {"Income": 2}
    assert report.fill_values["Income"] == pytest.approx(150.0)


def test_invalid_income_treated_as_missing(conn, load_customers):
    load_customers([
        customer_row(ID=1, Income="90"),
        customer_row(ID=2, Income="n/a"),
        customer_row(ID=3, Income="-5"),
    ])

    report = clean_customers(conn)

    incomes = dict(conn.execute("SELECT ID, Income FROM customer_data").fetchall())
    assert incomes == {1: 90.0, 2: 90.0, 3: 90.0}
    assert report.invalid_numeric == {"Income": 2}


def test_fill_without_present_values_raises(conn, load_customers):
    load_customers([customer_row(ID=1, Income="")])
    conn.execute("UPDATE customer_data SET Income = NULL")

    with pytest.raises(EmptyAggregateDomain):
        fill_with_mean(conn, "customer_data", "Income")


def test_fill_without_missing_values_is_a_no_op(conn, load_customers):
    load_customers([customer_row(ID=1, Income="10")])

    assert fill_with_mean(conn, "customer_data", "Income") == (0, None)


def test_empty_aggregate_fails_only_the_fill_step(conn, load_customers):
    load_customers([
        customer_row(ID=1, Income="", Education="MASTER"),
        customer_row(ID=2, Income="", Education="basic"),
    ])

    with pytest.raises(CleaningIncomplete) as excinfo:
        clean_customers(conn)

    report = excinfo.value.report
    assert list(report.failures) == ["fill_mean:Income"]
    assert report.nulls_normalized["Income"] == 2
    # Canonicalization ran despite the failed fill
    educations = [r[0] for r in conn.execute("SELECT Education FROM customer_data ORDER BY ID")]
    assert educations == ["Master", "Basic"]
    assert conn.execute("SELECT COUNT(*) FROM customer_data WHERE Income IS NULL").fetchone()[0] == 2


def test_failed_validation_blocks_fill(conn, load_customers):
    load_customers([customer_row(ID=1)])
    plan = CleaningPlan(schema=CUSTOMER_SCHEMA, fill_fields=("NoSuchColumn",))

    with pytest.raises(CleaningIncomplete) as excinfo:
        clean_table(conn, plan)

    failures = excinfo.value.report.failures
    assert "numeric_validity:NoSuchColumn" in failures
    assert failures["fill_mean:NoSuchColumn"] == "blocked by failed numeric_validity:NoSuchColumn"


def test_education_canonicalization_and_pass_through(conn, load_customers):
    load_customers([
        customer_row(ID=1, Education="GRADUATION"),
        customer_row(ID=2, Education="2N cycle"),
        customer_row(ID=3, Education="xyz"),
        customer_row(ID=4, Education="PhD"),
    ])

    report = clean_customers(conn)

    educations = [r[0] for r in conn.execute("SELECT Education FROM customer_data ORDER BY ID")]
    assert educations == ["Graduation", "2nd Cycle", "xyz", "PhD"]
    assert report.canonicalized["Education"] == 2
    assert report.unrecognized == {"Education": ["xyz"]}


def test_marital_status_typos_fixed(conn, load_customers):
    load_customers([
        customer_row(ID=1, Marital_Status="singl"),
        customer_row(ID=2, Marital_Status="widowed"),
        customer_row(ID=3, Marital_Status="MARRIED"),
    ])

    clean_customers(conn)

    statuses = [r[0] for r in conn.execute("SELECT Marital_Status FROM customer_data ORDER BY ID")]
    assert statuses == ["Single", "Widow", "Married"]


def test_reject_policy_fails_only_that_field(conn, load_customers):
    load_customers([
        customer_row(ID=1, Education="GRADUATION", Marital_Status="singl"),
        customer_row(ID=2, Education="xyz"),
    ])

    with pytest.raises(CleaningIncomplete) as excinfo:
        clean_customers(conn, UnknownCategoryPolicy.REJECT)

    assert list(excinfo.value.report.failures) == ["canonicalize:Education"]
    rows = conn.execute("SELECT Education, Marital_Status FROM customer_data ORDER BY ID").fetchall()
    assert rows == [("GRADUATION", "Single"), ("xyz", "Single")]


def test_log_policy_warns_and_keeps_value(conn, load_customers, caplog):
    load_customers([customer_row(ID=1, Marital_Status="YOLO")])

    with caplog.at_level(logging.WARNING, logger="ETL_Pipeline.SilverLayer"):
        clean_customers(conn, UnknownCategoryPolicy.LOG_AND_PASS_THROUGH)

    assert "YOLO" in caplog.text
    assert conn.execute("SELECT Marital_Status FROM customer_data").fetchone()[0] == "YOLO"


def test_shipment_categories_canonicalized(conn, load_shipments):
    load_shipments([
        shipment_row(Product_importance="HIGH", Mode_of_Shipment="flight", Warehouse_block="b", Gender="m"),
        shipment_row(Product_importance="Medium", Mode_of_Shipment="ROAD", Warehouse_block="Z", Gender="f",
                     Weight_in_gms=2000),
    ])

    report = clean_shipments(conn)

    rows = conn.execute(
        "SELECT Product_importance, Mode_of_Shipment, Warehouse_block, Gender FROM shipping_ecommerce ORDER BY id"
    ).fetchall()
    assert rows == [("high", "Flight", "B", "M"), ("medium", "Road", "Z", "F")]
    assert report.unrecognized == {"Warehouse_block": ["Z"]}


def test_duplicates_keep_smallest_key(conn, load_shipments):
    duplicate = shipment_row(Customer_care_calls=5, Customer_rating=2, Prior_purchases=4,
                             Discount_offered=44, Weight_in_gms=1233)
    load_shipments([
        dict(id=7, **duplicate),
        dict(id=3, **dict(duplicate, Mode_of_Shipment="Road")),
        dict(id=5, **shipment_row(Weight_in_gms=4000)),
    ])

    report = clean_shipments(conn)

    assert report.duplicates_removed == 1
    ids = [r[0] for r in conn.execute("SELECT id FROM shipping_ecommerce ORDER BY id")]
    assert ids == [3, 5]


def test_cleaning_is_idempotent(conn, load_customers, load_shipments):
    load_customers([
        customer_row(ID=1, Education="GRADUATION", Income=""),
        customer_row(ID=2, Education="2n Cycle", Marital_Status="singl", Income="80000"),
        customer_row(ID=3, Education="xyz", Income="41000", Dt_Customer=""),
    ])
    load_shipments([
        shipment_row(Mode_of_Shipment="SHIP"),
        shipment_row(Mode_of_Shipment="road"),
        shipment_row(Gender="m", Weight_in_gms=3000),
    ])

    first = clean_customers(conn).total_changes + clean_shipments(conn).total_changes
    customers = pd.read_sql("SELECT * FROM customer_data ORDER BY ID", conn)
    shipments = pd.read_sql("SELECT * FROM shipping_ecommerce ORDER BY id", conn)

    second_customers = clean_customers(conn)
    second_shipments = clean_shipments(conn)

    assert first > 0
    assert second_customers.total_changes == 0
    assert second_shipments.total_changes == 0
    pd.testing.assert_frame_equal(customers, pd.read_sql("SELECT * FROM customer_data ORDER BY ID", conn))
    pd.testing.assert_frame_equal(shipments, pd.read_sql("SELECT * FROM shipping_ecommerce ORDER BY id", conn))


def test_missing_table_reports_every_step(conn):
    plan = CleaningPlan(schema=SHIPPING_SCHEMA, dedup_fields=("Weight_in_gms",))

    with pytest.raises(CleaningIncomplete) as excinfo:
        clean_table(conn, plan)

    assert "remove_duplicates" in excinfo.value.report.failures
