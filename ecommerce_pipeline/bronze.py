import csv
import sqlite3
import logging
from typing import List

from .errors import DuplicateKeyViolation, LoadError, SchemaMismatch, SourceUnavailable
from .schemas import CUSTOMER_SCHEMA, SHIPPING_SCHEMA, TableSchema

logger = logging.getLogger("ETL_Pipeline.BronzeLayer")


def create_staging_table(cursor: sqlite3.Cursor, schema: TableSchema) -> None:
    """
    Create the staging table for a schema if it doesn't already exist.
    """
    cursor.execute(schema.create_statement())


def validate_csv_structure(csv_file: str, schema: TableSchema) -> List[str]:
    """
    Validate the header of a CSV file against a table schema.

    Columns are matched by name, so their order in the file does not matter.
    A key column declared optional may be left out of the file.

    Args:
        csv_file: Path to the CSV file
        schema: Schema of the target staging table

    Returns:
        The header column names, in file order

    Raises:
        SourceUnavailable: The file cannot be opened or decoded
        SchemaMismatch: The header is missing, duplicated, incomplete or has extra columns
    """
    try:
        with open(csv_file, newline='', encoding='utf-8-sig') as f:
            header = next(csv.reader(f), None)
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise SourceUnavailable(csv_file, e) from e

    if not header:
        raise SchemaMismatch(csv_file, detail="file is empty or has no header row")

    columns = [col.strip() for col in header]
    duplicated = sorted({col for col in columns if columns.count(col) > 1})
    if duplicated:
        raise SchemaMismatch(csv_file, detail=f"duplicated columns: {duplicated}")

    missing = set(schema.required_columns) - set(columns)
    unexpected = set(columns) - set(schema.column_names)
    if missing or unexpected:
        raise SchemaMismatch(csv_file, missing=missing, unexpected=unexpected)
    return columns


def ingest_csv(conn: sqlite3.Connection, csv_file: str, schema: TableSchema, replace: bool = True) -> int:
    """
    Load a CSV file verbatim into a staging table.

    Values are inserted as the raw strings read from the file; the only
    conversion is the column affinity applied by SQLite itself, so blank cells
    stay empty strings until the cleaner normalizes them. The load runs in a
    single transaction and is rolled back entirely on any failure.

    Args:
        conn: Open SQLite connection
        csv_file: Path to the CSV file
        schema: Schema of the target staging table
        replace: Drop and recreate the table instead of appending to it

    Returns:
        Number of rows inserted
    """
    columns = validate_csv_structure(csv_file, schema)
    placeholders = ", ".join("?" for _ in columns)
    insert_sql = f"INSERT INTO {schema.name} ({', '.join(columns)}) VALUES ({placeholders})"
    key_position = columns.index(schema.key) if schema.key in columns else None

    record_count = 0
    try:
        with conn:
            cursor = conn.cursor()
            if not conn.in_transaction:
                cursor.execute("BEGIN TRANSACTION")
            if replace:
                cursor.execute(f"DROP TABLE IF EXISTS {schema.name}")
            create_staging_table(cursor, schema)

            with open(csv_file, newline='', encoding='utf-8-sig') as f:
                reader = csv.reader(f)
                next(reader)
                for row in reader:
                    if not row:
                        continue
                    if len(row) != len(columns):
                        raise SchemaMismatch(
                            csv_file,
                            detail=f"line {reader.line_num} has {len(row)} fields, expected {len(columns)}",
                        )
                    try:
                        cursor.execute(insert_sql, row)
                    except sqlite3.IntegrityError as e:
                        if "UNIQUE" in str(e) and key_position is not None:
                            raise DuplicateKeyViolation(schema.name, row[key_position], reader.line_num) from e
                        raise LoadError(
                            f"Cannot insert line {reader.line_num} of {csv_file} into {schema.name}: {e}"
                        ) from e
                    record_count += 1
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise SourceUnavailable(csv_file, e) from e

    logger.info(f"Successfully ingested {record_count} records from {csv_file} into {schema.name}.")
    return record_count


def ingest_customers(conn: sqlite3.Connection, csv_file: str, replace: bool = True) -> int:
    """Load the customer CSV into the customer_data staging table."""
    return ingest_csv(conn, csv_file, CUSTOMER_SCHEMA, replace=replace)


def ingest_shipments(conn: sqlite3.Connection, csv_file: str, replace: bool = True) -> int:
    """Load the shipping CSV into the shipping_ecommerce staging table."""
    return ingest_csv(conn, csv_file, SHIPPING_SCHEMA, replace=replace)
