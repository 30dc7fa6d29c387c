"""
E-commerce customer & shipping cleaning pipeline (SQLite)

Modules:
    bronze.py       - Loads the raw customer and shipping CSV files into staging tables.
    silver.py       - Cleans both tables in place (nulls, income fill, categories, duplicates).
    gold.py         - Links shipments to customers, creates summary views and indexes.
    analysis.py     - Read-only analysis queries over the cleaned data.
    export.py       - Parquet export and S3 upload.
    run_pipeline.py - Orchestrates the full pipeline (command-line entry point).

Version: 1.0.0
"""

__version__ = "1.0.0"
