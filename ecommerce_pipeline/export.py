import os
import sqlite3
import logging
from typing import Optional

import boto3
import pandas as pd
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from .config import PipelineSettings

logger = logging.getLogger("ETL_Pipeline.Export")


def export_table_to_parquet(conn: sqlite3.Connection, table_name: str, output_file: str) -> int:
    """
    Write a table or view to a Parquet file.

    Args:
        conn: Open SQLite connection
        table_name: Table or view to export
        output_file: Destination path; its directory is created if needed

    Returns:
        Number of exported rows (0 means no file was written)
    """
    df = pd.read_sql(f"SELECT * FROM {table_name}", conn)
    if df.empty:
        logger.warning(f"Table '{table_name}' is empty. No data to export.")
        return 0

    directory = os.path.dirname(output_file)
    if directory:
        os.makedirs(directory, exist_ok=True)
    df.to_parquet(output_file, index=False)
    logger.info(f"Exported {len(df)} records from table '{table_name}' to {output_file}")
    return len(df)


def create_s3_client(settings: PipelineSettings):
    return boto3.client('s3',
                        aws_access_key_id=settings.aws_access_key_id,
                        aws_secret_access_key=settings.aws_secret_access_key,
                        region_name=settings.aws_region)


def upload_file_to_s3(local_file: str, bucket: str, s3_key: Optional[str] = None,
                      settings: Optional[PipelineSettings] = None) -> bool:
    """
    Upload a local file to S3.

    Args:
        local_file: Path of the file to upload
        bucket: Destination bucket
        s3_key: Destination key (default: the file's base name)
        settings: Credentials and region (default: read from the environment)

    Returns:
        True if the upload succeeded, False otherwise
    """
    settings = settings or PipelineSettings.from_env()
    s3_key = s3_key or os.path.basename(local_file)
    s3_client = create_s3_client(settings)
    try:
        s3_client.upload_file(local_file, bucket, s3_key)
        logger.info(f"Uploaded {local_file} to s3://{bucket}/{s3_key}")
        return True
    except (BotoCoreError, ClientError, S3UploadFailedError) as e:
        logger.error(f"Failed to upload {local_file} to s3://{bucket}/{s3_key}: {e}")
        return False
