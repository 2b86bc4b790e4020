"""S3 export helpers for aggregate exports.

This module encapsulates boto3 client creation and export uploads.
It is shared by SDK and CLI export operations.
"""

from __future__ import annotations

from typing import Any

from core.config import TidelinkConfig
from core.errors import TidelinkDependencyError, TidelinkExportError
from core.s3_uri import S3Location

_CONTENT_TYPES = {
    "json": "application/json",
    "csv": "text/csv",
    "parquet": "application/vnd.apache.parquet",
}


def create_s3_client(config: TidelinkConfig) -> Any:
    """Create boto3 S3 client for exports.

    Args:
        config: Runtime config with optional session settings.

    Returns:
        Boto3 S3 client.

    Raises:
        TidelinkDependencyError: If boto3 is missing.
    """
    try:
        import boto3
    except ImportError as error:
        raise TidelinkDependencyError(
            "S3 export requires boto3, but it is not installed. "
            "Install boto3 to export aggregates to s3:// destinations."
        ) from error
    session_kwargs: dict[str, str] = {}
    if config.s3_profile:
        session_kwargs["profile_name"] = config.s3_profile
    if config.s3_region:
        session_kwargs["region_name"] = config.s3_region
    session = boto3.session.Session(**session_kwargs)
    return session.client("s3")


def upload_export(
    s3_client: Any,
    payload: bytes,
    location: S3Location,
    export_format: str,
) -> None:
    """Upload one export payload to S3.

    Args:
        s3_client: Boto3 S3 client.
        payload: Encoded export bytes.
        location: Destination bucket and key.
        export_format: Export format used to set the content type.

    Raises:
        TidelinkExportError: If upload fails.
    """
    try:
        s3_client.put_object(
            Bucket=location.bucket,
            Key=location.key,
            Body=payload,
            ContentType=_CONTENT_TYPES.get(export_format, "application/octet-stream"),
        )
    except Exception as error:
        raise TidelinkExportError(
            f"Failed to export aggregates to s3://{location.bucket}/{location.key}: {error}. "
            "Check AWS credentials and retry export."
        ) from error
