"""S3 URI parsing helpers.

This module centralizes S3 URI parsing for aggregate exports.
It keeps URI validation behavior consistent across SDK and CLI.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.errors import TidelinkExportError


@dataclass(frozen=True)
class S3Location:
    """Parsed S3 location model."""

    bucket: str
    key: str


def parse_s3_uri(uri: str) -> S3Location:
    """Parse and validate an S3 object URI.

    Args:
        uri: URI in format ``s3://bucket/key``.

    Returns:
        Parsed bucket and key pair.

    Raises:
        TidelinkExportError: If the URI lacks a bucket or key.
    """
    if not uri.startswith("s3://"):
        _raise_uri_error(uri)
    stripped_uri = uri.removeprefix("s3://")
    if "/" not in stripped_uri:
        _raise_uri_error(uri)
    bucket, key = stripped_uri.split("/", 1)
    if not bucket or not key or key.endswith("/"):
        _raise_uri_error(uri)
    return S3Location(bucket=bucket, key=key)


def _raise_uri_error(uri: str) -> None:
    raise TidelinkExportError(
        f"Invalid S3 URI '{uri}': expected s3://bucket/key. "
        "Provide both bucket and an object key."
    )
