"""Runtime configuration model for Tidelink.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_DATA_ROOT,
    DEFAULT_MAX_WRITE_RETRIES,
    DEFAULT_TIME_TOLERANCE_MINUTES,
    DEFAULT_WORKER_COUNT,
)
from core.errors import TidelinkConfigError


@dataclass(frozen=True)
class TidelinkConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Local root directory for aggregates and file records.
        time_tolerance_minutes: Fuzzy time window used by key resolution.
        worker_count: Number of background unification workers.
        max_write_retries: Retries after a composite-key write conflict.
        s3_region: Optional default AWS region for S3 exports.
        s3_profile: Optional AWS profile for boto3 session initialization.
    """

    data_root: Path
    time_tolerance_minutes: int = DEFAULT_TIME_TOLERANCE_MINUTES
    worker_count: int = DEFAULT_WORKER_COUNT
    max_write_retries: int = DEFAULT_MAX_WRITE_RETRIES
    s3_region: str | None = None
    s3_profile: str | None = None

    @classmethod
    def from_env(cls) -> "TidelinkConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            TidelinkConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("TIDELINK_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        return cls(
            data_root=Path(data_root_value).expanduser().resolve(),
            time_tolerance_minutes=_parse_int_env(
                "TIDELINK_TIME_TOLERANCE_MINUTES", DEFAULT_TIME_TOLERANCE_MINUTES, minimum=0
            ),
            worker_count=_parse_int_env("TIDELINK_WORKER_COUNT", DEFAULT_WORKER_COUNT, minimum=1),
            max_write_retries=_parse_int_env(
                "TIDELINK_MAX_WRITE_RETRIES", DEFAULT_MAX_WRITE_RETRIES, minimum=0
            ),
            s3_region=os.getenv("TIDELINK_S3_REGION"),
            s3_profile=os.getenv("TIDELINK_S3_PROFILE"),
        )


def _parse_int_env(name: str, default: int, minimum: int) -> int:
    """Parse a bounded integer environment value.

    Args:
        name: Environment variable name.
        default: Value used when the variable is unset.
        minimum: Smallest accepted value.

    Returns:
        Parsed integer.

    Raises:
        TidelinkConfigError: If value is not an integer or is below minimum.
    """
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        parsed_value = int(raw_value)
    except ValueError as error:
        raise TidelinkConfigError(
            f"Invalid {name} value: expected integer, got '{raw_value}'. "
            f"Set {name} to a numeric value."
        ) from error
    if parsed_value < minimum:
        raise TidelinkConfigError(
            f"Invalid {name} value: expected integer >= {minimum}, got {parsed_value}. "
            f"Unset {name} to use the default of {default}."
        )
    return parsed_value
