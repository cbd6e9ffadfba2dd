"""
Snapshot Validator

Shape checks for configuration snapshots: a snapshot must be a flat JSON
object of string keys to primitive values (str, bool, int, float).
Values themselves are not checked against any schema.
"""

import math
from typing import Any

from ...common.logging_setup import get_service_logger

logger = get_service_logger("config.validator")

CONFIG_VALUE_TYPES = (str, bool, int, float)


def is_config_value(value: Any) -> bool:
    """True for values a config map may hold"""
    if isinstance(value, float) and not math.isfinite(value):
        return False
    return isinstance(value, CONFIG_VALUE_TYPES)


class SnapshotValidator:
    """Validates incoming snapshots before they are persisted"""

    def validate(self, snapshot: Any) -> tuple[bool, list[str]]:
        """
        Validate a snapshot.

        Args:
            snapshot: Decoded JSON body

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        if not isinstance(snapshot, dict):
            errors = [f"Snapshot must be a JSON object, got {type(snapshot).__name__}"]
        else:
            errors = self._validate_entries(snapshot)

        is_valid = len(errors) == 0

        if not is_valid:
            logger.warning(
                f"Snapshot validation failed: {len(errors)} errors",
                extra={"errors": errors},
            )

        return is_valid, errors

    def _validate_entries(self, snapshot: dict) -> list[str]:
        errors = []
        for key, value in snapshot.items():
            if not isinstance(key, str) or not key:
                errors.append(f"Invalid key: {key!r}")
            elif not is_config_value(value):
                errors.append(f"{key}: unsupported value type {type(value).__name__}")
        return errors
