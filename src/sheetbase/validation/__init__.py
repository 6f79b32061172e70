"""Record validation."""

from sheetbase.validation.validator import Validator, materialize_default, today_iso, utc_now_iso

__all__ = ["Validator", "materialize_default", "today_iso", "utc_now_iso"]
