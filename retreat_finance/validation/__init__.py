"""Input validation package."""

from retreat_finance.validation.validator import (
    EntryValidator,
    merge_changes,
    parse_enum,
    parse_id,
    parse_model,
)

__all__ = [
    "EntryValidator",
    "merge_changes",
    "parse_enum",
    "parse_id",
    "parse_model",
]
