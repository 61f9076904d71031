"""Utilities package - Flat structure (no nested directories)"""

# Snowflake ID utilities
from .snowflake import (
    decrement_snowflake_id,
    is_snowflake_id,
    is_valid_timestamp,
    max_snowflake_id,
    min_snowflake_id,
    parse_snowflake_id,
    snowflake_to_timestamp,
)

# Cursor queries
from .query import build_backfill_query, build_live_query

# Conversion
from .conversion import (
    convert_result_to_profile,
    convert_result_to_source_item,
    convert_result_to_trend,
    sort_ascending,
    sort_newest_first,
)

__all__ = [
    "decrement_snowflake_id",
    "is_snowflake_id",
    "is_valid_timestamp",
    "max_snowflake_id",
    "min_snowflake_id",
    "parse_snowflake_id",
    "snowflake_to_timestamp",
    "build_backfill_query",
    "build_live_query",
    "convert_result_to_profile",
    "convert_result_to_source_item",
    "convert_result_to_trend",
    "sort_ascending",
    "sort_newest_first",
]
