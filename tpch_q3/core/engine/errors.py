# tpch_q3/core/engine/errors.py
"""
ERRORS - Fatal conditions of the query engine

Every error here aborts the whole query. There is no retry and no
skip-and-continue: a wrong aggregate is worse than no result.
"""


class EngineError(Exception):
    """Base class for all engine failures."""


class SchemaMismatchError(EngineError):
    """A table's column layout differs from the positional schema the plan reads."""

    def __init__(self, table: str, message: str):
        self.table = table
        super().__init__(f"{table}: {message}")


class ParseError(EngineError):
    """A date string is not a valid YYYY-MM-DD calendar date."""

    def __init__(self, value, message: str = "expected a YYYY-MM-DD date"):
        self.value = value
        super().__init__(f"Cannot parse {value!r}: {message}")


class AggregationInvariantError(EngineError):
    """Rows of the same order disagree on order date or ship priority."""


class IngestError(EngineError):
    """An uploaded table file cannot be converted into table rows."""
