"""
Column types for 18-decimal fixed-point USD prices and native amounts.

Those values routinely exceed 64 bits ($10 is 10 * 10**18), so they are
persisted as base-10 strings and surfaced as Python ints.
"""

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator


class BigUint(TypeDecorator):
    """Unsigned arbitrary-precision integer stored as a decimal string."""

    impl = String(78)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = int(value)
        if value < 0:
            raise ValueError(f"BigUint cannot store negative value {value}")
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)
