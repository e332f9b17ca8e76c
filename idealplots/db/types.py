# idealplots/db/types.py
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Type

from sqlalchemy import BigInteger, Integer
from sqlalchemy import Enum as SAEnum
from sqlalchemy.types import TypeDecorator

# BIGINT on PostgreSQL, INTEGER on SQLite so autoincrement keeps working there.
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")


def enum_column(enum_cls: Type[Enum], name: str) -> SAEnum:
    """Portable enum column storing the member *values*."""
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
    )


class EnumSet(TypeDecorator):
    """
    A set of enum members packed into an integer bitfield.

    Bit i is set when the i-th member (declaration order) is present.
    Python side the value is a frozenset of members; an empty set is stored
    as NULL so "no preference" and "never set" read the same.
    """

    impl = Integer
    cache_ok = True

    def __init__(self, enum_cls: Type[Enum], *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_cls = enum_cls
        self._members = list(enum_cls)

    def process_bind_param(self, value: Optional[Iterable], dialect) -> Optional[int]:
        if not value:
            return None
        mask = 0
        for item in value:
            member = self.enum_cls(item)
            mask |= 1 << self._members.index(member)
        return mask

    def process_result_value(self, value: Optional[int], dialect) -> FrozenSet:
        if not value:
            return frozenset()
        return frozenset(m for i, m in enumerate(self._members) if value & (1 << i))
