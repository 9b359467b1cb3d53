# backend/app/models/base_enum.py
"""
Closed-enumeration columns for SQLAlchemy.

Statuses and policies are stored by enum VALUE ('confirmed', 'strict'), checked by
a database CHECK constraint, and come back from the ORM as enum members. Writing
a value outside the enumeration fails at flush time instead of being stored.

Usage:
    class MyStatus(str, Enum):
        ACTIVE = "active"

    status = Column(create_safe_enum(MyStatus, "my_status"), nullable=False)
"""

from enum import Enum
from typing import Sequence, Type

from sqlalchemy import Enum as SAEnum


def create_safe_enum(enum_class: Type[Enum], name: str, *, length: int = 20) -> SAEnum:
    """Create a VARCHAR-backed enum column type storing member values."""
    return SAEnum(
        enum_class,
        name=name,
        native_enum=False,
        create_constraint=True,
        validate_strings=True,
        length=length,
        values_callable=_get_enum_values,
    )


def _get_enum_values(enum_class: Type[Enum]) -> Sequence[str]:
    return [member.value for member in enum_class]
