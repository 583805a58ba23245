# Overview: Shared column types and DDL for the kassa models.

from __future__ import annotations

from sqlalchemy import DDL, event

from ..constants import enum_values
from ..extensions import db


def tag_type(enum_cls, constraint_name: str, length: int = 16):
    """
    Closed string enumeration.

    In memory the attribute is always an ``enum_cls`` member; in the store it
    is a VARCHAR guarded by a named CHECK constraint listing the tag values.
    """
    return db.Enum(
        enum_cls,
        name=constraint_name,
        values_callable=enum_values,
        native_enum=False,
        create_constraint=True,
        validate_strings=True,
        length=length,
    )


def quantity_type():
    return db.Numeric(14, 3, asdecimal=True)


def updated_at_trigger_sql(table_name: str) -> str:
    # WHEN guard: ORM updates already set updated_at; raw updates get it here.
    return (
        f"CREATE TRIGGER IF NOT EXISTS trg_{table_name}_updated_at "
        f"AFTER UPDATE ON {table_name} FOR EACH ROW "
        f"WHEN NEW.updated_at IS OLD.updated_at "
        f"BEGIN UPDATE {table_name} SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id; END"
    )


def attach_updated_at_trigger(table) -> None:
    event.listen(
        table,
        "after_create",
        DDL(updated_at_trigger_sql(table.name)).execute_if(dialect="sqlite"),
    )
