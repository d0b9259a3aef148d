"""
Identifier rendering for PostgreSQL output.

Schema and table segments are folded to lowercase; column, constraint and
index names keep their source casing and are only quoted when they are not
plain identifiers or are PostgreSQL reserved words.
"""
import re
from typing import Optional

from ..nodes import ObjectKey, QualifiedName, quote_identifier

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_NON_WORD = re.compile(r"[^0-9A-Za-z]+")


def snake_case(name: str) -> str:
    """``OrderID`` -> ``order_id``, ``PurchaseOrderLineID`` -> ``purchase_order_line_id``."""
    words = _CAMEL_BOUNDARY.sub('_', name)
    return _NON_WORD.sub('_', words).strip('_').lower()


def table_sql(name: QualifiedName) -> str:
    return key_sql(name.key)


def key_sql(key: ObjectKey) -> str:
    return f"{quote_identifier(key.schema)}.{quote_identifier(key.table)}"


def sequence_target_name(name: QualifiedName, suffix: str = '_seq') -> QualifiedName:
    """Target name of a consumed sequence: lowercase schema, snake-cased name plus *suffix*."""
    base = snake_case(name.name)
    if suffix and not base.endswith(suffix):
        base = f"{base}{suffix}"
    schema: Optional[str] = name.schema.lower() if name.schema else 'dbo'
    return QualifiedName(base, schema=schema)


def column_sql(name: str) -> str:
    return quote_identifier(name)


def quote_literal(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"
