"""
Statement node model shared by the parser, the converters and the emitter.

Nodes are plain dataclasses. The same variants describe both the SQL Server
source shape and the PostgreSQL target shape; converters build *new* nodes
rather than mutating the parsed ones, so a parse result can be inspected
after conversion.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union


_PLAIN_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")

# PostgreSQL keywords that are reserved, or reserved except as function or type names
_PG_RESERVED_WORDS = frozenset("""
    ALL ANALYSE ANALYZE AND ANY ARRAY AS ASC ASYMMETRIC AUTHORIZATION BINARY BOTH CASE CAST CHECK
    COLLATE COLLATION COLUMN CONCURRENTLY CONSTRAINT CREATE CROSS CURRENT_CATALOG CURRENT_DATE
    CURRENT_ROLE CURRENT_SCHEMA CURRENT_TIME CURRENT_TIMESTAMP CURRENT_USER DEFAULT DEFERRABLE DESC
    DISTINCT DO ELSE END EXCEPT FALSE FETCH FOR FOREIGN FREEZE FROM FULL GRANT GROUP HAVING ILIKE IN
    INITIALLY INNER INTERSECT INTO IS ISNULL JOIN LATERAL LEADING LEFT LIKE LIMIT LOCALTIME
    LOCALTIMESTAMP NATURAL NOT NOTNULL NULL OFFSET ON ONLY OR ORDER OUTER OVERLAPS PLACING PRIMARY
    REFERENCES RETURNING RIGHT SELECT SESSION_USER SIMILAR SOME SYMMETRIC SYSTEM_USER TABLE
    TABLESAMPLE THEN TO TRAILING TRUE UNION UNIQUE USER USING VARIADIC VERBOSE WHEN WHERE WINDOW WITH
""".split())


def strip_identifier_quotes(segment: str) -> str:
    """Remove one level of ``[...]`` or ``"..."`` quoting from an identifier."""
    segment = segment.strip()
    if len(segment) >= 2 and segment[0] == '[' and segment[-1] == ']':
        return segment[1:-1].replace(']]', ']')
    if len(segment) >= 2 and segment[0] == '"' and segment[-1] == '"':
        return segment[1:-1].replace('""', '"')
    return segment


def quote_identifier(name: str) -> str:
    """Render *name* for PostgreSQL: bare when it is a plain identifier.

    Reserved words are quoted in the lowercase form an unquoted reference
    folds to, so ``[Order]`` becomes ``"order"``.
    """
    if _PLAIN_IDENTIFIER.match(name):
        if name.upper() in _PG_RESERVED_WORDS:
            return f'"{name.lower()}"'
        return name
    return '"' + name.replace('"', '""') + '"'


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True, order=True)
class ObjectKey:
    """Canonical ``(schema, table)`` identity, always lowercase and bracket-free."""
    schema: str
    table: str

    def __post_init__(self):
        object.__setattr__(self, 'schema', strip_identifier_quotes(self.schema or 'dbo').lower())
        object.__setattr__(self, 'table', strip_identifier_quotes(self.table).lower())

    def __str__(self) -> str:
        return f"{self.schema}.{self.table}"


@dataclass
class QualifiedName:
    """A (possibly schema-less) object name with its segments verbatim."""
    name: str
    schema: Optional[str] = None

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.schema or 'dbo', self.name)

    def display(self) -> str:
        return f"{self.schema}.{self.name}" if self.schema else self.name


@dataclass
class SourceSpan:
    start: int = 0
    end: int = 0
    line: int = 1
    column: int = 1

    def describe(self) -> str:
        return f"line {self.line}, column {self.column}"


# ---------------------------------------------------------------------------
# Table sub-elements
# ---------------------------------------------------------------------------


@dataclass
class TypeSpec:
    name: str
    args: Tuple[str, ...] = ()

    def sql(self) -> str:
        if not self.args:
            return self.name
        return f"{self.name}({','.join(self.args)})"


class DefaultKind(str, Enum):
    SEQUENCE = 'sequence'
    CURRENT_TIMESTAMP = 'current_timestamp'
    FUNCTION = 'function'
    LITERAL = 'literal'
    EXPRESSION = 'expression'


@dataclass
class DefaultExpr:
    kind: DefaultKind
    text: str
    sequence: Optional[QualifiedName] = None
    constraint_name: Optional[str] = None


@dataclass
class Column:
    name: str
    type: TypeSpec
    ordinal: int
    nullable: Optional[bool] = None
    default: Optional[DefaultExpr] = None
    identity: Optional[Tuple[str, str]] = None
    generated: Optional[str] = None  # 'row_start' | 'row_end'
    collation: Optional[str] = None
    extra_clauses: List[str] = field(default_factory=list)
    span: SourceSpan = field(default_factory=SourceSpan)


@dataclass
class IndexColumn:
    name: str
    direction: Optional[str] = None  # 'ASC' | 'DESC'


class ConstraintKind(str, Enum):
    PRIMARY_KEY = 'PRIMARY KEY'
    UNIQUE = 'UNIQUE'
    FOREIGN_KEY = 'FOREIGN KEY'
    CHECK = 'CHECK'


@dataclass
class Constraint:
    kind: ConstraintKind
    name: Optional[str] = None
    columns: List[IndexColumn] = field(default_factory=list)
    clustering: Optional[str] = None
    references: Optional[QualifiedName] = None
    ref_columns: List[str] = field(default_factory=list)
    on_delete: Optional[str] = None
    on_update: Optional[str] = None
    check_expr: Optional[str] = None
    options: List[str] = field(default_factory=list)
    span: SourceSpan = field(default_factory=SourceSpan)

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]


@dataclass
class PeriodClause:
    start_column: str
    end_column: str
    span: SourceSpan = field(default_factory=SourceSpan)


@dataclass
class TableOption:
    kind: str  # 'system_versioning' | 'filegroup' | 'data_compression' | 'other'
    text: str
    history_table: Optional[QualifiedName] = None


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------


@dataclass
class StatementNode:
    span: SourceSpan = field(default_factory=SourceSpan, kw_only=True)
    leading_comments: List[str] = field(default_factory=list, kw_only=True)


@dataclass
class RawPassthrough(StatementNode):
    """Text that no rule models, kept verbatim.

    ``is_comment`` marks text that is already a SQL comment (emitted as is);
    otherwise the emitter comments the payload out under a review header.
    """
    text: str
    reason: Optional[str] = None
    is_comment: bool = False
    needs_review: bool = True


@dataclass
class InlineIndex:
    """``INDEX name [CLUSTERED|NONCLUSTERED] [COLUMNSTORE] (cols)`` inside a table body."""
    name: str
    columns: List[IndexColumn] = field(default_factory=list)
    unique: bool = False
    clustering: Optional[str] = None
    columnstore: bool = False
    include: List[str] = field(default_factory=list)
    where: Optional[str] = None
    options: List[str] = field(default_factory=list)
    span: SourceSpan = field(default_factory=SourceSpan)


TableElement = Union[Column, Constraint, PeriodClause, InlineIndex, RawPassthrough]


@dataclass
class TableNode(StatementNode):
    name: QualifiedName
    elements: List[TableElement] = field(default_factory=list)
    options: List[TableOption] = field(default_factory=list)

    @property
    def key(self) -> ObjectKey:
        return self.name.key

    @property
    def columns(self) -> List[Column]:
        return [e for e in self.elements if isinstance(e, Column)]

    @property
    def constraints(self) -> List[Constraint]:
        return [e for e in self.elements if isinstance(e, Constraint)]


@dataclass
class SequenceNode(StatementNode):
    name: QualifiedName
    data_type: Optional[TypeSpec] = None
    start: Optional[str] = None
    increment: Optional[str] = None
    min_value: Optional[str] = None   # 'NO' for NO MINVALUE
    max_value: Optional[str] = None   # 'NO' for NO MAXVALUE
    cycle: Optional[bool] = None
    cache: Optional[str] = None
    inferred: bool = False

    @property
    def key(self) -> ObjectKey:
        return self.name.key


@dataclass
class IndexNode(StatementNode):
    name: str
    table: QualifiedName
    columns: List[IndexColumn] = field(default_factory=list)
    unique: bool = False
    clustering: Optional[str] = None
    columnstore: bool = False
    include: List[str] = field(default_factory=list)
    where: Optional[str] = None
    options: List[str] = field(default_factory=list)


@dataclass
class ExtendedPropertyNode(StatementNode):
    property_name: str
    value: str
    levels: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class SchemaNode(StatementNode):
    name: str


@dataclass
class CommentNode(StatementNode):
    """``COMMENT ON TABLE`` (column is None) or ``COMMENT ON COLUMN``."""
    table: QualifiedName
    text: str
    column: Optional[str] = None


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


@dataclass
class DependencyEdge:
    from_key: ObjectKey
    to_key: ObjectKey
    columns: List[str] = field(default_factory=list)

    @property
    def is_self_reference(self) -> bool:
        return self.from_key == self.to_key

    def merge_columns(self, columns: List[str]) -> None:
        for col in columns:
            if col not in self.columns:
                self.columns.append(col)


@dataclass
class UnresolvedDependency:
    target: ObjectKey
    columns: List[str] = field(default_factory=list)
    referenced_by: List[str] = field(default_factory=list)
    available_in_source: Optional[bool] = None

    def to_dict(self) -> dict:
        payload = {
            'target': str(self.target),
            'columns': list(self.columns),
            'referenced_by': list(self.referenced_by),
        }
        if self.available_in_source is not None:
            payload['available_in_source'] = self.available_in_source
        return payload
