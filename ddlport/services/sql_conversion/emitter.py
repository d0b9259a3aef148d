"""
PostgresEmitter - serialises converted statement nodes into one DDL script.

Output order is fixed and does not follow the source file:

1. ``CREATE SCHEMA IF NOT EXISTS`` for every schema the file needs
2. ``CREATE SEQUENCE IF NOT EXISTS`` once per distinct sequence
3. ``CREATE TABLE`` (columns aligned, constraints grouped by kind)
4. index statements and kept/omitted statements, in source order
5. one line for index-level extended properties that were dropped
6. ``COMMENT ON TABLE`` followed by ``COMMENT ON COLUMN`` in column order

Statements are separated by a blank line and terminated by ``;``.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .nodes import (
    Column, CommentNode, Constraint, ConstraintKind, IndexNode, RawPassthrough,
    SchemaNode, SequenceNode, StatementNode, TableNode, quote_identifier,
)
from .utils.identifier_utils import column_sql, key_sql, quote_literal, table_sql
from .utils.sql_preprocessing import comment_out

DEFAULT_INDEX_OMISSION_COMMENT = (
    "-- INDEX extended properties omitted (PostgreSQL does not support index comments via standard DDL)"
)
_INDENT = '    '
_MIN_TYPE_WIDTH = 15
_CONSTRAINT_RANK = {
    ConstraintKind.PRIMARY_KEY: 1,
    ConstraintKind.UNIQUE: 2,
    ConstraintKind.FOREIGN_KEY: 3,
    ConstraintKind.CHECK: 4,
}


@dataclass
class _BodyGroup:
    rank: int
    position: int
    anchor: Any
    leading: List[RawPassthrough] = field(default_factory=list)
    trailing: List[RawPassthrough] = field(default_factory=list)


def _with_leading(node: StatementNode, sql: str) -> str:
    if not node.leading_comments:
        return sql
    return '\n'.join(node.leading_comments + [sql])


def _review_lines(node: RawPassthrough) -> List[str]:
    header = f"-- REVIEW: {node.reason or 'not converted'}"
    payload = comment_out(node.text)
    return [header] + (payload.splitlines() if payload else [])


class PostgresEmitter:
    def __init__(self, emit_sequence_schemas: bool = False,
                 index_omission_comment: str = DEFAULT_INDEX_OMISSION_COMMENT):
        self.emit_sequence_schemas = emit_sequence_schemas
        self.index_omission_comment = index_omission_comment

    @classmethod
    def from_config(cls, behavior_config: Optional[Dict[str, Any]]) -> 'PostgresEmitter':
        behavior_config = behavior_config or {}
        return cls(
            emit_sequence_schemas=behavior_config.get('schema_declarations', {}).get('emit_sequence_schemas', False),
            index_omission_comment=behavior_config.get('comment_conversion', {}).get(
                'index_omission_comment', DEFAULT_INDEX_OMISSION_COMMENT),
        )

    def emit(self, nodes: Iterable[StatementNode], index_property_omissions: int = 0) -> str:
        nodes = list(nodes)
        tables = [n for n in nodes if isinstance(n, TableNode)]

        blocks: List[str] = []
        blocks.extend(self._schema_blocks(nodes, tables))
        blocks.extend(self._sequence_blocks(nodes))
        blocks.extend(_with_leading(t, self.render_table(t)) for t in tables)
        for node in nodes:
            if isinstance(node, IndexNode):
                blocks.append(_with_leading(node, self.render_index(node)))
            elif isinstance(node, RawPassthrough):
                blocks.append(_with_leading(node, self.render_passthrough(node)))
        if index_property_omissions > 0:
            blocks.append(self.index_omission_comment)
        blocks.extend(self._comment_blocks(nodes, tables))

        if not blocks:
            return ''
        return '\n\n'.join(blocks) + '\n'

    # ------------------------------------------------------------------
    # 1 + 2: schemas and sequences
    # ------------------------------------------------------------------

    def _schema_blocks(self, nodes: List[StatementNode], tables: List[TableNode]) -> List[str]:
        schemas: Dict[str, List[str]] = {}
        for table in tables:
            schemas.setdefault(table.key.schema, [])
        for node in nodes:
            if isinstance(node, SchemaNode):
                schemas.setdefault(node.name.lower(), []).extend(node.leading_comments)
        if self.emit_sequence_schemas:
            for node in nodes:
                if isinstance(node, SequenceNode):
                    schemas.setdefault(node.key.schema, [])
        return [
            '\n'.join(leading + [f"CREATE SCHEMA IF NOT EXISTS {quote_identifier(schema)};"])
            for schema, leading in schemas.items()
        ]

    def _sequence_blocks(self, nodes: List[StatementNode]) -> List[str]:
        seen = set()
        blocks = []
        for node in nodes:
            if isinstance(node, SequenceNode) and node.key not in seen:
                seen.add(node.key)
                blocks.append(_with_leading(node, self.render_sequence(node)))
        return blocks

    def render_sequence(self, sequence: SequenceNode) -> str:
        parts = [f"CREATE SEQUENCE IF NOT EXISTS {key_sql(sequence.key)}"]
        if sequence.data_type is not None:
            parts.append(f"AS {sequence.data_type.sql()}")
        if sequence.start is not None:
            parts.append(f"START {sequence.start}")
        if sequence.increment is not None:
            parts.append(f"INCREMENT {sequence.increment}")
        for keyword, value in (('MINVALUE', sequence.min_value), ('MAXVALUE', sequence.max_value)):
            if value == 'NO':
                parts.append(f"NO {keyword}")
            elif value is not None:
                parts.append(f"{keyword} {value}")
        if sequence.cache is not None:
            parts.append(f"CACHE {sequence.cache}")
        if sequence.cycle is not None:
            parts.append('CYCLE' if sequence.cycle else 'NO CYCLE')
        return ' '.join(parts) + ';'

    # ------------------------------------------------------------------
    # 3: tables
    # ------------------------------------------------------------------

    def render_table(self, table: TableNode) -> str:
        columns = table.columns
        name_width = max((len(column_sql(c.name)) for c in columns), default=0) + 1
        type_width = max(_MIN_TYPE_WIDTH, max((len(c.type.sql()) for c in columns), default=0) + 1)

        groups, pending = self._group_body(table.elements)
        lines: List[str] = []
        for idx, group in enumerate(groups):
            for comment in group.leading:
                lines.extend(self._body_comment_lines(comment))
            if isinstance(group.anchor, Column):
                line = self.render_column(group.anchor, name_width, type_width)
            else:
                line = _INDENT + self.render_constraint(group.anchor)
            lines.append(line + (',' if idx < len(groups) - 1 else ''))
            for review in group.trailing:
                lines.extend(self._body_comment_lines(review))
        for comment in pending:
            lines.extend(self._body_comment_lines(comment))

        body = '\n'.join(lines)
        return f"CREATE TABLE {table_sql(table.name)} (\n{body}\n);" if body else f"CREATE TABLE {table_sql(table.name)} (\n);"

    @staticmethod
    def _group_body(elements) -> Tuple[List[_BodyGroup], List[RawPassthrough]]:
        groups: List[_BodyGroup] = []
        pending: List[RawPassthrough] = []
        for position, element in enumerate(elements):
            if isinstance(element, RawPassthrough):
                if element.is_comment or not groups:
                    pending.append(element)
                else:
                    groups[-1].trailing.append(element)
                continue
            rank = 0 if isinstance(element, Column) else _CONSTRAINT_RANK[element.kind]
            groups.append(_BodyGroup(rank, position, element, leading=pending))
            pending = []
        groups.sort(key=lambda g: (g.rank, g.position))
        return groups, pending

    @staticmethod
    def _body_comment_lines(element: RawPassthrough) -> List[str]:
        if element.is_comment:
            first, *rest = element.text.splitlines() or ['']
            return [_INDENT + first.strip()] + rest
        return [_INDENT + line for line in _review_lines(element)]

    def render_column(self, column: Column, name_width: int, type_width: int) -> str:
        clauses = []
        if column.identity:
            seed, increment = column.identity
            clauses.append(f"GENERATED BY DEFAULT AS IDENTITY (START WITH {seed} INCREMENT BY {increment})")
        if column.default is not None:
            clauses.append(f"DEFAULT {column.default.text}")
        if column.nullable is False:
            clauses.append('NOT NULL')
        elif column.nullable:
            clauses.append('NULL')
        line = f"{_INDENT}{column_sql(column.name):<{name_width}}{column.type.sql():<{type_width}}{' '.join(clauses)}"
        return line.rstrip()

    def render_constraint(self, constraint: Constraint) -> str:
        prefix = f"CONSTRAINT {quote_identifier(constraint.name)} " if constraint.name else ''
        columns = ', '.join(column_sql(c) for c in constraint.column_names)
        if constraint.kind == ConstraintKind.FOREIGN_KEY:
            sql = f"{prefix}FOREIGN KEY ({columns}) REFERENCES {table_sql(constraint.references)}"
            if constraint.ref_columns:
                sql += f" ({', '.join(column_sql(c) for c in constraint.ref_columns)})"
            if constraint.on_delete:
                sql += f" ON DELETE {constraint.on_delete}"
            if constraint.on_update:
                sql += f" ON UPDATE {constraint.on_update}"
            return sql
        if constraint.kind == ConstraintKind.CHECK:
            return f"{prefix}CHECK ({constraint.check_expr})"
        return f"{prefix}{constraint.kind.value} ({columns})"

    # ------------------------------------------------------------------
    # 4 + 5: indexes and statements kept as comments
    # ------------------------------------------------------------------

    def render_index(self, index: IndexNode) -> str:
        columns = ', '.join(
            f"{column_sql(c.name)} {c.direction}" if c.direction else column_sql(c.name) for c in index.columns
        )
        sql = f"CREATE {'UNIQUE ' if index.unique else ''}INDEX {quote_identifier(index.name)}\n"
        sql += f"{_INDENT}ON {table_sql(index.table)} ({columns})"
        if index.include:
            sql += f" INCLUDE ({', '.join(column_sql(c) for c in index.include)})"
        if index.where:
            sql += f"\n{_INDENT}WHERE {index.where}"
        return sql + ';'

    @staticmethod
    def render_passthrough(node: RawPassthrough) -> str:
        if node.is_comment:
            return node.text
        return '\n'.join(_review_lines(node))

    # ------------------------------------------------------------------
    # 6: comments
    # ------------------------------------------------------------------

    def _comment_blocks(self, nodes: List[StatementNode], tables: List[TableNode]) -> List[str]:
        comments = [n for n in nodes if isinstance(n, CommentNode)]
        table_order = {t.key: i for i, t in enumerate(tables)}
        ordinals = {
            (t.key, c.name.lower()): c.ordinal for t in tables for c in t.columns
        }

        blocks = [_with_leading(c, self.render_comment(c)) for c in comments if c.column is None]

        column_comments = [c for c in comments if c.column is not None]
        unknown = len(tables)

        def sort_key(item: Tuple[int, CommentNode]):
            position, comment = item
            key = comment.table.key
            ordinal = ordinals.get((key, comment.column.lower()))
            return (table_order.get(key, unknown), ordinal is None, ordinal or 0, position)

        ordered = [c for _, c in sorted(enumerate(column_comments), key=sort_key)]
        if ordered:
            blocks.append('\n'.join(_with_leading(c, self.render_comment(c)) for c in ordered))
        return blocks

    @staticmethod
    def render_comment(comment: CommentNode) -> str:
        if comment.column is None:
            return f"COMMENT ON TABLE {table_sql(comment.table)} IS {quote_literal(comment.text)};"
        return (f"COMMENT ON COLUMN {table_sql(comment.table)}.{column_sql(comment.column)} "
                f"IS {quote_literal(comment.text)};")
