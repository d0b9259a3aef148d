"""
Statement parser for SQL Server DDL scripts.

``TsqlDdlParser.parse`` turns script text into a list of statement nodes.
Scripts are split on ``GO`` batches and top-level semicolons first. CREATE
TABLE and CREATE SEQUENCE are then read by sqlglot (``DdlportTsql``, a T-SQL
dialect subclass) and the nodes are built from its AST. The shapes sqlglot
turns into ``exp.Command`` (``sp_addextendedproperty`` calls, CREATE
CLUSTERED/COLUMNSTORE INDEX, SSDT ``CREATE SCHEMA ... AUTHORIZATION``) and
the ``COMMENT ON`` statements the emitter writes are read from tokens.

Statements whose shape is not modelled become ``RawPassthrough`` nodes with
their text verbatim. Delimiter problems raise nothing: they come back in
``ParseOutcome.errors`` and only affect the statement they occur in.
"""
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlglot import exp

from ddlport.utils.logger import setup_logger
from .errors import ParseError
from .nodes import (
    Column, CommentNode, Constraint, ConstraintKind, DefaultExpr, DefaultKind,
    ExtendedPropertyNode, IndexColumn, IndexNode, InlineIndex, PeriodClause,
    QualifiedName, RawPassthrough, SchemaNode, SequenceNode, SourceSpan,
    StatementNode, TableNode, TableOption, TypeSpec, strip_identifier_quotes,
)
from .utils.dialect_utils import get_sqlglot_dialect
from .utils.parser_utils import safe_parse_one
from .utils.sql_preprocessing import (
    StatementChunk, Token, line_and_column, normalize_sql_text, split_statements,
    split_top_level, strip_outer_parens, tokenize,
)
from .utils.tsql_dialect import CLUSTERING, NOT_FOR_REPLICATION, SOURCE_TEXT, ColumnClause

_NEXT_VALUE = re.compile(r"^NEXT\s+VALUE\s+FOR\s+(.+)$", re.IGNORECASE | re.DOTALL)
_NEXTVAL = re.compile(r"^nextval\s*\(\s*'([^']+)'\s*(?:::\s*regclass)?\s*\)$", re.IGNORECASE)
_NILADIC_CALL = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*\(\s*\)$")
_NUMERIC_LITERAL = re.compile(r"^[+-]?\d+(?:\.\d+)?$")
_STRING_LITERAL = re.compile(r"^N?'(?:[^']|'')*'$", re.DOTALL)
_REFERENTIAL_ACTION = re.compile(r"^ON\s+(DELETE|UPDATE)\s+(.+)$", re.IGNORECASE)

_FILEGROUP_CLAUSES = ('ON', 'TEXTIMAGE_ON', 'FILESTREAM_ON')
_TYPE_SCHEMAS = ('sys', 'pg_catalog')
_EXTENDED_PROPERTY_PROCS = {'sp_addextendedproperty', 'sp_updateextendedproperty'}
_EXTENDED_PROPERTY_ARGS = [
    '@name', '@value', '@level0type', '@level0name',
    '@level1type', '@level1name', '@level2type', '@level2name',
]


class _ShapeError(Exception):
    """The statement does not have a shape this parser models."""


@dataclass
class ParseOutcome:
    nodes: List[StatementNode] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Token stream
# ---------------------------------------------------------------------------


class _Stream:
    def __init__(self, text: str, tokens: List[Token]):
        self.text = text
        self.tokens = tokens
        self.pos = 0

    def peek(self, ahead: int = 0) -> Optional[Token]:
        idx = self.pos + ahead
        return self.tokens[idx] if idx < len(self.tokens) else None

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def next(self) -> Token:
        tok = self.peek()
        if tok is None:
            raise _ShapeError('unexpected end of statement')
        self.pos += 1
        return tok

    def peek_word(self, *words: str) -> bool:
        tok = self.peek()
        return tok is not None and tok.is_word(*words)

    def accept(self, *words: str) -> bool:
        """Consume the exact word sequence when it is next."""
        for offset, word in enumerate(words):
            tok = self.peek(offset)
            if tok is None or not tok.is_word(word):
                return False
        self.pos += len(words)
        return True

    def expect(self, *words: str) -> None:
        if not self.accept(*words):
            tok = self.peek()
            raise _ShapeError(f"expected {' '.join(words)} but found {tok.text if tok else 'end of statement'}")

    def identifier(self) -> str:
        tok = self.next()
        if tok.kind not in ('word', 'quoted'):
            raise _ShapeError(f"expected identifier but found {tok.text}")
        return tok.ident

    def qualified_segments(self) -> List[str]:
        segments = [self.identifier()]
        while self.peek() is not None and self.peek().is_punct('.'):
            self.pos += 1
            segments.append(self.identifier())
        return segments

    def qualified_name(self) -> QualifiedName:
        segments = self.qualified_segments()
        if len(segments) == 1:
            return QualifiedName(segments[0])
        return QualifiedName(segments[-1], schema=segments[-2])

    def group(self) -> Tuple[str, int]:
        """Consume a parenthesised group; return its inner text and offset."""
        open_tok = self.next()
        if not open_tok.is_punct('('):
            raise _ShapeError(f"expected '(' but found {open_tok.text}")
        depth = 1
        while True:
            tok = self.next()
            if tok.is_punct('('):
                depth += 1
            elif tok.is_punct(')'):
                depth -= 1
                if depth == 0:
                    return self.text[open_tok.end:tok.start], open_tok.end

    def take_until(self, stop_words=(), stop_puncts=()) -> str:
        """Consume tokens up to a stop word/punct at depth 0 and return the text."""
        first = self.peek()
        if first is None:
            return ''
        depth = 0
        last = None
        while not self.at_end():
            tok = self.peek()
            if depth == 0 and last is not None and (
                (tok.kind == 'word' and tok.upper in stop_words)
                or (tok.kind == 'punct' and tok.text in stop_puncts)
            ):
                break
            if tok.is_punct('('):
                depth += 1
            elif tok.is_punct(')'):
                depth -= 1
            last = self.next()
        return self.text[first.start:last.end] if last else ''

    def rest(self) -> str:
        tok = self.peek()
        if tok is None:
            return ''
        text = self.text[tok.start:self.tokens[-1].end]
        self.pos = len(self.tokens)
        return text


def _code_tokens(text: str) -> List[Token]:
    return [t for t in tokenize(text) if t.kind != 'comment']


def _matching_paren(tokens: List[Token], open_idx: int) -> int:
    depth = 0
    for idx in range(open_idx, len(tokens)):
        if tokens[idx].is_punct('('):
            depth += 1
        elif tokens[idx].is_punct(')'):
            depth -= 1
            if depth == 0:
                return idx
    raise _ShapeError('unbalanced parentheses')


def _blank(text: str, ranges: List[Tuple[int, int]]) -> str:
    """Overwrite *ranges* of *text* with spaces; newlines and offsets are kept."""
    chars = list(text)
    for start, end in ranges:
        for idx in range(start, end):
            if chars[idx] != '\n':
                chars[idx] = ' '
    return ''.join(chars)


def _comment_element(tok: Token) -> RawPassthrough:
    return RawPassthrough(text=tok.text, is_comment=True, needs_review=False)


def _qualified(table: exp.Table) -> QualifiedName:
    return QualifiedName(table.name, schema=table.db or None)


def _key_columns(expressions) -> List[IndexColumn]:
    columns = []
    for expression in expressions:
        if isinstance(expression, exp.Ordered):
            desc = expression.args.get('desc')
            direction = 'DESC' if desc else ('ASC' if desc is False else None)
            columns.append(IndexColumn(expression.this.name, direction))
        else:
            columns.append(IndexColumn(expression.name))
    return columns


def classify_default(text: str, constraint_name: Optional[str] = None) -> DefaultExpr:
    """Turn a DEFAULT expression into a structured ``DefaultExpr``."""
    body = strip_outer_parens(text)
    match = _NEXT_VALUE.match(body)
    if match:
        stream = _Stream(match.group(1), _code_tokens(match.group(1)))
        return DefaultExpr(DefaultKind.SEQUENCE, body, sequence=stream.qualified_name(),
                           constraint_name=constraint_name)
    match = _NEXTVAL.match(body)
    if match:
        parts = match.group(1).split('.')
        sequence = QualifiedName(parts[-1], schema=parts[-2] if len(parts) > 1 else None)
        return DefaultExpr(DefaultKind.SEQUENCE, body, sequence=sequence, constraint_name=constraint_name)
    if body.upper() == 'CURRENT_TIMESTAMP':
        return DefaultExpr(DefaultKind.CURRENT_TIMESTAMP, body, constraint_name=constraint_name)
    if _NILADIC_CALL.match(body):
        return DefaultExpr(DefaultKind.FUNCTION, body, constraint_name=constraint_name)
    if (_NUMERIC_LITERAL.match(body) or _STRING_LITERAL.match(body)
            or body.upper() in ('NULL', 'TRUE', 'FALSE')):
        return DefaultExpr(DefaultKind.LITERAL, body, constraint_name=constraint_name)
    return DefaultExpr(DefaultKind.EXPRESSION, body, constraint_name=constraint_name)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class TsqlDdlParser:
    """Parses SQL Server (and emitted PostgreSQL) DDL into statement nodes."""

    def __init__(self):
        self.logger = setup_logger('TsqlDdlParser')
        self.dialect = get_sqlglot_dialect('sqlserver')

    def parse(self, content: str) -> ParseOutcome:
        text = normalize_sql_text(content)
        outcome = ParseOutcome()
        pending_comments: List[str] = []

        for chunk in split_statements(text):
            span = SourceSpan(chunk.start, chunk.end, chunk.line, chunk.column)
            if chunk.error is not None:
                self.logger.warning("Parse error at %s: %s", span.describe(), chunk.error.reason)
                outcome.errors.append(chunk.error)
                outcome.nodes.append(RawPassthrough(
                    text=chunk.text, reason=f"parse error: {chunk.error.reason}",
                    span=span, leading_comments=pending_comments,
                ))
                pending_comments = []
                continue

            node = self._parse_chunk(chunk, text, span, pending_comments)
            if node is None:
                continue
            outcome.nodes.append(node)
            pending_comments = []

        if pending_comments:
            outcome.nodes.append(RawPassthrough(
                text='\n'.join(pending_comments), is_comment=True, needs_review=False,
                span=SourceSpan(len(text), len(text), *line_and_column(text, len(text))),
            ))

        self.logger.debug("Parsed %d statement node(s), %d error(s)", len(outcome.nodes), len(outcome.errors))
        return outcome

    def _parse_chunk(self, chunk: StatementChunk, full_text: str, span: SourceSpan,
                     pending_comments: List[str]) -> Optional[StatementNode]:
        all_tokens = tokenize(chunk.text)
        tokens = [t for t in all_tokens if t.kind != 'comment']
        if not tokens:
            pending_comments.extend(t.text for t in all_tokens)
            return None

        code_start = tokens[0].start
        stream = _Stream(chunk.text, tokens)
        try:
            node, body_range = self._dispatch(stream, chunk, full_text)
        except _ShapeError as exc:
            self.logger.debug("Statement at %s kept verbatim: %s", span.describe(), exc)
            node, body_range = RawPassthrough(text=chunk.text[code_start:], reason=str(exc)), None
        if isinstance(node, RawPassthrough):
            # the payload already carries every comment after its first token
            body_range = (code_start, len(chunk.text))

        leading: List[str] = list(pending_comments)
        comments = [t for t in all_tokens if t.kind == 'comment']
        for idx, tok in enumerate(comments):
            if body_range and body_range[0] <= tok.start < body_range[1]:
                continue
            leading.append(tok.text)
            if tok.start < code_start:
                next_start = comments[idx + 1].start if idx + 1 < len(comments) else code_start
                if '\n\n' in re.sub(r"[ \t]+", '', chunk.text[tok.end:min(next_start, code_start)]):
                    leading.append('')
        node.span = span
        node.leading_comments = leading
        return node

    def _dispatch(self, stream: _Stream, chunk: StatementChunk, full_text: str):
        first = stream.peek()
        if first.is_word('CREATE'):
            second = stream.peek(1)
            if second is not None and second.is_word('TABLE'):
                return self._parse_table(stream, chunk, full_text)
            if second is not None and second.is_word('SEQUENCE'):
                return self._parse_sequence(chunk), None
            if second is not None and second.is_word('SCHEMA'):
                return self._parse_schema(stream), None
            if self._looks_like_index(stream):
                return self._parse_index(stream), None
        if first.is_word('EXEC', 'EXECUTE'):
            return self._parse_extended_property(stream), None
        if first.is_word('COMMENT'):
            return self._parse_comment(stream), None
        return RawPassthrough(text=chunk.text[first.start:], reason='unrecognized statement'), None

    def _read_create(self, sql: str) -> exp.Expr:
        ast, err = safe_parse_one(sql, self.dialect)
        if err:
            raise _ShapeError(err.splitlines()[0])
        return ast

    # -- CREATE TABLE ------------------------------------------------------

    def _parse_table(self, stream: _Stream, chunk: StatementChunk, full_text: str):
        """Read CREATE TABLE through sqlglot.

        Inline INDEX elements, computed columns and ON/TEXTIMAGE_ON/FILESTREAM_ON
        filegroup clauses are taken out first (blanked, so offsets hold) and
        modelled here; sqlglot parses what is left.
        """
        tokens = stream.tokens
        open_idx = next((idx for idx, tok in enumerate(tokens) if tok.is_punct('(')), None)
        if open_idx is None:
            raise _ShapeError('CREATE TABLE without a column list')
        close_idx = _matching_paren(tokens, open_idx)
        body_start, body_end = tokens[open_idx].end, tokens[close_idx].start

        slots, pending, blanks = self._plan_table_body(chunk, full_text, body_start, body_end)
        options = self._take_filegroups(chunk.text, tokens[close_idx + 1:], blanks)

        ast = self._read_create(_blank(chunk.text, blanks))
        if not isinstance(ast, exp.Create) or not isinstance(ast.this, exp.Schema):
            raise _ShapeError('unsupported CREATE TABLE clause')
        schema = ast.this
        if len(schema.expressions) != len(pending):
            raise _ShapeError('table elements could not be matched to their source text')

        for (slot, text, span), expression in zip(pending, schema.expressions):
            try:
                slots[slot] = self._table_element(expression, text, span)
            except _ShapeError as exc:
                slots[slot] = [RawPassthrough(text=text, reason=str(exc), span=span)]

        table = TableNode(name=_qualified(schema.this))
        ordinal = 0
        for slot in slots:
            for element in slot:
                if isinstance(element, Column):
                    ordinal += 1
                    element.ordinal = ordinal
                table.elements.append(element)

        properties = ast.args.get('properties')
        options.extend(self._table_option(prop) for prop in (properties.expressions if properties else []))
        table.options = options
        return table, (body_start, body_end)

    def _plan_table_body(self, chunk: StatementChunk, full_text: str, body_start: int, body_end: int):
        """Split the body into element segments.

        Returns ``slots`` (element lists in source order), ``pending``
        (``(slot, text, span)`` for each segment sqlglot will parse) and the
        chunk ranges to blank before parsing.
        """
        slots: List[list] = []
        pending = []
        blanks: List[Tuple[int, int]] = []
        parsed_any = False

        body = chunk.text[body_start:body_end]
        for segment, offset in split_top_level(body):
            seg_start = body_start + offset
            seg_tokens = tokenize(segment)
            code = [t for t in seg_tokens if t.kind != 'comment']
            comments = [t for t in seg_tokens if t.kind == 'comment']
            keep = False

            if not code:
                slots.append([_comment_element(t) for t in comments])
            else:
                slots.append([_comment_element(t) for t in comments if t.start < code[0].start])
                start = chunk.start + seg_start + code[0].start
                line, column = line_and_column(full_text, start)
                span = SourceSpan(start, chunk.start + seg_start + code[-1].end, line, column)
                element_text = segment[code[0].start:code[-1].end]
                seg_stream = _Stream(segment, code)

                if code[0].is_word('INDEX') and self._looks_like_inline_index(seg_stream):
                    try:
                        slots.append([self._parse_inline_index(seg_stream, span)])
                    except _ShapeError as exc:
                        slots.append([RawPassthrough(text=element_text, reason=str(exc), span=span)])
                elif len(code) > 1 and code[0].kind in ('word', 'quoted') and code[1].is_word('AS'):
                    slots.append([RawPassthrough(text=element_text, reason='computed column', span=span)])
                else:
                    keep = True
                    pending.append((len(slots), element_text, span))
                    slots.append([])
                slots.append([_comment_element(t) for t in comments if t.start > code[0].start])

            if not keep:
                blanks.append((seg_start, seg_start + len(segment)))
            # the comma before a segment survives only between two parsed segments
            if offset > 0 and not (keep and parsed_any):
                blanks.append((seg_start - 1, seg_start))
            parsed_any = parsed_any or keep
        return slots, pending, blanks

    def _take_filegroups(self, text: str, tail: List[Token], blanks: List[Tuple[int, int]]) -> List[TableOption]:
        options = []
        depth = 0
        idx = 0
        while idx < len(tail):
            tok = tail[idx]
            if tok.is_punct('('):
                depth += 1
            elif tok.is_punct(')'):
                depth -= 1
            elif depth == 0 and tok.is_word(*_FILEGROUP_CLAUSES) and idx + 1 < len(tail):
                target = last = tail[idx + 1]
                idx += 2
                if idx < len(tail) and tail[idx].is_punct('('):
                    close = _matching_paren(tail, idx)
                    last = tail[close]
                    idx = close + 1
                options.append(TableOption('filegroup', f"{tok.upper} {text[target.start:last.end]}"))
                blanks.append((tok.start, last.end))
                continue
            idx += 1
        return options

    def _table_element(self, expression: exp.Expr, text: str, span: SourceSpan) -> list:
        if isinstance(expression, exp.ColumnDef):
            return self._column(expression, text, span)
        if isinstance(expression, exp.PeriodForSystemTimeConstraint):
            return [PeriodClause(expression.this.name, expression.expression.name, span=span)]
        if isinstance(expression, exp.Constraint):
            if not expression.expressions:
                raise _ShapeError('constraint without a body')
            key, *rest = expression.expressions
            constraint = self._constraint(key, expression.name)
            for extra in rest:
                if not isinstance(extra, exp.NotForReplicationColumnConstraint):
                    raise _ShapeError(f"unsupported constraint clause {extra.sql(dialect=self.dialect)}")
                constraint.options.append('NOT FOR REPLICATION')
        else:
            constraint = self._constraint(expression, None)
        constraint.span = span
        return [constraint]

    def _type_spec(self, data_type: exp.Expr) -> TypeSpec:
        source = data_type.meta.get(SOURCE_TEXT) or data_type.sql(dialect=self.dialect)
        segments = [strip_identifier_quotes(s) for s in source.split('(', 1)[0].split('.')]
        if len(segments) > 1 and segments[0].lower() in _TYPE_SCHEMAS:
            segments = segments[-1:]
        name = ' '.join('.'.join(segments).split())
        return TypeSpec(name, tuple(param.name.upper() for param in data_type.expressions))

    def _source(self, expression: exp.Expr) -> str:
        return expression.meta.get(SOURCE_TEXT) or expression.sql(dialect=self.dialect)

    def _column(self, column_def: exp.ColumnDef, text: str, span: SourceSpan) -> list:
        constraints = [c for c in column_def.constraints if isinstance(c, exp.ColumnConstraint)]
        if any(isinstance(c.args.get('kind'), exp.ComputedColumnConstraint) for c in constraints):
            return [RawPassthrough(text=text, reason='computed column', span=span)]
        data_type = column_def.args.get('kind')
        if data_type is None:
            raise _ShapeError(f"column {column_def.name} has no data type")

        column = Column(name=column_def.name, type=self._type_spec(data_type), ordinal=0, span=span)
        lifted: List[Constraint] = []
        for constraint in constraints:
            name = constraint.args.get('this')
            name = name.name if name else None
            kind = constraint.args.get('kind')
            if isinstance(kind, exp.NotNullColumnConstraint):
                column.nullable = bool(kind.args.get('allow_null'))
            elif isinstance(kind, exp.NotForReplicationColumnConstraint):
                column.extra_clauses.append('NOT FOR REPLICATION')
            elif isinstance(kind, exp.DefaultColumnConstraint):
                column.default = classify_default(self._source(kind.this), name)
            elif isinstance(kind, exp.GeneratedAsRowColumnConstraint):
                column.generated = 'row_start' if kind.args.get('start') else 'row_end'
                if kind.args.get('hidden'):
                    column.extra_clauses.append('HIDDEN')
            elif isinstance(kind, exp.GeneratedAsIdentityColumnConstraint):
                if kind.args.get('expression') is not None:
                    return [RawPassthrough(text=text, reason='computed column', span=span)]
                column.identity = tuple(
                    self._source(kind.args[arg]) if kind.args.get(arg) is not None else '1'
                    for arg in ('start', 'increment')
                )
            elif isinstance(kind, exp.AutoIncrementColumnConstraint):
                column.identity = ('1', '1')
            elif isinstance(kind, exp.CollateColumnConstraint):
                column.collation = kind.name
            elif isinstance(kind, ColumnClause):
                column.extra_clauses.append(kind.name)
            elif isinstance(kind, (exp.PrimaryKeyColumnConstraint, exp.UniqueColumnConstraint,
                                   exp.Reference, exp.ForeignKey, exp.CheckColumnConstraint)):
                lifted.append(self._constraint(kind, name, columns=[IndexColumn(column.name)], span=span))
            elif kind is not None:
                column.extra_clauses.append(kind.sql(dialect=self.dialect))
        return [column] + lifted

    # -- constraints ---------------------------------------------------------

    def _constraint(self, node: exp.Expr, name: Optional[str], columns: Optional[List[IndexColumn]] = None,
                    span: Optional[SourceSpan] = None) -> Constraint:
        options = list(node.args.get('options') or [])
        if isinstance(node, (exp.PrimaryKey, exp.PrimaryKeyColumnConstraint)):
            constraint = Constraint(ConstraintKind.PRIMARY_KEY, name=name, columns=_key_columns(node.expressions))
        elif isinstance(node, exp.UniqueColumnConstraint):
            schema = node.args.get('this')
            keys = _key_columns(schema.expressions) if isinstance(schema, exp.Schema) else []
            constraint = Constraint(ConstraintKind.UNIQUE, name=name, columns=keys)
        elif isinstance(node, (exp.ForeignKey, exp.Reference)):
            constraint = Constraint(ConstraintKind.FOREIGN_KEY, name=name)
            reference = node
            if isinstance(node, exp.ForeignKey):
                constraint.columns = [IndexColumn(e.name) for e in node.expressions]
                reference = node.args.get('reference')
                for action in ('delete', 'update'):
                    if node.args.get(action):
                        options.append(f"ON {action.upper()} {node.args[action]}")
                if reference is None:
                    raise _ShapeError('FOREIGN KEY without REFERENCES')
                options = list(reference.args.get('options') or []) + options
            self._apply_reference(constraint, reference)
        elif isinstance(node, exp.CheckColumnConstraint):
            constraint = Constraint(ConstraintKind.CHECK, name=name, check_expr=self._source(node.this).strip())
            if node.meta.get(NOT_FOR_REPLICATION):
                options.append('NOT FOR REPLICATION')
        else:
            raise _ShapeError(f"unsupported table constraint {node.sql(dialect=self.dialect)}")

        if not constraint.columns and constraint.kind != ConstraintKind.CHECK:
            constraint.columns = list(columns or [])
        constraint.clustering = node.meta.get(CLUSTERING)
        for option in options:
            action = _REFERENTIAL_ACTION.match(option)
            if action and action.group(1).upper() == 'DELETE':
                constraint.on_delete = ' '.join(action.group(2).upper().split())
            elif action:
                constraint.on_update = ' '.join(action.group(2).upper().split())
            else:
                constraint.options.append(option)
        if span is not None:
            constraint.span = span
        return constraint

    def _apply_reference(self, constraint: Constraint, reference: exp.Reference) -> None:
        target = reference.this
        if isinstance(target, exp.Schema):
            constraint.ref_columns = [e.name for e in target.expressions]
            target = target.this
        if not isinstance(target, exp.Table):
            raise _ShapeError('REFERENCES without a table')
        constraint.references = _qualified(target)

    def _accept_clustering(self, stream: _Stream) -> Optional[str]:
        tok = stream.peek()
        if tok is not None and tok.is_word('CLUSTERED', 'NONCLUSTERED'):
            return stream.next().upper
        return None

    def _parse_storage_options(self, stream: _Stream) -> List[str]:
        options = []
        while not stream.at_end():
            if stream.peek_word('WITH'):
                stream.next()
                if stream.peek() is not None and stream.peek().is_punct('('):
                    inner, _ = stream.group()
                    options.append(f"WITH ({inner.strip()})")
                else:
                    options.append(f"WITH {stream.take_until(stop_words={'ON'})}")
            elif stream.peek_word('ON') and not (stream.peek(1) and stream.peek(1).is_word('DELETE', 'UPDATE')):
                stream.next()
                options.append(f"ON {stream.take_until(stop_words={'WITH'})}")
            else:
                break
        return options

    def _parse_index_columns(self, text: str) -> List[IndexColumn]:
        columns = []
        for part, _ in split_top_level(text):
            part_stream = _Stream(part, _code_tokens(part))
            if part_stream.at_end():
                continue
            name = part_stream.identifier()
            direction = None
            if part_stream.peek_word('ASC', 'DESC'):
                direction = part_stream.next().upper
            columns.append(IndexColumn(name, direction))
        return columns

    # -- inline and standalone indexes --------------------------------------

    @staticmethod
    def _looks_like_inline_index(stream: _Stream) -> bool:
        # INDEX <name> ( ... | INDEX <name> UNIQUE/CLUSTERED/...; a column called Index has a type instead
        name_tok, after = stream.peek(1), stream.peek(2)
        if name_tok is None or after is None or name_tok.kind not in ('word', 'quoted'):
            return False
        return after.is_punct('(') or after.is_word('UNIQUE', 'CLUSTERED', 'NONCLUSTERED', 'COLUMNSTORE')

    def _parse_inline_index(self, stream: _Stream, span: SourceSpan) -> InlineIndex:
        stream.expect('INDEX')
        index = InlineIndex(name=stream.identifier(), span=span)
        index.unique = stream.accept('UNIQUE')
        index.clustering = self._accept_clustering(stream)
        index.columnstore = stream.accept('COLUMNSTORE')
        nxt = stream.peek()
        if nxt is not None and nxt.is_punct('('):
            inner, _ = stream.group()
            index.columns = self._parse_index_columns(inner)
        self._parse_index_tail(stream, index)
        return index

    def _parse_index_tail(self, stream: _Stream, index) -> None:
        """INCLUDE / WHERE / WITH / ON clauses shared by both index forms."""
        while not stream.at_end():
            if stream.accept('INCLUDE'):
                inner, _ = stream.group()
                index.include = [c.name for c in self._parse_index_columns(inner)]
            elif stream.accept('WHERE'):
                index.where = stream.take_until(stop_words={'WITH', 'ON'})
            elif stream.peek_word('WITH', 'ON'):
                before = stream.pos
                index.options.extend(self._parse_storage_options(stream))
                if stream.pos == before:
                    raise _ShapeError(f"unsupported index clause {stream.peek().text}")
            else:
                raise _ShapeError(f"unsupported index clause {stream.peek().text}")

    def _looks_like_index(self, stream: _Stream) -> bool:
        ahead = 1
        while True:
            tok = stream.peek(ahead)
            if tok is None:
                return False
            if tok.is_word('INDEX'):
                return True
            if not tok.is_word('UNIQUE', 'CLUSTERED', 'NONCLUSTERED', 'COLUMNSTORE'):
                return False
            ahead += 1

    def _parse_index(self, stream: _Stream) -> IndexNode:
        stream.expect('CREATE')
        unique = stream.accept('UNIQUE')
        clustering = self._accept_clustering(stream)
        columnstore = stream.accept('COLUMNSTORE')
        stream.expect('INDEX')
        stream.accept('IF', 'NOT', 'EXISTS')
        name = stream.identifier()
        stream.expect('ON')
        index = IndexNode(name=name, table=stream.qualified_name(), unique=unique,
                          clustering=clustering, columnstore=columnstore)
        nxt = stream.peek()
        if nxt is not None and nxt.is_punct('('):
            inner, _ = stream.group()
            index.columns = self._parse_index_columns(inner)
        self._parse_index_tail(stream, index)
        return index

    # -- table options -------------------------------------------------------

    def _table_option(self, prop: exp.Expr) -> TableOption:
        text = self._source(prop)
        if isinstance(prop, exp.WithSystemVersioningProperty):
            history = prop.args.get('this')
            return TableOption('system_versioning', text,
                               history_table=_qualified(history) if isinstance(history, exp.Table) else None)
        if isinstance(prop, exp.Property) and prop.name.upper() == 'DATA_COMPRESSION':
            return TableOption('data_compression', text)
        return TableOption('other', text)

    # -- CREATE SEQUENCE / SCHEMA --------------------------------------------

    def _parse_sequence(self, chunk: StatementChunk) -> SequenceNode:
        ast = self._read_create(chunk.text)
        if not isinstance(ast, exp.Create) or not isinstance(ast.this, exp.Table):
            raise _ShapeError('unsupported CREATE SEQUENCE clause')
        sequence = SequenceNode(name=_qualified(ast.this))
        if isinstance(ast.expression, exp.DataType):
            sequence.data_type = self._type_spec(ast.expression)

        properties = ast.args.get('properties')
        for prop in properties.expressions if properties else []:
            if not isinstance(prop, exp.SequenceProperties):
                raise _ShapeError(f"unsupported sequence option {self._source(prop)}")
            for arg, attr in (('start', 'start'), ('increment', 'increment'),
                              ('minvalue', 'min_value'), ('maxvalue', 'max_value')):
                if prop.args.get(arg) is not None:
                    setattr(sequence, attr, prop.args[arg].sql(dialect=self.dialect))
            # a bare CACHE (no size) is stored as True
            if isinstance(prop.args.get('cache'), exp.Expr):
                sequence.cache = prop.args['cache'].sql(dialect=self.dialect)
            for option in prop.args.get('options') or []:
                self._apply_sequence_option(sequence, ' '.join(option.name.upper().split()))
        return sequence

    @staticmethod
    def _apply_sequence_option(sequence: SequenceNode, option: str) -> None:
        if option in ('NO MINVALUE', 'NOMINVALUE'):
            sequence.min_value = 'NO'
        elif option in ('NO MAXVALUE', 'NOMAXVALUE'):
            sequence.max_value = 'NO'
        elif option == 'CYCLE':
            sequence.cycle = True
        elif option in ('NO CYCLE', 'NOCYCLE'):
            sequence.cycle = False
        elif option in ('NO CACHE', 'NOCACHE'):
            sequence.cache = None
        else:
            raise _ShapeError(f"unsupported sequence option {option}")

    def _parse_schema(self, stream: _Stream) -> SchemaNode:
        stream.expect('CREATE', 'SCHEMA')
        stream.accept('IF', 'NOT', 'EXISTS')
        name = stream.identifier()
        if stream.accept('AUTHORIZATION'):
            stream.identifier()
        if not stream.at_end():
            raise _ShapeError('unsupported CREATE SCHEMA clause')
        return SchemaNode(name=name)

    # -- metadata ------------------------------------------------------------

    def _parse_extended_property(self, stream: _Stream) -> ExtendedPropertyNode:
        stream.next()
        proc = stream.qualified_segments()[-1]
        if proc.lower() not in _EXTENDED_PROPERTY_PROCS:
            raise _ShapeError(f"unsupported procedure call {proc}")
        args = {}
        remaining = stream.rest()
        for position, (arg, _) in enumerate(split_top_level(remaining)):
            arg_stream = _Stream(arg, _code_tokens(arg))
            if arg_stream.at_end():
                continue
            key = _EXTENDED_PROPERTY_ARGS[position] if position < len(_EXTENDED_PROPERTY_ARGS) else None
            if arg_stream.peek().text.startswith('@') and arg_stream.peek(1) is not None \
                    and arg_stream.peek(1).is_punct('='):
                key = arg_stream.next().text.lower()
                arg_stream.next()
            value_tok = arg_stream.next()
            if value_tok.kind == 'string':
                value = value_tok.string_value
            elif value_tok.is_word('NULL'):
                value = None
            else:
                value = value_tok.ident
            if key:
                args[key] = value

        if args.get('@name') is None:
            raise _ShapeError('extended property without @name')
        levels = []
        for depth in range(3):
            level_type = args.get(f'@level{depth}type')
            level_name = args.get(f'@level{depth}name')
            if not level_type:
                break
            levels.append((level_type.upper(), level_name or ''))
        return ExtendedPropertyNode(property_name=args['@name'], value=args.get('@value') or '', levels=levels)

    def _parse_comment(self, stream: _Stream) -> CommentNode:
        stream.expect('COMMENT', 'ON')
        if stream.accept('TABLE'):
            table = stream.qualified_name()
            column = None
        elif stream.accept('COLUMN'):
            segments = stream.qualified_segments()
            if len(segments) < 2:
                raise _ShapeError('COMMENT ON COLUMN needs table.column')
            column = segments[-1]
            table = QualifiedName(segments[-2], schema=segments[-3] if len(segments) > 2 else None)
        else:
            raise _ShapeError('unsupported COMMENT ON target')
        stream.expect('IS')
        value_tok = stream.next()
        if value_tok.kind != 'string':
            raise _ShapeError('COMMENT ON expects a string literal')
        return CommentNode(table=table, column=column, text=value_tok.string_value)
