"""
SQL Server dialect used to read DDL scripts.

This module extends sqlglot's built-in T-SQL dialect with the pieces the DDL
reader needs on top of it.

WHAT THIS FILE DOES:
====================
- Keeps ``TIMESTAMP`` as the ANSI type and reads ``"..."`` only as an
  identifier, so emitted PostgreSQL DDL reads back unchanged.
- Records the source text of defaults, check bodies, column types and table
  options under ``SOURCE_TEXT`` in the node's ``meta``. Converters work on
  the text as written; sqlglot rewrites ``getdate()`` or ``REAL`` on parse.
- Accepts ``CLUSTERED``/``NONCLUSTERED`` and trailing ``WITH (...)`` /
  ``ON <filegroup>`` storage clauses on PRIMARY KEY and UNIQUE.
- Defines ``ColumnClause`` for column flags sqlglot has no node for
  (``ROWGUIDCOL``, ``SPARSE``, ``MASKED WITH (...)``).
"""
from sqlglot import exp
from sqlglot.dialects.tsql import TSQL
from sqlglot.tokens import TokenType

SOURCE_TEXT = 'source_text'
CLUSTERING = 'clustering'
NOT_FOR_REPLICATION = 'not_for_replication'

_COLUMN_CLAUSES = ('ROWGUIDCOL', 'SPARSE', 'FILESTREAM', 'HIDDEN', 'PERSISTED', 'MASKED', 'ENCRYPTED')


class ColumnClause(exp.Expression, exp.ColumnConstraintKind):
    """A column clause kept as written, e.g. ``ROWGUIDCOL`` or ``MASKED WITH (FUNCTION = 'email()')``."""
    arg_types = {"this": True}


class DdlportTsqlParser(TSQL.Parser):

    CONSTRAINT_PARSERS = {
        **TSQL.Parser.CONSTRAINT_PARSERS,
        "DEFAULT": lambda self: self.expression(
            exp.DefaultColumnConstraint(this=self._parse_with_source(self._parse_bitwise))
        ),
        **dict.fromkeys(_COLUMN_CLAUSES, lambda self: self._parse_column_clause()),
    }

    def _remember_source(self, node, start):
        if isinstance(node, exp.Expr) and start and self._prev and self._prev.end >= start.start:
            node.meta[SOURCE_TEXT] = self.sql[start.start:self._prev.end + 1]
        return node

    def _parse_with_source(self, parse_method):
        start = self._curr
        return self._remember_source(parse_method(), start)

    def _skip_wrapped(self) -> None:
        """Consume a balanced ``( ... )`` group when one is next."""
        if not self._match(TokenType.L_PAREN):
            return
        depth = 1
        while self._curr and depth:
            if self._curr.token_type == TokenType.L_PAREN:
                depth += 1
            elif self._curr.token_type == TokenType.R_PAREN:
                depth -= 1
            self._advance()

    def _parse_clustering(self):
        if self._match_texts(("CLUSTERED", "NONCLUSTERED")):
            return self._prev.text.upper()
        return None

    def _parse_column_clause(self) -> ColumnClause:
        keyword = self._prev
        if self._match(TokenType.WITH):
            self._skip_wrapped()
        text = keyword.text.upper() + self.sql[keyword.end + 1:self._prev.end + 1]
        return self.expression(ColumnClause(this=exp.var(text)))

    def _parse_types(self, check_func=False, schema=False, allow_identifiers=True, with_collation=False):
        start = self._curr
        data_type = super()._parse_types(
            check_func=check_func, schema=schema,
            allow_identifiers=allow_identifiers, with_collation=with_collation,
        )
        return self._remember_source(data_type, start)

    def _parse_check_constraint(self):
        not_for_replication = self._match_text_seq("NOT", "FOR", "REPLICATION")
        if not self._match(TokenType.L_PAREN):
            return None
        this = self._parse_with_source(self._parse_assignment)
        self._match_r_paren()
        check = self.expression(exp.CheckColumnConstraint(this=this))
        if not_for_replication:
            check.meta[NOT_FOR_REPLICATION] = True
        return check

    def _parse_primary_key(self, wrapped_optional=False, in_props=False, named_primary_key=False):
        clustering = self._parse_clustering()
        if in_props or not self._match(TokenType.L_PAREN, advance=False):
            key = super()._parse_primary_key(
                wrapped_optional=wrapped_optional, in_props=in_props, named_primary_key=named_primary_key,
            )
        else:
            key = self.expression(
                exp.PrimaryKey(
                    expressions=self._parse_wrapped_csv(self._parse_primary_key_part),
                    options=self._parse_key_constraint_options(),
                )
            )
        if clustering:
            key.meta[CLUSTERING] = clustering
        return key

    def _parse_unique(self) -> exp.UniqueColumnConstraint:
        clustering = self._parse_clustering()
        schema = None
        if self._match(TokenType.L_PAREN, advance=False):
            schema = self.expression(exp.Schema(expressions=self._parse_wrapped_csv(self._parse_ordered)))
        unique = self.expression(
            exp.UniqueColumnConstraint(this=schema, options=self._parse_key_constraint_options())
        )
        if clustering:
            unique.meta[CLUSTERING] = clustering
        return unique

    def _parse_key_constraint_options(self) -> list:
        # Storage clauses come back verbatim; ON DELETE/UPDATE keep sqlglot's "ON DELETE CASCADE" form.
        options = []
        while self._curr:
            start = self._curr
            if self._match(TokenType.WITH, advance=False) and self._next and self._next.token_type == TokenType.L_PAREN:
                self._advance()
                self._skip_wrapped()
            elif (self._match(TokenType.ON, advance=False) and self._next
                    and self._next.token_type not in (TokenType.DELETE, TokenType.UPDATE)):
                self._advance(2)
                self._skip_wrapped()
            elif self._match_text_seq("NOT", "FOR", "REPLICATION"):
                options.append("NOT FOR REPLICATION")
                continue
            else:
                key_options = super()._parse_key_constraint_options()
                if not key_options:
                    break
                options.extend(key_options)
                continue
            options.append(self.sql[start.start:self._prev.end + 1])
        return options

    def _parse_with_property(self):
        # every item of WITH (...) goes through _parse_property, SYSTEM_VERSIONING included
        if self._match(TokenType.L_PAREN, advance=False):
            result = []
            for item in self._parse_wrapped_properties():
                result.extend(item) if isinstance(item, list) else result.append(item)
            return result
        return super()._parse_with_property()

    def _parse_property(self):
        start = self._curr
        prop = super()._parse_property()
        if isinstance(prop, list):
            return prop
        return self._remember_source(prop, start)


class DdlportTsqlGenerator(TSQL.Generator):

    TRANSFORMS = {
        **TSQL.Generator.TRANSFORMS,
        ColumnClause: lambda self, e: e.name,
    }


class DdlportTsql(TSQL):
    """T-SQL as written by SSDT projects, and the PostgreSQL DDL this tool emits."""

    class Tokenizer(TSQL.Tokenizer):
        QUOTES = ["'"]

        KEYWORDS = {
            **TSQL.Tokenizer.KEYWORDS,
            "TIMESTAMP": TokenType.TIMESTAMP,
        }

    Parser = DdlportTsqlParser

    Generator = DdlportTsqlGenerator
