from typing import Optional

from ddlport.utils.logger import setup_logger
from ...errors import UnmappedConstructWarning
from ...nodes import IndexColumn, IndexNode, RawPassthrough
from ...utils.dialect_utils import get_sqlglot_dialect
from ...utils.parser_utils import validate_expression
from ...utils.sql_preprocessing import unbracket_expression
from ..base_converter import BaseConverter, ConversionOutcome


class IndexHandler(BaseConverter):
    """Converts CREATE INDEX statements (and inline table indexes lifted to them)."""

    def __init__(self, source_dialect: str, target_dialect: str):
        super().__init__(source_dialect, target_dialect)
        self.logger = setup_logger('IndexHandler')

    def convert_statement(self, node: IndexNode) -> ConversionOutcome:
        return self.handle(node)

    def handle(self, index: IndexNode) -> ConversionOutcome:
        outcome = ConversionOutcome()
        label = f"{index.table.display()}.{index.name}"

        if index.columnstore:
            table_label = index.table.display()
            outcome.tag('indexes', 'index_columnstore_omitted', label)
            outcome.nodes.append(RawPassthrough(
                text=f"-- Columnstore index {index.name} on {table_label} omitted (PostgreSQL has no columnstore indexes)",
                is_comment=True,
                needs_review=False,
                span=index.span,
                leading_comments=list(index.leading_comments),
            ))
            self.logger.info(f"Omitted columnstore index {label}")
            return outcome

        converted = IndexNode(
            name=index.name,
            table=index.table,
            columns=[IndexColumn(c.name, c.direction) for c in index.columns],
            unique=index.unique,
            include=list(index.include),
            span=index.span,
            leading_comments=list(index.leading_comments),
        )
        if index.clustering == 'CLUSTERED':
            outcome.tag('indexes', 'clustered_index_converted', label)
        else:
            outcome.tag('indexes', 'index_converted', label)
        if index.include:
            outcome.tag('indexes', 'include_kept', f"{label}: {', '.join(index.include)}")
        if index.options:
            outcome.tag('indexes', 'index_options_dropped', f"{label}: {' '.join(index.options)}")

        if index.where:
            converted.where = self._convert_filter(index.where, label, outcome)

        outcome.nodes.append(converted)
        return outcome

    def _convert_filter(self, where: str, label: str, outcome: ConversionOutcome) -> Optional[str]:
        predicate = unbracket_expression(where)
        outcome.tag('indexes', 'filtered_index_review', f"{label}: WHERE {predicate}", needs_review=True)
        err = validate_expression(predicate, get_sqlglot_dialect(self.target_dialect))
        if err:
            outcome.issues.append(UnmappedConstructWarning(
                object_name=label,
                message=f"Index filter does not parse as PostgreSQL: {err}",
                suggested_action="Rewrite the partial index predicate by hand.",
            ))
        return predicate
