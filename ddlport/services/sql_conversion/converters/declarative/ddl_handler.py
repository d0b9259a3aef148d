"""
Handles the conversion of Data Definition Language (DDL) statements,
specifically CREATE TABLE, CREATE SEQUENCE and CREATE SCHEMA nodes.

Every rule is driven by the declarative tables in ``data_types.json`` and
``dialect_behaviors.json``; the handler only walks the node and records which
rule fired so the report can explain the output.
"""
import re
from typing import Any, Dict, List, Optional

from ddlport.utils.logger import setup_logger
from ...errors import UnmappedConstructWarning
from ...nodes import (
    Column, Constraint, ConstraintKind, DefaultExpr, DefaultKind, IndexColumn, IndexNode,
    InlineIndex, PeriodClause, QualifiedName, RawPassthrough, SchemaNode, SequenceNode,
    TableNode, TypeSpec,
)
from ...utils.config_loader import load_json_from_conversion_config
from ...utils.dialect_utils import get_sqlglot_dialect
from ...utils.identifier_utils import quote_literal, sequence_target_name
from ...utils.parser_utils import transpile_expression, validate_expression
from ...utils.sql_preprocessing import comment_out, strip_outer_parens, unbracket_expression
from ...utils.type_mapping import TypeMapper
from ..base_converter import BaseConverter, ConversionOutcome
from .index_handler import IndexHandler

_SIMPLE_EXPRESSION = re.compile(r"^(?:[A-Za-z_][\w.]*(?:\([^()]*\))?|'(?:[^']|'')*'|[+-]?\d+(?:\.\d+)?)$")
_INTEGER_SEQUENCE_TYPES = {'SMALLINT', 'INTEGER', 'BIGINT'}
_DEFAULT_REMOVABLE_OPTIONS = ['filegroup', 'data_compression']


class DdlHandler(BaseConverter):
    """
    Handles Data Definition Language (DDL) statements by applying the
    configured, feature-based rules to each table, sequence and schema node.
    """
    def __init__(self, source_dialect: str, target_dialect: str, index_handler: Optional[IndexHandler] = None):
        super().__init__(source_dialect, target_dialect)
        self.logger = setup_logger('DdlHandler')
        self.index_handler = index_handler or IndexHandler(source_dialect, target_dialect)
        self.behavior_config = self._load_behavior_config()
        self.type_mapper = TypeMapper.from_config(self._load_data_type_config())

        mappings = self.behavior_config.get('default_functions', {}).get('mappings', {})
        self.default_functions = {name.upper(): target for name, target in mappings.items()}
        self.known_target_defaults = {strip_outer_parens(target).upper(): target for target in mappings.values()}
        self.sequence_suffix = self.behavior_config.get('sequence_naming', {}).get('suffix', '_seq')

        removal_cfg = self.behavior_config.get('table_option_removal', {})
        self.removable_option_kinds = set(removal_cfg.get('kinds', _DEFAULT_REMOVABLE_OPTIONS)) \
            if removal_cfg.get('enabled', True) else set()
        self.logger.info("DdlHandler initialized with %d type rule(s).", len(self.type_mapper.rules))

    def _load_behavior_config(self) -> Dict[str, Any]:
        """Loads behavior configuration from a JSON file."""
        config = load_json_from_conversion_config(
            self.logger, self.source_dialect, self.target_dialect, 'ddl_conversion_rules', 'dialect_behaviors.json'
        )
        if not config:
            self.logger.warning("dialect_behaviors.json not found. DDL handler will use default behaviors.")
        return config

    def _load_data_type_config(self) -> Dict[str, Any]:
        config = load_json_from_conversion_config(
            logger=self.logger,
            source_type=self.source_dialect,
            target_type=self.target_dialect,
            rules_subdirectory='ddl_conversion_rules',
            config_filename='data_types.json'
        )
        if not config:
            self.logger.warning("data_types.json not found. Every column type will be flagged as unmapped.")
        return config

    def convert_statement(self, node) -> ConversionOutcome:
        return self.handle(node)

    def handle(self, node) -> ConversionOutcome:
        """Main entry point for converting a single DDL node."""
        if isinstance(node, TableNode):
            return self._convert_table(node)
        if isinstance(node, SequenceNode):
            return self._convert_sequence(node)
        if isinstance(node, SchemaNode):
            outcome = ConversionOutcome()
            outcome.nodes.append(SchemaNode(name=node.name.lower(), span=node.span,
                                            leading_comments=list(node.leading_comments)))
            outcome.tag('schemas', 'schema_declared', node.name.lower())
            return outcome
        raise TypeError(f"DdlHandler cannot convert {type(node).__name__}")

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def _convert_table(self, table: TableNode) -> ConversionOutcome:
        outcome = ConversionOutcome()
        owner = table.name.display()
        self.logger.debug(f"Handling DDL for table: {owner}")

        target = TableNode(name=table.name, span=table.span, leading_comments=list(table.leading_comments))
        trailing_indexes: List[ConversionOutcome] = []

        for element in table.elements:
            if isinstance(element, Column):
                target.elements.extend(self._convert_column(element, owner, outcome))
            elif isinstance(element, Constraint):
                target.elements.append(self._convert_constraint(element, owner, outcome))
            elif isinstance(element, PeriodClause):
                outcome.tag('temporal', 'period_for_system_time_dropped',
                            f"{owner}: PERIOD FOR SYSTEM_TIME ({element.start_column}, {element.end_column})")
                outcome.flags['temporal_table'] = True
            elif isinstance(element, InlineIndex):
                trailing_indexes.append(self._convert_inline_index(element, table, outcome))
            elif element.is_comment:
                target.elements.append(element)
            else:
                target.elements.append(self._review_element(element, owner, outcome))

        self._convert_table_options(table, target, owner, outcome)

        outcome.nodes.append(target)
        for index_outcome in trailing_indexes:
            outcome.extend(index_outcome)
        self.logger.info(f"Converted table '{owner}' ({len(target.columns)} column(s)).")
        return outcome

    def _convert_column(self, column: Column, owner: str, outcome: ConversionOutcome) -> list:
        qualified = f"{owner}.{column.name}"
        mapping = self.type_mapper.map(column.type)
        if mapping.mapped:
            outcome.tag('types', 'type_mapped', mapping.rule)
            if mapping.flag:
                outcome.flags[mapping.flag] = True
            if mapping.note:
                outcome.tag('types', 'precision_adjusted', f"{qualified}: {mapping.note}")
        else:
            outcome.tag('types', 'type_unmapped', f"{qualified}: {column.type.sql()}", needs_review=True)
            outcome.issues.append(UnmappedConstructWarning(
                object_name=qualified,
                message=f"Column type {column.type.sql()} has no PostgreSQL mapping and was kept unchanged.",
                suggested_action="Pick an equivalent PostgreSQL type or create a matching domain.",
            ))

        converted = Column(
            name=column.name,
            type=mapping.target,
            ordinal=column.ordinal,
            nullable=column.nullable,
            identity=column.identity,
            span=column.span,
        )
        extra_clauses = list(column.extra_clauses)

        if column.generated:
            converted.type = TypeSpec('TIMESTAMP', ('6',))
            converted.default = DefaultExpr(DefaultKind.CURRENT_TIMESTAMP, 'CURRENT_TIMESTAMP')
            converted.nullable = False
            extra_clauses = [c for c in extra_clauses if c != 'HIDDEN']
            outcome.tag('temporal', 'period_column_retyped', f"{qualified} (ROW {column.generated.split('_')[1].upper()})")
            outcome.flags['temporal_table'] = True
        elif column.default is not None:
            converted.default = self._convert_default(column.default, converted, qualified, outcome)

        if column.identity:
            outcome.tag('identity', 'identity_to_generated',
                        f"{qualified}: IDENTITY({column.identity[0]},{column.identity[1]})")
            if 'NOT FOR REPLICATION' in extra_clauses:
                extra_clauses.remove('NOT FOR REPLICATION')
                outcome.tag('identity', 'not_for_replication_dropped', qualified)

        if column.collation:
            outcome.tag('columns', 'collation_dropped', f"{qualified}: COLLATE {column.collation}")

        elements: list = [converted]
        if extra_clauses:
            clause_text = ' '.join(extra_clauses)
            outcome.tag('columns', 'column_clause_review', f"{qualified}: {clause_text}", needs_review=True)
            outcome.issues.append(UnmappedConstructWarning(
                object_name=qualified,
                message=f"Column clause(s) not converted: {clause_text}",
                suggested_action="Recreate the behaviour with a PostgreSQL feature (trigger, policy, storage option) if it is still needed.",
            ))
            elements.append(RawPassthrough(text=clause_text, reason=f"column {column.name}: clause not converted",
                                           span=column.span))
        return elements

    def _convert_default(self, default: DefaultExpr, column: Column, qualified: str,
                         outcome: ConversionOutcome) -> DefaultExpr:
        if default.constraint_name:
            outcome.tag('defaults', 'default_constraint_unwrapped', f"{qualified}: {default.constraint_name}")

        if default.kind == DefaultKind.SEQUENCE:
            target_name = sequence_target_name(default.sequence, self.sequence_suffix)
            if target_name.key not in {n.key for n in outcome.consumed_sequences}:
                outcome.consumed_sequences.append(target_name)
            call = f"nextval({quote_literal(f'{target_name.schema}.{target_name.name}')})"
            outcome.tag('defaults', 'sequence_default', f"{qualified}: {default.sequence.display()} -> {call}")
            return DefaultExpr(DefaultKind.SEQUENCE, call, sequence=target_name)

        if default.kind == DefaultKind.CURRENT_TIMESTAMP:
            outcome.tag('defaults', 'current_timestamp', qualified)
            return DefaultExpr(DefaultKind.CURRENT_TIMESTAMP, 'CURRENT_TIMESTAMP')

        if default.kind == DefaultKind.FUNCTION:
            function_name = default.text.split('(', 1)[0].strip().upper()
            mapped = self.default_functions.get(function_name)
            if mapped is not None:
                kind = DefaultKind.CURRENT_TIMESTAMP if mapped == 'CURRENT_TIMESTAMP' else DefaultKind.FUNCTION
                outcome.tag('defaults', 'function_mapped', f"{qualified}: {default.text} -> {mapped}")
                return DefaultExpr(kind, mapped)

        if default.kind == DefaultKind.LITERAL:
            return DefaultExpr(DefaultKind.LITERAL, self._convert_literal(default.text, column, qualified, outcome))

        known = self.known_target_defaults.get(default.text.upper())
        if known is not None:
            return DefaultExpr(default.kind, known)
        return DefaultExpr(DefaultKind.EXPRESSION, self._transpile_default(default.text, qualified, outcome))

    def _convert_literal(self, text: str, column: Column, qualified: str, outcome: ConversionOutcome) -> str:
        if text[:1] in ('N', 'n') and text[1:2] == "'":
            text = text[1:]
            outcome.tag('defaults', 'unicode_prefix_dropped', qualified)
        if column.type.name.upper() == 'BOOLEAN' and text.strip("'") in ('0', '1'):
            converted = 'TRUE' if text.strip("'") == '1' else 'FALSE'
            outcome.tag('defaults', 'boolean_literal', f"{qualified}: {text} -> {converted}")
            return converted
        return text

    def _transpile_default(self, text: str, qualified: str, outcome: ConversionOutcome) -> str:
        converted, err = transpile_expression(
            text, read=get_sqlglot_dialect(self.source_dialect), write=get_sqlglot_dialect(self.target_dialect)
        )
        if converted is None:
            self.logger.warning(f"Could not transpile default of {qualified}: {err}")
            converted = unbracket_expression(text)
        if not _SIMPLE_EXPRESSION.match(converted):
            converted = f"({converted})"
        outcome.tag('defaults', 'default_expression_review', f"{qualified}: {text} -> {converted}", needs_review=True)
        outcome.issues.append(UnmappedConstructWarning(
            object_name=qualified,
            message=f"Default expression {text} was translated automatically to {converted}.",
            suggested_action="Verify the translated default expression.",
        ))
        return converted

    def _convert_constraint(self, constraint: Constraint, owner: str, outcome: ConversionOutcome) -> Constraint:
        label = f"{owner}.{constraint.name}" if constraint.name else f"{owner} ({constraint.kind.value})"
        converted = Constraint(constraint.kind, name=constraint.name, span=constraint.span)

        if constraint.kind in (ConstraintKind.PRIMARY_KEY, ConstraintKind.UNIQUE):
            converted.columns = [IndexColumn(c.name) for c in constraint.columns]
            if constraint.clustering:
                outcome.tag('constraints', 'clustering_removed', f"{label}: {constraint.clustering}")
            if any(c.direction for c in constraint.columns):
                outcome.tag('constraints', 'key_sort_order_removed', label)
            if constraint.options:
                outcome.tag('constraints', 'storage_options_dropped', f"{label}: {' '.join(constraint.options)}")
            outcome.tag('constraints', 'primary_key' if constraint.kind == ConstraintKind.PRIMARY_KEY else 'unique', label)

        elif constraint.kind == ConstraintKind.FOREIGN_KEY:
            converted.columns = [IndexColumn(c.name) for c in constraint.columns]
            converted.references = constraint.references
            converted.ref_columns = list(constraint.ref_columns)
            converted.on_delete = constraint.on_delete
            converted.on_update = constraint.on_update
            if 'NOT FOR REPLICATION' in constraint.options:
                outcome.tag('constraints', 'not_for_replication_dropped', label)
            outcome.tag('constraints', 'foreign_key', f"{label} -> {constraint.references.display()}")

        else:
            expression = unbracket_expression(constraint.check_expr or '')
            converted.check_expr = expression
            if 'NOT FOR REPLICATION' in constraint.options:
                outcome.tag('constraints', 'not_for_replication_dropped', label)
            outcome.tag('constraints', 'check_constraint_review', f"{label}: {expression}", needs_review=True)
            err = validate_expression(expression, get_sqlglot_dialect(self.target_dialect))
            if err:
                outcome.issues.append(UnmappedConstructWarning(
                    object_name=label,
                    message=f"CHECK expression does not parse as PostgreSQL: {err}",
                    suggested_action="Rewrite the CHECK expression using PostgreSQL functions and operators.",
                ))
        return converted

    def _convert_inline_index(self, index: InlineIndex, table: TableNode, outcome: ConversionOutcome) -> ConversionOutcome:
        outcome.tag('indexes', 'inline_index_extracted', f"{table.name.display()}.{index.name}")
        standalone = IndexNode(
            name=index.name, table=table.name, columns=list(index.columns), unique=index.unique,
            clustering=index.clustering, columnstore=index.columnstore, include=list(index.include),
            where=index.where, options=list(index.options), span=index.span,
        )
        return self.index_handler.handle(standalone)

    def _review_element(self, element: RawPassthrough, owner: str, outcome: ConversionOutcome) -> RawPassthrough:
        reason = element.reason or 'table element not converted'
        rule = 'computed_column_review' if reason == 'computed column' else 'element_review'
        outcome.tag('columns', rule, f"{owner}: {element.text}", needs_review=True)
        outcome.issues.append(UnmappedConstructWarning(
            object_name=owner,
            message=f"Table element kept as a comment ({reason}): {element.text}",
            suggested_action="Convert the element by hand (generated column, trigger or view).",
        ))
        return RawPassthrough(text=element.text, reason=reason, span=element.span)

    def _convert_table_options(self, table: TableNode, target: TableNode, owner: str, outcome: ConversionOutcome) -> None:
        for option in table.options:
            if option.kind == 'system_versioning':
                outcome.tag('temporal', 'system_versioning_dropped', f"{owner}: {option.text}")
                outcome.flags['temporal_table'] = True
                if option.history_table is not None:
                    outcome.flags['temporal_history_table'] = str(option.history_table.key)
            elif option.kind in self.removable_option_kinds:
                outcome.tag('table_options', f"{option.kind}_dropped", f"{owner}: {option.text}")
            else:
                outcome.tag('table_options', 'table_option_review', f"{owner}: {option.text}", needs_review=True)
                outcome.issues.append(UnmappedConstructWarning(
                    object_name=owner,
                    message=f"Table option not converted: {option.text}",
                    suggested_action="Apply an equivalent PostgreSQL storage parameter if needed.",
                ))
                target.elements.append(RawPassthrough(
                    text=comment_out(f"REVIEW: table option not converted: {option.text}"),
                    is_comment=True,
                ))

    # ------------------------------------------------------------------
    # Sequences
    # ------------------------------------------------------------------

    def _convert_sequence(self, sequence: SequenceNode) -> ConversionOutcome:
        outcome = ConversionOutcome()
        target_name = sequence_target_name(sequence.name, self.sequence_suffix)
        converted = SequenceNode(
            name=target_name,
            start=sequence.start,
            increment=sequence.increment,
            min_value=sequence.min_value,
            max_value=sequence.max_value,
            cycle=sequence.cycle,
            cache=sequence.cache,
            span=sequence.span,
            leading_comments=list(sequence.leading_comments),
        )
        if sequence.data_type is not None:
            mapping = self.type_mapper.map(sequence.data_type)
            if mapping.mapped and mapping.target.name.upper() in _INTEGER_SEQUENCE_TYPES:
                converted.data_type = TypeSpec(mapping.target.name)
            else:
                outcome.tag('sequences', 'sequence_type_dropped',
                            f"{sequence.name.display()}: AS {sequence.data_type.sql()}")
        outcome.tag('sequences', 'sequence_declared', f"{sequence.name.display()} -> {target_name.display()}")
        outcome.nodes.append(converted)
        return outcome

    def declare_missing_sequence(self, name: QualifiedName) -> SequenceNode:
        """Best-effort declaration for a consumed sequence with no definition."""
        return SequenceNode(name=name, start='1', increment='1', inferred=True)
