"""
Extended properties and COMMENT ON statements.

``MS_Description`` (or whatever ``comment_conversion.properties`` lists) on a
table or column becomes a PostgreSQL comment. Index-level properties have no
PostgreSQL counterpart and are only counted; every other level is kept for
manual review.
"""
from typing import Any, Dict, Optional

from ddlport.utils.logger import setup_logger
from ...errors import UnmappedConstructWarning
from ...nodes import CommentNode, ExtendedPropertyNode, QualifiedName, RawPassthrough
from ...utils.identifier_utils import quote_literal
from ..base_converter import BaseConverter, ConversionOutcome


class CommentHandler(BaseConverter):
    def __init__(self, source_dialect: str, target_dialect: str, comment_config: Optional[Dict[str, Any]] = None):
        super().__init__(source_dialect, target_dialect)
        self.logger = setup_logger('CommentHandler')
        comment_config = comment_config or {}
        self.enabled = comment_config.get('enabled', True)
        self.properties = {p.lower() for p in comment_config.get('properties', ['MS_Description'])}

    def convert_statement(self, node) -> ConversionOutcome:
        return self.handle(node)

    def handle(self, node) -> ConversionOutcome:
        if isinstance(node, CommentNode):
            return self._keep_comment(node)
        if isinstance(node, ExtendedPropertyNode):
            return self._convert_extended_property(node)
        raise TypeError(f"CommentHandler cannot convert {type(node).__name__}")

    def _keep_comment(self, node: CommentNode) -> ConversionOutcome:
        outcome = ConversionOutcome()
        outcome.nodes.append(CommentNode(table=node.table, column=node.column, text=node.text, span=node.span,
                                         leading_comments=list(node.leading_comments)))
        rule = 'column_comment' if node.column else 'table_comment'
        target = f"{node.table.display()}.{node.column}" if node.column else node.table.display()
        outcome.tag('extended_properties', rule, target)
        return outcome

    def _convert_extended_property(self, node: ExtendedPropertyNode) -> ConversionOutcome:
        outcome = ConversionOutcome()
        level_types = [level_type for level_type, _ in node.levels]

        if self.enabled and node.property_name.lower() in self.properties:
            if level_types == ['SCHEMA', 'TABLE']:
                table = QualifiedName(node.levels[1][1], schema=node.levels[0][1])
                outcome.nodes.append(CommentNode(table=table, text=node.value, span=node.span,
                                                 leading_comments=list(node.leading_comments)))
                outcome.tag('extended_properties', 'table_comment', table.display())
                return outcome
            if level_types == ['SCHEMA', 'TABLE', 'COLUMN']:
                table = QualifiedName(node.levels[1][1], schema=node.levels[0][1])
                column = node.levels[2][1]
                outcome.nodes.append(CommentNode(table=table, column=column, text=node.value, span=node.span,
                                                 leading_comments=list(node.leading_comments)))
                outcome.tag('extended_properties', 'column_comment', f"{table.display()}.{column}")
                return outcome
            if level_types == ['SCHEMA', 'TABLE', 'INDEX']:
                outcome.index_property_omissions += 1
                outcome.tag('extended_properties', 'index_property_omitted',
                            f"{node.levels[0][1]}.{node.levels[1][1]}.{node.levels[2][1]}")
                if node.leading_comments:
                    outcome.nodes.append(RawPassthrough(text='\n'.join(node.leading_comments), is_comment=True,
                                                        needs_review=False, span=node.span))
                return outcome

        path = '.'.join(name for _, name in node.levels) or '(database)'
        self.logger.info(f"Extended property {node.property_name} on {path} kept for review")
        outcome.tag('extended_properties', 'extended_property_review', f"{node.property_name} on {path}",
                    needs_review=True)
        outcome.issues.append(UnmappedConstructWarning(
            object_name=path,
            message=f"Extended property {node.property_name} has no PostgreSQL equivalent.",
            suggested_action="Record the property in a COMMENT or drop it.",
        ))
        outcome.nodes.append(RawPassthrough(
            text=self._render_extended_property(node),
            reason=f"extended property {node.property_name} not converted",
            span=node.span,
            leading_comments=list(node.leading_comments),
        ))
        return outcome

    @staticmethod
    def _render_extended_property(node: ExtendedPropertyNode) -> str:
        args = [f"@name = {quote_literal(node.property_name)}", f"@value = {quote_literal(node.value)}"]
        for depth, (level_type, level_name) in enumerate(node.levels):
            args.append(f"@level{depth}type = {quote_literal(level_type)}")
            args.append(f"@level{depth}name = {quote_literal(level_name)}")
        return "EXEC sys.sp_addextendedproperty " + ", ".join(args)
