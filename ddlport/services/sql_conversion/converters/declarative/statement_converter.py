from typing import Iterable

from ddlport.utils.logger import setup_logger
from ...dependency_graph import describe_self_references, extract_dependency_edges
from ...errors import MissingSequenceDefinitionWarning, UnmappedConstructWarning
from ...nodes import (
    CommentNode, ExtendedPropertyNode, IndexNode, RawPassthrough, SchemaNode, SequenceNode,
    StatementNode, TableNode,
)
from ...utils.regex_utils import compile_patterns
from ..base_converter import BaseConverter, ConversionOutcome
from .comment_handler import CommentHandler
from .ddl_handler import DdlHandler
from .index_handler import IndexHandler


class StatementConverter(BaseConverter):
    """
    Acts as a router, inspecting each parsed statement node and delegating to
    the appropriate specialized handler.
    """
    def __init__(self, source_dialect: str, target_dialect: str):
        super().__init__(source_dialect, target_dialect)
        self.logger = setup_logger('StatementConverter')
        self.index_handler = IndexHandler(source_dialect, target_dialect)
        self.ddl_handler = DdlHandler(source_dialect, target_dialect, index_handler=self.index_handler)

        behavior_config = self.ddl_handler.behavior_config
        self.comment_handler = CommentHandler(
            source_dialect, target_dialect, comment_config=behavior_config.get('comment_conversion')
        )
        skip_config = behavior_config.get('statement_skipping', {})
        self.skip_patterns = compile_patterns(skip_config.get('patterns', [])) if skip_config.get('enabled', False) else []
        self.logger.debug(f"Loaded {len(self.skip_patterns)} statement skip pattern(s).")

    def convert_statement(self, node: StatementNode) -> ConversionOutcome:
        """
        Inspects a single statement node and routes it to the appropriate
        conversion logic based on its type.
        """
        if isinstance(node, (TableNode, SequenceNode, SchemaNode)):
            self.logger.debug(f"Routing {type(node).__name__} to DdlHandler.")
            return self.ddl_handler.handle(node)
        if isinstance(node, IndexNode):
            return self.index_handler.handle(node)
        if isinstance(node, (ExtendedPropertyNode, CommentNode)):
            return self.comment_handler.handle(node)
        if isinstance(node, RawPassthrough):
            return self._convert_passthrough(node)
        raise TypeError(f"No handler for statement node {type(node).__name__}")

    def convert_nodes(self, nodes: Iterable[StatementNode], sequence_catalog=None) -> ConversionOutcome:
        """Convert one file's nodes and settle the sequences its defaults consume.

        Sequence definitions are looked up in the file itself first, then in
        *sequence_catalog*; anything still missing gets a best-effort
        declaration flagged for review.
        """
        outcome = ConversionOutcome()
        for node in nodes:
            outcome.extend(self.convert_statement(node))

        defined = {n.key for n in outcome.nodes if isinstance(n, SequenceNode)}
        for name in outcome.consumed_sequences:
            if name.key in defined:
                continue
            source = sequence_catalog.lookup(name.key) if sequence_catalog is not None else None
            if source is not None:
                declared = self.ddl_handler.handle(source)
                outcome.extend(declared)
                outcome.tag('sequences', 'sequence_from_catalog', name.display())
            else:
                outcome.nodes.append(self.ddl_handler.declare_missing_sequence(name))
                outcome.tag('sequences', 'sequence_definition_missing', name.display(), needs_review=True)
                outcome.issues.append(MissingSequenceDefinitionWarning(
                    object_name=name.display(),
                    message=f"Sequence {name.display()} is used by a default but no definition was found.",
                    suggested_action="Confirm START/INCREMENT of the generated CREATE SEQUENCE statement.",
                ))
            defined.add(name.key)

        tables = [n for n in outcome.nodes if isinstance(n, TableNode)]
        outcome.edges = extract_dependency_edges(tables)
        outcome.issues.extend(describe_self_references(outcome.edges))
        if any(edge.is_self_reference for edge in outcome.edges):
            outcome.flags['self_referencing'] = True
        return outcome

    def _convert_passthrough(self, node: RawPassthrough) -> ConversionOutcome:
        outcome = ConversionOutcome()
        if node.is_comment:
            outcome.nodes.append(node)
            return outcome

        statement_text = node.text.strip()
        for name, pattern in self.skip_patterns:
            if pattern.search(statement_text):
                self.logger.info(f"Omitting session statement: {statement_text[:100]}")
                outcome.tag('statements', 'session_statement_omitted', name)
                outcome.nodes.append(RawPassthrough(
                    text=f"-- Omitted session statement: {' '.join(statement_text.split())}",
                    is_comment=True,
                    needs_review=False,
                    span=node.span,
                    leading_comments=list(node.leading_comments),
                ))
                return outcome

        reason = node.reason or 'unrecognized statement'
        first_line = statement_text.splitlines()[0] if statement_text else ''
        outcome.tag('statements', 'needs_manual_review', f"{reason}: {first_line[:120]}", needs_review=True)
        outcome.issues.append(UnmappedConstructWarning(
            object_name=f"statement at {node.span.describe()}",
            message=f"Statement kept as a comment ({reason}).",
            suggested_action="Convert the statement by hand.",
        ))
        outcome.nodes.append(node)
        return outcome
