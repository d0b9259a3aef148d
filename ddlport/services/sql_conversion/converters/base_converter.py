from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import ConversionIssue
from ..nodes import DependencyEdge, QualifiedName, StatementNode


@dataclass
class AppliedRule:
    """One application of a conversion rule, e.g. ``types/type_mapped``."""
    category: str
    rule: str
    detail: Optional[str] = None
    needs_review: bool = False


@dataclass
class ConversionOutcome:
    nodes: List[StatementNode] = field(default_factory=list)
    edges: List[DependencyEdge] = field(default_factory=list)
    tags: List[AppliedRule] = field(default_factory=list)
    issues: List[ConversionIssue] = field(default_factory=list)
    flags: Dict[str, Any] = field(default_factory=dict)
    consumed_sequences: List[QualifiedName] = field(default_factory=list)
    index_property_omissions: int = 0

    def tag(self, category: str, rule: str, detail: Optional[str] = None, needs_review: bool = False) -> None:
        self.tags.append(AppliedRule(category, rule, detail, needs_review))

    def extend(self, other: 'ConversionOutcome') -> None:
        self.nodes.extend(other.nodes)
        self.edges.extend(other.edges)
        self.tags.extend(other.tags)
        self.issues.extend(other.issues)
        for key, value in other.flags.items():
            if isinstance(value, list):
                existing = self.flags.setdefault(key, [])
                existing.extend(v for v in value if v not in existing)
            else:
                self.flags[key] = value
        for name in other.consumed_sequences:
            if name.key not in {n.key for n in self.consumed_sequences}:
                self.consumed_sequences.append(name)
        self.index_property_omissions += other.index_property_omissions


class BaseConverter:
    """
    A base class for all converters to ensure a consistent interface.
    """
    def __init__(self, source_dialect: str, target_dialect: str):
        self.source_dialect = source_dialect
        self.target_dialect = target_dialect

    def convert_statement(self, node: StatementNode) -> ConversionOutcome:
        """
        The main conversion method that each converter must implement.

        Args:
            node: A single parsed source statement.

        Returns:
            A ConversionOutcome holding the target nodes, applied rules and issues.
        """
        raise NotImplementedError("Each converter must implement its own convert_statement method.")
