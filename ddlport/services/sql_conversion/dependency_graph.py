"""
Foreign-key dependency edges between tables and the advisory resolver built
on top of them.

``extract_dependency_edges`` reads converted table nodes;
``resolve_unresolved_dependencies`` answers "which referenced tables have no
converted output yet"; ``plan_conversion_waves`` orders a whole batch so
referenced tables are written before the tables that reference them.
"""
from collections import OrderedDict
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from .errors import DependencyCycleNote
from .nodes import ConstraintKind, DependencyEdge, ObjectKey, TableNode, UnresolvedDependency


def extract_dependency_edges(tables: Iterable[TableNode]) -> List[DependencyEdge]:
    """One edge per (owner, referenced table); FK columns are unioned in first-seen order."""
    edges: "OrderedDict[Tuple[ObjectKey, ObjectKey], DependencyEdge]" = OrderedDict()
    for table in tables:
        for constraint in table.constraints:
            if constraint.kind != ConstraintKind.FOREIGN_KEY or constraint.references is None:
                continue
            pair = (table.key, constraint.references.key)
            edge = edges.get(pair)
            if edge is None:
                edge = edges[pair] = DependencyEdge(table.key, constraint.references.key)
            edge.merge_columns(constraint.column_names)
    return list(edges.values())


def describe_self_references(edges: Iterable[DependencyEdge]) -> List[DependencyCycleNote]:
    return [
        DependencyCycleNote(
            object_name=str(edge.from_key),
            message=f"{edge.from_key} references itself ({', '.join(edge.columns)}); "
                    "the constraint never blocks its own conversion.",
        )
        for edge in edges if edge.is_self_reference
    ]


def resolve_unresolved_dependencies(
    edges: Iterable[DependencyEdge],
    has_output: Callable[[ObjectKey], bool],
    source_keys: Optional[Set[ObjectKey]] = None,
) -> List[UnresolvedDependency]:
    """Group the edges whose target has no converted output, sorted by (schema, table).

    Self references are never unresolved. When *source_keys* (the keys present
    in the input tree) is given, each group records whether the target can
    still be converted from this tree.
    """
    groups: Dict[ObjectKey, UnresolvedDependency] = {}
    for edge in edges:
        if edge.is_self_reference or has_output(edge.to_key):
            continue
        group = groups.get(edge.to_key)
        if group is None:
            group = groups[edge.to_key] = UnresolvedDependency(target=edge.to_key)
        for column in edge.columns:
            if column not in group.columns:
                group.columns.append(column)
        owner = str(edge.from_key)
        if owner not in group.referenced_by:
            group.referenced_by.append(owner)

    resolved = [groups[key] for key in sorted(groups)]
    if source_keys is not None:
        for group in resolved:
            group.available_in_source = group.target in source_keys
    return resolved


def find_mutual_references(edges: Iterable[DependencyEdge]) -> List[Tuple[ObjectKey, ObjectKey]]:
    """Pairs of distinct tables that reference each other, each pair sorted."""
    pairs = {(e.from_key, e.to_key) for e in edges if not e.is_self_reference}
    return sorted({tuple(sorted(pair)) for pair in pairs if (pair[1], pair[0]) in pairs})


def plan_conversion_waves(
    dependencies: Dict[ObjectKey, Iterable[ObjectKey]],
) -> Tuple[List[List[ObjectKey]], List[DependencyCycleNote]]:
    """Order a batch into waves; every key only depends on keys of earlier waves.

    Dependencies outside the batch and self references are ignored. A cycle
    is broken by releasing its smallest key first; each break is reported as
    a ``DependencyCycleNote``.
    """
    pending: Dict[ObjectKey, Set[ObjectKey]] = {
        key: {d for d in deps if d in dependencies and d != key}
        for key, deps in dependencies.items()
    }
    waves: List[List[ObjectKey]] = []
    notes: List[DependencyCycleNote] = []
    done: Set[ObjectKey] = set()

    while pending:
        ready = sorted(key for key, deps in pending.items() if not deps - done)
        if not ready:
            breaker = next(k for k in sorted(pending) if k in _depends_on(k, pending, done))
            members = _cycle_members(breaker, pending, done)
            notes.append(DependencyCycleNote(
                object_name=str(breaker),
                message=f"Foreign keys form a cycle between {', '.join(str(k) for k in members)}; "
                        f"{breaker} is converted first and reports the others as unresolved.",
                suggested_action="Add the cyclic foreign keys with ALTER TABLE after all tables exist.",
            ))
            ready = [breaker]
        waves.append(ready)
        for key in ready:
            done.add(key)
            del pending[key]
    return waves, notes


def _reachable(origin: ObjectKey, step) -> Set[ObjectKey]:
    seen: Set[ObjectKey] = set()
    stack = [origin]
    while stack:
        for nxt in step(stack.pop()):
            if nxt not in seen:
                seen.add(nxt)
                stack.append(nxt)
    return seen


def _depends_on(key: ObjectKey, pending: Dict[ObjectKey, Set[ObjectKey]], done: Set[ObjectKey]) -> Set[ObjectKey]:
    return _reachable(key, lambda k: pending.get(k, set()) - done)


def _cycle_members(start: ObjectKey, pending: Dict[ObjectKey, Set[ObjectKey]], done: Set[ObjectKey]) -> List[ObjectKey]:
    forward = _depends_on(start, pending, done)
    backward = _reachable(start, lambda k: {o for o, deps in pending.items() if k in deps})
    return sorted((forward & backward) | {start})
