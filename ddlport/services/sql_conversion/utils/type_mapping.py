"""
Declarative column type mapping.

Rules come from ``data_types.json`` (``type_rules``) and are matched in file
order; the first entry whose ``source`` name (and ``when_args``, if given)
fits the column type decides the target name and how arguments carry over.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..nodes import TypeSpec


@dataclass
class TypeMapping:
    target: TypeSpec
    mapped: bool
    rule: Optional[str] = None
    flag: Optional[str] = None
    note: Optional[str] = None


class TypeMapper:
    def __init__(self, type_rules: List[Dict[str, Any]]):
        self.rules = [r for r in type_rules if r.get('source') and r.get('target')]

    @classmethod
    def from_config(cls, data_types_config: Dict[str, Any]) -> 'TypeMapper':
        return cls(data_types_config.get('type_rules', []) if data_types_config else [])

    def _matches(self, rule: Dict[str, Any], type_spec: TypeSpec) -> bool:
        if rule['source'].upper() != type_spec.name.upper():
            return False
        when_args = rule.get('when_args')
        if when_args is None:
            return True
        return [a.upper() for a in when_args] == [a.strip().upper() for a in type_spec.args]

    def map(self, type_spec: TypeSpec) -> TypeMapping:
        for rule in self.rules:
            if self._matches(rule, type_spec):
                args, note = self._target_args(rule, type_spec)
                target = TypeSpec(rule['target'], tuple(args))
                return TypeMapping(
                    target=target,
                    mapped=True,
                    rule=f"{type_spec.sql()} -> {target.sql()}",
                    flag=rule.get('flag'),
                    note=note,
                )
        return TypeMapping(target=type_spec, mapped=False)

    @staticmethod
    def _target_args(rule: Dict[str, Any], type_spec: TypeSpec):
        policy = rule.get('args', 'keep')
        source_args = [a.strip() for a in type_spec.args]
        if policy == 'drop':
            return [], None
        if policy == 'fixed':
            return list(rule.get('target_args', [])), None
        if policy == 'precision':
            if not source_args:
                return list(rule.get('default_args', [])), None
            limit = rule.get('max_precision')
            try:
                precision = int(source_args[0])
            except ValueError:
                return list(rule.get('default_args', [])), f"non-numeric precision {source_args[0]!r} replaced"
            if limit is not None and precision > limit:
                return [str(limit)], f"precision {precision} clamped to {limit}"
            return [str(precision)], None
        if not source_args:
            return list(rule.get('default_args', [])), None
        return source_args, None
