"""
Result formatting utilities for SQL conversion.
Handles creation of the per-file conversion report and the run summary.
"""
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional


def rule_tag(category: str, rule: str) -> str:
    return f"{category}.{rule}"


def build_conversion_report(
    tags: Iterable[Any],
    unresolved: Iterable[Any] = (),
    flags: Optional[Dict[str, Any]] = None,
    *,
    source_file: Optional[str] = None,
    output_file: Optional[str] = None,
    objects: Optional[List[str]] = None,
    issues: Iterable[Any] = (),
    dependency_notes: Iterable[Any] = (),
    parse_errors: Iterable[Any] = (),
) -> Dict[str, Any]:
    """
    Build the JSON-serialisable report written next to a converted file.

    Args:
        tags: AppliedRule records in the order the rules fired
        unresolved: UnresolvedDependency groups (omitted from the report when empty)
        flags: feature flags raised during conversion (always present)
        issues: ConversionIssue records for the manual_review section
        dependency_notes: DependencyCycleNote records
        parse_errors: ParseError instances

    Returns:
        Report dictionary; rule categories that never fired are left out.
    """
    applied: List[str] = []
    sections: Dict[str, Dict[str, Dict[str, Any]]] = OrderedDict()
    for tag in tags:
        name = rule_tag(tag.category, tag.rule)
        if name not in applied:
            applied.append(name)
        entry = sections.setdefault(tag.category, OrderedDict()).setdefault(tag.rule, {'count': 0, 'details': []})
        entry['count'] += 1
        if tag.detail is not None:
            entry['details'].append(tag.detail)
        if tag.needs_review:
            entry['needs_review'] = True

    report: Dict[str, Any] = {
        'source_file': source_file,
        'output_file': output_file,
        'objects': list(objects or []),
        'applied_rule_tags': applied,
        'sections': sections,
        'flags': dict(flags or {}),
    }

    unresolved = [u.to_dict() for u in unresolved]
    if unresolved:
        report['unresolved_dependencies'] = unresolved
    review = [i.to_dict() for i in issues]
    if review:
        report['manual_review'] = review
    notes = [n.to_dict() for n in dependency_notes]
    if notes:
        report['dependency_notes'] = notes
    errors = [e.to_dict() for e in parse_errors]
    if errors:
        report['parse_errors'] = errors
    return report


def create_result_dictionary(status: str, message: str, stats: dict, results: list, output_dir: str = None, source_file: str = None, **kwargs) -> dict:
    """
    Create standardized result dictionary for conversion operations.

    Args:
        status: Overall conversion status ('success', 'error', 'partial_success')
        message: Human-readable status message
        stats: Conversion statistics dictionary
        results: List of individual file conversion results
        output_dir: Output directory path (optional)
        source_file: Source file path (optional)
        **kwargs: Additional top-level entries (e.g. dependency_notes)

    Returns:
        Standardized result dictionary with aggregated stats and conversion summary
    """
    successful_files = len([r for r in results if r.get('status') == 'success'])
    failed_files = len([r for r in results if r.get('status') == 'error'])

    conversion_summary: Dict[str, Dict[str, Any]] = {}
    for result in results:
        for name, count in result.get('applied_rules', {}).items():
            entry = conversion_summary.setdefault(name, {'count': 0, 'files': 0})
            entry['count'] += count
            entry['files'] += 1

    result = {
        "status": status,
        "message": message,
        "stats": {
            **stats,
            "files_successful": successful_files,
            "files_failed": failed_files
        },
        "conversion_summary": dict(sorted(conversion_summary.items())),
        "results": results
    }

    if output_dir:
        result["output_directory"] = output_dir
    if source_file:
        result["source_file"] = source_file
    result.update(kwargs)

    return result


def count_rules(report: Dict[str, Any]) -> Dict[str, int]:
    """Flatten a conversion report's sections into ``{category.rule: count}``."""
    return {
        rule_tag(category, rule): entry['count']
        for category, rules in report.get('sections', {}).items()
        for rule, entry in rules.items()
    }
