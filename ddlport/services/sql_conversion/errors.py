"""
Error and issue types raised or collected during DDL conversion.

``ParseError`` is the only exception; it is scoped to a single statement.
The remaining types are informational records: they never interrupt a
conversion and end up in the file report and the manual review log.
"""
from dataclasses import dataclass
from typing import Optional


class ParseError(Exception):
    """Unbalanced delimiters or an unterminated literal inside one statement."""

    def __init__(self, reason: str, position: int = 0, line: int = 1, column: int = 1, snippet: str = ''):
        self.reason = reason
        self.position = position
        self.line = line
        self.column = column
        self.snippet = snippet
        super().__init__(f"{reason} at line {line}, column {column}")

    def to_dict(self) -> dict:
        return {
            'error_type': 'ParseError',
            'reason': self.reason,
            'position': self.position,
            'line': self.line,
            'column': self.column,
            'original_sql_snippet': self.snippet,
        }


@dataclass
class ConversionIssue:
    object_name: str
    message: str
    suggested_action: Optional[str] = None

    issue_type = 'ConversionIssue'
    severity = 'INFO'

    def to_dict(self) -> dict:
        return {
            'issue_type': self.issue_type,
            'severity': self.severity,
            'object_name': self.object_name,
            'message': self.message,
            'suggested_action': self.suggested_action,
        }


@dataclass
class UnmappedConstructWarning(ConversionIssue):
    issue_type = 'UnmappedConstruct'
    severity = 'WARNING'


@dataclass
class MissingSequenceDefinitionWarning(ConversionIssue):
    issue_type = 'MissingSequenceDefinition'
    severity = 'WARNING'


@dataclass
class DependencyCycleNote(ConversionIssue):
    issue_type = 'DependencyCycle'
    severity = 'INFO'
