"""
SQLGlot dialect utilities for SQL conversion.
Handles mapping between database types and their corresponding SQLGlot dialects.
"""
from .tsql_dialect import DdlportTsql


def get_sqlglot_dialect(source_type: str):
    """
    Get the appropriate SQLGlot dialect for parsing.

    Args:
        source_type: Database type (e.g., 'sqlserver', 'postgres')

    Returns:
        SQLGlot dialect name or class, or None for default behavior
    """
    dialect_map = {
        'sqlserver': DdlportTsql,
        'mssql': DdlportTsql,
        'tsql': DdlportTsql,
        'postgres': 'postgres',
        'postgresql': 'postgres',
    }
    return dialect_map.get(source_type.lower())
