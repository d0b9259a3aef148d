import logging
from typing import Optional

import sqlglot
from sqlglot import exp
from sqlglot.dialects.dialect import DialectType

logger = logging.getLogger(__name__)


def safe_parse_one(sql: str, dialect: DialectType) -> tuple[exp.Expression | None, str | None]:
    """
    Safely parses a single SQL statement into an AST.

    Args:
        sql: The SQL statement string to parse.
        dialect: The sqlglot dialect to use for parsing.

    Returns:
        A tuple containing (ast, error_message).
        If successful, ast is the parsed expression and error_message is None.
        If fails, ast is None and error_message is a formatted error string.
    """
    try:
        ast = sqlglot.parse_one(sql, read=dialect)
        return ast, None
    except sqlglot.errors.SqlglotError as e:
        logger.debug(f"Failed to parse statement: {e}")
        return None, f"Failed to parse statement due to: {e}"


def validate_expression(expression: str, dialect: DialectType) -> Optional[str]:
    """Parse a bare boolean/scalar expression; return an error message or None."""
    _, err = safe_parse_one(f"SELECT 1 WHERE {expression}", dialect)
    return err


def transpile_expression(expression: str, read: DialectType, write: DialectType) -> tuple[str | None, str | None]:
    """Transpile one scalar expression between dialects.

    Returns (sql, None) on success and (None, error_message) otherwise.
    """
    try:
        converted = sqlglot.transpile(f"SELECT {expression}", read=read, write=write)
    except sqlglot.errors.SqlglotError as e:
        logger.debug(f"Failed to transpile expression {expression!r}: {e}")
        return None, str(e)
    if not converted or not converted[0].upper().startswith('SELECT '):
        return None, 'transpiler returned no expression'
    return converted[0][len('SELECT '):], None
