"""
SQL Conversion Package - SQL Server DDL to PostgreSQL DDL.

Main Components:
    - ConversionOrchestrator: batch and in-memory entry points
    - TsqlDdlParser: T-SQL DDL text to statement nodes
    - StatementConverter: rule engine (types, defaults, constraints, indexes, comments)
    - PostgresEmitter: statement nodes to PostgreSQL DDL text
    - dependency_graph / conversion_state: foreign-key ordering and the output tree

Usage:
    from ddlport.services.sql_conversion import ConversionOrchestrator

    orchestrator = ConversionOrchestrator()
    result = orchestrator.convert("workspace/source/WideWorldImporters")
"""

from .conversion_state import has_output, output_path
from .orchestrator import ConversionOrchestrator

__all__ = ['ConversionOrchestrator', 'has_output', 'output_path']
