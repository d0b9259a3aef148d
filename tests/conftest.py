"""Shared fixtures for the DDL conversion tests.

Everything that writes files works below ``tmp_path``; the workspace tree
configured in settings.yaml is never touched.
"""
from pathlib import Path

import pytest

from ddlport.services.sql_conversion import ConversionOrchestrator
from ddlport.services.sql_conversion.converters.declarative.statement_converter import StatementConverter
from ddlport.services.sql_conversion.emitter import PostgresEmitter
from ddlport.services.sql_conversion.parser import TsqlDdlParser

DATA_DIR = Path(__file__).parent / "data"

PEOPLE_SQL = """CREATE TABLE [Application].[People] (
    [PersonID]  INT            CONSTRAINT [DF_Application_People_PersonID] DEFAULT (NEXT VALUE FOR [Sequences].[PersonID]) NOT NULL,
    [FullName]  NVARCHAR (50)  NOT NULL,
    [IsEmployee] BIT           NOT NULL,
    CONSTRAINT [PK_Application_People] PRIMARY KEY CLUSTERED ([PersonID] ASC)
);
"""

CUSTOMERS_SQL = """CREATE TABLE [Sales].[Customers] (
    [CustomerID]   INT           NOT NULL,
    [CustomerName] NVARCHAR (100) NOT NULL,
    [PrimaryContactPersonID] INT NOT NULL,
    CONSTRAINT [PK_Sales_Customers] PRIMARY KEY CLUSTERED ([CustomerID] ASC),
    CONSTRAINT [FK_Sales_Customers_PrimaryContactPersonID_Application_People] FOREIGN KEY ([PrimaryContactPersonID]) REFERENCES [Application].[People] ([PersonID])
);
"""

ORDER_SEQUENCE_SQL = "CREATE SEQUENCE [Sequences].[OrderID]\n    AS INT\n    START WITH 1\n    INCREMENT BY 1;\n"
PERSON_SEQUENCE_SQL = "CREATE SEQUENCE [Sequences].[PersonID]\n    AS INT\n    START WITH 3262\n    INCREMENT BY 1;\n"


@pytest.fixture(scope="session")
def parser() -> TsqlDdlParser:
    return TsqlDdlParser()


@pytest.fixture(scope="session")
def statement_converter() -> StatementConverter:
    return StatementConverter("sqlserver", "postgres")


@pytest.fixture(scope="session")
def emitter(statement_converter) -> PostgresEmitter:
    return PostgresEmitter.from_config(statement_converter.ddl_handler.behavior_config)


@pytest.fixture(scope="session")
def orchestrator() -> ConversionOrchestrator:
    return ConversionOrchestrator("sqlserver", "postgres")


@pytest.fixture
def convert(parser, statement_converter, emitter):
    """Parse, convert and emit one script; returns (ddl, outcome)."""
    def _convert(sql: str, sequence_catalog=None):
        parsed = parser.parse(sql)
        assert parsed.errors == []
        outcome = statement_converter.convert_nodes(parsed.nodes, sequence_catalog=sequence_catalog)
        return emitter.emit(outcome.nodes, outcome.index_property_omissions), outcome
    return _convert


@pytest.fixture(scope="session")
def orders_source() -> str:
    return (DATA_DIR / "sqlserver" / "Sales" / "Tables" / "Orders.sql").read_text(encoding="utf-8")


@pytest.fixture(scope="session")
def orders_expected() -> str:
    return (DATA_DIR / "postgres" / "Sales" / "Tables" / "Orders.sql").read_text(encoding="utf-8")


def write_sql(root: Path, schema: str, kind_dir: str, name: str, content: str) -> Path:
    path = root / schema / kind_dir / f"{name}.sql"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def source_tree(tmp_path, orders_source) -> Path:
    """A small WideWorldImporters-shaped input tree."""
    root = tmp_path / "source"
    write_sql(root, "Application", "Tables", "People", PEOPLE_SQL)
    write_sql(root, "Sales", "Tables", "Customers", CUSTOMERS_SQL)
    write_sql(root, "Sales", "Tables", "Orders", orders_source)
    write_sql(root, "Sequences", "Sequences", "OrderID", ORDER_SEQUENCE_SQL)
    write_sql(root, "Sequences", "Sequences", "PersonID", PERSON_SEQUENCE_SQL)
    return root


@pytest.fixture
def output_root(tmp_path) -> Path:
    return tmp_path / "out"


@pytest.fixture
def sql_writer():
    return write_sql
