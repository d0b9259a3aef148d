from ddlport.services.sql_conversion.nodes import ConstraintKind, SequenceNode, TableNode
from ddlport.services.sql_conversion.sequence_catalog import SequenceCatalog
from ddlport.services.sql_conversion.utils.result_formatter import build_conversion_report, count_rules


def _rules(outcome):
    return {f"{t.category}.{t.rule}" for t in outcome.tags}


class TestColumns:

    def test_default_rewrites(self, convert):
        ddl, outcome = convert("""CREATE TABLE [dbo].[Settings] (
    [SettingID]   UNIQUEIDENTIFIER CONSTRAINT [DF_Settings_SettingID] DEFAULT (newid()) NOT NULL,
    [IsEnabled]   BIT              CONSTRAINT [DF_Settings_IsEnabled] DEFAULT ((1)) NOT NULL,
    [Label]       NVARCHAR (50)    DEFAULT (N'none') NULL,
    [CreatedWhen] DATETIME2 (7)    DEFAULT (getutcdate()) NOT NULL
);""")

        assert "SettingID   UUID           DEFAULT gen_random_uuid() NOT NULL," in ddl
        assert "IsEnabled   BOOLEAN        DEFAULT TRUE NOT NULL," in ddl
        assert "Label       VARCHAR(50)    DEFAULT 'none' NULL," in ddl
        assert "CreatedWhen TIMESTAMP(6)   DEFAULT (CURRENT_TIMESTAMP AT TIME ZONE 'UTC') NOT NULL\n" in ddl
        assert "DF_Settings" not in ddl

        rules = _rules(outcome)
        assert {
            "defaults.default_constraint_unwrapped",
            "defaults.function_mapped",
            "defaults.boolean_literal",
            "defaults.unicode_prefix_dropped",
            "types.precision_adjusted",
        } <= rules

    def test_converted_defaults_convert_unchanged(self, convert):
        ddl, _ = convert("""CREATE TABLE [dbo].[Settings] (
    [SettingID]   UNIQUEIDENTIFIER DEFAULT (newid()) NOT NULL,
    [IsEnabled]   BIT              DEFAULT ((0)) NOT NULL,
    [CreatedWhen] DATETIME2 (7)    DEFAULT (getutcdate()) NOT NULL,
    [CreatedBy]   SYSNAME          DEFAULT (suser_sname()) NOT NULL
);""")
        again, _ = convert(ddl)

        assert again == ddl

    def test_identity_becomes_generated_column(self, convert):
        ddl, outcome = convert(
            "CREATE TABLE [Warehouse].[Colors] ([ColorID] INT IDENTITY (5, 10) NOT FOR REPLICATION NOT NULL);"
        )

        assert "ColorID INTEGER        GENERATED BY DEFAULT AS IDENTITY (START WITH 5 INCREMENT BY 10) NOT NULL" in ddl
        assert "REPLICATION" not in ddl
        assert {"identity.identity_to_generated", "identity.not_for_replication_dropped"} <= _rules(outcome)

    def test_unmapped_type_and_computed_column_need_review(self, convert):
        ddl, outcome = convert("""CREATE TABLE [dbo].[Nodes] (
    [NodeID] INT NOT NULL,
    [Path]   HIERARCHYID NULL,
    [Depth]  AS ([Path].[GetLevel]()),
    CONSTRAINT [PK_Nodes] PRIMARY KEY ([NodeID])
);""")

        assert "    Path   HIERARCHYID    NULL,\n    -- REVIEW: computed column\n    -- [Depth] AS ([Path].[GetLevel]())\n" in ddl
        assert ddl.rstrip().endswith("CONSTRAINT PK_Nodes PRIMARY KEY (NodeID)\n);")

        report = build_conversion_report(outcome.tags)
        assert report["sections"]["types"]["type_unmapped"]["needs_review"] is True
        assert report["sections"]["columns"]["computed_column_review"]["count"] == 1
        assert {i.issue_type for i in outcome.issues} == {"UnmappedConstruct"}

    def test_collation_is_dropped(self, convert):
        ddl, outcome = convert(
            "CREATE TABLE dbo.T ([Name] NVARCHAR (50) COLLATE Latin1_General_100_CI_AS NOT NULL);"
        )

        assert "COLLATE" not in ddl
        assert "columns.collation_dropped" in _rules(outcome)


class TestConstraints:

    def test_clustering_and_sort_order_removed_from_keys(self, convert):
        ddl, outcome = convert("""CREATE TABLE [Sales].[Invoices] (
    [InvoiceID] INT NOT NULL,
    [InvoiceNumber] NVARCHAR (20) NOT NULL,
    CONSTRAINT [PK_Sales_Invoices] PRIMARY KEY CLUSTERED ([InvoiceID] ASC) WITH (FILLFACTOR = 90) ON [USERDATA],
    CONSTRAINT [UQ_Sales_Invoices_InvoiceNumber] UNIQUE NONCLUSTERED ([InvoiceNumber] ASC)
);""")

        assert "CONSTRAINT PK_Sales_Invoices PRIMARY KEY (InvoiceID)," in ddl
        assert "CONSTRAINT UQ_Sales_Invoices_InvoiceNumber UNIQUE (InvoiceNumber)\n" in ddl
        assert "CLUSTERED" not in ddl
        assert {
            "constraints.clustering_removed",
            "constraints.key_sort_order_removed",
            "constraints.storage_options_dropped",
            "constraints.primary_key",
            "constraints.unique",
        } <= _rules(outcome)

    def test_constraints_follow_columns_grouped_by_kind(self, convert):
        ddl, _ = convert("""CREATE TABLE dbo.Lines (
    CONSTRAINT [FK_Lines_Orders] FOREIGN KEY ([OrderID]) REFERENCES [dbo].[Orders] ([OrderID]) ON DELETE CASCADE,
    [LineID] INT NOT NULL,
    CONSTRAINT [CK_Lines_Quantity] CHECK ([Quantity]>(0)),
    [OrderID] INT NOT NULL,
    [Quantity] INT NOT NULL,
    CONSTRAINT [PK_Lines] PRIMARY KEY ([LineID])
);""")
        body = ddl.split("(\n", 1)[1].splitlines()

        assert [line.split()[0] for line in body[:3]] == ["LineID", "OrderID", "Quantity"]
        assert body[3].strip() == "CONSTRAINT PK_Lines PRIMARY KEY (LineID),"
        assert body[4].strip() == ("CONSTRAINT FK_Lines_Orders FOREIGN KEY (OrderID) REFERENCES dbo.orders (OrderID)"
                                   " ON DELETE CASCADE,")
        assert body[5].strip() == "CONSTRAINT CK_Lines_Quantity CHECK (Quantity>(0))"

    def test_check_constraint_is_flagged(self, convert):
        _, outcome = convert(
            "CREATE TABLE dbo.T ([UnitPrice] DECIMAL (18, 2) NOT NULL, CONSTRAINT [CK_Price] CHECK ([UnitPrice]>=(0)));"
        )
        table = [n for n in outcome.nodes if isinstance(n, TableNode)][0]
        check = [c for c in table.constraints if c.kind == ConstraintKind.CHECK][0]

        assert check.check_expr == "UnitPrice>=(0)"
        assert count_rules(build_conversion_report(outcome.tags))["constraints.check_constraint_review"] == 1


class TestTableOptions:

    def test_temporal_table(self, convert):
        ddl, outcome = convert("""CREATE TABLE [Warehouse].[ColdRoomTemperatures] (
    [ColdRoomTemperatureID] BIGINT IDENTITY (1, 1) NOT NULL,
    [ColdRoomSensorNumber]  INT NOT NULL,
    [ValidFrom] DATETIME2 (7) GENERATED ALWAYS AS ROW START NOT NULL,
    [ValidTo]   DATETIME2 (7) GENERATED ALWAYS AS ROW END NOT NULL,
    CONSTRAINT [PK_Warehouse_ColdRoomTemperatures] PRIMARY KEY NONCLUSTERED ([ColdRoomTemperatureID] ASC),
    INDEX [IX_Warehouse_ColdRoomTemperatures_ColdRoomSensorNumber] NONCLUSTERED ([ColdRoomSensorNumber]),
    PERIOD FOR SYSTEM_TIME ([ValidFrom], [ValidTo])
)
WITH (SYSTEM_VERSIONING = ON (HISTORY_TABLE = [Warehouse].[ColdRoomTemperatures_Archive]));""")

        assert "ValidFrom             TIMESTAMP(6)   DEFAULT CURRENT_TIMESTAMP NOT NULL," in ddl
        assert "PERIOD" not in ddl
        assert "SYSTEM_VERSIONING" not in ddl
        assert ("CREATE INDEX IX_Warehouse_ColdRoomTemperatures_ColdRoomSensorNumber\n"
                "    ON warehouse.coldroomtemperatures (ColdRoomSensorNumber);") in ddl
        assert outcome.flags["temporal_table"] is True
        assert outcome.flags["temporal_history_table"] == "warehouse.coldroomtemperatures_archive"
        assert {
            "temporal.period_for_system_time_dropped",
            "temporal.period_column_retyped",
            "temporal.system_versioning_dropped",
            "indexes.inline_index_extracted",
        } <= _rules(outcome)

    def test_storage_options(self, convert):
        ddl, outcome = convert(
            "CREATE TABLE dbo.T ([ID] INT NOT NULL) ON [USERDATA] TEXTIMAGE_ON [USERDATA];\n"
            "CREATE TABLE dbo.U ([ID] INT NOT NULL) WITH (DATA_COMPRESSION = PAGE, MEMORY_OPTIMIZED = ON);"
        )

        assert "USERDATA" not in ddl
        assert "DATA_COMPRESSION" not in ddl
        assert "    ID INTEGER        NOT NULL\n    -- REVIEW: table option not converted: MEMORY_OPTIMIZED = ON\n);" in ddl
        report = build_conversion_report(outcome.tags)
        assert report["sections"]["table_options"]["filegroup_dropped"]["count"] == 2
        assert "data_compression_dropped" in report["sections"]["table_options"]
        assert report["sections"]["table_options"]["table_option_review"]["needs_review"] is True


class TestSequences:

    def test_sequence_statement(self, convert):
        ddl, outcome = convert("CREATE SEQUENCE [Sequences].[CustomerID] AS INT START WITH 1062 INCREMENT BY 1;")

        assert ddl == "CREATE SEQUENCE IF NOT EXISTS sequences.customer_id_seq AS INTEGER START 1062 INCREMENT 1;\n"
        assert "sequences.sequence_declared" in _rules(outcome)

    def test_missing_sequence_gets_a_default_declaration(self, convert):
        ddl, outcome = convert(
            "CREATE TABLE dbo.T ([ID] INT DEFAULT (NEXT VALUE FOR [Sequences].[TransactionID]) NOT NULL);"
        )

        assert ddl.startswith(
            "CREATE SCHEMA IF NOT EXISTS dbo;\n\n"
            "CREATE SEQUENCE IF NOT EXISTS sequences.transaction_id_seq START 1 INCREMENT 1;\n\n"
        )
        assert "ID INTEGER        DEFAULT nextval('sequences.transaction_id_seq') NOT NULL" in ddl
        assert [i.issue_type for i in outcome.issues] == ["MissingSequenceDefinition"]
        sequence = [n for n in outcome.nodes if isinstance(n, SequenceNode)][0]
        assert sequence.inferred is True

    def test_sequence_from_catalog(self, convert, parser):
        catalog = SequenceCatalog()
        for node in parser.parse("CREATE SEQUENCE [Sequences].[TransactionID] AS BIGINT START WITH 500 INCREMENT BY 5;").nodes:
            catalog.add(node)

        ddl, outcome = convert(
            "CREATE TABLE dbo.T ([ID] BIGINT DEFAULT (NEXT VALUE FOR [Sequences].[TransactionID]) NOT NULL);",
            sequence_catalog=catalog,
        )

        assert "CREATE SEQUENCE IF NOT EXISTS sequences.transaction_id_seq AS BIGINT START 500 INCREMENT 5;" in ddl
        assert "sequences.sequence_from_catalog" in _rules(outcome)
        assert outcome.issues == []

    def test_sequence_used_twice_is_declared_once(self, convert):
        ddl, _ = convert(
            "CREATE TABLE dbo.T ([A] INT DEFAULT (NEXT VALUE FOR [Sequences].[ID]) NOT NULL,"
            " [B] INT DEFAULT (NEXT VALUE FOR [Sequences].[ID]) NOT NULL);"
        )

        assert ddl.count("CREATE SEQUENCE") == 1


class TestStatements:

    def test_schema(self, convert):
        ddl, _ = convert("CREATE SCHEMA [Sales] AUTHORIZATION [dbo];")

        assert ddl == "CREATE SCHEMA IF NOT EXISTS sales;\n"

    def test_session_statements_are_omitted(self, convert):
        ddl, outcome = convert("SET ANSI_NULLS ON;\nGO\nSET QUOTED_IDENTIFIER ON;\nGO\n")

        assert ddl == ("-- Omitted session statement: SET ANSI_NULLS ON\n\n"
                       "-- Omitted session statement: SET QUOTED_IDENTIFIER ON\n")
        assert outcome.issues == []

    def test_unrecognized_statement_is_commented_out(self, convert):
        ddl, outcome = convert("CREATE VIEW dbo.v AS SELECT 1 AS x;")

        assert ddl == "-- REVIEW: unrecognized statement\n-- CREATE VIEW dbo.v AS SELECT 1 AS x\n"
        assert "statements.needs_manual_review" in _rules(outcome)
        again, _ = convert(ddl)
        assert again == ddl
