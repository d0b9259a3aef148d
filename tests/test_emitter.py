import pytest

from ddlport.services.sql_conversion.nodes import QualifiedName, SequenceNode, TypeSpec


class TestOrdersTable:

    def test_matches_reference_output(self, convert, orders_source, orders_expected):
        ddl, outcome = convert(orders_source)

        assert ddl == orders_expected
        assert outcome.index_property_omissions == 4
        assert outcome.flags == {"self_referencing": True}

    def test_output_converts_to_itself(self, convert, orders_expected):
        ddl, outcome = convert(orders_expected)

        assert ddl == orders_expected
        assert outcome.index_property_omissions == 0

    def test_rule_tags(self, convert, orders_source):
        _, outcome = convert(orders_source)
        rules = {f"{t.category}.{t.rule}" for t in outcome.tags}

        assert {
            "types.type_mapped",
            "types.precision_adjusted",
            "defaults.sequence_default",
            "defaults.function_mapped",
            "constraints.clustering_removed",
            "constraints.foreign_key",
            "indexes.index_converted",
            "extended_properties.table_comment",
            "extended_properties.column_comment",
            "extended_properties.index_property_omitted",
            "sequences.sequence_definition_missing",
        } <= rules


class TestLayout:

    def test_identifiers_that_need_quoting(self, convert):
        ddl, _ = convert("CREATE TABLE [Sales].[Order Lines] ([Line No] INT NOT NULL, [Qty] INT NULL);")

        assert ddl == (
            "CREATE SCHEMA IF NOT EXISTS sales;\n"
            "\n"
            'CREATE TABLE sales."order lines" (\n'
            '    "Line No" INTEGER        NOT NULL,\n'
            "    Qty       INTEGER        NULL\n"
            ");\n"
        )
        again, _ = convert(ddl)
        assert again == ddl

    def test_reserved_words_are_quoted(self, convert):
        ddl, _ = convert("CREATE TABLE [dbo].[T] ([Order] INT NOT NULL, [User] NVARCHAR (10) NULL, [Select] INT NULL);")

        assert '    "order"  INTEGER' in ddl
        assert '    "user"   VARCHAR(10)' in ddl
        assert '    "select" INTEGER' in ddl
        assert convert(ddl)[0] == ddl

    def test_comments_before_a_statement_stay_with_it(self, convert):
        ddl, _ = convert("-- Orders placed by customers\n\nCREATE TABLE dbo.T ([ID] INT NOT NULL);\n-- end of file\n")

        assert ddl == (
            "CREATE SCHEMA IF NOT EXISTS dbo;\n"
            "\n"
            "-- Orders placed by customers\n"
            "\n"
            "CREATE TABLE dbo.t (\n"
            "    ID INTEGER        NOT NULL\n"
            ");\n"
            "\n"
            "-- end of file\n"
        )
        again, _ = convert(ddl)
        assert again == ddl

    def test_type_column_widens_past_the_minimum(self, convert):
        ddl, _ = convert("CREATE TABLE dbo.T ([A] DOUBLE PRECISION NULL, [B] NUMERIC(18,2) NULL);")

        assert "    A DOUBLE PRECISION NULL,\n    B NUMERIC(18,2)    NULL\n" in ddl

    def test_nothing_to_emit(self, emitter):
        assert emitter.emit([]) == ""


@pytest.mark.parametrize(
    "sequence, expected",
    [
        (
            SequenceNode(name=QualifiedName("order_id_seq", schema="sequences"), start="1", increment="1"),
            "CREATE SEQUENCE IF NOT EXISTS sequences.order_id_seq START 1 INCREMENT 1;",
        ),
        (
            SequenceNode(name=QualifiedName("ticket_seq", schema="ops"), data_type=TypeSpec("BIGINT"), start="10",
                         increment="-1", min_value="NO", max_value="100", cache="20", cycle=False),
            "CREATE SEQUENCE IF NOT EXISTS ops.ticket_seq AS BIGINT START 10 INCREMENT -1 NO MINVALUE MAXVALUE 100"
            " CACHE 20 NO CYCLE;",
        ),
    ],
)
def test_render_sequence(emitter, sequence, expected):
    assert emitter.render_sequence(sequence) == expected
