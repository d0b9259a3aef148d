from ddlport.services.sql_conversion.emitter import DEFAULT_INDEX_OMISSION_COMMENT


def _property(level2type=None, level2name=None, value="Buyer", name="Description", table="Buyers"):
    sql = (f"EXECUTE sp_addextendedproperty @name = N'{name}', @value = N'{value}', "
           f"@level0type = N'SCHEMA', @level0name = N'Sales', @level1type = N'TABLE', @level1name = N'{table}'")
    if level2type:
        sql += f", @level2type = N'{level2type}', @level2name = N'{level2name}'"
    return sql + ";\nGO\n"


BUYERS_SQL = """CREATE TABLE [Sales].[Buyers] (
    [BuyerID] INT NOT NULL,
    [Name]    NVARCHAR (50) NOT NULL
);
GO
"""


class TestIndexes:

    def test_filtered_index_with_include(self, convert):
        ddl, outcome = convert(
            "CREATE UNIQUE NONCLUSTERED INDEX [IX_People_Email] ON [Application].[People] ([EmailAddress] ASC)"
            " INCLUDE ([FullName]) WHERE ([IsEmployee]=(1)) WITH (FILLFACTOR = 90);"
        )

        assert ddl == ("CREATE UNIQUE INDEX IX_People_Email\n"
                       "    ON application.people (EmailAddress ASC) INCLUDE (FullName)\n"
                       "    WHERE (IsEmployee=(1));\n")
        rules = {f"{t.category}.{t.rule}" for t in outcome.tags}
        assert {"indexes.index_converted", "indexes.include_kept",
                "indexes.index_options_dropped", "indexes.filtered_index_review"} <= rules

    def test_clustered_index_keeps_its_columns(self, convert):
        ddl, outcome = convert("CREATE CLUSTERED INDEX [CX_Log] ON [dbo].[Log] ([LoggedAt] DESC, [LogID]);")

        assert ddl == "CREATE INDEX CX_Log\n    ON dbo.log (LoggedAt DESC, LogID);\n"
        assert [t.rule for t in outcome.tags] == ["clustered_index_converted"]

    def test_columnstore_index_is_omitted(self, convert):
        ddl, outcome = convert(
            "CREATE NONCLUSTERED COLUMNSTORE INDEX [NCCX_Sales_OrderLines]"
            " ON [Sales].[OrderLines] ([OrderID], [StockItemID]);"
        )

        assert ddl == ("-- Columnstore index NCCX_Sales_OrderLines on Sales.OrderLines omitted"
                       " (PostgreSQL has no columnstore indexes)\n")
        assert outcome.issues == []


class TestComments:

    def test_comments_follow_the_table_in_column_order(self, convert):
        sql = (BUYERS_SQL
               + _property("COLUMN", "Name", value="Buyer''s name")
               + _property("COLUMN", "BuyerID", value="Key")
               + _property(value="People who buy")
               + _property("INDEX", "IX_Buyers_Name")
               + _property("INDEX", "IX_Buyers_Other"))
        ddl, outcome = convert(sql)

        assert ddl == (
            "CREATE SCHEMA IF NOT EXISTS sales;\n"
            "\n"
            "CREATE TABLE sales.buyers (\n"
            "    BuyerID INTEGER        NOT NULL,\n"
            "    Name    VARCHAR(50)    NOT NULL\n"
            ");\n"
            "\n"
            f"{DEFAULT_INDEX_OMISSION_COMMENT}\n"
            "\n"
            "COMMENT ON TABLE sales.buyers IS 'People who buy';\n"
            "\n"
            "COMMENT ON COLUMN sales.buyers.BuyerID IS 'Key';\n"
            "COMMENT ON COLUMN sales.buyers.Name IS 'Buyer''s name';\n"
        )
        assert outcome.index_property_omissions == 2
        assert outcome.issues == []

    def test_comment_statements_convert_unchanged(self, convert):
        sql = BUYERS_SQL + _property(value="People who buy") + _property("COLUMN", "Name", value="Name")
        ddl, _ = convert(sql)
        again, outcome = convert(ddl)

        assert again == ddl
        assert {t.rule for t in outcome.tags} >= {"table_comment", "column_comment"}

    def test_other_properties_are_kept_for_review(self, convert):
        ddl, outcome = convert(_property(name="MS_Caption", value="Buyers"))

        assert ddl == (
            "-- REVIEW: extended property MS_Caption not converted\n"
            "-- EXEC sys.sp_addextendedproperty @name = 'MS_Caption', @value = 'Buyers',"
            " @level0type = 'SCHEMA', @level0name = 'Sales', @level1type = 'TABLE', @level1name = 'Buyers'\n"
        )
        assert [i.issue_type for i in outcome.issues] == ["UnmappedConstruct"]

    def test_schema_level_description_is_kept_for_review(self, convert):
        ddl, outcome = convert(
            "EXEC sp_addextendedproperty @name = N'Description', @value = N'Sales data',"
            " @level0type = N'SCHEMA', @level0name = N'Sales';"
        )

        assert ddl.startswith("-- REVIEW: extended property Description not converted\n")
        assert outcome.issues[0].object_name == "Sales"
        assert "extended_properties.extended_property_review" in {f"{t.category}.{t.rule}" for t in outcome.tags}
