from ddlport.services.sql_conversion.dependency_graph import (
    describe_self_references, extract_dependency_edges, find_mutual_references, plan_conversion_waves,
    resolve_unresolved_dependencies,
)
from ddlport.services.sql_conversion.nodes import DependencyEdge, ObjectKey, TableNode

A, B, C, T, X = (ObjectKey("dbo", name) for name in "abctx")

T_SQL = """CREATE TABLE [dbo].[T] (
    [ID] INT NOT NULL,
    [A1] INT NULL,
    [A2] INT NULL,
    [B1] INT NULL,
    [C1] INT NULL,
    CONSTRAINT [FK_T_A1] FOREIGN KEY ([A1]) REFERENCES [dbo].[A] ([ID]),
    CONSTRAINT [FK_T_B1] FOREIGN KEY ([B1]) REFERENCES [dbo].[B] ([ID]),
    CONSTRAINT [FK_T_A2] FOREIGN KEY ([A2]) REFERENCES [DBO].[a] ([ID]),
    CONSTRAINT [FK_T_C1] FOREIGN KEY ([C1]) REFERENCES [C] ([ID])
);"""


def _tables(parser, sql):
    return [n for n in parser.parse(sql).nodes if isinstance(n, TableNode)]


class TestEdges:

    def test_one_edge_per_referenced_table(self, parser):
        edges = extract_dependency_edges(_tables(parser, T_SQL))

        assert [(e.from_key, e.to_key) for e in edges] == [(T, A), (T, B), (T, C)]
        assert edges[0].columns == ["A1", "A2"]

    def test_self_reference(self, parser):
        edges = extract_dependency_edges(_tables(parser, """CREATE TABLE [dbo].[T] (
    [ID] INT NOT NULL,
    [ParentID] INT NULL,
    CONSTRAINT [FK_T_Parent] FOREIGN KEY ([ParentID]) REFERENCES [dbo].[T] ([ID])
);"""))

        assert edges[0].is_self_reference
        notes = describe_self_references(edges)
        assert [n.object_name for n in notes] == ["dbo.t"]
        assert notes[0].issue_type == "DependencyCycle"
        assert resolve_unresolved_dependencies(edges, lambda key: False) == []


class TestResolver:

    def test_targets_without_output_are_grouped(self, parser):
        edges = extract_dependency_edges(_tables(parser, T_SQL))

        unresolved = resolve_unresolved_dependencies(edges, lambda key: key == B)

        assert [u.to_dict() for u in unresolved] == [
            {"target": "dbo.a", "columns": ["A1", "A2"], "referenced_by": ["dbo.t"]},
            {"target": "dbo.c", "columns": ["C1"], "referenced_by": ["dbo.t"]},
        ]

    def test_everything_resolved(self, parser):
        edges = extract_dependency_edges(_tables(parser, T_SQL))

        assert resolve_unresolved_dependencies(edges, lambda key: True) == []

    def test_available_in_source(self):
        edges = [DependencyEdge(T, A, ["A1"]), DependencyEdge(X, A, ["XA"]), DependencyEdge(T, C, ["C1"])]

        unresolved = resolve_unresolved_dependencies(edges, lambda key: False, source_keys={A, T})

        assert unresolved[0].columns == ["A1", "XA"]
        assert unresolved[0].referenced_by == ["dbo.t", "dbo.x"]
        assert unresolved[0].available_in_source is True
        assert unresolved[1].to_dict()["available_in_source"] is False

    def test_mutual_references(self):
        edges = [DependencyEdge(B, A), DependencyEdge(A, B), DependencyEdge(C, C), DependencyEdge(C, A)]

        assert find_mutual_references(edges) == [(A, B)]


class TestWaves:

    def test_referenced_tables_come_first(self):
        waves, notes = plan_conversion_waves({
            C: [A, B],
            B: [A],
            A: [],
            X: [ObjectKey("other", "outside"), X],
        })

        assert waves == [[A, X], [B], [C]]
        assert notes == []

    def test_cycle_is_broken_at_its_smallest_key(self):
        waves, notes = plan_conversion_waves({B: [A], A: [B], C: [A]})

        assert waves == [[A], [B, C]]
        assert len(notes) == 1
        assert notes[0].object_name == "dbo.a"
        assert "dbo.a, dbo.b" in notes[0].message

    def test_keys_outside_the_cycle_wait_for_it(self):
        waves, notes = plan_conversion_waves({A: [B], B: [C], C: [B]})

        assert waves == [[B], [A, C]]
        assert notes[0].object_name == "dbo.b"
