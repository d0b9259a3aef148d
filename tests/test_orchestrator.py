import json
from pathlib import Path

import pytest

from ddlport.services.sql_conversion import ConversionOrchestrator
from ddlport.services.sql_conversion.conversion_state import OutputTreeState, has_output, output_path
from ddlport.services.sql_conversion.nodes import ObjectKey
from ddlport.utils import file_utils
from ddlport.utils.file_utils import write_files_atomically

ORDER_SEQUENCE = "CREATE SEQUENCE IF NOT EXISTS sequences.order_id_seq AS INTEGER START 1 INCREMENT 1;"


def _outputs(root: Path) -> dict:
    return {
        path.relative_to(root).as_posix(): path.read_text(encoding="utf-8")
        for path in sorted(root.rglob("*"))
        if path.is_file() and (path.suffix == ".sql" or path.name.endswith(".report.json"))
    }


class TestBatchConversion:

    def test_converts_tree_in_dependency_order(self, orchestrator, source_tree, output_root, orders_expected):
        summary = orchestrator.convert(str(source_tree), str(output_root))

        assert summary["status"] == "success"
        assert [r["source_file"] for r in summary["results"]] == [
            "Application/Tables/People.sql",
            "Sales/Tables/Customers.sql",
            "Sales/Tables/Orders.sql",
        ]
        assert summary["stats"]["total_files"] == 3
        assert summary["stats"]["sequence_files"] == 2
        assert summary["stats"]["files_converted"] == 3
        assert summary["stats"]["files_failed"] == 0
        assert summary["stats"]["review_items"] == 1
        assert all(r["unresolved_dependencies"] == [] for r in summary["results"])
        assert "dependency_notes" not in summary

        orders = (output_root / "Sales" / "Tables" / "Orders.sql").read_text(encoding="utf-8")
        assert orders == orders_expected.replace(
            "CREATE SEQUENCE IF NOT EXISTS sequences.order_id_seq START 1 INCREMENT 1;", ORDER_SEQUENCE)

        people = (output_root / "Application" / "Tables" / "People.sql").read_text(encoding="utf-8")
        assert "CREATE SEQUENCE IF NOT EXISTS sequences.person_id_seq AS INTEGER START 3262 INCREMENT 1;" in people

        report = json.loads((output_root / "Sales" / "Tables" / "Orders.report.json").read_text(encoding="utf-8"))
        assert report["source_file"] == "Sales/Tables/Orders.sql"
        assert report["flags"] == {"self_referencing": True}
        assert "unresolved_dependencies" not in report
        assert "sequences.sequence_from_catalog" in report["applied_rule_tags"]

        assert (output_root / "conversion_summary.json").is_file()
        review_log = json.loads(Path(summary["manual_review_log"]).read_text(encoding="utf-8"))
        assert [i["issue_type"] for i in review_log["review_items"]] == ["DependencyCycle"]

    def test_single_file_resolves_against_output_tree(self, orchestrator, source_tree, output_root):
        orders = source_tree / "Sales" / "Tables" / "Orders.sql"

        first = orchestrator.convert(str(orders), str(output_root))

        assert first["stats"]["total_files"] == 1
        assert first["results"][0]["unresolved_dependencies"] == ["application.people", "sales.customers"]
        report = json.loads((output_root / "Sales" / "Tables" / "Orders.report.json").read_text(encoding="utf-8"))
        assert all(u["available_in_source"] for u in report["unresolved_dependencies"])
        # sequences come from the whole tree even when one file is converted
        assert ORDER_SEQUENCE in (output_root / "Sales" / "Tables" / "Orders.sql").read_text(encoding="utf-8")

        orchestrator.convert(str(source_tree / "Application"), str(output_root))
        second = orchestrator.convert(str(orders), str(output_root))

        assert second["results"][0]["unresolved_dependencies"] == ["sales.customers"]

    def test_parse_error_file_is_not_written(self, orchestrator, source_tree, output_root, sql_writer):
        sql_writer(source_tree, "Sales", "Tables", "Broken", "CREATE TABLE [Sales].[Broken] ([ID] INT NOT NULL\n")

        summary = orchestrator.convert(str(source_tree), str(output_root))

        assert summary["status"] == "partial_success"
        assert summary["stats"]["files_failed"] == 1
        broken = [r for r in summary["results"] if r["source_file"] == "Sales/Tables/Broken.sql"][0]
        assert broken["status"] == "error"
        assert broken["errors"][0]["reason"] == "unclosed parenthesis"
        assert not (output_root / "Sales" / "Tables" / "Broken.sql").exists()
        assert not (output_root / "Sales" / "Tables" / "Broken.report.json").exists()
        assert (output_root / "Sales" / "Tables" / "Orders.sql").exists()

        review_log = json.loads(Path(summary["manual_review_log"]).read_text(encoding="utf-8"))
        assert review_log["summary_by_severity"]["ERROR"] == 1

    def test_empty_file_is_skipped(self, orchestrator, source_tree, output_root, sql_writer):
        sql_writer(source_tree, "Sales", "Tables", "Empty", "\n\n")

        summary = orchestrator.convert(str(source_tree), str(output_root))

        assert summary["status"] == "success"
        assert summary["stats"]["files_skipped"] == 1
        assert not (output_root / "Sales" / "Tables" / "Empty.sql").exists()

    def test_undecodable_file_fails_alone(self, orchestrator, source_tree, output_root):
        (source_tree / "Sales" / "Tables" / "Latin1.sql").write_bytes(
            b"CREATE TABLE [Sales].[Latin1] ([Caf\xe9] INT NOT NULL);\n")

        summary = orchestrator.convert(str(source_tree), str(output_root))

        assert summary["status"] == "partial_success"
        assert summary["stats"]["files_converted"] == 3
        assert summary["stats"]["files_failed"] == 1
        latin1 = [r for r in summary["results"] if r["source_file"] == "Sales/Tables/Latin1.sql"][0]
        assert latin1["status"] == "error"
        assert latin1["message"].startswith("Could not read file")
        assert not (output_root / "Sales" / "Tables" / "Latin1.sql").exists()
        assert (output_root / "Sales" / "Tables" / "Orders.sql").exists()

    def test_undecodable_sequence_file_is_left_out_of_the_catalog(self, orchestrator, source_tree, output_root):
        (source_tree / "Sequences" / "Sequences" / "Latin1.sql").write_bytes(
            b"CREATE SEQUENCE [Sequences].[Caf\xe9] AS INT START WITH 1;\n")

        summary = orchestrator.convert(str(source_tree), str(output_root))

        assert summary["status"] == "success"
        assert summary["stats"]["files_converted"] == 3
        assert ORDER_SEQUENCE in (output_root / "Sales" / "Tables" / "Orders.sql").read_text(encoding="utf-8")

    def test_rerun_gives_identical_output(self, orchestrator, source_tree, output_root):
        orchestrator.convert(str(source_tree), str(output_root))
        first = _outputs(output_root)

        orchestrator.convert(str(source_tree), str(output_root))

        assert _outputs(output_root) == first

    def test_worker_threads_give_the_same_output(self, orchestrator, source_tree, tmp_path, sql_writer):
        for name in ("Colors", "PackageTypes", "StockGroups"):
            sql_writer(source_tree, "Warehouse", "Tables", name,
                       f"CREATE TABLE [Warehouse].[{name}] ([ID] INT NOT NULL, [Name] NVARCHAR (50) NOT NULL);\n")

        orchestrator.convert(str(source_tree), str(tmp_path / "serial"))
        threaded = ConversionOrchestrator("sqlserver", "postgres", max_workers=4)
        summary = threaded.convert(str(source_tree), str(tmp_path / "threaded"))

        assert summary["stats"]["files_converted"] == 6
        assert _outputs(tmp_path / "threaded") == _outputs(tmp_path / "serial")

    def test_no_sql_files(self, orchestrator, tmp_path):
        (tmp_path / "empty").mkdir()

        summary = orchestrator.convert(str(tmp_path / "empty"), str(tmp_path / "out"))

        assert summary["status"] == "error"
        assert summary["results"] == []


class TestOutputState:

    def test_lookup_ignores_case(self, orchestrator, source_tree, output_root):
        orchestrator.convert(str(source_tree), str(output_root))

        assert has_output("APPLICATION", "people", output_root)
        assert has_output("sales", "ORDERS", output_root)
        assert not has_output("sales", "invoices", output_root)
        assert output_path("sales", "orders", output_root) == output_root / "Sales" / "Tables" / "Orders.sql"

    def test_new_tables_go_under_the_tables_dir(self, output_root):
        state = OutputTreeState(output_root)

        assert not state.has_output(ObjectKey("Sales", "Invoices"))
        assert state.output_path("Sales", "Invoices") == output_root / "Sales" / "Tables" / "Invoices.sql"
        assert state.report_path("Sales", "Invoices") == output_root / "Sales" / "Tables" / "Invoices.report.json"

    def test_snapshot_does_not_see_later_writes(self, output_root):
        state = OutputTreeState(output_root)
        snapshot = state.snapshot()
        path = state.output_path("dbo", "t")
        write_files_atomically([(path, "CREATE TABLE dbo.t (\n);\n")])
        state.record_output(ObjectKey("dbo", "t"), path)

        assert not snapshot(ObjectKey("dbo", "t"))
        assert state.snapshot()(ObjectKey("DBO", "T"))


class TestAtomicWrites:

    def test_writes_every_file(self, tmp_path):
        targets = write_files_atomically([(tmp_path / "a" / "one.sql", "one\n"), (tmp_path / "a" / "two.json", "{}\n")])

        assert [p.read_text(encoding="utf-8") for p in targets] == ["one\n", "{}\n"]
        assert sorted(p.name for p in (tmp_path / "a").iterdir()) == ["one.sql", "two.json"]

    def test_failure_leaves_nothing_behind(self, tmp_path):
        (tmp_path / "blocker").write_text("not a directory", encoding="utf-8")

        with pytest.raises(OSError):
            write_files_atomically([
                (tmp_path / "a" / "one.sql", "one\n"),
                (tmp_path / "blocker" / "two.sql", "two\n"),
            ])

        assert list((tmp_path / "a").iterdir()) == []

    def test_path_locks_are_released(self, tmp_path):
        target = tmp_path / "a" / "one.sql"

        with file_utils.path_lock(target, target):
            assert len(file_utils._path_locks) == 1
        write_files_atomically([(target, "one\n"), (tmp_path / "a" / "two.sql", "two\n")])

        assert file_utils._path_locks == {}
