"""ConversionOrchestrator – high-level driver for declarative DDL conversion.

Responsibilities
----------------
1. Locate input *.sql files in ``<root>/<Schema>/<Tables|Sequences>/``.
2. Build the batch sequence catalogue from the Sequences folders.
3. Parse every table file and plan the conversion order so that referenced
   tables are written before the tables that reference them.
4. For each file:
     • parse → convert (StatementConverter) → emit (PostgresEmitter)
     • resolve foreign keys against the output tree
     • write DDL + report atomically and record the output.
5. Produce `conversion_summary.json` and the manual-review log.

All rewrite logic lives in the converter layer; the orchestrator only
handles I/O, ordering, logging and aggregation. One failing file never
aborts the batch.

FUNCTIONS:
==========
Public Functions (called by external code):
  - convert(): batch entry point for a file or a directory.
  - convert_sql(): pure in-memory conversion of one script.

NOTE: Functions starting with _ are private (internal use only).
"""

# Standard library imports
import json
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set

# Local application imports
from ddlport.config import config
from ddlport.utils.file_utils import (
    create_processing_stats, find_sql_files, make_relative_path, read_file_content, write_files_atomically,
)
from ddlport.utils.logger import setup_logger
from ddlport.utils.workspace_resolver import classify_input_file, resolve_input_root
from .conversion_state import OutputSnapshot, OutputTreeState
from .converters.declarative.statement_converter import StatementConverter
from .dependency_graph import plan_conversion_waves, resolve_unresolved_dependencies
from .emitter import PostgresEmitter
from .errors import ParseError
from .nodes import ObjectKey, StatementNode, TableNode
from .parser import TsqlDdlParser
from .sequence_catalog import SequenceCatalog
from .utils.manual_review_logger import ManualReviewLogger
from .utils.result_formatter import build_conversion_report, count_rules, create_result_dictionary


@dataclass
class FileConversion:
    """Everything one conversion produced, before anything is written."""
    ddl: str
    report: Dict[str, Any]
    nodes: List[StatementNode] = field(default_factory=list)
    parse_errors: List[ParseError] = field(default_factory=list)
    issues: list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.parse_errors


@dataclass
class _Job:
    path: str
    schema: str
    table: str
    content: Optional[str] = None
    read_error: Optional[str] = None
    nodes: List[StatementNode] = field(default_factory=list)
    parse_errors: List[ParseError] = field(default_factory=list)
    dependencies: Set[ObjectKey] = field(default_factory=set)

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.schema, self.table)


class ConversionOrchestrator:

    def __init__(self, source_dialect: Optional[str] = None, target_dialect: Optional[str] = None, *,
                 max_workers: Optional[int] = None):
        conv_cfg = config.get('conversion', {})
        self.source_dialect = source_dialect or conv_cfg.get('source_dialect', 'sqlserver')
        self.target_dialect = target_dialect or conv_cfg.get('target_dialect', 'postgres')
        self.max_workers = max(1, int(max_workers or conv_cfg.get('max_workers', 1)))

        self.logger = setup_logger("ConversionOrchestrator")
        self.logger.info(f"Starting DDL conversion: {self.source_dialect} -> {self.target_dialect}")

        self.parser = TsqlDdlParser()
        self.statement_converter = StatementConverter(self.source_dialect, self.target_dialect)
        behavior_config = self.statement_converter.ddl_handler.behavior_config
        self.emitter = PostgresEmitter.from_config(behavior_config)
        self.sequence_suffix = behavior_config.get('sequence_naming', {}).get('suffix', '_seq')

    # ------------------------------------------------------------------
    # In-memory conversion
    # ------------------------------------------------------------------

    def convert_sql(self, content: str, *, has_output: Optional[Callable[[ObjectKey], bool]] = None,
                    source_keys: Optional[Set[ObjectKey]] = None, sequence_catalog: Optional[SequenceCatalog] = None,
                    source_file: Optional[str] = None, output_file: Optional[str] = None) -> FileConversion:
        """Convert one script. Nothing touches the filesystem.

        *has_output* decides which referenced tables already have converted
        output; without it every foreign-key target counts as unresolved.
        """
        parsed = self.parser.parse(content)
        return self._convert_nodes(parsed.nodes, parsed.errors, has_output or (lambda key: False), source_keys,
                                   sequence_catalog, source_file, output_file)

    def _convert_nodes(self, nodes, parse_errors, has_output, source_keys, sequence_catalog,
                       source_file, output_file) -> FileConversion:
        outcome = self.statement_converter.convert_nodes(nodes, sequence_catalog=sequence_catalog)
        ddl = self.emitter.emit(outcome.nodes, outcome.index_property_omissions)
        unresolved = resolve_unresolved_dependencies(outcome.edges, has_output, source_keys)

        notes = [i for i in outcome.issues if i.issue_type == 'DependencyCycle']
        review = [i for i in outcome.issues if i.issue_type != 'DependencyCycle']
        objects = [str(n.key) for n in outcome.nodes if isinstance(n, TableNode)]
        report = build_conversion_report(
            outcome.tags, unresolved, outcome.flags,
            source_file=source_file, output_file=output_file, objects=objects,
            issues=review, dependency_notes=notes, parse_errors=parse_errors,
        )
        return FileConversion(ddl=ddl, report=report, nodes=outcome.nodes, parse_errors=list(parse_errors),
                              issues=list(outcome.issues))

    # ------------------------------------------------------------------
    # Batch conversion
    # ------------------------------------------------------------------

    def convert(self, input_path: str, output_dir: Optional[str] = None) -> dict:
        """Convert a file or a directory tree into the output tree."""
        input_root = resolve_input_root(input_path)
        state = OutputTreeState(output_dir)
        output_root = state.output_root
        manual_review_logger = ManualReviewLogger(output_dir=str(output_root), logger=self.logger)

        sql_files = find_sql_files(input_path)
        stats = create_processing_stats()
        stats['total_files'] = len(sql_files)
        if not sql_files:
            self.logger.warning(f"No SQL files found in: {input_path}")
            return create_result_dictionary("error", f"No SQL files found in {input_path}", stats, [],
                                            str(output_root))

        table_files, sequence_files = [], []
        for path in sql_files:
            kind = classify_input_file(path).kind
            (sequence_files if kind == 'sequence' else table_files).append(path)

        stats['total_files'] = len(table_files)
        stats['sequence_files'] = len(sequence_files)
        self.logger.info(f"Processing {len(table_files)} table file(s) from: {input_root}")
        self.logger.info(f"Output directory: {output_root}")

        # sequences anywhere in the tree, even when only part of it is converted
        catalog = SequenceCatalog.from_files(
            [p for p in find_sql_files(str(input_root)) if classify_input_file(p).kind == 'sequence'],
            parser=self.parser, suffix=self.sequence_suffix,
        )

        jobs = [self._prepare_job(path) for path in table_files]
        source_keys = self._source_keys(input_root, jobs)
        waves, cycle_notes = plan_conversion_waves({job.key: job.dependencies for job in jobs})
        for note in cycle_notes:
            self.logger.info(note.message)
            manual_review_logger.log_issue(str(input_root), note)

        jobs_by_key: Dict[ObjectKey, List[_Job]] = {}
        for job in jobs:
            jobs_by_key.setdefault(job.key, []).append(job)

        file_results: List[dict] = []
        for wave_no, wave in enumerate(waves, 1):
            wave_jobs = [job for key in wave for job in jobs_by_key[key]]
            snapshot = state.snapshot()
            self.logger.debug(f"Wave {wave_no}/{len(waves)}: {', '.join(str(k) for k in wave)}")

            def run(job: _Job) -> dict:
                return self._process_job(job, input_root, state, snapshot, source_keys, catalog,
                                         manual_review_logger)

            if self.max_workers > 1 and len(wave_jobs) > 1:
                with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                    file_results.extend(pool.map(run, wave_jobs))
            else:
                file_results.extend(run(job) for job in wave_jobs)

        for result in file_results:
            status = result['status']
            if status == 'success':
                stats['files_converted'] += 1
                stats['statements_converted'] += result.get('statements', 0)
            elif status == 'skipped':
                stats['files_skipped'] += 1
            else:
                stats['files_failed'] += 1
        stats['review_items'] = len(manual_review_logger.review_items)

        return self._create_conversion_summary(file_results, stats, output_root, cycle_notes, manual_review_logger)

    def _prepare_job(self, path: str) -> _Job:
        info = classify_input_file(path)
        job = _Job(path=path, schema=info.schema or 'dbo', table=info.name)
        try:
            job.content = read_file_content(path)
        except (OSError, UnicodeDecodeError) as e:
            self.logger.error(f"Could not read {path}: {e}", exc_info=True)
            job.read_error = str(e)
            return job
        if job.content is None:
            return job

        parsed = self.parser.parse(job.content)
        job.nodes, job.parse_errors = parsed.nodes, parsed.errors
        tables = [n for n in parsed.nodes if isinstance(n, TableNode)]
        if info.kind != 'table' and len(tables) == 1:
            job.schema, job.table = tables[0].name.schema or 'dbo', tables[0].name.name
        for table in tables:
            for constraint in table.constraints:
                if constraint.references is not None:
                    job.dependencies.add(constraint.references.key)
        return job

    @staticmethod
    def _source_keys(input_root: Path, jobs: List[_Job]) -> Set[ObjectKey]:
        keys = {job.key for job in jobs}
        for path in find_sql_files(str(input_root)):
            info = classify_input_file(path)
            if info.kind == 'table':
                keys.add(ObjectKey(info.schema, info.name))
        for job in jobs:
            keys.update(n.key for n in job.nodes if isinstance(n, TableNode))
        return keys

    def _process_job(self, job: _Job, input_root: Path, state: OutputTreeState, snapshot: OutputSnapshot,
                     source_keys: Set[ObjectKey], catalog: SequenceCatalog,
                     manual_review_logger: ManualReviewLogger) -> dict:
        relative = make_relative_path(job.path, str(input_root))
        self.logger.info(f"Processing: {relative}")
        try:
            if job.read_error is not None:
                return self._file_result(relative, 'error', f"Could not read file: {job.read_error}")
            if job.content is None:
                return self._file_result(relative, 'skipped', "Empty file")

            if job.parse_errors:
                for error in job.parse_errors:
                    manual_review_logger.log_parse_error(relative, error)
                return self._file_result(relative, 'error', f"{len(job.parse_errors)} parse error(s); file not written",
                                         errors=[e.to_dict() for e in job.parse_errors])

            ddl_path = state.output_path(job.schema, job.table)
            report_path = state.report_path(job.schema, job.table)
            result = self._convert_nodes(
                job.nodes, [], snapshot, source_keys, catalog,
                source_file=relative, output_file=make_relative_path(str(ddl_path), str(state.output_root)),
            )
            for issue in result.issues:
                manual_review_logger.log_issue(relative, issue)

            report_json = json.dumps(result.report, indent=2, ensure_ascii=False) + '\n'
            # report first: has_output keys on the DDL file
            write_files_atomically([(report_path, report_json), (ddl_path, result.ddl)])
            state.record_output(job.key, ddl_path)

            file_result = self._file_result(relative, 'success', f"Converted to {ddl_path}")
            file_result.update({
                'output_file': str(ddl_path),
                'report_file': str(report_path),
                'statements': len(result.nodes),
                'applied_rules': count_rules(result.report),
                'unresolved_dependencies': [u['target'] for u in result.report.get('unresolved_dependencies', [])],
            })
            return file_result
        except Exception as e:
            self.logger.error(f"Error processing {job.path}: {e}", exc_info=True)
            return self._file_result(relative, 'error', f"Processing error: {e}")

    @staticmethod
    def _file_result(source_file: str, status: str, message: str, errors: Optional[list] = None) -> dict:
        result = {"source_file": source_file, "status": status, "message": message}
        if errors:
            result["errors"] = errors
        return result

    def _create_conversion_summary(self, file_results: List[dict], stats: dict, output_root: Path,
                                   cycle_notes: list, manual_review_logger: ManualReviewLogger) -> dict:
        """
        Create the final summary dictionary for the entire conversion run.
        """
        self.logger.info("=" * 50)
        self.logger.info("DDL CONVERSION SUMMARY")
        self.logger.info("=" * 50)
        self.logger.info(f"Total files: {stats['total_files']}")
        self.logger.info(f"  - Converted: {stats['files_converted']}")
        self.logger.info(f"  - Failed: {stats['files_failed']}")
        self.logger.info(f"  - Skipped: {stats['files_skipped']}")

        if stats['files_failed'] == 0:
            status, message = "success", f"Converted {stats['files_converted']} file(s)."
        elif stats['files_converted']:
            status, message = "partial_success", f"{stats['files_failed']} of {stats['total_files']} file(s) failed."
        else:
            status, message = "error", "No file could be converted."

        review_log = manual_review_logger.write_manual_review_log()
        if review_log:
            self.logger.info(manual_review_logger.create_summary_report())

        extra = {"manual_review_log": review_log} if review_log else {}
        if cycle_notes:
            extra["dependency_notes"] = [n.to_dict() for n in cycle_notes]
        summary = create_result_dictionary(status, message, stats, file_results, str(output_root), **extra)
        self._write_conversion_summary_to_file(summary, output_root)
        return summary

    def _write_conversion_summary_to_file(self, summary_data_dict: Dict, output_dir: Path):
        """
        Writes the conversion summary to a JSON file in the output directory.
        """
        summary_file_path = os.path.join(output_dir, 'conversion_summary.json')
        try:
            def json_default(o):
                if isinstance(o, Path):
                    return str(o)
                return f"<<non-serializable: {type(o).__name__}>>"

            os.makedirs(output_dir, exist_ok=True)
            with open(summary_file_path, 'w', encoding='utf-8') as f:
                json.dump(summary_data_dict, f, indent=4, default=json_default)
            self.logger.info(f"Conversion summary written to: {summary_file_path}")
        except OSError as e:
            self.logger.error(f"Failed to write conversion summary: {e}", exc_info=True)
