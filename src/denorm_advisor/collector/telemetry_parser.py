"""Telemetry parser for production query-store exports."""

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError

from denorm_advisor.collector.input_loader import InputFormatError
from denorm_advisor.collector.models import (
    OperationKind,
    PerformanceCharacteristics,
    TelemetryAnalysis,
    TelemetryQuery,
)

logger = logging.getLogger(__name__)

DEFAULT_SLOW_QUERY_MS = 100.0
DEFAULT_CO_ACCESS_THRESHOLD = 50

# Analysed records use camelCase keys, raw exports use snake_case.
_FIELD_ALIASES = {
    "query_id": ("queryId", "query_id"),
    "execution_count": ("executionCount", "execution_count"),
    "avg_duration_ms": ("avgDurationMs", "avg_duration_ms"),
    "avg_cpu_time_ms": ("avgCpuTimeMs", "avg_cpu_time_ms", "avg_cpu_ms"),
    "avg_logical_reads": ("avgLogicalReads", "avg_logical_reads"),
    "operation": ("operationType", "operation_type"),
    "tables": ("tablesAccessed", "tables_accessed"),
    "sql_text": ("sqlText", "sql_text"),
}


def _field(record: dict[str, Any], name: str, default: Any = None) -> Any:
    """Look up a record field under any of its known spellings."""
    for key in _FIELD_ALIASES[name]:
        if key in record and record[key] is not None:
            return record[key]
    return default


class TelemetryParser:
    """Parser for aggregated production query telemetry.

    Accepts two JSON layouts: the raw query-store export
    (``export_metadata`` plus ``queries`` carrying ``sql_text``) and the
    already-analysed form whose records carry ``operationType`` and
    ``tablesAccessed``. Raw SQL is classified with sqlglot.
    """

    def __init__(
        self,
        dialect: str = "tsql",
        slow_query_ms: float = DEFAULT_SLOW_QUERY_MS,
        co_access_threshold: int = DEFAULT_CO_ACCESS_THRESHOLD,
    ):
        """Initialize parser.

        Args:
            dialect: SQL dialect used for raw query text
            slow_query_ms: Average duration above which a query is slow
            co_access_threshold: Minimum executions for a reported table combination
        """
        self.dialect = dialect
        self.slow_query_ms = slow_query_ms
        self.co_access_threshold = co_access_threshold

    def parse_file(self, telemetry_file: Path | str) -> TelemetryAnalysis:
        """Parse a telemetry JSON file."""
        telemetry_file = Path(telemetry_file)
        if not telemetry_file.exists():
            raise FileNotFoundError(f"Telemetry file not found: {telemetry_file}")

        with open(telemetry_file, "r", encoding="utf-8") as f:
            try:
                document = json.load(f)
            except json.JSONDecodeError as e:
                raise InputFormatError(f"Invalid JSON in {telemetry_file}: {e}") from e

        analysis = self.parse_document(document)
        analysis.source_file = str(telemetry_file)
        return analysis

    def parse_document(self, document: dict[str, Any]) -> TelemetryAnalysis:
        """Parse an already-loaded telemetry document.

        Args:
            document: Decoded JSON object

        Returns:
            TelemetryAnalysis with per-query records and aggregates
        """
        from denorm_advisor.analyzer.telemetry import mine_table_combinations

        if not isinstance(document, dict):
            raise InputFormatError("Telemetry document must be a JSON object")

        records = document.get("queries")
        if records is None:
            records = []
        if not isinstance(records, list):
            raise InputFormatError("'queries' must be a list")

        metadata = document.get("export_metadata") or {}
        database = document.get("database") or metadata.get("database_name", "")

        queries: list[TelemetryQuery] = []
        for index, record in enumerate(records):
            try:
                query = self.parse_record(record, index)
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.warning(f"Skipping telemetry record {index}: {e}")
                continue
            if query is not None:
                queries.append(query)

        operation_breakdown = Counter(q.operation.value for q in queries)

        analysis = TelemetryAnalysis(
            database=database,
            total_queries_analyzed=len(queries),
            queries=queries,
            operation_breakdown=dict(operation_breakdown),
            table_combinations=mine_table_combinations(queries, self.co_access_threshold),
            performance=self._performance(queries),
        )

        logger.info(
            f"Parsed telemetry for '{database}': {len(queries)} queries, "
            f"{analysis.total_executions} executions"
        )
        return analysis

    def parse_record(self, record: dict[str, Any], index: int = 0) -> TelemetryQuery | None:
        """Parse a single query record.

        Returns None when raw SQL cannot be classified.
        """
        if not isinstance(record, dict):
            raise TypeError(f"expected an object, got {type(record).__name__}")

        execution_count = int(_field(record, "execution_count", 0))
        if execution_count < 0:
            raise ValueError(f"negative execution count {execution_count}")

        operation = _field(record, "operation")
        tables = _field(record, "tables")

        if operation is None or tables is None:
            sql_text = _field(record, "sql_text")
            if not sql_text:
                raise KeyError("record has neither operationType/tablesAccessed nor sqlText")
            classified = self.classify_sql(sql_text)
            if classified is None:
                logger.warning(f"Skipping telemetry record {index}: unparseable SQL")
                return None
            operation, tables = classified

        if not isinstance(tables, list):
            raise TypeError("tablesAccessed must be a list")

        return TelemetryQuery(
            query_id=str(_field(record, "query_id", index)),
            operation=OperationKind.parse(operation),
            tables=[str(t) for t in tables],
            execution_count=execution_count,
            avg_duration_ms=float(_field(record, "avg_duration_ms", 0.0)),
            avg_cpu_time_ms=float(_field(record, "avg_cpu_time_ms", 0.0)),
            avg_logical_reads=float(_field(record, "avg_logical_reads", 0.0)),
        )

    def classify_sql(self, sql: str) -> tuple[OperationKind, list[str]] | None:
        """Classify raw SQL into an operation kind and the tables it touches."""
        try:
            parsed = sqlglot.parse_one(sql, dialect=self.dialect)
        except (ParseError, TokenError):
            return None

        if parsed is None:
            return None

        if isinstance(parsed, exp.Select):
            operation = OperationKind.READ
        elif isinstance(parsed, exp.Insert):
            operation = OperationKind.INSERT
        elif isinstance(parsed, exp.Update):
            operation = OperationKind.UPDATE
        elif isinstance(parsed, exp.Delete):
            operation = OperationKind.DELETE
        else:
            operation = OperationKind.OTHER

        cte_names = {cte.alias_or_name.lower() for cte in parsed.find_all(exp.CTE)}
        tables: list[str] = []
        for table_expr in parsed.find_all(exp.Table):
            name = table_expr.name
            if name and name.lower() not in cte_names and name not in tables:
                tables.append(name)

        return operation, tables

    def _performance(self, queries: list[TelemetryQuery]) -> PerformanceCharacteristics:
        """Compute average performance figures and count slow queries."""
        if not queries:
            return PerformanceCharacteristics()

        count = len(queries)
        return PerformanceCharacteristics(
            avg_query_duration_ms=round(sum(q.avg_duration_ms for q in queries) / count, 2),
            avg_cpu_time_ms=round(sum(q.avg_cpu_time_ms for q in queries) / count, 2),
            avg_logical_reads=round(sum(q.avg_logical_reads for q in queries) / count),
            slow_query_count=sum(1 for q in queries if q.avg_duration_ms > self.slow_query_ms),
        )
