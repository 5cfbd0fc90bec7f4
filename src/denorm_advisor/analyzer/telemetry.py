"""Telemetry integrator - folds production query statistics into profiles."""

import logging
from collections import defaultdict

from denorm_advisor.analyzer.models import EntityUsageProfile
from denorm_advisor.analyzer.relationships import TableEntityResolver
from denorm_advisor.analyzer.thresholds import AnalysisThresholds
from denorm_advisor.collector.models import (
    OperationKind,
    TableCombination,
    TelemetryAnalysis,
    TelemetryQuery,
)

logger = logging.getLogger(__name__)


def mine_table_combinations(
    queries: list[TelemetryQuery], threshold: int
) -> list[TableCombination]:
    """
    Find sets of tables frequently touched by the same query.

    Executions of every multi-table query are accumulated under the exact
    set of tables it touches. Only sets whose total is strictly greater
    than the threshold are kept.

    Args:
        queries: Production query records
        threshold: Minimum (exclusive) accumulated execution count

    Returns:
        Combinations sorted by total executions, descending
    """
    grand_total = sum(q.execution_count for q in queries)
    totals: dict[frozenset[str], int] = defaultdict(int)

    for query in queries:
        if query.touches_multiple_tables:
            totals[frozenset(query.tables)] += query.execution_count

    combinations = [
        TableCombination(
            tables=tables,
            total_executions=total,
            execution_percentage=(total * 100.0 / grand_total) if grand_total else 0.0,
        )
        for tables, total in totals.items()
        if total > threshold
    ]
    combinations.sort(key=lambda c: c.total_executions, reverse=True)
    return combinations


class TelemetryIntegrator:
    """Adds production execution volume, read/write ratio and co-access weights."""

    def __init__(self, thresholds: AnalysisThresholds | None = None):
        """
        Initialize the integrator.

        Args:
            thresholds: Analysis thresholds (defaults to discovery)
        """
        self.thresholds = thresholds or AnalysisThresholds.for_discovery()

    def integrate(
        self,
        profiles: dict[str, EntityUsageProfile],
        telemetry: TelemetryAnalysis | None,
    ) -> list[TableCombination]:
        """
        Fold telemetry into the profiles.

        Args:
            profiles: Profiles to update
            telemetry: Parsed telemetry, or None

        Returns:
            Frequent table combinations found at the configured threshold
        """
        if telemetry is None:
            return []
        if not telemetry.is_usable:
            logger.warning("Telemetry contains no query records; production metrics disabled")
            return []

        resolver = TableEntityResolver(profiles)
        combinations = mine_table_combinations(
            telemetry.queries, self.thresholds.co_access_threshold
        )

        for combination in combinations:
            self._apply_combination(profiles, resolver, combination)

        self._apply_read_write(profiles, resolver, telemetry.queries)

        logger.info(
            f"Integrated {len(telemetry.queries)} production queries: "
            f"{len(combinations)} frequent table combinations"
        )
        return combinations

    def _apply_combination(
        self,
        profiles: dict[str, EntityUsageProfile],
        resolver: TableEntityResolver,
        combination: TableCombination,
    ) -> None:
        # sorted for a deterministic co-access insertion order
        entities = []
        for table in sorted(combination.tables):
            entity = resolver.resolve(table)
            if entity is None:
                logger.debug(f"Table {table} has no entity; ignored for co-access")
            elif entity not in entities:
                entities.append(entity)

        for entity in entities:
            profile = profiles[entity]
            profile.production_execution_count += combination.total_executions
            for other in entities:
                if other != entity:
                    profile.add_co_access(other, combination.total_executions)

    def _apply_read_write(
        self,
        profiles: dict[str, EntityUsageProfile],
        resolver: TableEntityResolver,
        queries: list[TelemetryQuery],
    ) -> None:
        reads: dict[str, int] = defaultdict(int)
        writes: dict[str, int] = defaultdict(int)

        for query in queries:
            if query.operation == OperationKind.READ:
                target = reads
            elif query.operation.is_write:
                target = writes
            else:
                continue
            for table in set(query.tables):
                target[table] += query.execution_count

        entity_reads: dict[str, int] = defaultdict(int)
        entity_writes: dict[str, int] = defaultdict(int)
        for table, count in reads.items():
            entity = resolver.resolve(table)
            if entity is not None:
                entity_reads[entity] += count
        for table, count in writes.items():
            entity = resolver.resolve(table)
            if entity is not None:
                entity_writes[entity] += count

        for entity in set(entity_reads) | set(entity_writes):
            read_count = entity_reads.get(entity, 0)
            write_count = entity_writes.get(entity, 0)
            if read_count + write_count == 0:
                continue
            ratio = read_count / write_count if write_count else float(read_count)
            profiles[entity].production_read_write_ratio = ratio
