"""Data models for the collector module."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Path segment the query extractor inserts for second-level eager loads,
# e.g. "Customer.nested.OrderItems".
NESTED_PATH_MARKER = "nested"


def _string_list(data: dict[str, Any], key: str) -> list[str]:
    """Read an optional list-of-strings field, rejecting any other shape."""
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"'{key}' must be a list of strings, got {value!r}")
    return list(value)


class Cardinality(Enum):
    """Relationship multiplicity between two entities."""

    ONE_TO_ONE = "ONE_TO_ONE"
    ONE_TO_MANY = "ONE_TO_MANY"
    MANY_TO_ONE = "MANY_TO_ONE"
    MANY_TO_MANY = "MANY_TO_MANY"

    @classmethod
    def parse(cls, value: "str | Cardinality") -> "Cardinality":
        """Parse a cardinality from its name, accepting dashes and any case."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().upper().replace("-", "_").replace(" ", "_")
        return cls(normalized)


class QueryType(Enum):
    """Shape of a declarative query-access pattern."""

    SINGLE_ENTITY = "SINGLE_ENTITY"
    FILTERED_SINGLE = "FILTERED_SINGLE"
    COLLECTION = "COLLECTION"
    FILTERED_COLLECTION = "FILTERED_COLLECTION"
    COMPLEX_JOIN = "COMPLEX_JOIN"
    EAGER_LOADING = "EAGER_LOADING"
    NESTED_EAGER_LOADING = "NESTED_EAGER_LOADING"
    COMPLEX_EAGER_LOADING = "COMPLEX_EAGER_LOADING"
    WHERE_CLAUSE = "WHERE_CLAUSE"
    ORDER_BY = "ORDER_BY"
    AGGREGATION = "AGGREGATION"
    PAGINATION = "PAGINATION"
    GROUP_BY = "GROUP_BY"

    @property
    def is_plain_read(self) -> bool:
        """Lookups and scans that count as plain reads."""
        return self in (
            QueryType.SINGLE_ENTITY,
            QueryType.FILTERED_SINGLE,
            QueryType.COLLECTION,
            QueryType.FILTERED_COLLECTION,
        )

    @property
    def is_eager(self) -> bool:
        """Queries that materialize related entities with their owner."""
        return self in (
            QueryType.EAGER_LOADING,
            QueryType.NESTED_EAGER_LOADING,
            QueryType.COMPLEX_EAGER_LOADING,
        )

    @property
    def is_key_lookup(self) -> bool:
        """Single-item lookups by key."""
        return self in (QueryType.SINGLE_ENTITY, QueryType.FILTERED_SINGLE)


class OperationKind(Enum):
    """Kind of a production query."""

    READ = "READ"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    OTHER = "OTHER"

    @property
    def is_write(self) -> bool:
        """Insert, update or delete."""
        return self in (OperationKind.INSERT, OperationKind.UPDATE, OperationKind.DELETE)

    @classmethod
    def parse(cls, value: "str | OperationKind | None") -> "OperationKind":
        """Parse an operation name as exported by query stores (SELECT -> READ)."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.OTHER
        name = str(value).strip().upper()
        if name in ("SELECT", "READ"):
            return cls.READ
        try:
            return cls(name)
        except ValueError:
            return cls.OTHER


@dataclass
class NavigationProperty:
    """Navigation relationship declared on an entity model."""

    property_name: str
    target_entity: str
    cardinality: Cardinality

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "property_name": self.property_name,
            "target_entity": self.target_entity,
            "cardinality": self.cardinality.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NavigationProperty":
        """Build from a dictionary."""
        return cls(
            property_name=data["property_name"],
            target_entity=data["target_entity"],
            cardinality=Cardinality.parse(data["cardinality"]),
        )


@dataclass
class EntityModel:
    """Entity class extracted from the application's data-access layer."""

    name: str
    navigation_properties: list[NavigationProperty] = field(default_factory=list)
    table_name: str | None = None
    source_file: str | None = None

    @property
    def effective_table_name(self) -> str:
        """Table backing this entity (defaults to the entity name)."""
        return self.table_name or self.name

    @property
    def has_circular_reference(self) -> bool:
        """True when a navigation property targets the entity itself."""
        return any(p.target_entity == self.name for p in self.navigation_properties)

    @property
    def navigation_count(self) -> int:
        """Number of navigation properties."""
        return len(self.navigation_properties)

    @property
    def many_to_many_count(self) -> int:
        """Number of many-to-many navigation properties."""
        return sum(
            1 for p in self.navigation_properties
            if p.cardinality == Cardinality.MANY_TO_MANY
        )

    def find_navigation(self, property_name: str) -> NavigationProperty | None:
        """Get navigation property by name."""
        for prop in self.navigation_properties:
            if prop.property_name == property_name:
                return prop
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "table_name": self.effective_table_name,
            "navigation_properties": [p.to_dict() for p in self.navigation_properties],
            "source_file": self.source_file,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EntityModel":
        """Build from a dictionary."""
        return cls(
            name=data["name"],
            navigation_properties=[
                NavigationProperty.from_dict(p)
                for p in data.get("navigation_properties", [])
            ],
            table_name=data.get("table_name"),
            source_file=data.get("source_file"),
        )


@dataclass
class QueryPattern:
    """A query-access pattern observed in application code."""

    query_type: QueryType
    target_path: str
    frequency: int = 1
    joined_entities: list[str] = field(default_factory=list)
    where_columns: list[str] = field(default_factory=list)
    has_complex_predicate: bool = False
    source_files: list[str] = field(default_factory=list)

    @property
    def path_segments(self) -> list[str]:
        """Dot-separated segments of the target path."""
        return [s for s in self.target_path.split(".") if s]

    @property
    def has_owner_prefix(self) -> bool:
        """True when the path names its owning entity explicitly."""
        return "." in self.target_path

    @property
    def owner_segment(self) -> str:
        """First path segment (the raw owner name)."""
        segments = self.path_segments
        return segments[0] if segments else self.target_path

    @property
    def related_segment(self) -> str | None:
        """Related property reached through eager loading, if any."""
        segments = self.path_segments[1:]
        if segments and segments[0] == NESTED_PATH_MARKER:
            segments = segments[1:]
        return segments[0] if segments else None

    @property
    def is_deep_nesting(self) -> bool:
        """Second-level eager load (long path or explicit nested marker)."""
        return (
            len(self.path_segments) > 2
            or self.query_type == QueryType.NESTED_EAGER_LOADING
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "query_type": self.query_type.value,
            "target_path": self.target_path,
            "frequency": self.frequency,
            "joined_entities": self.joined_entities,
            "where_columns": self.where_columns,
            "has_complex_predicate": self.has_complex_predicate,
            "source_files": self.source_files,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QueryPattern":
        """Build from a dictionary."""
        frequency = int(data.get("frequency", 1))
        if frequency < 0:
            raise ValueError(f"Negative frequency for {data.get('target_path')}: {frequency}")
        return cls(
            query_type=QueryType(str(data["query_type"]).upper()),
            target_path=str(data["target_path"]),
            frequency=frequency,
            joined_entities=_string_list(data, "joined_entities"),
            where_columns=_string_list(data, "where_columns"),
            has_complex_predicate=bool(data.get("has_complex_predicate", False)),
            source_files=_string_list(data, "source_files"),
        )


@dataclass
class ColumnDefinition:
    """Represents a column in a table."""

    name: str
    data_type: str
    nullable: bool = True
    default: str | None = None
    is_primary_key: bool = False
    is_unique: bool = False


@dataclass
class ForeignKeyDefinition:
    """Represents a raw foreign key constraint."""

    constraint_name: str
    from_table: str
    from_columns: list[str]
    to_table: str
    to_columns: list[str]


@dataclass
class IndexDefinition:
    """Represents an index on a table."""

    name: str
    table: str
    columns: list[str]
    is_unique: bool = False
    is_clustered: bool = False


@dataclass
class TableDefinition:
    """Represents a table definition."""

    name: str
    columns: list[ColumnDefinition] = field(default_factory=list)
    primary_key: list[str] = field(default_factory=list)
    indexes: list[IndexDefinition] = field(default_factory=list)
    unique_constraints: list[list[str]] = field(default_factory=list)

    def get_column(self, name: str) -> ColumnDefinition | None:
        """Get column by name."""
        for col in self.columns:
            if col.name.lower() == name.lower():
                return col
        return None

    def is_unique_column_set(self, columns: list[str]) -> bool:
        """Check whether a column set is guaranteed unique in this table."""
        wanted = {c.lower() for c in columns}
        if not wanted:
            return False
        if wanted == {c.lower() for c in self.primary_key}:
            return True
        if len(wanted) == 1:
            col = self.get_column(next(iter(wanted)))
            if col and col.is_unique:
                return True
        for unique in self.unique_constraints:
            if wanted == {c.lower() for c in unique}:
                return True
        return any(
            idx.is_unique and wanted == {c.lower() for c in idx.columns}
            for idx in self.indexes
        )


@dataclass
class SchemaRelationship:
    """Relationship between two tables with a derived cardinality."""

    from_table: str
    from_column: str
    to_table: str
    to_column: str
    cardinality: Cardinality
    name: str = ""
    synthesized: bool = False

    def involves(self, table_name: str) -> bool:
        """Check whether either endpoint is the given table (case-insensitive)."""
        name = table_name.lower()
        return self.from_table.lower() == name or self.to_table.lower() == name

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "from_table": self.from_table,
            "from_column": self.from_column,
            "to_table": self.to_table,
            "to_column": self.to_column,
            "cardinality": self.cardinality.value,
            "synthesized": self.synthesized,
        }


@dataclass
class SchemaDefinition:
    """Represents a complete database schema."""

    tables: list[TableDefinition] = field(default_factory=list)
    foreign_keys: list[ForeignKeyDefinition] = field(default_factory=list)
    relationships: list[SchemaRelationship] = field(default_factory=list)
    source_file: str | None = None

    def get_table(self, name: str) -> TableDefinition | None:
        """Get table by name."""
        for table in self.tables:
            if table.name.lower() == name.lower():
                return table
        return None

    def relationships_involving(self, table_name: str) -> list[SchemaRelationship]:
        """Get all relationships with the table at either end."""
        return [r for r in self.relationships if r.involves(table_name)]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "tables": [
                {
                    "name": t.name,
                    "columns": [
                        {
                            "name": c.name,
                            "type": c.data_type,
                            "nullable": c.nullable,
                            "default": c.default,
                            "is_primary_key": c.is_primary_key,
                            "is_unique": c.is_unique,
                        }
                        for c in t.columns
                    ],
                    "primary_key": t.primary_key,
                    "indexes": [
                        {"name": i.name, "columns": i.columns, "is_unique": i.is_unique}
                        for i in t.indexes
                    ],
                }
                for t in self.tables
            ],
            "foreign_keys": [
                {
                    "name": fk.constraint_name,
                    "from_table": fk.from_table,
                    "from_columns": fk.from_columns,
                    "to_table": fk.to_table,
                    "to_columns": fk.to_columns,
                }
                for fk in self.foreign_keys
            ],
            "relationships": [r.to_dict() for r in self.relationships],
        }


@dataclass
class TelemetryQuery:
    """A production query aggregated by the database's query store."""

    query_id: str
    operation: OperationKind
    tables: list[str]
    execution_count: int
    avg_duration_ms: float = 0.0
    avg_cpu_time_ms: float = 0.0
    avg_logical_reads: float = 0.0

    @property
    def touches_multiple_tables(self) -> bool:
        """True when the query reads or writes more than one table."""
        return len(set(self.tables)) > 1


@dataclass
class TableCombination:
    """Tables frequently touched together by the same production query."""

    tables: frozenset[str]
    total_executions: int
    execution_percentage: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "tables": sorted(self.tables),
            "total_executions": self.total_executions,
            "execution_percentage": round(self.execution_percentage, 2),
        }


@dataclass
class PerformanceCharacteristics:
    """Aggregate performance figures of the production workload."""

    avg_query_duration_ms: float = 0.0
    avg_cpu_time_ms: float = 0.0
    avg_logical_reads: float = 0.0
    slow_query_count: int = 0

    @property
    def has_performance_issues(self) -> bool:
        """True when at least one query is slow."""
        return self.slow_query_count > 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "avg_query_duration_ms": self.avg_query_duration_ms,
            "avg_cpu_time_ms": self.avg_cpu_time_ms,
            "avg_logical_reads": self.avg_logical_reads,
            "slow_query_count": self.slow_query_count,
            "has_performance_issues": self.has_performance_issues,
        }


@dataclass
class TelemetryAnalysis:
    """Parsed production telemetry export."""

    database: str = ""
    total_queries_analyzed: int = 0
    queries: list[TelemetryQuery] = field(default_factory=list)
    operation_breakdown: dict[str, int] = field(default_factory=dict)
    table_combinations: list[TableCombination] = field(default_factory=list)
    performance: PerformanceCharacteristics = field(default_factory=PerformanceCharacteristics)
    source_file: str | None = None

    @property
    def is_usable(self) -> bool:
        """Telemetry is only folded in when per-query records are present."""
        return bool(self.queries)

    @property
    def total_executions(self) -> int:
        """Grand total of executions across all queries."""
        return sum(q.execution_count for q in self.queries)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "database": self.database,
            "total_queries_analyzed": self.total_queries_analyzed,
            "total_executions": self.total_executions,
            "operation_breakdown": self.operation_breakdown,
            "table_combinations": [c.to_dict() for c in self.table_combinations],
            "performance": self.performance.to_dict(),
        }
