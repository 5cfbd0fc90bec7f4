"""Pytest configuration and fixtures."""

import json
import tempfile
from pathlib import Path

import pytest

from denorm_advisor.analyzer.models import EntityUsageProfile
from denorm_advisor.analyzer.thresholds import AnalysisThresholds
from denorm_advisor.collector.models import (
    Cardinality,
    EntityModel,
    NavigationProperty,
    OperationKind,
    QueryPattern,
    QueryType,
    TelemetryAnalysis,
    TelemetryQuery,
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def discovery():
    """Discovery thresholds."""
    return AnalysisThresholds.for_discovery()


@pytest.fixture
def conservative():
    """Conservative thresholds."""
    return AnalysisThresholds.for_conservative()


@pytest.fixture
def customer_entities():
    """Customer -> Orders -> OrderItems entity graph."""
    return [
        EntityModel(
            name="Customer",
            table_name="Customers",
            navigation_properties=[
                NavigationProperty("Orders", "Order", Cardinality.ONE_TO_MANY),
                NavigationProperty("Profile", "CustomerProfile", Cardinality.ONE_TO_ONE),
            ],
        ),
        EntityModel(
            name="Order",
            table_name="Orders",
            navigation_properties=[
                NavigationProperty("Customer", "Customer", Cardinality.MANY_TO_ONE),
                NavigationProperty("OrderItems", "OrderItem", Cardinality.ONE_TO_MANY),
            ],
        ),
        EntityModel(
            name="OrderItem",
            table_name="OrderItems",
            navigation_properties=[
                NavigationProperty("Order", "Order", Cardinality.MANY_TO_ONE),
            ],
        ),
        EntityModel(name="CustomerProfile", table_name="CustomerProfiles"),
    ]


@pytest.fixture
def customer_patterns():
    """Query patterns over the customer entity graph."""
    return [
        QueryPattern(QueryType.EAGER_LOADING, "Customer.Orders", frequency=150),
        QueryPattern(QueryType.SINGLE_ENTITY, "Customer", frequency=40),
        QueryPattern(QueryType.EAGER_LOADING, "Order.OrderItems", frequency=12),
        QueryPattern(QueryType.COLLECTION, "Orders", frequency=5),
    ]


@pytest.fixture
def property_mapping():
    """DbSet/property name to entity name mapping."""
    return {
        "Customers": "Customer",
        "Orders": "Order",
        "OrderItems": "OrderItem",
        "Profile": "CustomerProfile",
    }


@pytest.fixture
def make_profile():
    """Factory for usage profiles with preset counters."""

    def _make(name="Entity", navigation=None, **counters):
        entity = EntityModel(name=name, navigation_properties=navigation or [])
        profile = EntityUsageProfile(entity=entity)
        for always in counters.pop("always_loaded_with", []):
            profile.add_always_loaded(always)
        for pattern in counters.pop("patterns", []):
            profile.add_pattern(pattern)
        for other, weight in counters.pop("co_accessed", {}).items():
            profile.add_co_access(other, weight)
        for attr, value in counters.items():
            setattr(profile, attr, value)
        return profile

    return _make


@pytest.fixture
def sample_schema_sql():
    """Sample SQL schema for testing."""
    return """
    CREATE TABLE Customers (
        id SERIAL PRIMARY KEY,
        email VARCHAR(255) NOT NULL UNIQUE,
        name VARCHAR(100)
    );

    CREATE TABLE CustomerProfiles (
        id SERIAL PRIMARY KEY,
        customer_id INTEGER NOT NULL UNIQUE REFERENCES Customers(id),
        bio TEXT
    );

    CREATE TABLE Orders (
        id SERIAL PRIMARY KEY,
        customer_id INTEGER REFERENCES Customers(id),
        total DECIMAL(10,2),
        status VARCHAR(50) DEFAULT 'pending'
    );

    CREATE TABLE Tags (
        id SERIAL PRIMARY KEY,
        label VARCHAR(50)
    );

    CREATE TABLE OrderTags (
        order_id INTEGER NOT NULL,
        tag_id INTEGER NOT NULL,
        PRIMARY KEY (order_id, tag_id),
        FOREIGN KEY (order_id) REFERENCES Orders(id),
        FOREIGN KEY (tag_id) REFERENCES Tags(id)
    );

    CREATE INDEX idx_orders_customer ON Orders (customer_id);
    CREATE UNIQUE INDEX idx_tags_label ON Tags (label);
    """


@pytest.fixture
def telemetry_queries():
    """Production query records over the customer tables."""
    return [
        TelemetryQuery("q1", OperationKind.READ, ["Customers", "Orders"], 900),
        TelemetryQuery("q2", OperationKind.READ, ["Orders", "OrderItems"], 40),
        TelemetryQuery("q3", OperationKind.READ, ["Customers"], 121),
        TelemetryQuery("q4", OperationKind.UPDATE, ["Customers"], 21),
        TelemetryQuery("q5", OperationKind.INSERT, ["Orders"], 300),
    ]


@pytest.fixture
def telemetry(telemetry_queries):
    """Usable telemetry analysis."""
    return TelemetryAnalysis(
        database="Shop",
        total_queries_analyzed=len(telemetry_queries),
        queries=telemetry_queries,
    )


@pytest.fixture
def telemetry_document():
    """Analysed query-store export document."""
    return {
        "database": "Shop",
        "analysisType": "QUERY_STORE_PRODUCTION_METRICS",
        "totalQueriesAnalyzed": 3,
        "queries": [
            {
                "queryId": "1",
                "executionCount": 900,
                "avgDurationMs": 12.5,
                "avgCpuTimeMs": 4.0,
                "avgLogicalReads": 80,
                "operationType": "SELECT",
                "tablesAccessed": ["Customers", "Orders"],
            },
            {
                "queryId": "2",
                "executionCount": 25,
                "avgDurationMs": 250.0,
                "avgCpuTimeMs": 90.0,
                "avgLogicalReads": 4000,
                "operationType": "UPDATE",
                "tablesAccessed": ["Orders"],
            },
            {
                "queryId": "3",
                "executionCount": 10,
                "avgDurationMs": 1.5,
                "avgCpuTimeMs": 0.5,
                "avgLogicalReads": 3,
                "operationType": "SELECT",
                "tablesAccessed": ["Customers"],
            },
        ],
    }


@pytest.fixture
def input_files(temp_dir, customer_entities, customer_patterns, property_mapping, sample_schema_sql, telemetry_document):
    """Entity, pattern, schema and telemetry files on disk."""
    entities_file = temp_dir / "entities.json"
    entities_file.write_text(json.dumps({
        "entities": [e.to_dict() for e in customer_entities],
        "property_mapping": property_mapping,
    }))

    patterns_file = temp_dir / "patterns.json"
    patterns_file.write_text(json.dumps({
        "query_patterns": [p.to_dict() for p in customer_patterns],
    }))

    schema_file = temp_dir / "schema.sql"
    schema_file.write_text(sample_schema_sql)

    telemetry_file = temp_dir / "telemetry.json"
    telemetry_file.write_text(json.dumps(telemetry_document))

    return {
        "entities": entities_file,
        "patterns": patterns_file,
        "schema": schema_file,
        "telemetry": telemetry_file,
    }


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set up mock environment variables for testing."""
    from denorm_advisor.config import get_settings

    monkeypatch.setenv("DENORM_PROFILE", "conservative")
    monkeypatch.setenv("DENORM_SCHEMA_DIALECT", "mysql")
    monkeypatch.setenv("DENORM_ALWAYS_LOADED_POLICY", "unconditional")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
