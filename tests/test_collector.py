"""Tests for collector module."""

import json

import pytest

from denorm_advisor.collector.input_loader import InputFormatError, InputLoader
from denorm_advisor.collector.models import (
    Cardinality,
    EntityModel,
    NavigationProperty,
    OperationKind,
    QueryPattern,
    QueryType,
)
from denorm_advisor.collector.schema_parser import SchemaParser
from denorm_advisor.collector.telemetry_parser import TelemetryParser


class TestQueryPattern:
    """Tests for QueryPattern model."""

    def test_owner_and_related_segments(self):
        """Test path segments of a simple eager load."""
        pattern = QueryPattern(QueryType.EAGER_LOADING, "Customer.Orders")
        assert pattern.has_owner_prefix
        assert pattern.owner_segment == "Customer"
        assert pattern.related_segment == "Orders"
        assert not pattern.is_deep_nesting

    def test_nested_marker_is_skipped(self):
        """Test the nested marker does not count as the related entity."""
        pattern = QueryPattern(QueryType.EAGER_LOADING, "Customer.nested.OrderItems")
        assert pattern.related_segment == "OrderItems"
        assert pattern.is_deep_nesting

    def test_nested_query_type_is_deep(self):
        """Test explicit nested-load marker type."""
        pattern = QueryPattern(QueryType.NESTED_EAGER_LOADING, "Customer.Orders")
        assert pattern.is_deep_nesting

    def test_bare_name_has_no_owner_prefix(self):
        """Test a bare property name."""
        pattern = QueryPattern(QueryType.COLLECTION, "Orders")
        assert not pattern.has_owner_prefix
        assert pattern.related_segment is None

    def test_from_dict_defaults(self):
        """Test defaults when optional keys are missing."""
        pattern = QueryPattern.from_dict({"query_type": "single_entity", "target_path": "Customer"})
        assert pattern.query_type == QueryType.SINGLE_ENTITY
        assert pattern.frequency == 1
        assert pattern.joined_entities == []

    def test_from_dict_rejects_negative_frequency(self):
        """Test negative frequencies are rejected."""
        with pytest.raises(ValueError):
            QueryPattern.from_dict(
                {"query_type": "COLLECTION", "target_path": "Orders", "frequency": -1}
            )

    @pytest.mark.parametrize(
        "field_name, value",
        [
            ("joined_entities", "Order"),
            ("joined_entities", ["Order", 7]),
            ("where_columns", "id"),
            ("source_files", {"path": "repo.py"}),
        ],
    )
    def test_from_dict_rejects_non_string_lists(self, field_name, value):
        """Test list fields must hold strings rather than being split or coerced."""
        data = {"query_type": "EAGER_LOADING", "target_path": "Customer.Orders", field_name: value}
        with pytest.raises(ValueError):
            QueryPattern.from_dict(data)

    def test_from_dict_null_list_is_empty(self):
        """Test an explicit null list field reads as empty."""
        pattern = QueryPattern.from_dict(
            {"query_type": "EAGER_LOADING", "target_path": "Customer.Orders", "joined_entities": None}
        )
        assert pattern.joined_entities == []

    def test_query_type_groups(self):
        """Test query type classification helpers."""
        assert QueryType.FILTERED_COLLECTION.is_plain_read
        assert not QueryType.WHERE_CLAUSE.is_plain_read
        assert QueryType.COMPLEX_EAGER_LOADING.is_eager
        assert QueryType.FILTERED_SINGLE.is_key_lookup
        assert not QueryType.COLLECTION.is_key_lookup


class TestEntityModel:
    """Tests for EntityModel."""

    def test_circular_reference(self):
        """Test self-referencing navigation is detected."""
        entity = EntityModel(
            name="Employee",
            navigation_properties=[
                NavigationProperty("Manager", "Employee", Cardinality.MANY_TO_ONE),
            ],
        )
        assert entity.has_circular_reference

    def test_many_to_many_count(self):
        """Test many-to-many navigation counting."""
        entity = EntityModel(
            name="Product",
            navigation_properties=[
                NavigationProperty("Tags", "Tag", Cardinality.MANY_TO_MANY),
                NavigationProperty("Categories", "Category", Cardinality.MANY_TO_MANY),
                NavigationProperty("Supplier", "Supplier", Cardinality.MANY_TO_ONE),
            ],
        )
        assert entity.many_to_many_count == 2
        assert entity.navigation_count == 3
        assert not entity.has_circular_reference

    def test_effective_table_name_defaults_to_name(self):
        """Test table name fallback."""
        assert EntityModel(name="Tag").effective_table_name == "Tag"
        assert EntityModel(name="Tag", table_name="Tags").effective_table_name == "Tags"

    def test_round_trip_dict(self):
        """Test from_dict accepts to_dict output."""
        entity = EntityModel(
            name="Order",
            table_name="Orders",
            navigation_properties=[NavigationProperty("Items", "OrderItem", Cardinality.ONE_TO_MANY)],
        )
        assert EntityModel.from_dict(entity.to_dict()) == entity

    def test_cardinality_parse_variants(self):
        """Test cardinality parsing is lenient about case and separators."""
        assert Cardinality.parse("one-to-many") == Cardinality.ONE_TO_MANY
        assert Cardinality.parse("Many To Many") == Cardinality.MANY_TO_MANY
        with pytest.raises(ValueError):
            Cardinality.parse("sometimes")


class TestOperationKind:
    """Tests for OperationKind parsing."""

    def test_select_is_read(self):
        """Test SELECT maps to READ."""
        assert OperationKind.parse("SELECT") == OperationKind.READ

    def test_writes(self):
        """Test write detection."""
        assert OperationKind.parse("delete").is_write
        assert not OperationKind.READ.is_write

    def test_unknown_is_other(self):
        """Test unknown operation names."""
        assert OperationKind.parse("MERGE") == OperationKind.OTHER
        assert OperationKind.parse(None) == OperationKind.OTHER


class TestSchemaParser:
    """Tests for SchemaParser."""

    def test_parse_tables(self, sample_schema_sql):
        """Test all tables are parsed."""
        schema = SchemaParser().parse_sql(sample_schema_sql)
        names = {t.name for t in schema.tables}
        assert names == {"Customers", "CustomerProfiles", "Orders", "Tags", "OrderTags"}

    def test_columns_and_primary_key(self, sample_schema_sql):
        """Test column details are captured."""
        schema = SchemaParser().parse_sql(sample_schema_sql)
        customers = schema.get_table("customers")
        assert customers is not None
        assert customers.primary_key == ["id"]
        assert customers.get_column("email").is_unique
        assert not customers.get_column("email").nullable

    def test_composite_primary_key(self, sample_schema_sql):
        """Test table-level primary key."""
        schema = SchemaParser().parse_sql(sample_schema_sql)
        assert schema.get_table("OrderTags").primary_key == ["order_id", "tag_id"]

    def test_indexes_attached(self, sample_schema_sql):
        """Test CREATE INDEX statements are attached to their tables."""
        schema = SchemaParser().parse_sql(sample_schema_sql)
        orders = schema.get_table("Orders")
        assert [i.name for i in orders.indexes] == ["idx_orders_customer"]
        assert schema.get_table("Tags").indexes[0].is_unique

    def test_many_to_one_relationship(self, sample_schema_sql):
        """Test a plain foreign key is many-to-one."""
        schema = SchemaParser().parse_sql(sample_schema_sql)
        rel = next(
            r for r in schema.relationships
            if r.from_table == "Orders" and r.to_table == "Customers"
        )
        assert rel.cardinality == Cardinality.MANY_TO_ONE
        assert rel.from_column == "customer_id"
        assert rel.to_column == "id"

    def test_unique_foreign_key_is_one_to_one(self, sample_schema_sql):
        """Test a unique foreign key column is one-to-one."""
        schema = SchemaParser().parse_sql(sample_schema_sql)
        rel = next(r for r in schema.relationships if r.from_table == "CustomerProfiles")
        assert rel.cardinality == Cardinality.ONE_TO_ONE

    def test_junction_table_synthesizes_many_to_many(self, sample_schema_sql):
        """Test a pure junction table yields a many-to-many edge."""
        schema = SchemaParser().parse_sql(sample_schema_sql)
        synthesized = [r for r in schema.relationships if r.synthesized]
        assert len(synthesized) == 1
        edge = synthesized[0]
        assert edge.cardinality == Cardinality.MANY_TO_MANY
        assert {edge.from_table, edge.to_table} == {"Orders", "Tags"}
        assert edge.name == "OrderTags"

    def test_junction_side_keys_stay_many_to_one(self, sample_schema_sql):
        """Test the junction table's own foreign keys are not unique."""
        schema = SchemaParser().parse_sql(sample_schema_sql)
        junction_fks = [
            r for r in schema.relationships
            if r.from_table == "OrderTags" and not r.synthesized
        ]
        assert len(junction_fks) == 2
        assert all(r.cardinality == Cardinality.MANY_TO_ONE for r in junction_fks)

    def test_table_with_extra_column_is_not_junction(self):
        """Test a link table carrying payload is not a junction table."""
        sql = """
        CREATE TABLE a (id INTEGER PRIMARY KEY);
        CREATE TABLE b (id INTEGER PRIMARY KEY);
        CREATE TABLE a_b (
            a_id INTEGER NOT NULL REFERENCES a(id),
            b_id INTEGER NOT NULL REFERENCES b(id),
            weight INTEGER,
            PRIMARY KEY (a_id, b_id)
        );
        """
        schema = SchemaParser().parse_sql(sql)
        assert not [r for r in schema.relationships if r.synthesized]

    def test_junction_with_audit_columns(self):
        """Test bookkeeping columns do not stop a link table being a junction."""
        sql = """
        CREATE TABLE Students (id INTEGER PRIMARY KEY);
        CREATE TABLE Courses (id INTEGER PRIMARY KEY);
        CREATE TABLE StudentCourses (
            student_id INTEGER NOT NULL REFERENCES Students(id),
            course_id INTEGER NOT NULL REFERENCES Courses(id),
            created_at TIMESTAMP,
            updated_by VARCHAR(50),
            PRIMARY KEY (student_id, course_id)
        );
        """
        schema = SchemaParser().parse_sql(sql)
        synthesized = [r for r in schema.relationships if r.synthesized]
        assert len(synthesized) == 1
        assert synthesized[0].cardinality == Cardinality.MANY_TO_MANY
        assert {synthesized[0].from_table, synthesized[0].to_table} == {"Students", "Courses"}

    def test_junction_with_payload_beside_audit_column(self):
        """Test a payload column still disqualifies a table that also has audit columns."""
        sql = """
        CREATE TABLE Students (id INTEGER PRIMARY KEY);
        CREATE TABLE Courses (id INTEGER PRIMARY KEY);
        CREATE TABLE Enrollments (
            student_id INTEGER NOT NULL REFERENCES Students(id),
            course_id INTEGER NOT NULL REFERENCES Courses(id),
            created_at TIMESTAMP,
            quantity INTEGER,
            PRIMARY KEY (student_id, course_id)
        );
        """
        schema = SchemaParser().parse_sql(sql)
        assert not [r for r in schema.relationships if r.synthesized]

    def test_relationships_involving(self, sample_schema_sql):
        """Test relationship degree lookup is case-insensitive."""
        schema = SchemaParser().parse_sql(sample_schema_sql)
        assert len(schema.relationships_involving("orders")) == 3

    def test_regex_fallback(self):
        """Test the regex parser handles constraints and bracketed names."""
        sql = """
        CREATE TABLE [dbo].[Users] (
            [Id] INT NOT NULL,
            [Email] NVARCHAR(255) NOT NULL,
            CONSTRAINT PK_Users PRIMARY KEY CLUSTERED ([Id]),
            CONSTRAINT UQ_Users_Email UNIQUE ([Email])
        );
        CREATE TABLE [dbo].[Sessions] (
            [Id] INT NOT NULL PRIMARY KEY,
            [UserId] INT NOT NULL,
            CONSTRAINT FK_Sessions_Users FOREIGN KEY ([UserId]) REFERENCES [dbo].[Users] ([Id])
        );
        """
        parser = SchemaParser(dialect="tsql")
        schema = parser._parse_with_regex(sql)
        users = schema.get_table("Users")
        assert users.primary_key == ["Id"]
        assert users.unique_constraints == [["Email"]]
        assert len(schema.foreign_keys) == 1
        fk = schema.foreign_keys[0]
        assert (fk.from_table, fk.from_columns, fk.to_table, fk.to_columns) == (
            "Sessions", ["UserId"], "Users", ["Id"]
        )

    def test_parse_file_not_found(self, temp_dir):
        """Test missing schema file."""
        with pytest.raises(FileNotFoundError):
            SchemaParser().parse_file(temp_dir / "missing.sql")


class TestTelemetryParser:
    """Tests for TelemetryParser."""

    def test_parse_analysed_document(self, telemetry_document):
        """Test analysed records are read as-is."""
        analysis = TelemetryParser().parse_document(telemetry_document)
        assert analysis.database == "Shop"
        assert analysis.total_queries_analyzed == 3
        assert analysis.is_usable
        assert analysis.operation_breakdown == {"READ": 2, "UPDATE": 1}
        assert analysis.queries[0].tables == ["Customers", "Orders"]

    def test_performance_characteristics(self, telemetry_document):
        """Test slow query detection and averages."""
        analysis = TelemetryParser().parse_document(telemetry_document)
        assert analysis.performance.slow_query_count == 1
        assert analysis.performance.has_performance_issues
        assert analysis.performance.avg_query_duration_ms == pytest.approx(88.0)

    def test_table_combinations(self, telemetry_document):
        """Test combinations are mined at the parser threshold."""
        analysis = TelemetryParser(co_access_threshold=50).parse_document(telemetry_document)
        assert len(analysis.table_combinations) == 1
        assert analysis.table_combinations[0].tables == frozenset({"Customers", "Orders"})

    def test_raw_export_is_classified(self):
        """Test raw SQL records are classified with sqlglot."""
        document = {
            "export_metadata": {"database_name": "Shop", "query_store_enabled": True},
            "queries": [
                {
                    "query_id": "7",
                    "sql_text": "SELECT c.name FROM Customers c JOIN Orders o ON o.customer_id = c.id",
                    "execution_count": 120,
                    "avg_duration_ms": 3.0,
                    "avg_cpu_ms": 1.0,
                    "avg_logical_reads": 10,
                },
                {
                    "query_id": "8",
                    "sql_text": "UPDATE Orders SET status = 'shipped' WHERE id = 1",
                    "execution_count": 4,
                },
            ],
        }
        analysis = TelemetryParser().parse_document(document)
        assert analysis.database == "Shop"
        first, second = analysis.queries
        assert first.operation == OperationKind.READ
        assert set(first.tables) == {"Customers", "Orders"}
        assert first.avg_cpu_time_ms == 1.0
        assert second.operation == OperationKind.UPDATE
        assert second.tables == ["Orders"]

    def test_malformed_records_are_skipped(self, telemetry_document):
        """Test bad records do not abort parsing."""
        telemetry_document["queries"].extend([
            "not a record",
            {"queryId": "x", "executionCount": "many", "operationType": "SELECT", "tablesAccessed": []},
            {"queryId": "y", "executionCount": 5},
        ])
        analysis = TelemetryParser().parse_document(telemetry_document)
        assert analysis.total_queries_analyzed == 3

    def test_missing_queries_is_unusable(self):
        """Test a document without query records."""
        analysis = TelemetryParser().parse_document({"database": "Shop"})
        assert not analysis.is_usable

    def test_invalid_queries_section(self):
        """Test a non-list queries section is rejected."""
        with pytest.raises(InputFormatError):
            TelemetryParser().parse_document({"queries": {"a": 1}})

    def test_parse_file(self, input_files):
        """Test parsing from disk records the source file."""
        analysis = TelemetryParser().parse_file(input_files["telemetry"])
        assert analysis.source_file == str(input_files["telemetry"])


class TestInputLoader:
    """Tests for InputLoader."""

    def test_load_entities(self, input_files):
        """Test entity document loading."""
        catalog = InputLoader().load_entities(input_files["entities"])
        assert [e.name for e in catalog.entities] == ["Customer", "Order", "OrderItem", "CustomerProfile"]
        assert catalog.property_mapping["Orders"] == "Order"
        assert catalog.entities[0].find_navigation("Orders").target_entity == "Order"

    def test_load_patterns(self, input_files):
        """Test pattern document loading."""
        patterns = InputLoader().load_patterns(input_files["patterns"])
        assert len(patterns) == 4
        assert patterns[0].frequency == 150

    def test_malformed_entity_skipped(self, temp_dir):
        """Test a malformed entity does not abort loading."""
        path = temp_dir / "entities.json"
        path.write_text(json.dumps([{"name": "Good"}, {"table_name": "missing_name"}]))
        catalog = InputLoader().load_entities(path)
        assert [e.name for e in catalog.entities] == ["Good"]

    def test_pattern_with_string_list_fields_skipped(self, temp_dir):
        """Test patterns whose list fields are bare strings are skipped, not split."""
        path = temp_dir / "patterns.json"
        path.write_text(json.dumps([
            {"query_type": "EAGER_LOADING", "target_path": "Customer.Orders", "joined_entities": "Order"},
            {"query_type": "FILTERED_SINGLE", "target_path": "Customer", "where_columns": "id"},
            {"query_type": "EAGER_LOADING", "target_path": "Customer.Orders", "joined_entities": ["Order"]},
        ]))
        patterns = InputLoader().load_patterns(path)
        assert len(patterns) == 1
        assert patterns[0].joined_entities == ["Order"]

    def test_invalid_json(self, temp_dir):
        """Test invalid JSON raises InputFormatError."""
        path = temp_dir / "patterns.json"
        path.write_text("{not json")
        with pytest.raises(InputFormatError):
            InputLoader().load_patterns(path)

    def test_wrong_structure(self, temp_dir):
        """Test a structurally invalid document."""
        path = temp_dir / "patterns.json"
        path.write_text(json.dumps({"query_patterns": "nope"}))
        with pytest.raises(InputFormatError):
            InputLoader().load_patterns(path)

    def test_missing_file(self, temp_dir):
        """Test missing input file."""
        with pytest.raises(FileNotFoundError):
            InputLoader().load_entities(temp_dir / "nope.json")
