"""Collector module for loading entity models, query patterns, schemas and telemetry."""

from denorm_advisor.collector.input_loader import EntityCatalog, InputFormatError, InputLoader
from denorm_advisor.collector.models import (
    Cardinality,
    EntityModel,
    NavigationProperty,
    QueryPattern,
    QueryType,
    SchemaDefinition,
    SchemaRelationship,
    TelemetryAnalysis,
)
from denorm_advisor.collector.schema_parser import SchemaParser
from denorm_advisor.collector.telemetry_parser import TelemetryParser

__all__ = [
    "Cardinality",
    "EntityCatalog",
    "EntityModel",
    "InputFormatError",
    "InputLoader",
    "NavigationProperty",
    "QueryPattern",
    "QueryType",
    "SchemaDefinition",
    "SchemaParser",
    "SchemaRelationship",
    "TelemetryAnalysis",
    "TelemetryParser",
]
