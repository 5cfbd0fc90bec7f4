"""Denorm Advisor - usage-driven denormalization candidates for NoSQL migration.

Correlates entity models, query-access patterns, relational schema and
production telemetry to rank which entities should be merged into single
non-relational items.
"""

__version__ = "1.0.0"

from denorm_advisor.config import get_settings

__all__ = ["__version__", "get_settings"]
