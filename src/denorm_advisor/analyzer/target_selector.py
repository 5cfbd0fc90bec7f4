"""Target selector - maps a profile's shape to a storage paradigm."""

import logging
from dataclasses import dataclass
from typing import Callable

from denorm_advisor.analyzer.models import COMPLEX_ALWAYS_LOADED_LIMIT, EntityUsageProfile, TargetParadigm

logger = logging.getLogger(__name__)

DOCUMENT_ALWAYS_LOADED_MIN = 2
KEY_VALUE_ALWAYS_LOADED_MAX = 1


@dataclass(frozen=True)
class TargetRule:
    """Tagged target rule; first match wins."""

    tag: str
    target: TargetParadigm
    matches: Callable[[EntityUsageProfile], bool]


def _document_shape(profile: EntityUsageProfile) -> bool:
    return len(profile.always_loaded_with) > DOCUMENT_ALWAYS_LOADED_MIN or profile.has_deep_nesting


def _graph_shape(profile: EntityUsageProfile) -> bool:
    return (
        profile.entity.many_to_many_count > 1
        or profile.entity.has_circular_reference
        or len(profile.always_loaded_with) > COMPLEX_ALWAYS_LOADED_LIMIT
    )


def _key_value_shape(profile: EntityUsageProfile) -> bool:
    return (
        profile.has_simple_key_based_access
        and len(profile.always_loaded_with) <= KEY_VALUE_ALWAYS_LOADED_MAX
    )


TARGET_RULES: tuple[TargetRule, ...] = (
    TargetRule("DOCUMENT_AGGREGATE", TargetParadigm.DOCUMENT, _document_shape),
    TargetRule("GRAPH_TRAVERSAL", TargetParadigm.GRAPH, _graph_shape),
    TargetRule("SIMPLE_KEY_ACCESS", TargetParadigm.KEY_VALUE, _key_value_shape),
)
DEFAULT_TARGET_RULE = "DEFAULT"


class TargetSelector:
    """Chooses the recommended target paradigm for a candidate."""

    def __init__(self, rules: tuple[TargetRule, ...] = TARGET_RULES):
        self.rules = rules

    def select(self, profile: EntityUsageProfile) -> tuple[TargetParadigm, str]:
        """
        Pick a paradigm for a profile.

        Args:
            profile: Frozen usage profile

        Returns:
            Tuple of (target paradigm, tag of the rule that matched)
        """
        for rule in self.rules:
            if rule.matches(profile):
                logger.debug(f"{profile.entity_name} -> {rule.target.value} ({rule.tag})")
                return rule.target, rule.tag
        return TargetParadigm.KEY_VALUE, DEFAULT_TARGET_RULE
