"""
Tier hierarchy and eligibility rule table.

TIER HIERARCHY
==============

Each tier maps to itself plus the tiers it subsumes. Two definitions have
been in use by the club and they disagree on what DEEP grants:

  nested  DEEP -> DEEP, ADVANCED, OPEN, ALL     (higher tiers subsume lower)
  flat    DEEP -> DEEP, ALL                     (each tier only adds ALL)

The choice is a club policy decision, selected with the TIER_HIERARCHY
setting. `nested` is the default because it matches the club's stated intent.

RULE TABLE
==========

Event category code -> (requires active subscription, allowed tiers).
Categories without an entry fall back to DEFAULT_RULE. The table is built
once per process; EVENT_RULES_FILE may point to a JSON file whose entries
replace the built-in ones:

  {"TRY_DIVE": {"requires_active_subscription": false, "allowed_tiers": ["ALL"]}}
"""

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Mapping, Optional

from pydantic import BaseModel, TypeAdapter

from club_booking.core.config import get_settings
from club_booking.core.logging import get_logger
from club_booking.models.enums import Tier

logger = get_logger(__name__)

TierSet = frozenset[Tier]

NESTED_HIERARCHY: Mapping[Tier, TierSet] = {
    Tier.ALL: frozenset({Tier.ALL}),
    Tier.OPEN: frozenset({Tier.OPEN, Tier.ALL}),
    Tier.ADVANCED: frozenset({Tier.ADVANCED, Tier.OPEN, Tier.ALL}),
    Tier.DEEP: frozenset({Tier.DEEP, Tier.ADVANCED, Tier.OPEN, Tier.ALL}),
}

FLAT_HIERARCHY: Mapping[Tier, TierSet] = {
    Tier.ALL: frozenset({Tier.ALL}),
    Tier.OPEN: frozenset({Tier.OPEN, Tier.ALL}),
    Tier.ADVANCED: frozenset({Tier.ADVANCED, Tier.ALL}),
    Tier.DEEP: frozenset({Tier.DEEP, Tier.ALL}),
}

HIERARCHIES: Mapping[str, Mapping[Tier, TierSet]] = {
    "nested": NESTED_HIERARCHY,
    "flat": FLAT_HIERARCHY,
}


def get_hierarchy(name: Optional[str] = None) -> Mapping[Tier, TierSet]:
    """Return the expansion table by name, defaulting to the configured one."""
    name = name or get_settings().TIER_HIERARCHY
    try:
        return HIERARCHIES[name]
    except KeyError:
        raise ValueError(f"Unknown tier hierarchy: {name!r}") from None


def expand_tiers(tiers: Iterable[Tier], hierarchy: Mapping[Tier, TierSet]) -> TierSet:
    expanded: set[Tier] = set()
    for tier in tiers:
        expanded |= hierarchy[tier]
    return frozenset(expanded)


@dataclass(frozen=True)
class EligibilityRule:
    requires_active_subscription: bool
    allowed_tiers: TierSet

    @property
    def minimum_tier(self) -> Tier:
        return min(self.allowed_tiers, key=lambda tier: tier.rank)

    def admits(self, tiers: TierSet) -> bool:
        return not self.allowed_tiers.isdisjoint(tiers)


def _rule(requires_subscription: bool, *tiers: Tier) -> EligibilityRule:
    return EligibilityRule(requires_subscription, frozenset(tiers))


DEFAULT_RULE = _rule(True, Tier.ALL, Tier.OPEN, Tier.ADVANCED, Tier.DEEP)

BUILTIN_RULES: Mapping[str, EligibilityRule] = {
    # Courses
    "TRY_DIVE": _rule(False, Tier.ALL),
    "COURSE_OPEN": _rule(True, Tier.OPEN),
    "COURSE_ADVANCED": _rule(True, Tier.ADVANCED),
    "COURSE_DEEP": _rule(True, Tier.DEEP),
    # Pool training
    "TRAINING_ALL": _rule(True, Tier.ALL),
    "TRAINING_OPEN": _rule(True, Tier.OPEN),
    "TRAINING_ADVANCED": _rule(True, Tier.ADVANCED),
    "TRAINING_DEEP": _rule(True, Tier.DEEP),
    # Open water
    "OPEN_WATER_OPEN": _rule(True, Tier.OPEN),
    "OPEN_WATER_ADVANCED": _rule(True, Tier.ADVANCED),
    "OPEN_WATER_DEEP": _rule(True, Tier.DEEP),
    # Deep pool sessions
    "Y40_ALL": _rule(True, Tier.ALL),
    "Y40_OPEN": _rule(True, Tier.OPEN),
    "Y40_ADVANCED": _rule(True, Tier.ADVANCED),
    "Y40_DEEP": _rule(True, Tier.DEEP),
    # Special events
    "EVENT_SPECIAL_FREE": _rule(False, Tier.ALL),
    "EVENT_SPECIAL": _rule(True, Tier.ALL),
    "EVENT_SPECIAL_OPEN": _rule(True, Tier.OPEN),
    "EVENT_SPECIAL_ADVANCED": _rule(True, Tier.ADVANCED),
    "EVENT_SPECIAL_DEEP": _rule(True, Tier.DEEP),
}


class RuleOverride(BaseModel):
    requires_active_subscription: bool = True
    allowed_tiers: list[Tier]

    def to_rule(self) -> EligibilityRule:
        if not self.allowed_tiers:
            raise ValueError("allowed_tiers must not be empty")
        return EligibilityRule(self.requires_active_subscription, frozenset(self.allowed_tiers))


_overrides_adapter = TypeAdapter(dict[str, RuleOverride])


class RuleTable:
    """Immutable category code -> EligibilityRule lookup with a default."""

    def __init__(
        self,
        rules: Mapping[str, EligibilityRule],
        default: EligibilityRule = DEFAULT_RULE,
    ):
        self._rules = dict(rules)
        self._default = default

    def rule_for(self, category_code: Optional[str]) -> EligibilityRule:
        if category_code is None:
            return self._default
        return self._rules.get(category_code, self._default)

    def minimum_tier(self, category_code: Optional[str]) -> Tier:
        return self.rule_for(category_code).minimum_tier

    def __contains__(self, category_code: str) -> bool:
        return category_code in self._rules

    def __len__(self) -> int:
        return len(self._rules)


def load_rule_table(path: Optional[str] = None) -> RuleTable:
    """Built-in rules, with entries from the JSON file at `path` replacing them."""
    rules = dict(BUILTIN_RULES)
    if path:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        overrides = _overrides_adapter.validate_python(raw)
        rules.update({code: override.to_rule() for code, override in overrides.items()})
        logger.info("event_rules_loaded", path=path, overridden=len(overrides))
    return RuleTable(rules)


@lru_cache()
def get_rule_table() -> RuleTable:
    return load_rule_table(get_settings().EVENT_RULES_FILE)
