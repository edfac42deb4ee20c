"""
Safety Filter

Internal Codename: JUDGMENT-DAY
Removes exercises that are unsafe for the user's injuries, medical
conditions, pregnancy stage, medications and age, and combines the
intensity modifiers of every matched rule.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from ..biomechanics import name_has_keyword
from ..config import config_dir, load_yaml
from ..errors import ConfigError
from ..models import Exercise, SafetyTier, UserProfile, _lower_set

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfileMatch:
    """Predicate over the user profile. Every given criterion must hold."""
    injury_keywords: FrozenSet[str] = frozenset()
    condition_keywords: FrozenSet[str] = frozenset()
    medication_keywords: FrozenSet[str] = frozenset()
    stages: FrozenSet[int] = frozenset()
    min_age: Optional[int] = None
    stress_levels: FrozenSet[str] = frozenset()

    def matches(self, profile: UserProfile) -> List[str]:
        """
        Evaluate against a profile.

        Returns:
            What matched (human readable), or an empty list if the rule
            does not apply
        """
        hits = []

        if self.injury_keywords:
            found = sorted(i for i in profile.injuries if any(kw in i for kw in self.injury_keywords))
            if not found:
                return []
            hits.append(f"injury: {', '.join(found)}")

        if self.condition_keywords:
            found = []
            for c in profile.medical_conditions:
                if not any(kw in c.name for kw in self.condition_keywords):
                    continue
                # Unstaged conditions count as the first stage
                if self.stages and (c.stage or 1) not in self.stages:
                    continue
                found.append(c.name if c.stage is None else f"{c.name} (stage {c.stage})")
            if not found:
                return []
            hits.append(f"condition: {', '.join(sorted(found))}")

        if self.medication_keywords:
            found = sorted(m for m in profile.medications if any(kw in m for kw in self.medication_keywords))
            if not found:
                return []
            hits.append(f"medication: {', '.join(found)}")

        if self.min_age is not None:
            if profile.age < self.min_age:
                return []
            hits.append(f"age {profile.age}")

        if self.stress_levels:
            if profile.stress_level not in self.stress_levels:
                return []
            hits.append(f"stress {profile.stress_level}")

        return hits


@dataclass(frozen=True)
class ExcludePredicate:
    """Predicate over an exercise. Any hit excludes it."""
    attributes: FrozenSet[str] = frozenset()
    body_parts: FrozenSet[str] = frozenset()
    target_muscles: FrozenSet[str] = frozenset()
    name_keywords: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.attributes or self.body_parts or self.target_muscles or self.name_keywords)

    def reasons(self, exercise: Exercise) -> List[str]:
        """Why the exercise is excluded (empty list = not excluded)."""
        reasons = []

        for attribute in sorted(self.attributes & exercise.attributes):
            reasons.append(f"{attribute.replace('_', ' ')} position/loading")

        for part in sorted(self.body_parts):
            if any(part in bp for bp in exercise.body_parts):
                reasons.append(f"targets {part}")

        for muscle in sorted(self.target_muscles & exercise.target_muscles):
            reasons.append(f"targets {muscle}")

        for keyword in self.name_keywords:
            if name_has_keyword(exercise.name, keyword):
                reasons.append(f"exercise type '{keyword}'")

        return reasons


@dataclass(frozen=True)
class SafetyModifiers:
    """
    Global intensity modifiers.

    A neutral instance changes nothing. Combining keeps the most
    conservative value per axis.
    """
    volume_multiplier: float = 1.0
    rest_multiplier: float = 1.0
    min_rest_seconds: int = 0
    intensity_cap: float = 10.0  # RPE ceiling
    heart_rate_cap: Optional[int] = None

    @classmethod
    def combine(cls, modifiers: Iterable['SafetyModifiers']) -> 'SafetyModifiers':
        combined = cls()
        for m in modifiers:
            hr_caps = [c for c in (combined.heart_rate_cap, m.heart_rate_cap) if c is not None]
            combined = cls(
                volume_multiplier=min(combined.volume_multiplier, m.volume_multiplier),
                rest_multiplier=max(combined.rest_multiplier, m.rest_multiplier),
                min_rest_seconds=max(combined.min_rest_seconds, m.min_rest_seconds),
                intensity_cap=min(combined.intensity_cap, m.intensity_cap),
                heart_rate_cap=min(hr_caps) if hr_caps else None,
            )
        return combined

    @property
    def is_neutral(self) -> bool:
        return self == SafetyModifiers()


@dataclass(frozen=True)
class SafetyRule:
    """A condition-triggered exclusion and/or intensity modifier."""
    id: str
    tier: SafetyTier
    match: ProfileMatch
    exclude: ExcludePredicate = ExcludePredicate()
    modifier: SafetyModifiers = SafetyModifiers()
    warning: str = ''
    requires_clearance: bool = False

    @classmethod
    def from_dict(cls, data: Dict) -> 'SafetyRule':
        """Build a rule from its YAML mapping."""
        rule_id = data.get('id')
        if not rule_id:
            raise ConfigError(f"Safety rule without id: {data!r}")

        try:
            tier = SafetyTier[str(data.get('tier', '')).upper()]
        except KeyError as e:
            raise ConfigError(f"Rule '{rule_id}': unknown tier {data.get('tier')!r}") from e

        when = data.get('when') or {}
        match = ProfileMatch(
            injury_keywords=_lower_set(when.get('injury_keywords')),
            condition_keywords=_lower_set(when.get('condition_keywords')),
            medication_keywords=_lower_set(when.get('medication_keywords')),
            stages=frozenset(int(s) for s in when.get('stages') or []),
            min_age=when.get('min_age'),
            stress_levels=_lower_set(when.get('stress_levels')),
        )
        if match == ProfileMatch():
            raise ConfigError(f"Rule '{rule_id}' has an empty 'when' predicate")

        ex = data.get('exclude') or {}
        exclude = ExcludePredicate(
            attributes=_lower_set(ex.get('attributes')),
            body_parts=_lower_set(ex.get('body_parts')),
            target_muscles=_lower_set(ex.get('target_muscles')),
            name_keywords=tuple(str(k).lower() for k in ex.get('name_keywords') or []),
        )

        mod = data.get('modify') or {}
        try:
            modifier = SafetyModifiers(
                volume_multiplier=float(mod.get('volume_multiplier', 1.0)),
                rest_multiplier=float(mod.get('rest_multiplier', 1.0)),
                min_rest_seconds=int(mod.get('min_rest_seconds', 0)),
                intensity_cap=float(mod.get('intensity_cap', 10.0)),
                heart_rate_cap=mod.get('heart_rate_cap'),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Rule '{rule_id}': invalid modifier: {e}") from e

        if not 0 < modifier.volume_multiplier <= 1.0:
            raise ConfigError(f"Rule '{rule_id}': volume_multiplier must be in (0, 1]")
        if modifier.rest_multiplier < 1.0:
            raise ConfigError(f"Rule '{rule_id}': rest_multiplier must be >= 1")

        return cls(
            id=str(rule_id),
            tier=tier,
            match=match,
            exclude=exclude,
            modifier=modifier,
            warning=data.get('warning', ''),
            requires_clearance=bool(data.get('requires_clearance', False)),
        )


@dataclass
class ExcludedExercise:
    """An exercise removed by the filter and why."""
    exercise: Exercise
    reasons: List[str]


@dataclass
class SafetyResult:
    """Output of SafetyFilter.filter()."""
    allowed: List[Exercise]
    modifiers: SafetyModifiers
    matched_rules: List[SafetyRule]
    excluded: List[ExcludedExercise] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    requires_medical_clearance: bool = False

    def below_minimum(self, threshold: int) -> bool:
        return len(self.allowed) < threshold

    @property
    def allowed_ids(self) -> FrozenSet[str]:
        return frozenset(ex.id for ex in self.allowed)

    def validate_plan(self, exercises: Iterable[Exercise]) -> Dict[str, List[str]]:
        """
        Check a list of exercises against the matched rules.

        Returns:
            Dictionary with 'allowed' and 'forbidden' exercise id lists
        """
        result = {'allowed': [], 'forbidden': []}
        for ex in exercises:
            if any(rule.exclude.reasons(ex) for rule in self.matched_rules):
                result['forbidden'].append(ex.id)
            else:
                result['allowed'].append(ex.id)
        return result


class SafetyFilter:
    """
    Applies safety rules to the exercise catalog.

    Exclusions are the union over every matched rule; tiers only order
    warnings and reasoning (pregnancy, cardiac, injury, condition,
    medication, age).
    """

    def __init__(self, rules: Sequence[SafetyRule]):
        """
        Initialize safety filter.

        Args:
            rules: Rule table (immutable, definition order is kept)
        """
        ids = [r.id for r in rules]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ConfigError(f"Duplicate safety rule ids: {', '.join(duplicates)}")
        self.rules: Tuple[SafetyRule, ...] = tuple(rules)

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> 'SafetyFilter':
        """Load the rule table from config/safety_rules.yaml."""
        if path is None:
            path = config_dir() / "safety_rules.yaml"
        data = load_yaml(path)
        rules = [SafetyRule.from_dict(r) for r in data.get('rules') or []]
        if not rules:
            raise ConfigError(f"No safety rules defined in {path}")
        logger.info(f"Loaded {len(rules)} safety rules from {path}")
        return cls(rules)

    def match_rules(self, profile: UserProfile) -> List[Tuple[SafetyRule, List[str]]]:
        """
        Evaluate every rule predicate against the profile.

        Returns:
            (rule, what matched) pairs sorted by tier, then definition order
        """
        matched = []
        for order, rule in enumerate(self.rules):
            hits = rule.match.matches(profile)
            if hits:
                matched.append((rule.tier, order, rule, hits))
        matched.sort(key=lambda m: (m[0], m[1]))
        return [(rule, hits) for _, _, rule, hits in matched]

    def filter(self, profile: UserProfile, catalog: Iterable[Exercise]) -> SafetyResult:
        """
        Filter the catalog for a profile.

        Besides the rule exclusions this drops exercises needing equipment
        the user does not have and exercises the user excluded.

        Args:
            profile: Validated user profile
            catalog: ExerciseCatalog (or any iterable of exercises)

        Returns:
            SafetyResult
        """
        matched = self.match_rules(profile)
        rules = [rule for rule, _ in matched]

        warnings = []
        for rule, hits in matched:
            logger.debug(f"Safety rule {rule.id} matched ({'; '.join(hits)})")
            if rule.warning and rule.warning not in warnings:
                warnings.append(rule.warning)

        equipment = profile.equipment_with_bodyweight
        allowed: List[Exercise] = []
        excluded: List[ExcludedExercise] = []
        total = 0

        for ex in catalog:
            total += 1
            reasons = []
            missing = sorted(ex.equipment - equipment)
            if missing:
                reasons.append(f"equipment not available: {', '.join(missing)}")
            if ex.id in profile.excluded_exercise_ids:
                reasons.append("excluded by user")
            reasons.extend(self._rule_reasons(ex, rules))

            if reasons:
                excluded.append(ExcludedExercise(exercise=ex, reasons=reasons))
            else:
                allowed.append(ex)

        logger.info(
            f"Safety filter: {total} → {len(allowed)} exercises "
            f"({len(rules)} rules matched)"
        )

        return SafetyResult(
            allowed=allowed,
            modifiers=SafetyModifiers.combine(rule.modifier for rule in rules),
            matched_rules=rules,
            excluded=excluded,
            warnings=warnings,
            requires_medical_clearance=any(rule.requires_clearance for rule in rules),
        )

    def filter_pool(
        self,
        exercises: Iterable[Exercise],
        matched_rules: Sequence[SafetyRule]
    ) -> Tuple[List[Exercise], List[ExcludedExercise]]:
        """
        Apply already-matched rules to another pool (warm-ups, gentle pool).

        Returns:
            (allowed, excluded)
        """
        allowed, excluded = [], []
        for ex in exercises:
            reasons = self._rule_reasons(ex, matched_rules)
            if reasons:
                excluded.append(ExcludedExercise(exercise=ex, reasons=reasons))
            else:
                allowed.append(ex)
        return allowed, excluded

    @staticmethod
    def _rule_reasons(exercise: Exercise, rules: Sequence[SafetyRule]) -> List[str]:
        reasons = []
        for rule in rules:
            for reason in rule.exclude.reasons(exercise):
                reasons.append(f"{rule.id}: {reason}")
        return reasons

    def describe(self) -> List[Dict]:
        """Rule table summary for display."""
        return [
            {
                'id': r.id,
                'tier': r.tier.name.lower(),
                'excludes': not r.exclude.is_empty,
                'modifies': not r.modifier.is_neutral,
                'requires_clearance': r.requires_clearance,
                'warning': r.warning,
            }
            for r in sorted(self.rules, key=lambda r: r.tier)
        ]
