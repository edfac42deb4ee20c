"""
Workout Split Selection

Internal Codename: JUDGMENT-DAY
Scores the weekly training templates against a profile and picks one.

Scoring (110 points max):
- Frequency match: 30
- Goal alignment: 20 (10 for a compatible goal)
- Experience level: 15 (partial credit for adaptable levels)
- Equipment tier: 15
- Variety preference: 10
- Time budget fit: 10
- Recovery capacity: 10
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from ..config import config_dir, load_yaml
from ..errors import ConfigError, NoApplicableSplit
from ..models import (
    WEEKDAYS,
    DayPattern,
    ExperienceLevel,
    UserProfile,
    WorkoutSplit,
    WorkoutType,
    _lower_set,
)

logger = logging.getLogger(__name__)


EQUIPMENT_TIERS = ('bodyweight', 'minimal', 'full_gym')

FULL_GYM_EQUIPMENT = frozenset({'barbell', 'ez barbell', 'cable', 'machine', 'leverage machine', 'smith machine'})
MINIMAL_EQUIPMENT = frozenset({'dumbbell', 'band', 'resistance band', 'kettlebell'})

# Partial goal credit
COMPATIBLE_GOALS = {
    'weight_loss': ['endurance', 'general_fitness'],
    'muscle_gain': ['strength', 'athletic_performance'],
    'strength': ['muscle_gain', 'athletic_performance'],
    'endurance': ['weight_loss', 'athletic_performance'],
    'flexibility': ['general_fitness', 'maintenance'],
    'maintenance': ['general_fitness', 'flexibility'],
}


def equipment_tier(equipment) -> str:
    """Classify a user's equipment as bodyweight, minimal or full_gym."""
    equipment = {e.lower() for e in equipment}
    if equipment & FULL_GYM_EQUIPMENT:
        return 'full_gym'
    if equipment & MINIMAL_EQUIPMENT:
        return 'minimal'
    return 'bodyweight'


def _split_from_dict(data: Dict) -> WorkoutSplit:
    split_id = data.get('id')
    if not split_id:
        raise ConfigError(f"Split without id: {data!r}")

    try:
        low, high = (int(v) for v in data['frequency'])
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Split '{split_id}': frequency must be [min, max]") from e

    days = []
    for i, day in enumerate(data.get('days') or [], 1):
        suggested = day.get('suggested_day')
        if suggested and suggested not in WEEKDAYS:
            raise ConfigError(f"Split '{split_id}' day {i}: unknown weekday {suggested!r}")
        try:
            workout_type = WorkoutType(day.get('workout_type', 'strength'))
        except ValueError as e:
            raise ConfigError(f"Split '{split_id}' day {i}: {e}") from e
        days.append(DayPattern(
            label=day.get('label', f"Day {i}"),
            target_muscles=_lower_set(day.get('target_muscles')),
            workout_type=workout_type,
            suggested_day=suggested,
        ))

    try:
        levels = frozenset(ExperienceLevel(lvl) for lvl in data.get('experience_levels') or [])
    except ValueError as e:
        raise ConfigError(f"Split '{split_id}': {e}") from e

    tiers = _lower_set(data.get('equipment_tiers'))
    unknown = tiers - set(EQUIPMENT_TIERS)
    if unknown:
        raise ConfigError(f"Split '{split_id}': unknown equipment tiers {sorted(unknown)}")

    return WorkoutSplit(
        id=str(split_id),
        name=data.get('name', split_id),
        description=data.get('description', ''),
        frequency_range=(low, high),
        days=tuple(days),
        experience_levels=levels,
        goals=_lower_set(data.get('goals')),
        equipment_tiers=tiers,
        recovery_demand=data.get('recovery_demand', 'moderate'),
        session_minutes=int(data.get('session_minutes', 45)),
    )


class SplitRegistry:
    """Fixed, ordered collection of workout splits."""

    def __init__(self, splits: Sequence[WorkoutSplit], default_split: str):
        self._splits: Tuple[WorkoutSplit, ...] = tuple(splits)
        self._by_id = {s.id: s for s in self._splits}
        self.default_split_id = default_split

        errors = self.validate()
        if errors:
            raise ConfigError("; ".join(errors))

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None, default_split: Optional[str] = None) -> 'SplitRegistry':
        """
        Load splits from config/splits.yaml.

        Args:
            path: YAML file (default: config dir)
            default_split: Override for the file's default_split

        Returns:
            SplitRegistry
        """
        if path is None:
            path = config_dir() / "splits.yaml"
        data = load_yaml(path)
        splits = [_split_from_dict(s) for s in data.get('splits') or []]
        registry = cls(splits, default_split or data.get('default_split', 'full_body_3x'))
        logger.info(f"Loaded {len(splits)} workout splits from {path}")
        return registry

    def validate(self) -> List[str]:
        """
        Validate the registry.

        Returns:
            List of error messages. Empty list if valid.
        """
        errors = []

        if not self._splits:
            errors.append("No splits defined")
        if len(self._by_id) != len(self._splits):
            errors.append("Duplicate split ids")
        if self.default_split_id not in self._by_id:
            errors.append(f"Default split '{self.default_split_id}' is not registered")

        for s in self._splits:
            low, high = s.frequency_range
            if low < 1 or high < low:
                errors.append(f"Split '{s.id}': invalid frequency range {s.frequency_range}")
            if not s.days:
                errors.append(f"Split '{s.id}': no days defined")
            for day in s.days:
                if not day.target_muscles:
                    errors.append(f"Split '{s.id}' {day.label}: no target muscles")

        return errors

    def __iter__(self) -> Iterator[WorkoutSplit]:
        return iter(self._splits)

    def __len__(self) -> int:
        return len(self._splits)

    def get(self, split_id: str) -> Optional[WorkoutSplit]:
        return self._by_id.get(split_id)

    @property
    def default(self) -> WorkoutSplit:
        return self._by_id[self.default_split_id]


@dataclass
class ScoredSplit:
    """A split with its score and per-criterion breakdown."""
    split: WorkoutSplit
    score: int
    breakdown: List[str] = field(default_factory=list)


@dataclass
class SplitSelection:
    """Output of SplitSelector.select()."""
    split: WorkoutSplit
    score: int
    reasoning: List[str]
    alternatives: List[ScoredSplit]
    fallback_used: bool = False


class SplitSelector:
    """
    Chooses a weekly split for a profile.

    Pure function of (profile, registry): no randomness, ties keep the
    registry's definition order.
    """

    def score(self, split: WorkoutSplit, profile: UserProfile) -> ScoredSplit:
        """
        Score one split against a profile.

        Args:
            split: Candidate split
            profile: User profile

        Returns:
            ScoredSplit with the breakdown lines
        """
        score = 0
        breakdown = []

        # 1. FREQUENCY MATCH (30 points, survivors of the hard filter only)
        low, high = split.frequency_range
        score += 30
        breakdown.append(f"✓ Frequency match ({profile.weekly_frequency} days/week in {low}-{high}) [+30]")

        # 2. GOAL ALIGNMENT (20 points)
        matched_goals = [g for g in profile.primary_goals if g in split.goals]
        if matched_goals:
            score += 20
            breakdown.append(f"✓ Goal alignment ({matched_goals[0]}) [+20]")
        else:
            compatible = {c for g in profile.primary_goals for c in COMPATIBLE_GOALS.get(g, [])}
            if compatible & split.goals:
                score += 10
                breakdown.append("≈ Compatible goal [+10]")
            else:
                breakdown.append("✗ Goal mismatch [+0]")

        # 3. EXPERIENCE LEVEL (15 points)
        level = profile.experience_level
        if level in split.experience_levels:
            score += 15
            breakdown.append(f"✓ Experience match ({level.value}) [+15]")
        elif level == ExperienceLevel.BEGINNER and ExperienceLevel.INTERMEDIATE in split.experience_levels:
            score += 7
            breakdown.append("≈ Can adapt (beginner → intermediate) [+7]")
        elif level == ExperienceLevel.INTERMEDIATE and ExperienceLevel.BEGINNER in split.experience_levels:
            score += 5
            breakdown.append("≈ Can adapt (intermediate → beginner) [+5]")
        elif level == ExperienceLevel.ADVANCED:
            score += 10
            breakdown.append("≈ Advanced can adapt [+10]")
        else:
            breakdown.append("✗ Experience mismatch [+0]")

        # 4. EQUIPMENT TIER (15 points)
        tier = equipment_tier(profile.available_equipment)
        highest = max((EQUIPMENT_TIERS.index(t) for t in split.equipment_tiers), default=0)
        if tier in split.equipment_tiers:
            score += 15
            breakdown.append(f"✓ Equipment tier match ({tier}) [+15]")
        elif EQUIPMENT_TIERS.index(tier) > highest:
            score += 10
            breakdown.append(f"≈ More equipment than needed ({tier}) [+10]")
        else:
            breakdown.append(f"✗ Needs more equipment than {tier} [+0]")

        # 5. VARIETY PREFERENCE (10 points)
        days = split.days_per_week
        if profile.prefers_variety:
            if days >= 4:
                score += 10
                breakdown.append(f"✓ High variety ({days} different workouts) [+10]")
            elif days == 3:
                score += 7
                breakdown.append("≈ Moderate variety [+7]")
            else:
                score += 3
                breakdown.append("≈ Lower variety [+3]")
        elif days <= 3:
            score += 10
            breakdown.append("✓ Simple structure [+10]")
        else:
            score += 5
            breakdown.append("≈ More complex structure [+5]")

        # 6. TIME BUDGET (10 points)
        over = split.session_minutes - profile.session_duration
        if over <= 0:
            score += 10
            breakdown.append(f"✓ Fits {profile.session_duration} min sessions ({split.session_minutes} min) [+10]")
        elif over <= 10:
            score += 5
            breakdown.append(f"≈ Slightly over time budget (+{over} min) [+5]")
        else:
            breakdown.append(f"✗ Over time budget (+{over} min) [+0]")

        # 7. RECOVERY CAPACITY (10 points)
        if profile.stress_level == 'high' or profile.age >= 65:
            recovery_points = {'low': 10, 'moderate': 5}.get(split.recovery_demand, 0)
            breakdown.append(
                f"{'✓' if recovery_points == 10 else '≈' if recovery_points else '✗'} "
                f"{split.recovery_demand.title()} recovery demand "
                f"(stress: {profile.stress_level}, age: {profile.age}) [+{recovery_points}]"
            )
        elif split.recovery_demand == 'moderate':
            recovery_points = 10
            breakdown.append("✓ Moderate recovery demand [+10]")
        else:
            recovery_points = 5
            breakdown.append("≈ Recovery demand mismatch [+5]")
        score += recovery_points

        return ScoredSplit(split=split, score=score, breakdown=breakdown)

    def rank(self, profile: UserProfile, registry: SplitRegistry) -> List[ScoredSplit]:
        """
        Score every split that supports the profile's frequency.

        Returns:
            Scored splits, best first (stable on ties)

        Raises:
            NoApplicableSplit: If no split supports the frequency
        """
        candidates = [s for s in registry if s.supports_frequency(profile.weekly_frequency)]
        if not candidates:
            raise NoApplicableSplit(profile.weekly_frequency)

        scored = [self.score(s, profile) for s in candidates]
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored

    def select(self, profile: UserProfile, registry: SplitRegistry) -> SplitSelection:
        """
        Choose a split for the profile.

        Falls back to the registry's default split when nothing supports
        the requested frequency.

        Args:
            profile: User profile
            registry: Split registry

        Returns:
            SplitSelection
        """
        try:
            ranked = self.rank(profile, registry)
        except NoApplicableSplit as e:
            logger.warning(f"{e}; using default split '{registry.default.id}'")
            default = registry.default
            return SplitSelection(
                split=default,
                score=0,
                reasoning=[
                    f"✗ No split supports {profile.weekly_frequency} days/week",
                    f"Using default split: {default.name}",
                ],
                alternatives=[],
                fallback_used=True,
            )

        best = ranked[0]
        logger.info(
            f"Split selected: {best.split.id} (score {best.score}, "
            f"frequency {profile.weekly_frequency}, goal {profile.goal}, "
            f"level {profile.experience_level.value})"
        )
        return SplitSelection(
            split=best.split,
            score=best.score,
            reasoning=best.breakdown,
            alternatives=ranked[1:4],
        )
