"""
Exercise Selection

Internal Codename: JUDGMENT-DAY
Picks the concrete exercises for each split day from the safety-filtered
pool, distributed by classification and rotated by week.

Flow:
1. Keep exercises that hit the day's target muscles
2. Group by classification (computed at catalog load)
3. Derive per-bucket counts from the time budget and experience bounds
4. Rotate each bucket by (rotation index, session index) and pick with variety
5. Backfill short buckets from the same classification, else flag underfilled
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from ..config import EngineConfig
from ..models import BODY_WEIGHT, Classification, DayPattern, Exercise, ExperienceLevel, WorkoutType

logger = logging.getLogger(__name__)


# Order in which spare slots are handed out
BUCKET_PRIORITY = (
    Classification.COMPOUND,
    Classification.AUXILIARY,
    Classification.ISOLATION,
    Classification.CARDIO,
)


@dataclass
class DaySelection:
    """Exercises chosen for one split day."""
    pattern: DayPattern
    exercises: List[Exercise]
    counts: Dict[Classification, int]
    bounds: Dict[Classification, Tuple[int, int]]
    underfilled: bool = False
    shortfalls: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.exercises)


class ExerciseSelector:
    """
    Deterministic per-day exercise selection.

    Every choice is a pure function of (pattern, allowed pool, experience,
    rotation index, session index, time budget, equipment).
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        """
        Initialize exercise selector.

        Args:
            config: EngineConfig (distribution bounds, time budget constants)
        """
        self.config = config or EngineConfig()

    def bounds(
        self,
        experience_level: ExperienceLevel,
        workout_type: WorkoutType
    ) -> Dict[Classification, Tuple[int, int]]:
        """[min, max] count per classification for a day."""
        level_bounds = self.config.bounds_for(experience_level.value)
        bounds = {
            Classification.COMPOUND: tuple(level_bounds['compound']),
            Classification.AUXILIARY: tuple(level_bounds['auxiliary']),
            Classification.ISOLATION: tuple(level_bounds['isolation']),
        }
        if workout_type == WorkoutType.CARDIO:
            bounds[Classification.CARDIO] = tuple(self.config.cardio_bounds)
        return bounds

    def target_count(
        self,
        experience_level: ExperienceLevel,
        session_minutes: int,
        days_per_week: int,
        bounds: Dict[Classification, Tuple[int, int]]
    ) -> int:
        """
        Exercises per workout from the time budget, clamped to the bounds.

        Args:
            experience_level: User experience
            session_minutes: Session time budget
            days_per_week: Training days in the split
            bounds: Per-classification bounds

        Returns:
            Total exercise count for the day
        """
        low = sum(b[0] for b in bounds.values())
        high = sum(b[1] for b in bounds.values())

        workout_time = max(15, session_minutes - self.config.warmup_cooldown_minutes)
        per_exercise = self.config.minutes_per_exercise[experience_level.value]
        count = max(low, min(high, workout_time // per_exercise))

        # More days = fewer exercises per day
        if days_per_week >= self.config.high_frequency_days:
            count = max(low, count - 1)

        return count

    @staticmethod
    def distribute(target: int, bounds: Dict[Classification, Tuple[int, int]]) -> Dict[Classification, int]:
        """Start every bucket at its minimum, then fill in priority order."""
        counts = {c: b[0] for c, b in bounds.items()}
        remaining = target - sum(counts.values())
        for c in BUCKET_PRIORITY:
            if remaining <= 0:
                break
            if c not in bounds:
                continue
            extra = min(remaining, bounds[c][1] - counts[c])
            counts[c] += extra
            remaining -= extra
        return counts

    def _relevance(self, exercise: Exercise, muscles: FrozenSet[str]) -> float:
        """Target-muscle overlap score (primary counts more than secondary)."""
        if not muscles:
            return 0.0
        score = len(muscles & exercise.target_muscles) / len(muscles) * 10
        score += len(muscles & exercise.secondary_muscles) / len(muscles) * 3
        return round(score, 4)

    def _ordered(
        self,
        candidates: Iterable[Exercise],
        muscles: FrozenSet[str],
        preferred_equipment: FrozenSet[str]
    ) -> List[Exercise]:
        """Best candidates first: preferred equipment, relevance, complexity; id breaks ties."""
        def key(ex: Exercise):
            preference = 10 if ex.equipment & preferred_equipment else 0
            return (-(preference + self._relevance(ex, muscles) + ex.complexity), ex.id)
        return sorted(candidates, key=key)

    @staticmethod
    def _rotate(pool: List[Exercise], offset: int) -> List[Exercise]:
        if not pool:
            return pool
        offset %= len(pool)
        return pool[offset:] + pool[:offset]

    @staticmethod
    def _pick_with_variety(
        pool: Sequence[Exercise],
        count: int,
        used_muscles: Set[str],
        used_equipment: Set[str]
    ) -> List[Exercise]:
        """
        Take `count` exercises, preferring new primary muscles or new equipment.

        used_muscles/used_equipment are shared across the day's buckets and
        updated in place.
        """
        if count <= 0:
            return []

        selected: List[Exercise] = []
        for ex in pool:
            if len(selected) >= count:
                break
            muscle = ex.primary_muscle
            equipment = min(ex.equipment) if ex.equipment else None
            if not selected or muscle not in used_muscles or equipment not in used_equipment:
                selected.append(ex)
                if muscle:
                    used_muscles.add(muscle)
                if equipment:
                    used_equipment.add(equipment)

        # Still short: take the rest in rotated order
        for ex in pool:
            if len(selected) >= count:
                break
            if ex not in selected:
                selected.append(ex)

        return selected

    def select(
        self,
        pattern: DayPattern,
        allowed: Sequence[Exercise],
        experience_level: ExperienceLevel,
        rotation_index: int,
        session_index: int = 0,
        session_minutes: Optional[int] = None,
        available_equipment: Iterable[str] = (),
        days_per_week: int = 1
    ) -> DaySelection:
        """
        Select exercises for one split day.

        Args:
            pattern: Day pattern from the chosen split
            allowed: Safety-filtered exercises
            experience_level: User experience
            rotation_index: Week number (1-based)
            session_index: Position of this day in the split (0-based)
            session_minutes: Time budget (default 45)
            available_equipment: User equipment, preferred when ranking
            days_per_week: Training days in the split

        Returns:
            DaySelection
        """
        muscles = pattern.target_muscles
        preferred = frozenset(e.lower() for e in available_equipment) - {BODY_WEIGHT}
        bounds = self.bounds(experience_level, pattern.workout_type)
        target = self.target_count(experience_level, session_minutes or 45, days_per_week, bounds)
        counts = self.distribute(target, bounds)

        relevant = [ex for ex in allowed if ex.all_muscles & muscles]
        buckets: Dict[Classification, List[Exercise]] = defaultdict(list)
        for ex in relevant:
            buckets[ex.classification].append(ex)

        logger.debug(
            f"{pattern.label}: relevant {len(relevant)}/{len(allowed)} "
            f"(C={len(buckets[Classification.COMPOUND])}, A={len(buckets[Classification.AUXILIARY])}, "
            f"I={len(buckets[Classification.ISOLATION])}, cardio={len(buckets[Classification.CARDIO])}), "
            f"target {target}"
        )

        relevant_ids = {ex.id for ex in relevant}
        used_muscles: Set[str] = set()
        used_equipment: Set[str] = set()
        chosen: Dict[Classification, List[Exercise]] = {}
        pools: Dict[Classification, List[Exercise]] = {}
        shortfalls: List[str] = []

        for classification in BUCKET_PRIORITY:
            if classification not in bounds:
                continue
            minimum = bounds[classification][0]
            pool = self._ordered(buckets[classification], muscles, preferred)

            # Backfill from the same classification outside the target muscles
            if len(pool) < minimum:
                extra = self._ordered(
                    (ex for ex in allowed
                     if ex.classification == classification and ex.id not in relevant_ids),
                    muscles,
                    preferred,
                )
                if extra:
                    logger.debug(f"{pattern.label}: backfilling {classification.value} from {len(extra)} off-target exercises")
                pool = pool + extra

            want = counts[classification]
            offset = ((max(rotation_index, 1) - 1) * max(days_per_week, 1) + session_index) * max(want, 1)
            pool = self._rotate(pool, offset)
            pools[classification] = pool
            chosen[classification] = self._pick_with_variety(pool, want, used_muscles, used_equipment)

            if len(chosen[classification]) < minimum:
                shortfalls.append(
                    f"{pattern.label}: only {len(chosen[classification])} {classification.value} "
                    f"exercises available (need {minimum})"
                )

        # Hand slots a short bucket could not use to the others, within their max
        missing = target - sum(len(v) for v in chosen.values())
        for classification in BUCKET_PRIORITY:
            if missing <= 0:
                break
            if classification not in chosen:
                continue
            room = bounds[classification][1] - len(chosen[classification])
            spare = [ex for ex in pools[classification] if ex not in chosen[classification]]
            take = spare[:min(room, missing)]
            chosen[classification].extend(take)
            missing -= len(take)

        exercises = [ex for c in BUCKET_PRIORITY if c in chosen for ex in chosen[c]]
        final_counts = {c: len(v) for c, v in chosen.items()}

        for shortfall in shortfalls:
            logger.warning(shortfall)

        return DaySelection(
            pattern=pattern,
            exercises=exercises,
            counts=final_counts,
            bounds=bounds,
            underfilled=bool(shortfalls),
            shortfalls=shortfalls,
        )

    def validate_muscle_balance(self, days: Sequence[DaySelection]) -> List[str]:
        """
        Warn about major muscles trained less than the weekly minimum.

        Args:
            days: Selections for the whole week

        Returns:
            Warning messages
        """
        hits: Dict[str, int] = defaultdict(int)
        for day in days:
            for ex in day.exercises:
                for muscle in ex.all_muscles:
                    hits[muscle] += 1

        warnings = []
        for muscle in self.config.major_muscles:
            if hits[muscle] < self.config.min_weekly_hits:
                warnings.append(
                    f"{muscle} only trained {hits[muscle]}x this week "
                    f"(recommend {self.config.min_weekly_hits}x minimum)"
                )
        return warnings
