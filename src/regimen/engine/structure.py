"""
Workout Structure Assignment

Internal Codename: JUDGMENT-DAY
Deterministic sets, reps, rest, tempo and RPE for selected exercises,
plus warm-up/cool-down routines, coaching tips, progression notes and
calorie estimates.

Order of application:
1. Base parameters (experience level x classification)
2. Goal adjustments (compound and auxiliary only)
3. Safety modifiers (always last, most conservative wins)
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from ..catalog import build_exercise
from ..config import EngineConfig, config_dir, load_yaml
from ..errors import ConfigError
from ..models import (
    Classification,
    Exercise,
    ExerciseEntry,
    ExperienceLevel,
    RepRange,
    UserProfile,
    _lower_set,
)
from .safety import SafetyModifiers

logger = logging.getLogger(__name__)


# =============================================================================
# Parameter tables
# =============================================================================

@dataclass(frozen=True)
class Prescription:
    """Base parameters for one (experience, classification) cell."""
    sets: int
    reps: Tuple[int, int]
    rest: int
    tempo: str
    rpe: float
    unit: str = 'reps'


BASE_PARAMETERS: Dict[ExperienceLevel, Dict[Classification, Prescription]] = {
    ExperienceLevel.BEGINNER: {
        Classification.COMPOUND: Prescription(3, (10, 12), 90, '2-0-2', 7),
        Classification.AUXILIARY: Prescription(3, (10, 12), 75, '2-0-2', 7),
        Classification.ISOLATION: Prescription(2, (12, 15), 60, '2-0-2', 7),
        Classification.CARDIO: Prescription(3, (30, 45), 75, 'steady', 6, 'seconds'),
    },
    ExperienceLevel.INTERMEDIATE: {
        Classification.COMPOUND: Prescription(4, (8, 10), 120, '3-0-2', 8),
        Classification.AUXILIARY: Prescription(3, (10, 12), 90, '2-0-2', 8),
        Classification.ISOLATION: Prescription(3, (12, 15), 60, '2-0-2', 8),
        Classification.CARDIO: Prescription(3, (40, 60), 90, 'steady', 7, 'seconds'),
    },
    ExperienceLevel.ADVANCED: {
        Classification.COMPOUND: Prescription(5, (6, 8), 180, '3-1-2', 9),
        Classification.AUXILIARY: Prescription(4, (8, 10), 120, '3-0-2', 8),
        Classification.ISOLATION: Prescription(3, (12, 15), 75, '2-1-2', 8),
        Classification.CARDIO: Prescription(4, (45, 60), 120, 'steady', 8, 'seconds'),
    },
}


@dataclass(frozen=True)
class GoalAdjustment:
    """Multipliers and tempo override for a fitness goal."""
    reps_multiplier: float
    sets_multiplier: float
    rest_multiplier: float
    tempo: str
    intensity_note: str


GOAL_ADJUSTMENTS: Dict[str, GoalAdjustment] = {
    'muscle_gain': GoalAdjustment(
        1.0, 1.0, 1.0, '3-1-2',
        'Focus on progressive overload. Increase weight when you can complete all sets with good form.',
    ),
    'strength': GoalAdjustment(
        0.7, 1.2, 1.5, '3-1-1',
        'Prioritize heavy weight over reps. Rest fully between sets. Focus on compound lifts.',
    ),
    'endurance': GoalAdjustment(
        1.5, 0.8, 0.5, '2-0-1',
        'Maintain steady pace. Challenge cardiovascular system. Short rest periods.',
    ),
    'weight_loss': GoalAdjustment(
        1.3, 1.0, 0.3, '2-0-1',
        'Keep heart rate elevated. Minimal rest between exercises. Focus on compound movements.',
    ),
    'athletic_performance': GoalAdjustment(
        1.0, 1.0, 0.8, '2-0-X',
        'Focus on power and explosiveness. Train movement patterns, not just muscles.',
    ),
    'general_fitness': GoalAdjustment(
        1.0, 1.0, 1.0, '2-0-2',
        'Balanced approach. Focus on form and consistency. Progress gradually.',
    ),
    'flexibility': GoalAdjustment(
        1.5, 0.7, 0.7, '3-2-3',
        'Prioritize full range of motion. Include dynamic stretching. Focus on movement quality.',
    ),
    'maintenance': GoalAdjustment(
        1.0, 0.8, 1.0, '2-0-2',
        'Maintain current fitness level. Consistency over intensity. Enjoy your workouts.',
    ),
}

GOAL_ADJUSTED = frozenset({Classification.COMPOUND, Classification.AUXILIARY})

CALORIES_PER_MINUTE = {
    ExperienceLevel.BEGINNER: 5,
    ExperienceLevel.INTERMEDIATE: 6,
    ExperienceLevel.ADVANCED: 7,
}

SECONDS_PER_REP = 3


# =============================================================================
# Progression (4-week microcycle)
# =============================================================================

class PeriodizationPhase(Enum):
    """Training phases in a 4-week microcycle."""
    ACCUMULATION = "Accumulation"        # Weeks 1-2: volume focus
    INTENSIFICATION = "Intensification"  # Week 3: peak intensity
    DELOAD = "Deload"                    # Week 4: recovery


CYCLE = (
    PeriodizationPhase.ACCUMULATION,
    PeriodizationPhase.ACCUMULATION,
    PeriodizationPhase.INTENSIFICATION,
    PeriodizationPhase.DELOAD,
)

WEEK_NOTES = {
    1: 'Week 1: Focus on form and technique. Use conservative weights to learn movement patterns.',
    2: 'Week 2: Increase weight by 5-10% if form was good last week. Maintain proper technique.',
    3: 'Week 3: Push intensity - aim for RPE 7-8 on main lifts. This is your peak week.',
    4: 'Week 4: Deload week - reduce weight by 20% and volume by 30%. Focus on recovery.',
}

GOAL_PROGRESSION = {
    'strength': ' For strength: Add 2.5-5kg to barbell lifts when you complete all sets.',
    'muscle_gain': ' For muscle gain: Increase weight when you can do 2+ extra reps beyond target range.',
    'weight_loss': ' For weight loss: Reduce rest periods by 5-10s each week to increase metabolic demand.',
}


def week_in_cycle(rotation_index: int) -> int:
    """Week number (1-4) inside the microcycle for a rotation index."""
    return (max(rotation_index, 1) - 1) % len(CYCLE) + 1


def phase_for(rotation_index: int) -> PeriodizationPhase:
    return CYCLE[week_in_cycle(rotation_index) - 1]


def progression_note(goal: str, rotation_index: int) -> str:
    """Progression guidance for the week, with a goal-specific suffix."""
    return WEEK_NOTES[week_in_cycle(rotation_index)] + GOAL_PROGRESSION.get(goal, '')


# =============================================================================
# Warm-up, cool-down and gentle routines
# =============================================================================

@dataclass(frozen=True)
class RoutineItem:
    """A fixed-prescription movement (warm-up, cool-down, gentle pool)."""
    exercise: Exercise
    sets: int
    reps: RepRange
    rest_seconds: int
    note: str = ''
    labels: FrozenSet[str] = frozenset()  # Day-label keywords; empty = every day

    def applies_to(self, label: str) -> bool:
        if not self.labels:
            return True
        label = label.lower()
        return any(kw in label for kw in self.labels)

    def to_entry(self) -> ExerciseEntry:
        return ExerciseEntry(
            exercise_id=self.exercise.id,
            name=self.exercise.name,
            classification=self.exercise.classification,
            sets=self.sets,
            reps=self.reps,
            rest_seconds=self.rest_seconds,
            tempo='controlled',
            intensity_cap=4.0,
            coaching_notes=[self.note] if self.note else [],
        )


def _routine_item(data: Dict, section: str) -> RoutineItem:
    try:
        low, high = (int(v) for v in data.get('reps', [1, 1]))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{section} item {data.get('id')!r}: reps must be [low, high]") from e
    return RoutineItem(
        exercise=build_exercise(data),
        sets=int(data.get('sets', 1)),
        reps=RepRange(low, high, data.get('unit', 'reps')),
        rest_seconds=int(data.get('rest_seconds', 0)),
        note=data.get('note', ''),
        labels=_lower_set(data.get('labels')),
    )


@dataclass
class Routines:
    """Warm-up, cool-down and gentle-fallback pools."""
    warmup: List[RoutineItem] = field(default_factory=list)
    cooldown: List[RoutineItem] = field(default_factory=list)
    gentle: List[RoutineItem] = field(default_factory=list)

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> 'Routines':
        """Load config/routines.yaml."""
        if path is None:
            path = config_dir() / "routines.yaml"
        data = load_yaml(path)
        routines = cls(
            warmup=[_routine_item(d, 'warmup') for d in data.get('warmup') or []],
            cooldown=[_routine_item(d, 'cooldown') for d in data.get('cooldown') or []],
            gentle=[_routine_item(d, 'gentle') for d in data.get('gentle') or []],
        )
        if not routines.gentle:
            raise ConfigError(f"No gentle routine defined in {path}")
        logger.debug(
            f"Loaded routines: {len(routines.warmup)} warm-up, "
            f"{len(routines.cooldown)} cool-down, {len(routines.gentle)} gentle"
        )
        return routines

    def exercises(self) -> List[Exercise]:
        return [item.exercise for item in (*self.warmup, *self.cooldown, *self.gentle)]


# =============================================================================
# Assigner
# =============================================================================

class StructureAssigner:
    """
    Assigns training parameters to selected exercises.

    Pure: depends only on its arguments and the static tables.
    """

    def __init__(self, config: Optional[EngineConfig] = None, routines: Optional[Routines] = None):
        """
        Initialize structure assigner.

        Args:
            config: EngineConfig (note/tip caps, default weight)
            routines: Warm-up/cool-down pools
        """
        self.config = config or EngineConfig()
        self.routines = routines or Routines()

    def prescribe(
        self,
        exercise: Exercise,
        experience_level: ExperienceLevel,
        goal: str,
        modifiers: SafetyModifiers
    ) -> Tuple[int, RepRange, int, str, float]:
        """
        Compute (sets, reps, rest, tempo, rpe) for one exercise.

        Args:
            exercise: Selected exercise
            experience_level: User experience
            goal: Primary fitness goal
            modifiers: Combined safety modifiers

        Returns:
            Tuple of sets, RepRange, rest seconds, tempo, RPE cap
        """
        base = BASE_PARAMETERS[experience_level][exercise.classification]
        sets, (low, high), rest, tempo = base.sets, base.reps, base.rest, base.tempo

        adjust = GOAL_ADJUSTMENTS.get(goal, GOAL_ADJUSTMENTS['general_fitness'])
        if exercise.classification in GOAL_ADJUSTED:
            sets = max(1, round(sets * adjust.sets_multiplier))
            rest = round(rest * adjust.rest_multiplier)
            low = max(1, round(low * adjust.reps_multiplier))
            high = max(low, round(high * adjust.reps_multiplier))
            tempo = adjust.tempo

        # Safety modifiers last; reduced volume keeps at least 2 sets
        sets = max(min(2, sets), math.floor(sets * modifiers.volume_multiplier))
        rest = max(round(rest * modifiers.rest_multiplier), modifiers.min_rest_seconds)
        rpe = min(base.rpe, modifiers.intensity_cap)

        return sets, RepRange(low, high, base.unit), rest, tempo, rpe

    def assign(
        self,
        exercises: Sequence[Exercise],
        experience_level: ExperienceLevel,
        goal: str,
        modifiers: Optional[SafetyModifiers] = None,
        profile: Optional[UserProfile] = None
    ) -> List[ExerciseEntry]:
        """
        Structure a day's exercises.

        Args:
            exercises: Selected exercises in order
            experience_level: User experience
            goal: Primary fitness goal
            modifiers: Combined safety modifiers (neutral if None)
            profile: Profile for injury/pregnancy coaching notes

        Returns:
            ExerciseEntry list (media_url left empty for the resolver)
        """
        modifiers = modifiers or SafetyModifiers()
        entries = []
        notes_left = self.config.max_notes_per_workout

        for ex in exercises:
            sets, reps, rest, tempo, rpe = self.prescribe(ex, experience_level, goal, modifiers)

            notes = self.exercise_notes(ex, experience_level, goal, profile)
            notes = notes[:min(self.config.max_notes_per_exercise, notes_left)]
            notes_left -= len(notes)

            entries.append(ExerciseEntry(
                exercise_id=ex.id,
                name=ex.name,
                classification=ex.classification,
                sets=sets,
                reps=reps,
                rest_seconds=rest,
                tempo=tempo,
                intensity_cap=rpe,
                coaching_notes=notes,
            ))

        return entries

    @staticmethod
    def exercise_notes(
        exercise: Exercise,
        experience_level: ExperienceLevel,
        goal: str,
        profile: Optional[UserProfile] = None
    ) -> List[str]:
        """Coaching notes for one exercise, most important first."""
        notes = []
        name = exercise.name.lower()
        injuries = profile.injuries if profile else frozenset()

        if experience_level == ExperienceLevel.BEGINNER and exercise.complexity >= 8:
            notes.append('⚠️ Complex exercise - focus on form, consider trainer guidance')

        if profile and profile.condition('pregnan') and exercise.has_attribute('valsalva'):
            notes.append('Avoid breath-holding - breathe continuously')

        if any('back' in i for i in injuries) and ('row' in name or 'deadlift' in name):
            notes.append('Keep spine neutral, engage core, avoid rounding')

        if any('knee' in i for i in injuries) and ('squat' in name or 'lunge' in name):
            notes.append('Reduce range of motion, knees behind toes')

        if any('shoulder' in i for i in injuries) and ('press' in name or 'raise' in name):
            notes.append('Reduce range of motion, avoid overhead if painful')

        if exercise.classification == Classification.COMPOUND:
            if goal == 'strength':
                notes.append('Prioritize this exercise - load it heaviest of the day')
            else:
                notes.append('Prioritize this exercise - most effective for gains')

        if 'abs' in exercise.target_muscles:
            notes.append('Exhale on the effort and keep the lower back neutral')

        return notes

    def coaching_tips(
        self,
        profile: UserProfile,
        label: str,
        modifiers: Optional[SafetyModifiers] = None
    ) -> List[str]:
        """
        Workout-level coaching tips, capped at max_coaching_tips.

        Args:
            profile: User profile
            label: Day label (e.g. "Lower Body Circuit")
            modifiers: Combined safety modifiers

        Returns:
            Tips, most important first
        """
        tips = []
        label = label.lower()

        if profile.condition('pregnan'):
            tips.append('🤰 Monitor intensity - you should be able to hold a conversation')
            tips.append('💧 Stay well-hydrated throughout workout')

        if profile.condition('heart'):
            tips.append('❤️ CRITICAL: Monitor heart rate, stay within prescribed limits')
            tips.append('🛑 Stop immediately if chest pain, dizziness, or shortness of breath')

        if modifiers and modifiers.heart_rate_cap:
            tips.append(f"💓 Keep heart rate under {modifiers.heart_rate_cap} bpm")

        if profile.age >= 65:
            tips.append('🧘 Prioritize balance and stability - use support if needed')
            tips.append('⏰ Take extra warm-up time (10-15 minutes)')

        adjust = GOAL_ADJUSTMENTS.get(profile.goal, GOAL_ADJUSTMENTS['general_fitness'])
        tips.append(f"🎯 {adjust.intensity_note}")

        if profile.experience_level == ExperienceLevel.BEGINNER:
            tips.append('📚 Focus on learning proper form before increasing weight')
            tips.append('⏱️ Take your time between sets - recovery is important')
        elif profile.experience_level == ExperienceLevel.ADVANCED:
            tips.append('💪 Push intensity on compound lifts - you can handle it')
            tips.append('📈 Track your lifts to ensure progressive overload')

        if 'hiit' in label or 'circuit' in label or 'metabolic' in label:
            tips.append('🔥 Keep moving - minimize rest between exercises')
            tips.append("💨 Focus on breathing - don't hold your breath")

        if 'legs' in label or 'lower' in label:
            tips.append("🦵 Leg day is crucial - don't skip it")

        # Deduplicate, keep order
        seen = []
        for tip in tips:
            if tip not in seen:
                seen.append(tip)
        return seen[:self.config.max_coaching_tips]

    def _routine(self, items: Iterable[RoutineItem], label: str, allowed_ids: Optional[FrozenSet[str]]) -> List[ExerciseEntry]:
        return [
            item.to_entry()
            for item in items
            if item.applies_to(label) and (allowed_ids is None or item.exercise.id in allowed_ids)
        ]

    def warmup(self, label: str, allowed_ids: Optional[FrozenSet[str]] = None) -> List[ExerciseEntry]:
        """
        Warm-up for a day, keyed on its label.

        Args:
            label: Day label
            allowed_ids: Routine exercise ids that passed the safety filter
                (None = no filtering)
        """
        return self._routine(self.routines.warmup, label, allowed_ids)

    def cooldown(self, label: str, allowed_ids: Optional[FrozenSet[str]] = None) -> List[ExerciseEntry]:
        """Cool-down for a day (same filtering as warmup)."""
        return self._routine(self.routines.cooldown, label, allowed_ids)

    def estimate_minutes(self, entries: Iterable[ExerciseEntry]) -> int:
        """Session length from work and rest time plus warm-up/cool-down."""
        seconds = 0
        for e in entries:
            mid = (e.reps.low + e.reps.high) / 2
            if e.reps.unit == 'seconds':
                work = mid
            elif e.reps.unit == 'minutes':
                work = mid * 60
            else:
                work = mid * SECONDS_PER_REP
            seconds += e.sets * (work + e.rest_seconds)
        return round(seconds / 60) + self.config.warmup_cooldown_minutes

    def estimate_calories(
        self,
        minutes: int,
        experience_level: ExperienceLevel,
        goal: str,
        weight_kg: Optional[float] = None
    ) -> int:
        """
        Estimate calories burned in a session.

        Args:
            minutes: Session length
            experience_level: User experience
            goal: Primary fitness goal
            weight_kg: Body weight (default from config)

        Returns:
            Rounded calorie estimate
        """
        per_minute = CALORIES_PER_MINUTE[experience_level]
        per_minute *= (weight_kg or self.config.default_weight_kg) / 70

        if goal in ('weight_loss', 'endurance'):
            per_minute *= 1.2
        elif goal == 'strength':
            per_minute *= 0.9

        return round(per_minute * minutes)
