"""
Weekly Plan Generator

Internal Codename: JUDGMENT-DAY
"Judgment Day: The day the workout is decided."

Sequences the pipeline once per request:
safety filter → split selection → exercise selection → structure → media.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

import requests

from ..catalog import ExerciseCatalog
from ..config import EngineConfig, config_dir
from ..errors import InsufficientExercisePool, InvalidProfile, RegimenError
from ..models import (
    WEEKDAYS,
    DayWorkout,
    Exercise,
    ExerciseEntry,
    ExperienceLevel,
    UserProfile,
    WeeklyPlan,
    WorkoutSplit,
)
from .media import MediaResolver
from .safety import SafetyFilter, SafetyResult
from .selection import DaySelection, ExerciseSelector
from .splits import SplitRegistry, SplitSelector
from .structure import Routines, StructureAssigner, progression_note

logger = logging.getLogger(__name__)


GENTLE_DAYS = ('monday', 'thursday')

GENTLE_TIPS = [
    '⚠️ This plan is highly limited due to multiple safety constraints',
    '👨‍⚕️ Please consult your healthcare provider before starting',
    '🛑 Stop immediately if you experience any pain or discomfort',
    '💧 Stay well-hydrated',
]

GENTLE_PROGRESSION = (
    'Focus on consistency and comfort. Gradually increase duration as your condition '
    'improves. Work with your healthcare provider to expand your exercise options safely.'
)


@dataclass
class GenerationRequest:
    """One plan request."""
    profile: Union[UserProfile, Dict]
    rotation_index: int = 1
    training_days: Optional[Sequence[str]] = None
    deadline_seconds: Optional[float] = None


class WorkoutPlanner:
    """
    Generates weekly workout plans.

    Integrates:
    - Safety filtering (exclusions and intensity modifiers)
    - Split selection
    - Exercise selection with weekly rotation
    - Structure (sets/reps/rest/tempo/RPE, warm-up, cool-down, tips)
    - Media resolution
    """

    def __init__(
        self,
        catalog: ExerciseCatalog,
        safety: SafetyFilter,
        splits: SplitRegistry,
        media: MediaResolver,
        config: Optional[EngineConfig] = None,
        routines: Optional[Routines] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Initialize workout planner.

        Args:
            catalog: Exercise catalog (shared, read-only)
            safety: Safety rule table
            splits: Split registry
            media: Media resolver
            config: EngineConfig
            routines: Warm-up/cool-down/gentle pools
            clock: Monotonic clock (seconds) used for the request deadline
        """
        self.config = config or EngineConfig()
        self.catalog = catalog
        self.safety = safety
        self.splits = splits
        self.media = media
        self.routines = routines or Routines()
        self.split_selector = SplitSelector()
        self.selector = ExerciseSelector(self.config)
        self.structure = StructureAssigner(self.config, self.routines)
        self.clock = clock or time.monotonic

    @classmethod
    def from_config(
        cls,
        directory: Optional[Path] = None,
        catalog: Optional[ExerciseCatalog] = None,
        session: Optional[requests.Session] = None
    ) -> 'WorkoutPlanner':
        """
        Load every registry from a config directory.

        Args:
            directory: Directory with engine/safety_rules/splits/media_providers/routines
                YAML files (default: config dir)
            catalog: Pre-loaded catalog (default: built-in YAML catalog)
            session: HTTP session for remote media providers

        Returns:
            WorkoutPlanner
        """
        directory = Path(directory) if directory else config_dir()
        config = EngineConfig.from_yaml(directory / "engine.yaml")
        return cls(
            catalog=catalog or ExerciseCatalog.from_yaml(),
            safety=SafetyFilter.from_yaml(directory / "safety_rules.yaml"),
            splits=SplitRegistry.from_yaml(directory / "splits.yaml", config.default_split),
            media=MediaResolver.from_yaml(directory / "media_providers.yaml", config, session),
            config=config,
            routines=Routines.from_yaml(directory / "routines.yaml"),
        )

    # =========================================================================
    # Generation
    # =========================================================================

    def generate(self, request: GenerationRequest) -> WeeklyPlan:
        """
        Generate a weekly plan.

        Args:
            request: GenerationRequest

        Returns:
            WeeklyPlan

        Raises:
            InvalidProfile: If the profile or request parameters are invalid
        """
        start = self.clock()
        profile = self._validate(request)
        deadline = request.deadline_seconds or self.config.deadline_seconds

        logger.info(
            f"Generating plan: level {profile.experience_level.value}, goal {profile.goal}, "
            f"{profile.weekly_frequency}x/week, week {request.rotation_index}"
        )

        # Step 1: safety
        safety = self.safety.filter(profile, self.catalog)
        warnings = list(safety.warnings)
        routine_ids = self._allowed_routine_ids(profile, safety)

        if safety.below_minimum(self.config.min_pool_size):
            error = InsufficientExercisePool(len(safety.allowed), self.config.min_pool_size)
            logger.warning(f"{error}; using gentle movement plan")
            warnings.append(str(error))
            return self._gentle_plan(profile, request, safety, warnings, routine_ids, start, deadline)

        # Step 2: split
        selection = self.split_selector.select(profile, self.splits)
        split = selection.split
        if selection.fallback_used:
            warnings.append(
                f"No split supports {profile.weekly_frequency} sessions per week; "
                f"using {split.name}"
            )

        patterns = split.days[:profile.weekly_frequency]
        if len(patterns) < profile.weekly_frequency and not selection.fallback_used:
            logger.info(f"{split.name} has {len(patterns)} days for {profile.weekly_frequency} requested sessions")
            warnings.append(
                f"{split.name} schedules {len(patterns)} sessions per week; "
                f"{profile.weekly_frequency} requested"
            )
        weekdays = self._assign_weekdays(split, len(patterns), request.training_days)

        # Step 3-4: per-day selection and structure
        days: List[DayWorkout] = []
        selections: List[DaySelection] = []
        used: Dict[str, Exercise] = {}
        deadline_exceeded = False

        for index, pattern in enumerate(patterns):
            if days and self.clock() - start > deadline:
                deadline_exceeded = True
                logger.warning(
                    f"Deadline of {deadline}s exceeded after {len(days)}/{len(patterns)} days"
                )
                warnings.append(f"Plan truncated to {len(days)} days (generation deadline reached)")
                break

            day_selection = self.selector.select(
                pattern,
                safety.allowed,
                profile.experience_level,
                request.rotation_index,
                session_index=index,
                session_minutes=profile.session_duration,
                available_equipment=profile.available_equipment,
                days_per_week=len(patterns),
            )
            selections.append(day_selection)
            warnings.extend(day_selection.shortfalls)
            for ex in day_selection.exercises:
                used[ex.id] = ex

            main = self.structure.assign(
                day_selection.exercises,
                profile.experience_level,
                profile.goal,
                safety.modifiers,
                profile,
            )
            day = DayWorkout(
                day=weekdays[index],
                label=pattern.label,
                workout_type=pattern.workout_type.value,
                warmup=self.structure.warmup(pattern.label, routine_ids),
                main=main,
                cooldown=self.structure.cooldown(pattern.label, routine_ids),
                coaching_tips=self.structure.coaching_tips(profile, pattern.label, safety.modifiers),
                underfilled=day_selection.underfilled,
            )
            day.estimated_minutes = self.structure.estimate_minutes(day.main)
            day.estimated_calories = self.structure.estimate_calories(
                day.estimated_minutes, profile.experience_level, profile.goal, profile.weight_kg
            )
            days.append(day)

        warnings.extend(self.selector.validate_muscle_balance(selections))

        for item in self.routines.warmup + self.routines.cooldown:
            used.setdefault(item.exercise.id, item.exercise)

        self._check_invariants(safety, days, used)
        self._attach_media(profile, days, used, start, deadline)

        plan = WeeklyPlan(
            plan_title=f"{split.name} - Week {request.rotation_index}",
            split_id=split.id,
            split_name=split.name,
            days=days,
            rest_days=[d for d in WEEKDAYS if d not in {day.day for day in days}],
            rotation_index=request.rotation_index,
            score=selection.score,
            reasoning=selection.reasoning,
            alternatives=[
                {'id': alt.split.id, 'name': alt.split.name, 'score': alt.score}
                for alt in selection.alternatives
            ],
            warnings=_unique(warnings),
            progression_note=progression_note(profile.goal, request.rotation_index),
            requires_medical_clearance=safety.requires_medical_clearance,
            fallback_used=selection.fallback_used,
            deadline_exceeded=deadline_exceeded,
            total_estimated_calories=sum(d.estimated_calories for d in days),
        )

        elapsed_ms = (self.clock() - start) * 1000
        logger.info(
            f"Plan generated: {plan.split_id}, {len(plan.days)} days, "
            f"{len(plan.entries())} entries, {len(plan.warnings)} warnings ({elapsed_ms:.0f} ms)"
        )
        return plan

    def _validate(self, request: GenerationRequest) -> UserProfile:
        profile = request.profile
        if not isinstance(profile, UserProfile):
            profile = UserProfile.from_dict(profile)

        errors = []
        if not isinstance(request.rotation_index, int) or request.rotation_index < 1:
            errors.append(f"rotation_index must be a positive integer, got {request.rotation_index!r}")
        for d in request.training_days or []:
            if str(d).lower() not in WEEKDAYS:
                errors.append(f"unknown training day '{d}'")
        if request.deadline_seconds is not None and request.deadline_seconds <= 0:
            errors.append("deadline_seconds must be positive")
        if errors:
            raise InvalidProfile(errors)

        return profile

    def _allowed_routine_ids(self, profile: UserProfile, safety: SafetyResult) -> frozenset:
        """Routine movements that pass the matched rules and the user's equipment."""
        allowed, excluded = self.safety.filter_pool(self.routines.exercises(), safety.matched_rules)
        for item in excluded:
            logger.debug(f"Routine item {item.exercise.id} excluded: {'; '.join(item.reasons)}")
        equipment = profile.equipment_with_bodyweight
        return frozenset(ex.id for ex in allowed if ex.equipment <= equipment)

    @staticmethod
    def _assign_weekdays(split: WorkoutSplit, sessions: int, requested: Optional[Sequence[str]]) -> List[str]:
        """
        Weekdays for the split's sessions.

        Requested days win when their count matches the session count;
        otherwise the split's suggested days are used, with free days
        filling any gaps.
        """
        if requested:
            days = sorted({str(d).lower() for d in requested}, key=WEEKDAYS.index)
            if len(days) == sessions:
                return days
            logger.info(f"{len(days)} training days requested for {sessions} sessions, using suggested days")

        chosen: List[Optional[str]] = []
        for pattern in split.days[:sessions]:
            suggested = pattern.suggested_day
            chosen.append(suggested if suggested and suggested not in chosen else None)

        free = [d for d in WEEKDAYS if d not in chosen]
        return [d if d else free.pop(0) for d in chosen]

    @staticmethod
    def _check_invariants(safety: SafetyResult, days: List[DayWorkout], exercises: Dict[str, Exercise]):
        """Final check that no planned exercise matches a matched rule's exclusions."""
        planned = {e.exercise_id for day in days for e in day.entries()}
        check = safety.validate_plan(exercises[i] for i in sorted(planned))
        if check['forbidden']:
            raise RegimenError(f"Plan contains excluded exercises: {', '.join(check['forbidden'])}")

    def _attach_media(
        self,
        profile: UserProfile,
        days: List[DayWorkout],
        exercises: Dict[str, Exercise],
        start: float,
        deadline: float
    ):
        planned = {e.exercise_id for day in days for e in day.entries()}
        remaining = max(0.0, deadline - (self.clock() - start))
        urls = self.media.resolve_many(
            [exercises[i] for i in sorted(planned)],
            preference=profile.media_preference,
            premium=profile.premium_media,
            deadline_seconds=remaining,
        )
        for day in days:
            for entry in day.entries():
                entry.media_url = urls.get(entry.exercise_id) or self.media.placeholder_url

    def _gentle_plan(
        self,
        profile: UserProfile,
        request: GenerationRequest,
        safety: SafetyResult,
        warnings: List[str],
        routine_ids: frozenset,
        start: float,
        deadline: float
    ) -> WeeklyPlan:
        """Low-risk mobility plan for very constrained profiles."""
        items = [item for item in self.routines.gentle if item.exercise.id in routine_ids]
        if not items:
            warnings.append("No gentle movements are safe for this profile; consult a healthcare provider")

        weekdays = list(GENTLE_DAYS)
        if request.training_days:
            requested = sorted({str(d).lower() for d in request.training_days}, key=WEEKDAYS.index)
            if len(requested) == len(GENTLE_DAYS):
                weekdays = requested

        tips = list(GENTLE_TIPS)
        tips.append(
            '🏥 MEDICAL CLEARANCE REQUIRED before exercising'
            if safety.requires_medical_clearance
            else '📞 Consider consulting a certified fitness professional'
        )

        days = []
        for weekday in weekdays:
            main = [item.to_entry() for item in items]
            minutes = self.structure.estimate_minutes(main)
            days.append(DayWorkout(
                day=weekday,
                label='Gentle Movement & Mobility',
                workout_type='recovery',
                main=main,
                coaching_tips=tips[:self.config.max_coaching_tips],
                estimated_minutes=minutes,
                estimated_calories=self.structure.estimate_calories(
                    minutes, ExperienceLevel.BEGINNER, 'general_fitness', profile.weight_kg
                ),
            ))

        exercises = {item.exercise.id: item.exercise for item in items}
        self._check_invariants(safety, days, exercises)
        self._attach_media(profile, days, exercises, start, deadline)

        return WeeklyPlan(
            plan_title='Gentle Movement Plan (Safety-Limited)',
            split_id='gentle_movement',
            split_name='Gentle Movement',
            days=days,
            rest_days=[d for d in WEEKDAYS if d not in weekdays],
            rotation_index=request.rotation_index,
            reasoning=[
                f"Only {len(safety.allowed)} exercises are safe for this profile "
                f"(minimum {self.config.min_pool_size})",
                'Using gentle, low-risk movements',
            ],
            warnings=_unique(warnings),
            progression_note=GENTLE_PROGRESSION,
            requires_medical_clearance=safety.requires_medical_clearance,
            gentle_fallback_used=True,
            total_estimated_calories=sum(d.estimated_calories for d in days),
        )


def _unique(items: List[str]) -> List[str]:
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


# =============================================================================
# Text output
# =============================================================================

def _format_entry(i: int, e: ExerciseEntry) -> List[str]:
    lines = [f"\n{i}. {e.name}" if i else f"\n• {e.name}"]
    unit = '' if e.reps.unit != 'reps' else ' reps'
    lines.append(f"   Sets: {e.sets} x {e.reps}{unit}")
    if i:
        lines.append(f"   Tempo: {e.tempo}  |  RPE ≤ {e.intensity_cap:g}")
    lines.append(f"   Rest: {e.rest_seconds}s")
    for note in e.coaching_notes:
        lines.append(f"   Notes: {note}")
    lines.append(f"   Media: {e.media_url}")
    return lines


def format_plan_text(plan: WeeklyPlan) -> str:
    """
    Format a weekly plan as readable text.

    Args:
        plan: WeeklyPlan

    Returns:
        Formatted text string
    """
    lines = []

    lines.append("=" * 60)
    lines.append(plan.plan_title)
    lines.append("=" * 60)
    lines.append(f"\nSplit: {plan.split_name} (score {plan.score})")
    lines.append(f"Training days: {', '.join(d.day.title() for d in plan.days)}")
    lines.append(f"Rest days: {', '.join(d.title() for d in plan.rest_days)}")
    lines.append(f"Estimated calories: {plan.total_estimated_calories}")

    flags = []
    if plan.fallback_used:
        flags.append('default split used')
    if plan.gentle_fallback_used:
        flags.append('gentle fallback')
    if plan.deadline_exceeded:
        flags.append('deadline exceeded')
    if plan.requires_medical_clearance:
        flags.append('medical clearance required')
    if flags:
        lines.append(f"Flags: {', '.join(flags)}")

    if plan.warnings:
        lines.append("\n⚠️  Warnings:")
        for w in plan.warnings:
            lines.append(f"  • {w}")

    for day in plan.days:
        lines.append(f"\n{'=' * 60}")
        lines.append(f"{day.day.upper()}: {day.label} (~{day.estimated_minutes} min, ~{day.estimated_calories} kcal)")
        lines.append('=' * 60)

        if day.warmup:
            lines.append(f"\n{'─' * 60}")
            lines.append("WARMUP")
            lines.append('─' * 60)
            for e in day.warmup:
                lines.extend(_format_entry(0, e))

        lines.append(f"\n{'─' * 60}")
        lines.append("MAIN WORKOUT" + (" (underfilled)" if day.underfilled else ""))
        lines.append('─' * 60)
        for i, e in enumerate(day.main, 1):
            lines.extend(_format_entry(i, e))

        if day.cooldown:
            lines.append(f"\n{'─' * 60}")
            lines.append("COOLDOWN")
            lines.append('─' * 60)
            for e in day.cooldown:
                lines.extend(_format_entry(0, e))

        if day.coaching_tips:
            lines.append(f"\n{'─' * 60}")
            lines.append("COACHING TIPS")
            lines.append('─' * 60)
            for tip in day.coaching_tips:
                lines.append(f"  {tip}")

    lines.append(f"\n{'=' * 60}")
    lines.append("PROGRESSION")
    lines.append('=' * 60)
    lines.append(plan.progression_note)

    return "\n".join(lines)
