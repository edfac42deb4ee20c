"""
Core Data Model

Internal Codename: T-800
Exercises, user profiles and the weekly plan output schema.
"""

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from .errors import InvalidProfile


WEEKDAYS = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')

BODY_WEIGHT = 'body weight'


class Classification(Enum):
    """Movement classification, computed once when the catalog loads."""
    COMPOUND = "compound"
    AUXILIARY = "auxiliary"
    ISOLATION = "isolation"
    CARDIO = "cardio"


class ExperienceLevel(Enum):
    """Training experience of the user."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class WorkoutType(Enum):
    """Training emphasis of a split day."""
    STRENGTH = "strength"
    HYPERTROPHY = "hypertrophy"
    CARDIO = "cardio"


class SafetyTier(IntEnum):
    """Presentation priority of safety rules (lower value = reported first)."""
    PREGNANCY = 1
    CARDIAC = 2
    INJURY = 3
    CONDITION = 4
    MEDICATION = 5
    AGE = 6


GOALS = (
    'weight_loss',
    'muscle_gain',
    'maintenance',
    'strength',
    'endurance',
    'flexibility',
    'athletic_performance',
    'general_fitness',
)

STRESS_LEVELS = ('low', 'moderate', 'high')


def _lower_set(values) -> FrozenSet[str]:
    if not values:
        return frozenset()
    if isinstance(values, str):
        values = [values]
    return frozenset(str(v).strip().lower() for v in values if str(v).strip())


@dataclass(frozen=True)
class Exercise:
    """A catalog exercise. Immutable once loaded."""
    id: str
    name: str
    target_muscles: FrozenSet[str]
    body_parts: FrozenSet[str]
    equipment: FrozenSet[str]
    classification: Classification
    secondary_muscles: FrozenSet[str] = frozenset()
    complexity: int = 1
    attributes: FrozenSet[str] = frozenset()
    media_refs: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def primary_muscle(self) -> Optional[str]:
        """First target muscle in sorted order, used for variety checks."""
        return min(self.target_muscles) if self.target_muscles else None

    @property
    def all_muscles(self) -> FrozenSet[str]:
        return self.target_muscles | self.secondary_muscles

    def has_attribute(self, attribute: str) -> bool:
        return attribute in self.attributes


@dataclass(frozen=True)
class MedicalCondition:
    """A medical condition with an optional stage (e.g. pregnancy trimester)."""
    name: str
    stage: Optional[int] = None


@dataclass(frozen=True)
class UserProfile:
    """
    Per-request user profile.

    Built by an external onboarding collaborator; use `from_dict` to get
    validation. Never mutated by the engine.
    """
    experience_level: ExperienceLevel
    primary_goals: Tuple[str, ...]
    available_equipment: FrozenSet[str]
    age: int
    weekly_frequency: int
    session_duration: int = 45
    injuries: FrozenSet[str] = frozenset()
    medical_conditions: Tuple[MedicalCondition, ...] = ()
    medications: FrozenSet[str] = frozenset()
    media_preference: Optional[str] = None
    premium_media: bool = False
    prefers_variety: bool = False
    stress_level: str = 'moderate'
    excluded_exercise_ids: FrozenSet[str] = frozenset()
    weight_kg: Optional[float] = None

    @property
    def goal(self) -> str:
        """The goal that drives structure assignment."""
        return self.primary_goals[0]

    @property
    def equipment_with_bodyweight(self) -> FrozenSet[str]:
        return self.available_equipment | {BODY_WEIGHT}

    def condition(self, keyword: str) -> Optional[MedicalCondition]:
        """Find the first medical condition whose name contains keyword."""
        keyword = keyword.lower()
        for c in self.medical_conditions:
            if keyword in c.name:
                return c
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserProfile':
        """
        Build and validate a profile from a plain dictionary.

        Args:
            data: Profile fields (as produced by onboarding or a YAML file)

        Returns:
            Validated UserProfile

        Raises:
            InvalidProfile: If required fields are missing or out of range
        """
        errors: List[str] = []

        level_raw = data.get('experience_level')
        level = None
        if level_raw is None:
            errors.append("experience_level is required")
        else:
            try:
                level = ExperienceLevel(str(level_raw).lower())
            except ValueError:
                errors.append(f"experience_level '{level_raw}' is not one of beginner/intermediate/advanced")

        goals_raw = data.get('primary_goals') or data.get('goals')
        if isinstance(goals_raw, str):
            goals_raw = [goals_raw]
        goals = tuple(str(g).strip().lower() for g in (goals_raw or []))
        if not goals:
            errors.append("primary_goals must contain at least one goal")
        for g in goals:
            if g not in GOALS:
                errors.append(f"unknown goal '{g}'")

        age = _required_int(data, 'age', 13, 100, errors)
        frequency = _required_int(data, 'weekly_frequency', 1, 14, errors)
        duration = data.get('session_duration', 45)
        if not isinstance(duration, int) or isinstance(duration, bool) or not 10 <= duration <= 240:
            errors.append(f"session_duration must be an integer between 10 and 240, got {duration!r}")

        conditions = []
        for raw in data.get('medical_conditions') or []:
            if isinstance(raw, dict):
                name = str(raw.get('name', '')).strip().lower()
                stage = raw.get('stage', raw.get('trimester'))
            else:
                name, stage = str(raw).strip().lower(), None
            if not name:
                errors.append("medical condition without a name")
                continue
            if stage is not None:
                if not isinstance(stage, int) or isinstance(stage, bool):
                    errors.append(f"stage for '{name}' must be an integer")
                    continue
                if 'pregnan' in name and not 1 <= stage <= 3:
                    errors.append(f"pregnancy trimester must be 1-3, got {stage}")
                    continue
            conditions.append(MedicalCondition(name=name, stage=stage))

        stress = str(data.get('stress_level', 'moderate')).lower()
        if stress not in STRESS_LEVELS:
            errors.append(f"stress_level '{stress}' is not one of {', '.join(STRESS_LEVELS)}")

        weight = data.get('weight_kg')
        if weight is not None and (not isinstance(weight, (int, float)) or weight <= 0):
            errors.append(f"weight_kg must be positive, got {weight!r}")

        if errors:
            raise InvalidProfile(errors)

        preference = data.get('media_preference')
        return cls(
            experience_level=level,
            primary_goals=goals,
            available_equipment=_lower_set(data.get('available_equipment')),
            age=age,
            weekly_frequency=frequency,
            session_duration=duration,
            injuries=_lower_set(data.get('injuries')),
            medical_conditions=tuple(conditions),
            medications=_lower_set(data.get('medications')),
            media_preference=str(preference).strip() if preference else None,
            premium_media=bool(data.get('premium_media', False)),
            prefers_variety=bool(data.get('prefers_variety', False)),
            stress_level=stress,
            excluded_exercise_ids=frozenset(data.get('excluded_exercise_ids') or []),
            weight_kg=float(weight) if weight is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Canonical dictionary form (sorted collections)."""
        return {
            'experience_level': self.experience_level.value,
            'primary_goals': list(self.primary_goals),
            'available_equipment': sorted(self.available_equipment),
            'age': self.age,
            'weekly_frequency': self.weekly_frequency,
            'session_duration': self.session_duration,
            'injuries': sorted(self.injuries),
            'medical_conditions': [
                {'name': c.name, 'stage': c.stage}
                for c in sorted(self.medical_conditions, key=lambda c: (c.name, c.stage or 0))
            ],
            'medications': sorted(self.medications),
            'media_preference': self.media_preference,
            'premium_media': self.premium_media,
            'prefers_variety': self.prefers_variety,
            'stress_level': self.stress_level,
            'excluded_exercise_ids': sorted(self.excluded_exercise_ids),
            'weight_kg': self.weight_kg,
        }


def _required_int(data: Dict[str, Any], key: str, low: int, high: int, errors: List[str]) -> Optional[int]:
    value = data.get(key)
    if value is None:
        errors.append(f"{key} is required")
        return None
    if not isinstance(value, int) or isinstance(value, bool):
        errors.append(f"{key} must be an integer, got {value!r}")
        return None
    if not low <= value <= high:
        errors.append(f"{key} must be between {low} and {high}, got {value}")
        return None
    return value


def profile_fingerprint(profile: UserProfile, rotation_index: int) -> str:
    """
    Stable cache key for (profile, rotation_index).

    The engine is a pure function of these inputs, so a caching layer can
    store plans under this key.
    """
    payload = json.dumps(
        {'profile': profile.to_dict(), 'rotation_index': rotation_index},
        sort_keys=True,
        separators=(',', ':'),
    )
    return hashlib.sha256(payload.encode('utf-8')).hexdigest()


@dataclass(frozen=True)
class DayPattern:
    """One training day inside a split."""
    label: str
    target_muscles: FrozenSet[str]
    workout_type: WorkoutType
    suggested_day: Optional[str] = None


@dataclass(frozen=True)
class WorkoutSplit:
    """A weekly training template."""
    id: str
    name: str
    frequency_range: Tuple[int, int]
    days: Tuple[DayPattern, ...]
    experience_levels: FrozenSet[ExperienceLevel]
    goals: FrozenSet[str]
    equipment_tiers: FrozenSet[str]
    description: str = ''
    recovery_demand: str = 'moderate'
    session_minutes: int = 45

    def supports_frequency(self, frequency: int) -> bool:
        low, high = self.frequency_range
        return low <= frequency <= high

    @property
    def days_per_week(self) -> int:
        return len(self.days)


@dataclass(frozen=True)
class RepRange:
    """Rep (or work-seconds) prescription."""
    low: int
    high: int
    unit: str = 'reps'

    def __str__(self) -> str:
        span = str(self.low) if self.low == self.high else f"{self.low}-{self.high}"
        return span if self.unit == 'reps' else f"{span} {self.unit}"


@dataclass
class ExerciseEntry:
    """A prescribed exercise inside a day."""
    exercise_id: str
    name: str
    classification: Classification
    sets: int
    reps: RepRange
    rest_seconds: int
    tempo: str
    intensity_cap: float
    media_url: str = ''
    coaching_notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'exercise_id': self.exercise_id,
            'name': self.name,
            'classification': self.classification.value,
            'sets': self.sets,
            'reps': str(self.reps),
            'rest_seconds': self.rest_seconds,
            'tempo': self.tempo,
            'intensity_cap': self.intensity_cap,
            'media_url': self.media_url,
            'coaching_notes': list(self.coaching_notes),
        }


@dataclass
class DayWorkout:
    """One scheduled training day."""
    day: str
    label: str
    workout_type: str
    warmup: List[ExerciseEntry] = field(default_factory=list)
    main: List[ExerciseEntry] = field(default_factory=list)
    cooldown: List[ExerciseEntry] = field(default_factory=list)
    coaching_tips: List[str] = field(default_factory=list)
    estimated_minutes: int = 0
    estimated_calories: int = 0
    underfilled: bool = False

    def entries(self) -> List[ExerciseEntry]:
        return [*self.warmup, *self.main, *self.cooldown]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'day': self.day,
            'label': self.label,
            'workout_type': self.workout_type,
            'warmup': [e.to_dict() for e in self.warmup],
            'main': [e.to_dict() for e in self.main],
            'cooldown': [e.to_dict() for e in self.cooldown],
            'coaching_tips': list(self.coaching_tips),
            'estimated_minutes': self.estimated_minutes,
            'estimated_calories': self.estimated_calories,
            'underfilled': self.underfilled,
        }


@dataclass
class WeeklyPlan:
    """Engine output. Owned by the caller after return."""
    plan_title: str
    split_id: str
    split_name: str
    days: List[DayWorkout]
    rest_days: List[str]
    rotation_index: int
    score: float = 0.0
    reasoning: List[str] = field(default_factory=list)
    alternatives: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    progression_note: str = ''
    requires_medical_clearance: bool = False
    fallback_used: bool = False
    gentle_fallback_used: bool = False
    deadline_exceeded: bool = False
    total_estimated_calories: int = 0

    def entries(self) -> List[ExerciseEntry]:
        return [e for day in self.days for e in day.entries()]

    def to_dict(self) -> Dict[str, Any]:
        """Stable output schema (shared with the AI generation path)."""
        return {
            'plan_title': self.plan_title,
            'split': {'id': self.split_id, 'name': self.split_name, 'score': self.score},
            'rotation_index': self.rotation_index,
            'days': [d.to_dict() for d in self.days],
            'rest_days': list(self.rest_days),
            'reasoning': list(self.reasoning),
            'alternatives': list(self.alternatives),
            'warnings': list(self.warnings),
            'progression_note': self.progression_note,
            'requires_medical_clearance': self.requires_medical_clearance,
            'total_estimated_calories': self.total_estimated_calories,
            'metadata': {
                'fallbackUsed': self.fallback_used,
                'gentleFallbackUsed': self.gentle_fallback_used,
                'deadlineExceeded': self.deadline_exceeded,
            },
        }
