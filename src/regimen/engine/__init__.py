"""
JUDGMENT-DAY: Plan Engine

Internal Codename: JUDGMENT-DAY
"Judgment Day: The day the workout is decided."

Deterministic weekly plan generation from a user profile:
- Safety filtering (injuries, medical conditions, pregnancy, medications, age)
- Split selection
- Exercise selection with weekly rotation
- Structure assignment (sets, reps, rest, tempo, RPE)
- Media resolution
"""

from .safety import SafetyFilter, SafetyModifiers, SafetyResult, SafetyRule
from .splits import SplitRegistry, SplitSelection, SplitSelector
from .selection import DaySelection, ExerciseSelector
from .structure import Routines, StructureAssigner
from .media import CatalogMediaProvider, MediaResolver, RemoteMediaProvider
from .planner import GenerationRequest, WorkoutPlanner, format_plan_text

__all__ = [
    'SafetyFilter',
    'SafetyModifiers',
    'SafetyResult',
    'SafetyRule',
    'SplitRegistry',
    'SplitSelection',
    'SplitSelector',
    'DaySelection',
    'ExerciseSelector',
    'Routines',
    'StructureAssigner',
    'CatalogMediaProvider',
    'MediaResolver',
    'RemoteMediaProvider',
    'GenerationRequest',
    'WorkoutPlanner',
    'format_plan_text',
]
