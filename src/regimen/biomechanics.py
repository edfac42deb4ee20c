"""
Biomechanical Data Model

Defines movement patterns, safety attributes and the classification
heuristics applied to every exercise when the catalog loads.
"""

import re
from typing import Dict, FrozenSet, Iterable, List, Set
from enum import Enum

from .models import Classification


class MovementPattern(Enum):
    """Fundamental movement patterns."""
    SQUAT = "squat"
    HINGE = "hinge"
    LUNGE = "lunge"
    PUSH = "push"
    PULL = "pull"
    CARRY = "carry"
    ROTATION = "rotation"
    ANTI_ROTATION = "anti_rotation"
    LOCOMOTION = "locomotion"


# Patterns that move more than one joint under load
MULTI_JOINT_PATTERNS = frozenset({
    MovementPattern.SQUAT,
    MovementPattern.HINGE,
    MovementPattern.LUNGE,
    MovementPattern.PUSH,
    MovementPattern.PULL,
    MovementPattern.CARRY,
})


# Exercise name fragment to movement pattern mappings
EXERCISE_MOVEMENT_PATTERNS = {
    # Squats
    "squat": [MovementPattern.SQUAT],
    "goblet squat": [MovementPattern.SQUAT],
    "front squat": [MovementPattern.SQUAT],
    "back squat": [MovementPattern.SQUAT],
    "bulgarian split squat": [MovementPattern.LUNGE, MovementPattern.SQUAT],
    "leg press": [MovementPattern.SQUAT],
    "thruster": [MovementPattern.SQUAT, MovementPattern.PUSH],

    # Hinges
    "deadlift": [MovementPattern.HINGE],
    "romanian deadlift": [MovementPattern.HINGE],
    "good morning": [MovementPattern.HINGE],
    "hip thrust": [MovementPattern.HINGE],
    "kettlebell swing": [MovementPattern.HINGE],
    "clean": [MovementPattern.HINGE, MovementPattern.PULL],
    "snatch": [MovementPattern.HINGE, MovementPattern.PULL],

    # Lunges
    "lunge": [MovementPattern.LUNGE],
    "walking lunge": [MovementPattern.LUNGE, MovementPattern.LOCOMOTION],
    "reverse lunge": [MovementPattern.LUNGE],
    "lateral lunge": [MovementPattern.LUNGE],
    "step up": [MovementPattern.LUNGE],

    # Push
    "bench press": [MovementPattern.PUSH],
    "floor press": [MovementPattern.PUSH],
    "overhead press": [MovementPattern.PUSH],
    "shoulder press": [MovementPattern.PUSH],
    "military press": [MovementPattern.PUSH],
    "push up": [MovementPattern.PUSH],
    "dip": [MovementPattern.PUSH],

    # Pull
    "pull up": [MovementPattern.PULL],
    "chin up": [MovementPattern.PULL],
    "row": [MovementPattern.PULL],
    "lat pulldown": [MovementPattern.PULL],

    # Carries
    "farmer carry": [MovementPattern.CARRY, MovementPattern.LOCOMOTION],
    "farmers walk": [MovementPattern.CARRY, MovementPattern.LOCOMOTION],
    "suitcase carry": [MovementPattern.CARRY, MovementPattern.LOCOMOTION],

    # Rotation/Anti-rotation
    "plank": [MovementPattern.ANTI_ROTATION],
    "dead bug": [MovementPattern.ANTI_ROTATION],
    "bird dog": [MovementPattern.ANTI_ROTATION],
    "pallof press": [MovementPattern.ANTI_ROTATION],
    "russian twist": [MovementPattern.ROTATION],
    "woodchop": [MovementPattern.ROTATION],
}


# Name fragments that mark an exercise as conditioning work
CARDIO_KEYWORDS = (
    'treadmill',
    'rowing machine',
    'elliptical',
    'stationary bike',
    'jump rope',
    'battle rope',
    'burpee',
    'mountain climber',
    'jumping jack',
    'high knees',
)


# Safety attribute inference (name fragments)
ATTRIBUTE_KEYWORDS: Dict[str, tuple] = {
    'supine': ('lying', 'bench press', 'supine', 'crunch', 'sit up', 'glute bridge',
               'dead bug', 'floor press'),
    'high_impact': ('jump', 'hop', 'burpee', 'box', 'plyometric', 'skater'),
    'fall_risk': ('single leg', 'pistol', 'balance', 'bosu'),
    'prone': ('prone', 'lying face down', 'superman'),
    'inverted': ('handstand', 'invert', 'headstand'),
    'overhead': ('overhead', 'shoulder press', 'military press', 'handstand', 'thruster'),
}

# Spinal loading: hinges and loaded squats/rows
SPINAL_LOADING_KEYWORDS = ('deadlift', 'good morning', 'hyperextension', 'bent over row')
SPINAL_LOADING_BARBELL_KEYWORDS = ('squat', 'row', 'overhead press', 'military press')

VALSALVA_KEYWORDS = ('deadlift', 'squat')


def normalize_name(name: str) -> str:
    """Lower-case a name and treat hyphens as spaces ("Pull-Up" == "pull up")."""
    return re.sub(r'\s+', ' ', name.lower().replace('-', ' ')).strip()


def _contains(name: str, fragment: str) -> bool:
    return re.search(r'\b' + re.escape(fragment) + r'\b', name) is not None


def name_has_keyword(exercise_name: str, keyword: str) -> bool:
    """
    Word-prefix keyword match used by safety rules.

    "jump" matches "Jumping Jack" but "row" does not match "Narrow Grip".
    """
    return re.search(r'\b' + re.escape(normalize_name(keyword)), normalize_name(exercise_name)) is not None


def get_movement_patterns_for_exercise(exercise_name: str) -> List[MovementPattern]:
    """
    Get movement patterns for an exercise based on name matching.

    Args:
        exercise_name: Exercise name

    Returns:
        List of MovementPattern enums (sorted by value)
    """
    exercise_lower = normalize_name(exercise_name)

    # Direct lookup
    if exercise_lower in EXERCISE_MOVEMENT_PATTERNS:
        return list(EXERCISE_MOVEMENT_PATTERNS[exercise_lower])

    # Whole-word fragment matching
    patterns: Set[MovementPattern] = set()
    for key, value in EXERCISE_MOVEMENT_PATTERNS.items():
        if _contains(exercise_lower, key):
            patterns.update(value)

    return sorted(patterns, key=lambda p: p.value)


def is_multi_joint(exercise_name: str) -> bool:
    """True when the name matches a known multi-joint movement pattern."""
    return any(p in MULTI_JOINT_PATTERNS for p in get_movement_patterns_for_exercise(exercise_name))


def infer_safety_attributes(exercise_name: str, equipment: Iterable[str]) -> FrozenSet[str]:
    """
    Infer safety attributes for exercises without explicit tags.

    Conservative by construction: a keyword hit is enough to tag.

    Args:
        exercise_name: Exercise name
        equipment: Equipment the exercise uses

    Returns:
        Frozenset of attribute tags
    """
    name = normalize_name(exercise_name)
    equipment = {e.lower() for e in equipment}
    attributes = set()

    for attribute, keywords in ATTRIBUTE_KEYWORDS.items():
        if any(_contains(name, kw) for kw in keywords):
            attributes.add(attribute)

    if any(_contains(name, kw) for kw in VALSALVA_KEYWORDS) or (
        _contains(name, 'press') and 'barbell' in equipment
    ):
        attributes.add('valsalva')

    if any(_contains(name, kw) for kw in SPINAL_LOADING_KEYWORDS) or (
        'barbell' in equipment and any(_contains(name, kw) for kw in SPINAL_LOADING_BARBELL_KEYWORDS)
    ):
        attributes.add('spinal_loading')

    return frozenset(attributes)


def classify_exercise(
    exercise_name: str,
    target_muscles: Iterable[str],
    secondary_muscles: Iterable[str],
    body_parts: Iterable[str]
) -> Classification:
    """
    Classify an exercise by how many muscle groups it engages.

    Cardio is checked first. Compound means three or more muscle groups or
    a known multi-joint pattern; auxiliary means exactly two; everything
    else is isolation.

    Args:
        exercise_name: Exercise name
        target_muscles: Primary muscles
        secondary_muscles: Secondary muscles
        body_parts: Body parts trained

    Returns:
        Classification enum
    """
    name = normalize_name(exercise_name)
    targets = {m.lower() for m in target_muscles}
    muscles = targets | {m.lower() for m in secondary_muscles}
    parts = {b.lower() for b in body_parts}

    if 'cardio' in parts or 'cardiovascular system' in targets or any(
        _contains(name, kw) for kw in CARDIO_KEYWORDS
    ):
        return Classification.CARDIO

    if len(muscles) >= 3 or is_multi_joint(exercise_name):
        return Classification.COMPOUND

    if len(muscles) == 2:
        return Classification.AUXILIARY

    return Classification.ISOLATION


def get_exercise_complexity_score(
    movement_patterns: List[MovementPattern],
    equipment: Iterable[str],
    num_muscles: int
) -> int:
    """
    Calculate exercise complexity score (1-10).

    Higher score = more complex

    Args:
        movement_patterns: Movement patterns involved
        equipment: Equipment required
        num_muscles: Number of muscles targeted

    Returns:
        Complexity score 1-10
    """
    score = 0

    # Base on movement patterns
    score += len(movement_patterns) * 2

    # Multi-planar movements are more complex
    complex_patterns = {
        MovementPattern.ROTATION,
        MovementPattern.LOCOMOTION,
        MovementPattern.CARRY
    }
    if any(p in complex_patterns for p in movement_patterns):
        score += 2

    # Equipment complexity (hardest piece wins)
    equipment_complexity = {
        "body weight": 0,
        "band": 0,
        "dumbbell": 1,
        "kettlebell": 1,
        "barbell": 2,
        "ez barbell": 2,
        "machine": -1,  # Machines reduce complexity
        "cable": -1,
    }
    equipment = [e.lower() for e in equipment]
    if equipment:
        score += max(equipment_complexity.get(e, 1) for e in equipment)

    # Muscle recruitment
    score += min(num_muscles // 2, 3)

    return max(1, min(10, score))
