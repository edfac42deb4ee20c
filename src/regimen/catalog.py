"""
Exercise Catalog

Internal Codename: ARSENAL
In-memory, read-only exercise collection indexed by id, muscle,
equipment and body part. Loaded once at process start.
"""

import logging
from collections import defaultdict
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .biomechanics import (
    classify_exercise,
    get_exercise_complexity_score,
    get_movement_patterns_for_exercise,
    infer_safety_attributes,
)
from .config import catalog_path, load_yaml
from .errors import ConfigError
from .models import Exercise, _lower_set

logger = logging.getLogger(__name__)


def build_exercise(record: Dict[str, Any]) -> Exercise:
    """
    Build an Exercise from a catalog record.

    Classification and complexity are computed here, once. Safety
    attributes are inferred from the name unless the record tags them
    explicitly (explicit tags win).

    Args:
        record: Mapping with id, name, target_muscles, secondary_muscles,
            body_parts, equipment and optional attributes, complexity, media

    Returns:
        Exercise

    Raises:
        ConfigError: If id or name is missing
    """
    exercise_id = record.get('id')
    name = record.get('name')
    if not exercise_id or not name:
        raise ConfigError(f"Exercise record needs id and name: {record!r}")

    targets = _lower_set(record.get('target_muscles'))
    secondary = _lower_set(record.get('secondary_muscles')) - targets
    body_parts = _lower_set(record.get('body_parts'))
    equipment = _lower_set(record.get('equipment')) or frozenset({'body weight'})

    if 'attributes' in record and record['attributes'] is not None:
        attributes = _lower_set(record['attributes'])
    else:
        attributes = infer_safety_attributes(name, equipment)

    complexity = record.get('complexity')
    if complexity is None:
        complexity = get_exercise_complexity_score(
            get_movement_patterns_for_exercise(name),
            equipment,
            len(targets | secondary),
        )

    media = record.get('media') or {}
    return Exercise(
        id=str(exercise_id),
        name=str(name),
        target_muscles=targets,
        secondary_muscles=secondary,
        body_parts=body_parts,
        equipment=equipment,
        classification=classify_exercise(name, targets, secondary, body_parts),
        complexity=int(complexity),
        attributes=attributes,
        media_refs=MappingProxyType({str(k): str(v) for k, v in media.items() if v}),
    )


class ExerciseCatalog:
    """
    Read-only exercise collection.

    Safe to share between concurrent requests: nothing mutates after
    construction.
    """

    def __init__(self, exercises: Iterable[Exercise]):
        by_id: Dict[str, Exercise] = {}
        for ex in exercises:
            if ex.id in by_id:
                raise ConfigError(f"Duplicate exercise id in catalog: {ex.id}")
            by_id[ex.id] = ex

        self._by_id: Mapping[str, Exercise] = MappingProxyType(by_id)
        self._exercises: Tuple[Exercise, ...] = tuple(by_id.values())
        self._by_muscle = self._index(lambda ex: ex.all_muscles)
        self._by_equipment = self._index(lambda ex: ex.equipment)
        self._by_body_part = self._index(lambda ex: ex.body_parts)

    def _index(self, keys_for) -> Mapping[str, Tuple[Exercise, ...]]:
        index = defaultdict(list)
        for ex in self._exercises:
            for key in keys_for(ex):
                index[key].append(ex)
        return MappingProxyType({k: tuple(v) for k, v in index.items()})

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> 'ExerciseCatalog':
        return cls(build_exercise(r) for r in records)

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> 'ExerciseCatalog':
        """
        Load the catalog from a YAML file.

        Args:
            path: Catalog file. Defaults to REGIMEN_CATALOG or the built-in catalog.

        Returns:
            ExerciseCatalog
        """
        path = Path(path) if path else catalog_path()
        data = load_yaml(path)
        records = data.get('exercises')
        if not records:
            raise ConfigError(f"No exercises defined in {path}")

        catalog = cls.from_records(records)
        logger.info(f"Loaded {len(catalog)} exercises from {path}")
        return catalog

    @classmethod
    def from_graph(cls, graph) -> 'ExerciseCatalog':
        """
        Load the catalog from a Neo4j exercise graph.

        Args:
            graph: CatalogGraph instance

        Returns:
            ExerciseCatalog
        """
        records = graph.fetch_exercise_records()
        if not records:
            raise ConfigError("Exercise graph returned no exercises")

        catalog = cls.from_records(records)
        logger.info(f"Loaded {len(catalog)} exercises from graph")
        return catalog

    def __len__(self) -> int:
        return len(self._exercises)

    def __iter__(self) -> Iterator[Exercise]:
        return iter(self._exercises)

    def __contains__(self, exercise_id: str) -> bool:
        return exercise_id in self._by_id

    @property
    def exercises(self) -> Tuple[Exercise, ...]:
        return self._exercises

    def get(self, exercise_id: str) -> Optional[Exercise]:
        return self._by_id.get(exercise_id)

    def by_muscle(self, muscle: str) -> Tuple[Exercise, ...]:
        """Exercises with muscle as a target or secondary muscle."""
        return self._by_muscle.get(muscle.lower(), ())

    def by_equipment(self, equipment: str) -> Tuple[Exercise, ...]:
        return self._by_equipment.get(equipment.lower(), ())

    def by_body_part(self, body_part: str) -> Tuple[Exercise, ...]:
        return self._by_body_part.get(body_part.lower(), ())

    def muscles(self) -> List[str]:
        return sorted(self._by_muscle)

    def summary(self) -> Dict[str, int]:
        """Exercise counts per classification."""
        counts: Dict[str, int] = defaultdict(int)
        for ex in self._exercises:
            counts[ex.classification.value] += 1
        return dict(counts)
