"""Tests for exercise classification and the catalog."""
import pytest

from regimen.biomechanics import (
    MovementPattern,
    classify_exercise,
    get_movement_patterns_for_exercise,
    infer_safety_attributes,
    name_has_keyword,
)
from regimen.catalog import ExerciseCatalog, build_exercise
from regimen.errors import ConfigError
from regimen.models import BODY_WEIGHT, Classification


def record(**overrides):
    data = {
        'id': 'test-exercise',
        'name': 'Test Exercise',
        'target_muscles': ['pecs'],
        'body_parts': ['chest'],
        'equipment': ['body weight'],
    }
    data.update(overrides)
    return data


class TestClassification:
    """Test classify_exercise heuristics."""

    def test_cardio_first(self):
        assert classify_exercise('Burpee', ['cardiovascular system'], ['quads', 'pecs'], ['cardio']) \
            == Classification.CARDIO
        assert classify_exercise('Jump Rope', ['calves'], [], ['lower legs']) == Classification.CARDIO

    def test_compound_by_muscle_count(self):
        assert classify_exercise('Glute Bridge', ['glutes'], ['hamstrings', 'abs'], ['upper legs']) \
            == Classification.COMPOUND

    def test_compound_by_movement_pattern(self):
        # Two muscles, but a multi-joint pull
        assert classify_exercise('Chin-Up', ['lats'], ['biceps'], ['back']) == Classification.COMPOUND

    def test_auxiliary(self):
        assert classify_exercise('Dumbbell Fly', ['pecs'], ['delts'], ['chest']) == Classification.AUXILIARY

    def test_isolation(self):
        assert classify_exercise('Dumbbell Curl', ['biceps'], [], ['upper arms']) == Classification.ISOLATION

    def test_movement_patterns(self):
        assert get_movement_patterns_for_exercise('Bulgarian Split Squat') == [
            MovementPattern.LUNGE, MovementPattern.SQUAT,
        ]
        assert get_movement_patterns_for_exercise('Dumbbell Curl') == []


class TestSafetyAttributes:
    """Test safety attribute inference."""

    def test_supine(self):
        assert 'supine' in infer_safety_attributes('Dumbbell Bench Press', ['dumbbell'])
        assert 'supine' in infer_safety_attributes('Crunch', [])

    def test_high_impact(self):
        assert 'high_impact' in infer_safety_attributes('Box Jump', [])
        assert 'high_impact' not in infer_safety_attributes('Push-Up', [])

    def test_barbell_loading(self):
        attributes = infer_safety_attributes('Barbell Back Squat', ['barbell'])
        assert {'spinal_loading', 'valsalva'} <= attributes
        assert 'spinal_loading' not in infer_safety_attributes('Goblet Squat', ['dumbbell'])

    def test_explicit_attributes_win(self):
        ex = build_exercise(record(name='Cable Crunch', target_muscles=['abs'], attributes=[]))
        assert ex.attributes == frozenset()

    def test_keyword_matching(self):
        assert name_has_keyword('Jumping Jack', 'jump')
        assert name_has_keyword('Push-Up', 'push up')
        assert not name_has_keyword('Narrow Grip Push-Up', 'row')


class TestBuildExercise:
    """Test build_exercise record handling."""

    def test_defaults(self):
        ex = build_exercise(record(equipment=None))
        assert ex.equipment == frozenset({BODY_WEIGHT})
        assert ex.classification == Classification.ISOLATION
        assert 1 <= ex.complexity <= 10

    def test_secondary_excludes_targets(self):
        ex = build_exercise(record(target_muscles=['pecs'], secondary_muscles=['pecs', 'triceps']))
        assert ex.secondary_muscles == frozenset({'triceps'})

    def test_media_refs(self):
        ex = build_exercise(record(media={'exercisedb': '0662', 'wrkout': None}))
        assert dict(ex.media_refs) == {'exercisedb': '0662'}

    def test_missing_name(self):
        with pytest.raises(ConfigError):
            build_exercise({'id': 'x'})


class TestExerciseCatalog:
    """Test the built-in catalog and its indexes."""

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ConfigError):
            ExerciseCatalog.from_records([record(), record()])

    def test_indexes(self, catalog):
        assert catalog.get('push-up').name == 'Push-Up'
        assert 'push-up' in catalog
        assert catalog.get('push-up') in catalog.by_muscle('Pecs')
        assert all('dumbbell' in ex.equipment for ex in catalog.by_equipment('dumbbell'))
        assert catalog.get('superman') in catalog.by_body_part('lower back')

    def test_every_classification_present(self, catalog):
        summary = catalog.summary()
        assert set(summary) == {'compound', 'auxiliary', 'isolation', 'cardio'}
        assert sum(summary.values()) == len(catalog)

    def test_enough_bodyweight_exercises(self, catalog, config):
        bodyweight = [ex for ex in catalog if ex.equipment == frozenset({BODY_WEIGHT})]
        assert len(bodyweight) >= config.min_pool_size

    def test_expected_classifications(self, catalog):
        assert catalog.get('pull-up').classification == Classification.COMPOUND
        assert catalog.get('plank').classification == Classification.AUXILIARY
        assert catalog.get('dumbbell-lateral-raise').classification == Classification.ISOLATION
        assert catalog.get('mountain-climber').classification == Classification.CARDIO

    def test_empty_catalog_file(self, tmp_path):
        path = tmp_path / "exercises.yaml"
        path.write_text("exercises: []\n")
        with pytest.raises(ConfigError):
            ExerciseCatalog.from_yaml(path)
