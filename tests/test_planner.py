"""End-to-end tests for weekly plan generation."""
import itertools
from collections import Counter

import pytest

from regimen.catalog import ExerciseCatalog
from regimen.engine import GenerationRequest, SplitRegistry, WorkoutPlanner, format_plan_text
from regimen.errors import InvalidProfile
from regimen.models import BODY_WEIGHT, ExperienceLevel, WorkoutType

SMALL_CATALOG = [
    {'id': 'push-up', 'name': 'Push-Up', 'target_muscles': ['pecs'], 'secondary_muscles': ['triceps', 'delts']},
    {'id': 'plank', 'name': 'Plank', 'target_muscles': ['abs'], 'secondary_muscles': ['delts']},
    {'id': 'crunch', 'name': 'Crunch', 'target_muscles': ['abs']},
]


def main_ids(day):
    return [e.exercise_id for e in day.main]


class TestBeginnerPlan:
    """Test the reference beginner bodyweight plan."""

    def test_shape(self, planner, make_profile):
        plan = planner.generate(GenerationRequest(make_profile()))
        assert plan.plan_title == 'Full Body 3x/Week - Week 1'
        assert plan.split_id == 'full_body_3x'
        assert [d.day for d in plan.days] == ['monday', 'wednesday', 'friday']
        assert plan.rest_days == ['tuesday', 'thursday', 'saturday', 'sunday']
        for day in plan.days:
            assert 5 <= len(day.main) <= 8
            assert day.warmup and day.cooldown
            assert day.estimated_minutes > 0

    def test_bodyweight_only(self, planner, catalog, make_profile):
        plan = planner.generate(GenerationRequest(make_profile()))
        for day in plan.days:
            for exercise_id in main_ids(day):
                assert catalog.get(exercise_id).equipment == frozenset({BODY_WEIGHT})
            assert 'routine-band-pull-apart' not in [e.exercise_id for e in day.warmup]

    def test_media_never_empty(self, planner, make_profile):
        plan = planner.generate(GenerationRequest(make_profile()))
        assert all(e.media_url for e in plan.entries())

    def test_deterministic(self, planner, make_profile):
        first = planner.generate(GenerationRequest(make_profile(), rotation_index=3))
        second = planner.generate(GenerationRequest(make_profile(), rotation_index=3))
        assert first.to_dict() == second.to_dict()

    def test_rotation_changes_week(self, planner, make_profile):
        week1 = planner.generate(GenerationRequest(make_profile(), rotation_index=1))
        week2 = planner.generate(GenerationRequest(make_profile(), rotation_index=2))
        assert main_ids(week1.days[0]) != main_ids(week2.days[0])
        assert week2.plan_title.endswith('Week 2')

    def test_dict_profile(self, planner, profile_data):
        plan = planner.generate(GenerationRequest(profile_data()))
        assert plan.split_id == 'full_body_3x'

    def test_requested_training_days(self, planner, make_profile):
        plan = planner.generate(GenerationRequest(make_profile(), training_days=['Saturday', 'tuesday', 'thursday']))
        assert [d.day for d in plan.days] == ['tuesday', 'thursday', 'saturday']

    def test_output_schema(self, planner, make_profile):
        data = planner.generate(GenerationRequest(make_profile())).to_dict()
        assert data['metadata'] == {
            'fallbackUsed': False,
            'gentleFallbackUsed': False,
            'deadlineExceeded': False,
        }
        assert data['split']['score'] == 105
        assert data['progression_note'].startswith('Week 1:')

    def test_text_output(self, planner, make_profile):
        text = format_plan_text(planner.generate(GenerationRequest(make_profile())))
        assert 'MAIN WORKOUT' in text
        assert 'MONDAY: Full Body A' in text


class TestDistributionBounds:
    """Test per-classification counts across levels, frequencies and equipment."""

    @pytest.mark.parametrize('level', ['beginner', 'intermediate', 'advanced'])
    @pytest.mark.parametrize('frequency', [2, 3, 4, 5, 6])
    @pytest.mark.parametrize('equipment', [[], ['dumbbell', 'band'], ['dumbbell', 'barbell', 'cable', 'leverage machine']])
    def test_counts_within_bounds(self, planner, catalog, make_profile, level, frequency, equipment):
        profile = make_profile('intermediate', experience_level=level, weekly_frequency=frequency,
                               available_equipment=equipment)
        plan = planner.generate(GenerationRequest(profile))
        assert not plan.gentle_fallback_used
        for day in plan.days:
            bounds = planner.selector.bounds(ExperienceLevel(level), WorkoutType(day.workout_type))
            counts = Counter(catalog.get(i).classification for i in main_ids(day))
            assert not set(counts) - set(bounds), day.label
            for classification, (low, high) in bounds.items():
                assert counts[classification] <= high, (day.label, classification)
                assert counts[classification] >= low or day.underfilled, (day.label, classification)


class TestSafetyInPlans:
    """Test that safety rules hold through the whole pipeline."""

    def test_back_injury(self, planner, catalog, make_profile):
        plan = planner.generate(GenerationRequest(make_profile('intermediate', injuries=['lower back'])))
        assert plan.split_id == 'upper_lower_4x'
        assert [d.day for d in plan.days] == ['monday', 'tuesday', 'thursday', 'friday']
        for day in plan.days:
            assert not day.underfilled
            for exercise_id in main_ids(day):
                assert 'spinal_loading' not in catalog.get(exercise_id).attributes

    def test_hypertension_raises_rest(self, planner, make_profile):
        profile = make_profile('intermediate', injuries=['lower back'], medical_conditions=['hypertension'])
        plan = planner.generate(GenerationRequest(profile))
        assert all(e.rest_seconds >= 120 for day in plan.days for e in day.main)
        assert all(e.intensity_cap <= 7 for day in plan.days for e in day.main)

    def test_heart_disease(self, planner, make_profile):
        plan = planner.generate(GenerationRequest(make_profile(medical_conditions=['heart disease'])))
        assert plan.requires_medical_clearance
        assert all(e.intensity_cap <= 6 for day in plan.days for e in day.main)
        assert any(tip.startswith('❤️') for tip in plan.days[0].coaching_tips)

    def test_second_trimester(self, planner, catalog, make_profile):
        plan = planner.generate(GenerationRequest(
            make_profile(medical_conditions=[{'name': 'pregnancy', 'trimester': 2}])))
        assert not plan.gentle_fallback_used
        for day in plan.days:
            for exercise_id in main_ids(day):
                assert not catalog.get(exercise_id).attributes & {'supine', 'high_impact'}
        assert plan.warnings[0].startswith('⚠️ PREGNANCY')


class TestFallbacks:
    """Test split, gentle and deadline fallbacks."""

    def test_unsupported_frequency(self, planner, make_profile):
        plan = planner.generate(GenerationRequest(make_profile(weekly_frequency=9)))
        assert plan.fallback_used
        assert plan.split_id == 'full_body_3x'
        assert len(plan.days) == 3
        assert any('No split supports 9 sessions per week' in w for w in plan.warnings)

    def test_split_with_fewer_days_than_requested(self, planner, registry, make_profile):
        splits = SplitRegistry([registry.get('bro_split_5x'), registry.get('full_body_3x')], 'full_body_3x')
        limited = WorkoutPlanner(
            planner.catalog, planner.safety, splits, planner.media,
            config=planner.config, routines=planner.routines,
        )
        profile = make_profile('intermediate', weekly_frequency=6,
                               available_equipment=['dumbbell', 'barbell', 'cable', 'leverage machine'])
        plan = limited.generate(GenerationRequest(profile))
        assert plan.split_id == 'bro_split_5x'
        assert len(plan.days) == 5
        assert any('5 sessions per week; 6 requested' in w for w in plan.warnings)

    def test_gentle_plan(self, fake_session, make_profile):
        planner = WorkoutPlanner.from_config(
            catalog=ExerciseCatalog.from_records(SMALL_CATALOG), session=fake_session)
        plan = planner.generate(GenerationRequest(make_profile()))
        assert plan.gentle_fallback_used
        assert plan.split_id == 'gentle_movement'
        assert [d.day for d in plan.days] == ['monday', 'thursday']
        assert [e.exercise_id for e in plan.days[0].main] == [
            'gentle-walking', 'gentle-stretching', 'gentle-seated-mobility', 'gentle-breathing',
        ]
        assert all(e.media_url for e in plan.entries())
        assert any('minimum 20' in line for line in plan.reasoning)

    def test_deadline_truncates_days(self, planner, make_profile):
        clocked = WorkoutPlanner(
            planner.catalog, planner.safety, planner.splits, planner.media,
            config=planner.config, routines=planner.routines,
            clock=itertools.count().__next__,
        )
        plan = clocked.generate(GenerationRequest(make_profile(), deadline_seconds=1.5))
        assert plan.deadline_exceeded
        assert len(plan.days) == 2
        assert all(e.media_url for e in plan.entries())
        assert plan.to_dict()['metadata']['deadlineExceeded']


class TestRequestValidation:
    """Test request-level validation."""

    def test_rotation_index(self, planner, make_profile):
        with pytest.raises(InvalidProfile):
            planner.generate(GenerationRequest(make_profile(), rotation_index=0))

    def test_unknown_training_day(self, planner, make_profile):
        with pytest.raises(InvalidProfile) as exc:
            planner.generate(GenerationRequest(make_profile(), training_days=['funday']))
        assert "unknown training day 'funday'" in exc.value.errors

    def test_invalid_profile_dict(self, planner):
        with pytest.raises(InvalidProfile):
            planner.generate(GenerationRequest({'experience_level': 'beginner'}))
