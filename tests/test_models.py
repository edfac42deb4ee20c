"""Tests for profile validation and the plan output schema."""
import pytest

from regimen.errors import InvalidProfile
from regimen.models import (
    BODY_WEIGHT,
    Classification,
    DayWorkout,
    ExerciseEntry,
    ExperienceLevel,
    RepRange,
    UserProfile,
    WeeklyPlan,
    profile_fingerprint,
)


class TestUserProfile:
    """Test UserProfile.from_dict validation."""

    def test_valid_profile(self, profile_data):
        profile = UserProfile.from_dict(profile_data(
            available_equipment=['Dumbbell', ' Band '],
            injuries=['Lower Back'],
        ))
        assert profile.experience_level == ExperienceLevel.BEGINNER
        assert profile.goal == 'general_fitness'
        assert profile.available_equipment == frozenset({'dumbbell', 'band'})
        assert profile.injuries == frozenset({'lower back'})
        assert BODY_WEIGHT in profile.equipment_with_bodyweight
        assert profile.stress_level == 'moderate'

    def test_missing_required_fields(self):
        with pytest.raises(InvalidProfile) as exc:
            UserProfile.from_dict({'primary_goals': ['strength']})
        errors = exc.value.errors
        assert "experience_level is required" in errors
        assert "age is required" in errors
        assert "weekly_frequency is required" in errors

    def test_all_errors_reported_together(self, profile_data):
        with pytest.raises(InvalidProfile) as exc:
            UserProfile.from_dict(profile_data(
                experience_level='expert',
                primary_goals=['bulking'],
                stress_level='extreme',
            ))
        assert len(exc.value.errors) == 3

    def test_out_of_range_values(self, profile_data):
        with pytest.raises(InvalidProfile):
            UserProfile.from_dict(profile_data(weekly_frequency=0))
        with pytest.raises(InvalidProfile):
            UserProfile.from_dict(profile_data(session_duration=5))
        with pytest.raises(InvalidProfile):
            UserProfile.from_dict(profile_data(age='thirty'))
        with pytest.raises(InvalidProfile):
            UserProfile.from_dict(profile_data(weight_kg=-3))

    def test_goal_string_accepted(self, profile_data):
        profile = UserProfile.from_dict(profile_data(primary_goals='strength'))
        assert profile.primary_goals == ('strength',)

    def test_medical_conditions(self, profile_data):
        profile = UserProfile.from_dict(profile_data(
            medical_conditions=[{'name': 'Pregnancy', 'trimester': 2}, 'Asthma'],
        ))
        pregnancy = profile.condition('pregnan')
        assert pregnancy.stage == 2
        assert profile.condition('asthma').stage is None
        assert profile.condition('diabetes') is None

    def test_invalid_trimester(self, profile_data):
        with pytest.raises(InvalidProfile) as exc:
            UserProfile.from_dict(profile_data(
                medical_conditions=[{'name': 'pregnancy', 'stage': 4}],
            ))
        assert "pregnancy trimester must be 1-3, got 4" in exc.value.errors


class TestFingerprint:
    """Test the cache key for (profile, rotation_index)."""

    def test_stable(self, make_profile):
        assert profile_fingerprint(make_profile(), 1) == profile_fingerprint(make_profile(), 1)

    def test_collection_order_irrelevant(self, make_profile):
        a = make_profile(available_equipment=['dumbbell', 'band'])
        b = make_profile(available_equipment=['band', 'dumbbell'])
        assert profile_fingerprint(a, 1) == profile_fingerprint(b, 1)

    def test_rotation_changes_key(self, make_profile):
        profile = make_profile()
        assert profile_fingerprint(profile, 1) != profile_fingerprint(profile, 2)


class TestOutputSchema:
    """Test RepRange formatting and WeeklyPlan.to_dict."""

    def test_rep_range_str(self):
        assert str(RepRange(8, 10)) == "8-10"
        assert str(RepRange(12, 12)) == "12"
        assert str(RepRange(30, 45, 'seconds')) == "30-45 seconds"

    def test_plan_to_dict(self):
        entry = ExerciseEntry(
            exercise_id='push-up',
            name='Push-Up',
            classification=Classification.COMPOUND,
            sets=3,
            reps=RepRange(10, 12),
            rest_seconds=90,
            tempo='2-0-2',
            intensity_cap=7,
            media_url='https://example.com/push-up.gif',
        )
        plan = WeeklyPlan(
            plan_title='Full Body 3x/Week - Week 1',
            split_id='full_body_3x',
            split_name='Full Body 3x/Week',
            days=[DayWorkout(day='monday', label='Full Body A', workout_type='strength', main=[entry])],
            rest_days=['tuesday'],
            rotation_index=1,
            deadline_exceeded=True,
        )
        data = plan.to_dict()
        assert data['split'] == {'id': 'full_body_3x', 'name': 'Full Body 3x/Week', 'score': 0.0}
        assert data['days'][0]['main'][0]['reps'] == "10-12"
        assert data['days'][0]['main'][0]['classification'] == 'compound'
        assert data['metadata'] == {
            'fallbackUsed': False,
            'gentleFallbackUsed': False,
            'deadlineExceeded': True,
        }
