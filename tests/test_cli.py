"""Tests for the command-line interface."""
import json

import pytest
import yaml
from click.testing import CliRunner

from regimen.cli.coach import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def profile_file(tmp_path, profile_data):
    def _write(**overrides):
        path = tmp_path / "profile.yaml"
        path.write_text(yaml.safe_dump(profile_data(**overrides)))
        return str(path)
    return _write


class TestPlanCommand:
    def test_text_plan(self, runner, profile_file):
        result = runner.invoke(cli, ['plan', profile_file()])
        assert result.exit_code == 0
        assert 'Full Body 3x/Week - Week 1' in result.output
        assert 'MAIN WORKOUT' in result.output

    def test_json_plan(self, runner, profile_file):
        result = runner.invoke(cli, ['plan', profile_file(), '--json', '--week', '2'])
        assert result.exit_code == 0
        data = json.loads(result.output[result.output.index('{'):])
        assert data['rotation_index'] == 2
        assert data['split']['id'] == 'full_body_3x'

    def test_training_days(self, runner, profile_file):
        result = runner.invoke(cli, ['plan', profile_file(), '--json', '--days', 'tuesday, thursday,saturday'])
        data = json.loads(result.output[result.output.index('{'):])
        assert [d['day'] for d in data['days']] == ['tuesday', 'thursday', 'saturday']

    def test_invalid_profile(self, runner, profile_file):
        result = runner.invoke(cli, ['plan', profile_file(experience_level='expert')])
        assert result.exit_code == 1
        assert 'Invalid profile' in result.output

    def test_unparseable_profile(self, runner, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("age: [30\n")
        result = runner.invoke(cli, ['plan', str(path)])
        assert result.exit_code == 1
        assert 'Invalid profile' in result.output
        assert 'Could not read' in result.output

    def test_invalid_week(self, runner, profile_file):
        result = runner.invoke(cli, ['plan', profile_file(), '--week', '0'])
        assert result.exit_code == 1
        assert 'rotation_index must be a positive integer' in result.output


class TestInfoCommands:
    def test_splits(self, runner):
        result = runner.invoke(cli, ['splits'])
        assert result.exit_code == 0
        assert 'Full Body 3x/Week (default)' in result.output

    def test_splits_scored(self, runner, profile_file):
        result = runner.invoke(cli, ['splits', '--profile', profile_file()])
        assert result.exit_code == 0
        assert '1. Full Body 3x/Week [105]' in result.output

    def test_rules(self, runner):
        result = runner.invoke(cli, ['rules'])
        assert result.exit_code == 0
        assert 'PREGNANCY' in result.output
        assert 'requires medical clearance' in result.output

    def test_media(self, runner):
        result = runner.invoke(cli, ['media', '--premium'])
        assert result.exit_code == 0
        assert 'ExerciseDB (FREE, DEFAULT)' in result.output

    def test_check_config(self, runner):
        result = runner.invoke(cli, ['check-config'])
        assert result.exit_code == 0
        assert '✓ safety_rules.yaml' in result.output
