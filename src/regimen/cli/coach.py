#!/usr/bin/env python3
"""
Regimen CLI - SKYCOACH

Internal Codename: SKYCOACH
Command-line interface for the plan engine.

Usage:
    regimen plan PROFILE [--week N] [--days monday,wednesday,friday] [--json] [--graph]
    regimen splits [--profile PROFILE]
    regimen rules
    regimen media [--premium]
    regimen check-config [--graph]
"""

import json
import logging
import sys
from typing import Optional

import click
import yaml

from regimen.catalog import ExerciseCatalog
from regimen.config import EngineConfig, config_dir
from regimen.engine import (
    GenerationRequest,
    MediaResolver,
    Routines,
    SafetyFilter,
    SplitRegistry,
    SplitSelector,
    WorkoutPlanner,
    format_plan_text,
)
from regimen.errors import ConfigError, InvalidProfile, RegimenError
from regimen.graph import CatalogGraph
from regimen.models import UserProfile


def _load_profile(path: str) -> UserProfile:
    """Read a YAML or JSON profile file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise InvalidProfile([f"Could not read {path}: {e}"]) from e
    if not isinstance(data, dict):
        raise InvalidProfile([f"{path} does not contain a profile mapping"])
    return UserProfile.from_dict(data)


def _load_catalog(use_graph: bool) -> Optional[ExerciseCatalog]:
    if not use_graph:
        return None
    with CatalogGraph() as graph:
        if not graph.verify_connectivity():
            raise ConfigError("Could not connect to CYBERDYNE-CORE")
        return ExerciseCatalog.from_graph(graph)


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Debug logging')
def cli(verbose: bool):
    """
    Regimen - Weekly Workout Plans

    JUDGMENT-DAY: Your week, decided.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


@cli.command()
@click.argument('profile_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--week', 'rotation_index', default=1, type=int, help='Week number (rotation index)')
@click.option('--days', type=str, help='Comma-separated training days (e.g. monday,wednesday,friday)')
@click.option('--json', 'as_json', is_flag=True, help='Print the plan as JSON')
@click.option('--graph', 'use_graph', is_flag=True, help='Load the exercise catalog from Neo4j')
def plan(profile_path: str, rotation_index: int, days: Optional[str], as_json: bool, use_graph: bool):
    """Generate a weekly plan for a profile file."""
    try:
        profile = _load_profile(profile_path)
        planner = WorkoutPlanner.from_config(catalog=_load_catalog(use_graph))
        training_days = [d.strip() for d in days.split(',') if d.strip()] if days else None

        weekly_plan = planner.generate(GenerationRequest(
            profile=profile,
            rotation_index=rotation_index,
            training_days=training_days,
        ))
    except InvalidProfile as e:
        click.echo("❌ Invalid profile:")
        for error in e.errors:
            click.echo(f"  • {error}")
        sys.exit(1)
    except RegimenError as e:
        click.echo(f"❌ Error generating plan: {e}")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(weekly_plan.to_dict(), indent=2, ensure_ascii=False))
    else:
        click.echo(format_plan_text(weekly_plan))


@cli.command()
@click.option('--profile', 'profile_path', type=click.Path(exists=True, dir_okay=False),
              help='Score splits against this profile')
def splits(profile_path: Optional[str]):
    """List workout splits (optionally scored for a profile)."""
    try:
        config = EngineConfig.from_yaml()
        registry = SplitRegistry.from_yaml(default_split=config.default_split)
        profile = _load_profile(profile_path) if profile_path else None
    except RegimenError as e:
        click.echo(f"❌ Error: {e}")
        sys.exit(1)

    click.echo("=" * 60)
    click.echo("WORKOUT SPLITS")
    click.echo("=" * 60)

    if profile is None:
        for s in registry:
            low, high = s.frequency_range
            default = " (default)" if s.id == registry.default_split_id else ""
            click.echo(f"\n{s.name}{default}")
            click.echo(f"   ID: {s.id}")
            click.echo(f"   Frequency: {low}-{high} days/week")
            click.echo(f"   Days: {', '.join(d.label for d in s.days)}")
            click.echo(f"   Levels: {', '.join(sorted(lvl.value for lvl in s.experience_levels))}")
            click.echo(f"   Goals: {', '.join(sorted(s.goals))}")
        click.echo("\n" + "=" * 60)
        return

    selector = SplitSelector()
    selection = selector.select(profile, registry)
    if selection.fallback_used:
        click.secho(f"\n⚠  No split supports {profile.weekly_frequency} days/week", fg='yellow')
        click.echo(f"Default: {selection.split.name}")
    else:
        for i, scored in enumerate(selector.rank(profile, registry), 1):
            click.echo(f"\n{i}. {scored.split.name} [{scored.score}]")
            for line in scored.breakdown:
                click.echo(f"   {line}")

    click.echo("\n" + "=" * 60)


@cli.command()
def rules():
    """List safety rules by tier."""
    try:
        safety = SafetyFilter.from_yaml()
    except RegimenError as e:
        click.echo(f"❌ Error: {e}")
        sys.exit(1)

    click.echo("=" * 60)
    click.echo("SAFETY RULES")
    click.echo("=" * 60)

    tier = None
    for r in safety.describe():
        if r['tier'] != tier:
            tier = r['tier']
            click.echo(f"\n{'─' * 60}")
            click.echo(tier.upper())
            click.echo('─' * 60)

        actions = [a for a, on in (('excludes', r['excludes']), ('modifies', r['modifies'])) if on]
        click.echo(f"  {r['id']:24} {', '.join(actions)}")
        if r['requires_clearance']:
            click.secho("    requires medical clearance", fg='red')
        if r['warning']:
            click.echo(f"    {r['warning']}")

    click.echo("\n" + "=" * 60)


@cli.command()
@click.option('--premium', is_flag=True, help='Show availability with premium access')
def media(premium: bool):
    """List media providers in priority order."""
    try:
        resolver = MediaResolver.from_yaml(config=EngineConfig.from_yaml())
    except RegimenError as e:
        click.echo(f"❌ Error: {e}")
        sys.exit(1)

    click.echo("=" * 60)
    click.echo("MEDIA PROVIDERS")
    click.echo("=" * 60)
    for p in resolver.describe(premium):
        tags = ['PREMIUM' if p['premium'] else 'FREE']
        if p['default']:
            tags.append('DEFAULT')
        click.echo(f"\n{p['priority']:>3}. {p['name']} ({', '.join(tags)})")
        click.echo("     Available: ", nl=False)
        click.secho('yes' if p['available'] else 'no', fg='green' if p['available'] else 'red')
        if p['description']:
            click.echo(f"     {p['description']}")
    click.echo(f"\nPlaceholder: {resolver.placeholder_url}")
    click.echo("\n" + "=" * 60)


@cli.command(name='check-config')
@click.option('--graph', 'use_graph', is_flag=True, help='Also check the Neo4j catalog')
def check_config(use_graph: bool):
    """Load and validate every configuration file."""
    directory = config_dir()
    click.echo(f"Config directory: {directory}")
    ok = True

    checks = [
        ('engine.yaml', lambda: EngineConfig.from_yaml(directory / "engine.yaml")),
        ('safety_rules.yaml', lambda: SafetyFilter.from_yaml(directory / "safety_rules.yaml")),
        ('splits.yaml', lambda: SplitRegistry.from_yaml(directory / "splits.yaml")),
        ('media_providers.yaml', lambda: MediaResolver.from_yaml(directory / "media_providers.yaml")),
        ('routines.yaml', lambda: Routines.from_yaml(directory / "routines.yaml")),
        ('exercise catalog', ExerciseCatalog.from_yaml),
    ]
    for name, load in checks:
        try:
            load()
            click.secho(f"  ✓ {name}", fg='green')
        except RegimenError as e:
            ok = False
            click.secho(f"  ✗ {name}: {e}", fg='red')

    if use_graph:
        try:
            with CatalogGraph() as graph:
                if graph.verify_connectivity():
                    stats = graph.get_stats()
                    click.secho(f"  ✓ CYBERDYNE-CORE ({stats['exercise_count']} exercises)", fg='green')
                else:
                    ok = False
                    click.secho("  ✗ CYBERDYNE-CORE: connection failed", fg='red')
        except ConfigError as e:
            ok = False
            click.secho(f"  ✗ CYBERDYNE-CORE: {e}", fg='red')

    if not ok:
        sys.exit(1)


if __name__ == '__main__':
    cli()
