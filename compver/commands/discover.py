"""
Discovery preview commands for compver.

Neither command writes anything; they show what `compver resync` would
pick up and why.

    compver detect PATH... [--min-confidence LEVEL]
    compver discover [--unregistered]     (alias: scan)
"""

import click

from ..cli_utils import standard_command, add_common_options, open_repo
from ..detection import CONFIDENCE_LEVELS
from ..render import render_detections, render_discovered


@click.command(name='detect')
@click.argument('paths', nargs=-1, required=True)
@click.option('--min-confidence', type=click.Choice(list(CONFIDENCE_LEVELS)),
              help='Lowest confidence to accept (default: configured)')
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def detect_handler(ctx, paths, min_confidence, progress, format, verbose=False):
    """Show how files would be classified.

    \b
    Examples:
        compver detect prompts/greeting.md
        compver detect notes/*.txt --min-confidence low
    """
    repo = open_repo(ctx, verbose)
    results = [repo.detect(path, min_confidence) for path in paths]

    if format == 'table':
        render_detections(results)
        return None
    return results


@click.command(name='discover')
@click.option('--unregistered', is_flag=True, help='Only files not yet in the registry')
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def discover_handler(ctx, unregistered, progress, format, verbose=False):
    """List the files resync treats as components."""
    repo = open_repo(ctx, verbose)
    rows = [r for r in repo.discover() if not (unregistered and r["registered"])]

    if format == 'table':
        render_discovered(rows)
        return None
    return rows
