"""
Resync command for compver.

Reconciles the registry with component headers and git history.
"""

import click

from ..cli_utils import standard_command, add_common_options, open_repo
from ..exit_codes import ReconciliationPartialFailure
from ..format_utils import format_output
from ..render import render_resync_report
from ..services import ResyncOptions


@click.command(name='resync')
@click.option('--force', is_flag=True, help='Save the registry even when nothing changed')
@click.option('--rebuild-history', is_flag=True,
              help='Re-derive version history from the commit log and keep what it adds')
@click.option('--fix-headers', is_flag=True,
              help='Also refresh stale component names and ids in headers')
@click.pass_context
@add_common_options('verbose', 'dry_run', 'format')
@standard_command()
def resync_handler(ctx, force, rebuild_history, fix_headers, progress, format,
                   verbose=False, dry_run=False):
    """
    Bring the registry, file headers and version history back in line.

    New component files are registered, moved ones are followed, deleted
    ones are marked removed, and history entries that point at missing
    commits are repaired or dropped. Running it twice in a row changes
    nothing the second time.

    \b
    Examples:
        compver resync --dry-run -v     # show every fix, write nothing
        compver resync
        compver resync --rebuild-history
    """
    repo = open_repo(ctx, verbose)
    if not repo.is_initialized():
        progress("No registry yet; building one from the working tree")

    report = repo.resync_service.run(ResyncOptions(
        force=force,
        dry_run=dry_run,
        rebuild_history=rebuild_history,
        fix_headers=fix_headers,
    ))
    data = report.to_dict()

    if format == 'table':
        render_resync_report(data, verbose=verbose)
    else:
        for line in format_output(data, format):
            click.echo(line)

    if report.errors:
        raise ReconciliationPartialFailure(
            failed=len(report.errors),
            succeeded=max(report.scanned - len(report.errors), 0),
        )
    return None
