"""
Handles the 'init' command: create the component registry for a repository.
"""

import click

from ..cli_utils import standard_command, add_common_options, open_repo
from ..render import console


@click.command(name='init')
@click.option('--force', is_flag=True, help='Recreate an empty registry even if one exists')
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def init_handler(ctx, force, progress, format, verbose=False):
    """Create .compver/ with an empty component registry.

    \b
    Examples:
        compver init
        compver resync          # then discover components
    """
    repo = open_repo(ctx, verbose)
    existed = repo.is_initialized()
    result = repo.init(force=force)

    if format == 'table':
        if result["created"]:
            console.print(f"[green]Initialized[/green] component registry at {result['registry']}")
            if result["config"]:
                console.print(f"  wrote {result['config']}")
            console.print("Next: run [bold]compver resync[/bold] to discover components.")
        elif existed:
            console.print(f"Registry already exists at {result['registry']} (use --force to reset it)")
        return None
    return result
