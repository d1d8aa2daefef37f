#!/usr/bin/env python3

import click

from compver.commands.init import init_handler
from compver.commands.components import components_cmd
from compver.commands.tag import tag_cmd
from compver.commands.deploy import deploy_cmd
from compver.commands.resync import resync_handler
from compver.commands.discover import detect_handler, discover_handler


@click.group()
@click.version_option(package_name="compver")
@click.option('-C', '--repo-dir', type=click.Path(file_okay=False),
              help='Run as if started in this directory (default: current directory)')
@click.pass_context
def cli(ctx, repo_dir):
    """compver - Versioning for the components that live inside one git repository.

    Prompts, agent definitions, queries and configs are tracked in a
    registry, released with immutable version tags and deployed by moving
    environment tags.
    """
    ctx.ensure_object(dict)
    ctx.obj['repo_dir'] = repo_dir


# Core commands (flat, top-level)
cli.add_command(init_handler, name='init')
cli.add_command(resync_handler, name='resync')
cli.add_command(detect_handler, name='detect')
cli.add_command(discover_handler, name='discover')
cli.add_command(discover_handler, name='scan')

# Command groups
cli.add_command(components_cmd)
cli.add_command(tag_cmd)
cli.add_command(deploy_cmd)


def main():
    cli()

if __name__ == "__main__":
    main()
