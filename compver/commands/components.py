"""
Component registry commands for compver.

    compver components list [--all]
    compver components show NAME
    compver components register PATH [--name NAME] [--type TYPE]
    compver components checkout COMPONENT[@REF] [-o FILE]
"""

from pathlib import Path

import click

from ..cli_utils import standard_command, add_common_options, open_repo
from ..domain.tag import ComponentType
from ..render import console, render_components_table, render_component_detail


@click.group(name='components')
def components_cmd():
    """Inspect and register tracked components."""
    pass


@components_cmd.command(name='list')
@click.option('--all', 'include_removed', is_flag=True, help='Include removed components')
@click.option('-t', '--type', 'type_filter', type=click.Choice(ComponentType.values()),
              help='Only components of this type')
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def list_handler(ctx, include_removed, type_filter, progress, format, verbose=False):
    """List registered components."""
    repo = open_repo(ctx, verbose)
    registry = repo.require_registry()
    components = sorted(registry.components.values(), key=lambda c: c.name)
    rows = [c.summary() for c in components
            if (include_removed or c.is_active) and (not type_filter or c.type == type_filter)]

    if format == 'table':
        render_components_table(rows)
        return None
    return rows


@components_cmd.command(name='show')
@click.argument('name')
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def show_handler(ctx, name, progress, format, verbose=False):
    """Show one component and its version history."""
    repo = open_repo(ctx, verbose)
    component = repo.get_component(name)
    data = component.to_dict()
    data["namespace"] = str(repo.namespace_for(component))

    if format == 'table':
        render_component_detail(data)
        return None
    return data


@components_cmd.command(name='register')
@click.argument('path', type=click.Path(dir_okay=False))
@click.option('--name', help='Component name (default: derived from the file name)')
@click.option('--type', 'component_type', type=click.Choice(ComponentType.values()),
              help='Component type (default: detected)')
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def register_handler(ctx, path, name, component_type, progress, format, verbose=False):
    """Register a file as a component and stamp its header.

    \b
    Examples:
        compver components register prompts/greeting.md
        compver components register notes/system.txt --type prompt --name system-prompt
    """
    repo = open_repo(ctx, verbose)
    component = repo.register(path, name=name, component_type=component_type)

    if format == 'table':
        console.print(f"[green]Registered[/green] {component.name} ({component.type}) "
                      f"at {component.path}, version {component.version}")
        return None
    return component.summary()


@components_cmd.command(name='checkout')
@click.argument('component')
@click.option('-o', '--output', type=click.Path(dir_okay=False),
              help='Write the content to this file instead of stdout')
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def checkout_handler(ctx, component, output, progress, format, verbose=False):
    """Print a component as of a version, environment or commit.

    COMPONENT@REF reads the file from the commit REF resolves to; a bare
    COMPONENT reads the working tree. The working tree is never modified.

    \b
    Examples:
        compver components checkout greeting-prompt@v1.0.0
        compver components checkout greeting-prompt@prod -o /tmp/live.md
    """
    ref = None
    if '@' in component:
        component, ref = component.rsplit('@', 1)
    repo = open_repo(ctx, verbose)
    result = repo.checkout(component, ref or None)

    if output:
        Path(output).write_text(result["content"], encoding="utf-8")
        result = dict(result, content=None, output=output)
        if format == 'table':
            console.print(f"[green]Wrote[/green] {result['path']} ({ref or 'working tree'}) to {output}")
            return None
        return result

    if format == 'table':
        click.echo(result["content"], nl=False)
        return None
    return result
