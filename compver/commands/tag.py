"""
Tag management commands for compver.

Version tags are immutable releases; environment tags are movable
deployment pointers.

    compver tag create COMPONENT VERSION [REF]
    compver tag bump COMPONENT LEVEL [--ref REF]
    compver tag set COMPONENT ENV [REF]
    compver tag list [COMPONENT]
    compver tag show COMPONENT@TAG
    compver tag delete COMPONENT@TAG [--remote]
    compver tag push [COMPONENT] [--force]
"""

import click

from ..cli_utils import standard_command, add_common_options, open_repo, parse_component_ref
from ..domain.version import BUMP_LEVELS
from ..exit_codes import PartialSuccessError
from ..format_utils import format_output
from ..render import console, render_tags_table, render_tag_detail


@click.group(name='tag')
def tag_cmd():
    """Create, inspect and share component tags."""
    pass


@tag_cmd.command(name='create')
@click.argument('component')
@click.argument('version')
@click.argument('ref', required=False)
@click.option('-m', '--message', help='Tag message')
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def create_handler(ctx, component, version, ref, message, progress, format, verbose=False):
    """Create an immutable version tag (default: at HEAD).

    \b
    Examples:
        compver tag create greeting-prompt v1.0.0
        compver tag create greeting-prompt v1.1.0 a1b2c3d -m "Shorter greeting"
    """
    repo = open_repo(ctx, verbose)
    ns = repo.namespace_for(repo.get_component(component))
    info = repo.tag_service.create_version_tag(ns, version, ref, message)

    if format == 'table':
        console.print(f"[green]Created[/green] {info.tag} at {info.commit[:8]}")
        return None
    return info.to_dict()


@tag_cmd.command(name='bump')
@click.argument('component')
@click.argument('level', type=click.Choice(BUMP_LEVELS))
@click.option('--ref', help='Commit to tag (default: HEAD)')
@click.option('-m', '--message', help='Tag message')
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def bump_handler(ctx, component, level, ref, message, progress, format, verbose=False):
    """Create the next version tag after the latest one."""
    repo = open_repo(ctx, verbose)
    ns = repo.namespace_for(repo.get_component(component))
    info = repo.tag_service.bump_version_tag(ns, level, ref, message)

    if format == 'table':
        console.print(f"[green]Created[/green] {info.tag} at {info.commit[:8]}")
        return None
    return info.to_dict()


@tag_cmd.command(name='set')
@click.argument('component')
@click.argument('environment')
@click.argument('ref', default='HEAD')
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def set_handler(ctx, component, environment, ref, progress, format, verbose=False):
    """Point an environment tag at REF (default: HEAD)."""
    repo = open_repo(ctx, verbose)
    ns = repo.namespace_for(repo.get_component(component))
    info = repo.tag_service.set_environment_tag(ns, environment, ref)

    if format == 'table':
        console.print(f"[green]Moved[/green] {info.tag} to {info.commit[:8]}")
        return None
    return info.to_dict()


@tag_cmd.command(name='list')
@click.argument('component', required=False)
@click.option('--versions', 'kind', flag_value='version', help='Only version tags')
@click.option('--deployments', 'kind', flag_value='deployment', help='Only deployment tags')
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def list_handler(ctx, component, kind, progress, format, verbose=False):
    """List tags of one component, or of all components."""
    repo = open_repo(ctx, verbose)
    registry = repo.require_registry()
    if component:
        comp = repo.get_component(component, registry)
        targets = [(comp, repo.namespace_for(comp))]
    else:
        targets = repo.namespaces(registry)

    rows = []
    for comp, ns in targets:
        tags = []
        if kind in (None, 'version'):
            tags += repo.tag_service.get_version_tags(ns)
        if kind in (None, 'deployment'):
            tags += repo.tag_service.get_deployment_tags(ns)
        for tag in tags:
            info = repo.tag_service.get_tag_info(ns, tag.rsplit('/', 1)[-1])
            rows.append(dict(info.to_dict(), component=comp.name))

    if format == 'table':
        render_tags_table(rows)
        return None
    return rows


@tag_cmd.command(name='show')
@click.argument('component')
@click.argument('tag', required=False)
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def show_handler(ctx, component, tag, progress, format, verbose=False):
    """Show one tag: COMPONENT@TAG or COMPONENT TAG."""
    component, tag = parse_component_ref(component, tag)
    repo = open_repo(ctx, verbose)
    ns = repo.namespace_for(repo.get_component(component))
    info = repo.tag_service.get_tag_info(ns, tag)

    if format == 'table':
        render_tag_detail(info.to_dict())
        return None
    return info.to_dict()


@tag_cmd.command(name='delete')
@click.argument('component')
@click.argument('tag', required=False)
@click.option('--remote', 'also_remote', is_flag=True, help='Also delete the tag on the remote')
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def delete_handler(ctx, component, tag, also_remote, progress, format, verbose=False):
    """Delete a tag locally (and optionally on the remote).

    A failed remote deletion is reported; the local deletion stands.
    """
    component, tag = parse_component_ref(component, tag)
    repo = open_repo(ctx, verbose)
    ns = repo.namespace_for(repo.get_component(component))
    result = repo.tag_service.delete_tag(ns, tag, also_remote=also_remote)

    if format == 'table':
        console.print(f"[green]Deleted[/green] {result.tag}")
        if result.remote_attempted:
            if result.remote_deleted:
                console.print(f"  also deleted on {repo.tag_service.remote}")
            else:
                console.print(f"  [yellow]remote deletion failed:[/yellow] {result.remote_error}")
        return None
    return result.to_dict()


@tag_cmd.command(name='push')
@click.argument('component', required=False)
@click.argument('tags', nargs=-1)
@click.option('--force', is_flag=True, help='Request a forced push (deployment tags are always forced, version tags never)')
@click.option('--remote', help='Remote to push to (default: from config)')
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def push_handler(ctx, component, tags, force, remote, progress, format, verbose=False):
    """Push component tags to the remote.

    \b
    Examples:
        compver tag push                          # every component's tags
        compver tag push greeting-prompt v1.0.0 prod
    """
    repo = open_repo(ctx, verbose)
    if remote:
        repo.tag_service.remote = remote
    registry = repo.require_registry()
    if component:
        targets = [repo.namespace_for(repo.get_component(component, registry))]
    else:
        targets = [ns for _, ns in repo.namespaces(registry)]

    results = []
    for ns in targets:
        results += repo.tag_service.push_tags(ns, list(tags) or None, force=force)

    failed = [r for r in results if not r.ok]
    if format == 'table':
        for r in results:
            mark = "[green]✓[/green]" if r.ok else "[red]✗[/red]"
            console.print(f"{mark} {r.tag}" + (" (forced)" if r.forced else "")
                          + (f": {r.error}" if r.error else ""))
        if not results:
            console.print("[yellow]No tags to push.[/yellow]")
    else:
        for line in format_output([r.to_dict() for r in results], format):
            click.echo(line)
    if failed:
        raise PartialSuccessError(f"{len(failed)} of {len(results)} tag push(es) failed",
                                  succeeded=len(results) - len(failed), failed=len(failed))
    return None
