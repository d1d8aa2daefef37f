"""
Deployment commands for compver.

    compver deploy set COMPONENT VERSION --to ENV
    compver deploy promote COMPONENT --from ENV --to ENV
    compver deploy rollback COMPONENT --env ENV [--to VERSION]
    compver deploy status [COMPONENT]
    compver deploy list [ENV]
"""

import click

from ..cli_utils import standard_command, add_common_options, open_repo
from ..render import console, render_deployments_table


@click.group(name='deploy')
def deploy_cmd():
    """Move environment tags to deploy, promote and roll back."""
    pass


def _report_move(info, verb: str) -> None:
    console.print(f"[green]{verb}[/green] {info.tag} -> {info.commit[:8]}")


@deploy_cmd.command(name='set')
@click.argument('component')
@click.argument('version')
@click.option('--to', 'environment', required=True, help='Target environment')
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def set_handler(ctx, component, version, environment, progress, format, verbose=False):
    """Deploy VERSION (a version, environment or commit) to an environment.

    \b
    Examples:
        compver deploy set greeting-prompt v1.2.0 --to staging
        compver deploy set greeting-prompt 1.2.0 --to staging
    """
    repo = open_repo(ctx, verbose)
    ns = repo.namespace_for(repo.get_component(component))
    info = repo.deploy_service.deploy(ns, version, environment)

    if format == 'table':
        _report_move(info, "Deployed")
        return None
    return info.to_dict()


@deploy_cmd.command(name='promote')
@click.argument('component')
@click.option('--from', 'from_env', required=True, help='Source environment')
@click.option('--to', 'to_env', required=True, help='Target environment')
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def promote_handler(ctx, component, from_env, to_env, progress, format, verbose=False):
    """Point one environment at the commit another environment marks."""
    repo = open_repo(ctx, verbose)
    ns = repo.namespace_for(repo.get_component(component))
    info = repo.deploy_service.promote(ns, from_env, to_env)

    if format == 'table':
        _report_move(info, "Promoted")
        return None
    return info.to_dict()


@deploy_cmd.command(name='rollback')
@click.argument('component')
@click.option('--env', 'environment', required=True, help='Environment to roll back')
@click.option('--to', 'target', help='Version to roll back to (default: the previous one)')
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def rollback_handler(ctx, component, environment, target, progress, format, verbose=False):
    """Move an environment back to an earlier version."""
    repo = open_repo(ctx, verbose)
    ns = repo.namespace_for(repo.get_component(component))
    info = repo.deploy_service.rollback(ns, environment, target)

    if format == 'table':
        _report_move(info, "Rolled back")
        return None
    return info.to_dict()


@deploy_cmd.command(name='status')
@click.argument('component', required=False)
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def status_handler(ctx, component, progress, format, verbose=False):
    """Where one component (or every component) is deployed."""
    repo = open_repo(ctx, verbose)
    registry = repo.require_registry()
    if component:
        comp = repo.get_component(component, registry)
        rows = [s.to_dict() for s in repo.deploy_service.status(repo.namespace_for(comp))]
    else:
        rows = [s.to_dict() for s in repo.deploy_service.list_deployments(repo.namespaces(registry))]

    if format == 'table':
        render_deployments_table(rows)
        return None
    return rows


@deploy_cmd.command(name='list')
@click.argument('environment', required=False)
@click.pass_context
@add_common_options('verbose', 'format')
@standard_command()
def list_handler(ctx, environment, progress, format, verbose=False):
    """Deployments across components, optionally for one environment."""
    repo = open_repo(ctx, verbose)
    deployments = repo.deploy_service.list_deployments(repo.namespaces(), environment)
    rows = [d.to_dict() for d in deployments]

    if format == 'table':
        render_deployments_table(rows)
        return None
    return rows
