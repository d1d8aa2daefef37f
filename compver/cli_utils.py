"""
Common CLI utilities and decorators for consistent command behavior.
"""

import logging
import sys
import click
from functools import wraps
from typing import Optional

from .api import ComponentRepo
from .config import configure_logging
from .progress import get_progress
from .exit_codes import (
    SUCCESS, INTERRUPTED,
    get_exit_code_for_exception, CommandError
)
from .format_utils import FORMATS, format_output, get_format_from_env

logger = logging.getLogger("compver")


def standard_command(default_format: str = 'table'):
    """
    Decorator that provides standard CLI behavior:
    - Status messages on stderr, data on stdout
    - Structured output (json/jsonl/yaml) of whatever the command returns
    - Consistent error handling: one-line message, optional hint, exit code

    Commands render their own tables and return None for the table format.
    """
    def decorator(func):

        @wraps(func)
        def wrapper(*args, **kwargs):
            verbose = kwargs.get('verbose', False)
            if 'format' in kwargs and kwargs['format'] is None:
                kwargs['format'] = get_format_from_env(default_format)
            output_format = kwargs.get('format') or default_format

            configure_logging(verbose=verbose)
            progress = get_progress(enabled=True if verbose else None)
            kwargs['progress'] = progress

            try:
                result = func(*args, **kwargs)

                if result is not None and output_format != 'table':
                    for line in format_output(result, output_format):
                        print(line, flush=True)

                sys.exit(SUCCESS)

            except KeyboardInterrupt:
                progress.error("Interrupted by user")
                sys.exit(INTERRUPTED)
            except click.ClickException:
                # Click exceptions already have their exit code
                raise
            except CommandError as e:
                logger.debug("Command failed", exc_info=True)
                progress.error(str(e))
                if e.suggestion:
                    progress.hint(e.suggestion)
                sys.exit(e.exit_code)
            except Exception as e:
                logger.debug("Command failed", exc_info=True)
                progress.error(f"{type(e).__name__}: {e}")
                if not verbose:
                    progress.hint("Re-run with --verbose for details")
                sys.exit(get_exit_code_for_exception(e))

        return wrapper
    return decorator


def open_repo(ctx: click.Context, verbose: bool = False) -> ComponentRepo:
    """Open the repository selected by the global -C/--repo-dir option."""
    repo_dir = (ctx.find_root().obj or {}).get('repo_dir') or '.'
    repo = ComponentRepo.open(repo_dir)
    configure_logging(repo.config, verbose)
    return repo


def parse_component_ref(text: str, tag: Optional[str] = None):
    """
    Split `COMPONENT@TAG` (or take COMPONENT and TAG separately).

    Raises:
        click.UsageError: if no tag is given
    """
    if tag is None and '@' in text:
        text, tag = text.rsplit('@', 1)
    if not tag:
        raise click.UsageError("Specify the tag as COMPONENT@TAG or COMPONENT TAG")
    return text, tag


# Standard options that many commands share
common_options = {
    'verbose': click.option('-v', '--verbose', is_flag=True,
                            help='Log details to stderr'),
    'dry_run': click.option('--dry-run', is_flag=True,
                            help='Report what would change without writing anything'),
    'format': click.option('-f', '--format',
                           type=click.Choice(FORMATS),
                           help='Output format (default: table, or from COMPVER_FORMAT env)'),
}


def add_common_options(*option_names):
    """
    Decorator to add common options to a command.

    Example:
        @add_common_options('verbose', 'format')
        def my_command(verbose, format):
            ...
    """
    def decorator(func):
        for name in reversed(option_names):
            if name in common_options:
                func = common_options[name](func)
        return func
    return decorator
