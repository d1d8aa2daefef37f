"""
Standard exit codes and error types for compver commands.

Following Unix/POSIX conventions for command-line tools. Every domain error
is a CommandError carrying the exit code the CLI should terminate with and
an optional one-line suggestion shown to the user.
"""
from typing import List, Optional

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors
USAGE_ERROR = 2          # Misuse of shell command (wrong arguments, etc.)

# Application-specific exit codes (64-113 are typically available)
CONFIG_ERROR = 66        # Configuration or registry setup error
PERMISSION_ERROR = 67    # Insufficient permissions
DATA_ERROR = 70          # Data format or validation error
PARTIAL_SUCCESS = 71     # Some operations succeeded, some failed
NOT_FOUND = 72           # Tag, reference or component not found
TAG_CONFLICT = 73        # Immutable tag already exists
GIT_ERROR = 74           # Underlying git command failed
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)

# Exit code mappings for common exceptions
EXCEPTION_EXIT_CODES = {
    'FileNotFoundError': GENERAL_ERROR,
    'PermissionError': PERMISSION_ERROR,
    'ValueError': DATA_ERROR,
    'KeyError': DATA_ERROR,
    'JSONDecodeError': DATA_ERROR,
    'KeyboardInterrupt': INTERRUPTED,
}


def get_exit_code_for_exception(exc: Exception) -> int:
    """
    Get the appropriate exit code for an exception.

    Args:
        exc: The exception that occurred

    Returns:
        Appropriate exit code
    """
    if isinstance(exc, CommandError):
        return exc.exit_code
    exc_name = exc.__class__.__name__
    return EXCEPTION_EXIT_CODES.get(exc_name, GENERAL_ERROR)


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR,
                 suggestion: Optional[str] = None):
        super().__init__(message)
        self.exit_code = exit_code
        self.suggestion = suggestion


class ConfigError(CommandError):
    """Raised when there's a configuration error."""
    def __init__(self, message: str, suggestion: Optional[str] = None):
        super().__init__(message, CONFIG_ERROR, suggestion)


class PartialSuccessError(CommandError):
    """Raised when some operations succeed and some fail."""
    def __init__(self, message: str, succeeded: int = 0, failed: int = 0,
                 suggestion: Optional[str] = None):
        super().__init__(message, PARTIAL_SUCCESS, suggestion)
        self.succeeded = succeeded
        self.failed = failed


class InvalidVersion(CommandError):
    """Raised for a malformed semantic version string."""
    def __init__(self, version: str):
        hint = "Use vMAJOR.MINOR.PATCH, e.g. v1.2.3"
        if version[:1].isdigit() and version.count('.') == 2:
            hint = f"Use v{version}"
        super().__init__(f"Invalid version '{version}'", DATA_ERROR, hint)
        self.version = version


class InvalidEnvironment(CommandError):
    """Raised for an environment name that cannot be used as a tag slot."""
    def __init__(self, environment: str, reason: str = "not a valid environment name"):
        super().__init__(
            f"Invalid environment '{environment}': {reason}",
            DATA_ERROR,
            "Environment names start with a letter or digit and use only letters, digits, '.', '_' or '-'",
        )
        self.environment = environment


class TagAlreadyExists(CommandError):
    """Raised when an immutable version tag would be re-created."""
    def __init__(self, tag: str, suggestion: Optional[str] = None):
        super().__init__(
            f"Tag '{tag}' already exists",
            TAG_CONFLICT,
            suggestion or "Version tags are immutable; create a new version instead",
        )
        self.tag = tag


class RemoteTagConflict(TagAlreadyExists):
    """Raised when the remote rejects a version tag push."""
    def __init__(self, tag: str, remote: str, detail: str = ""):
        super().__init__(
            tag,
            f"The tag on '{remote}' points elsewhere; inspect it before doing anything else",
        )
        self.args = (f"Remote '{remote}' rejected version tag '{tag}'"
                     + (f": {detail}" if detail else ""),)
        self.remote = remote


class TagNotFound(CommandError):
    """Raised when a tag does not exist."""
    def __init__(self, tag: str, suggestion: Optional[str] = None):
        super().__init__(
            f"Tag '{tag}' not found",
            NOT_FOUND,
            suggestion or "List available tags with 'compver tag list'",
        )
        self.tag = tag


class NoPreviousVersion(TagNotFound):
    """Raised when a rollback has no earlier version to go back to."""
    def __init__(self, component: str, environment: str):
        super().__init__(f"{component}/{environment}",
                         "Pass --to VERSION to choose the rollback target explicitly")
        self.args = (f"No previous version of '{component}' to roll '{environment}' back to",)


class ReferenceNotFound(CommandError):
    """Raised when a reference resolves to no commit."""
    def __init__(self, ref: str, namespace: Optional[str] = None):
        where = f" for '{namespace}'" if namespace else ""
        super().__init__(
            f"Reference '{ref}' not found{where}",
            NOT_FOUND,
            "Use a commit id, a version such as v1.0.0, an environment, or a branch name",
        )
        self.ref = ref


class ComponentNotFound(CommandError):
    """Raised for an unknown component id or name."""
    def __init__(self, name: str, available: Optional[List[str]] = None):
        if available:
            shown = ", ".join(sorted(available)[:10])
            hint = f"Known components: {shown}"
        else:
            hint = "Run 'compver resync' to discover components"
        super().__init__(f"Component '{name}' not found", NOT_FOUND, hint)
        self.name = name


class RegistryCorrupt(CommandError):
    """Raised when the side-registry cannot be parsed."""
    def __init__(self, path: str, detail: str = ""):
        super().__init__(
            f"Registry '{path}' is unreadable" + (f": {detail}" if detail else ""),
            DATA_ERROR,
            "Run 'compver resync --force' to rebuild it from repository history",
        )
        self.path = path


class RegistryNotInitialized(ConfigError):
    """Raised when a command needs a registry that was never created."""
    def __init__(self, path: str):
        super().__init__(f"No component registry at '{path}'", "Run 'compver init' first")
        self.path = path


class NotAGitRepository(CommandError):
    """Raised when the working directory is not inside a git repository."""
    def __init__(self, path: str):
        super().__init__(
            f"'{path}' is not inside a git repository",
            GIT_ERROR,
            "Run compver from a git checkout or pass -C/--repo-dir",
        )


class GitCommandError(CommandError):
    """Raised when a git invocation that must succeed fails."""
    def __init__(self, command: str, stderr: str = "", returncode: int = -1):
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else f"exit code {returncode}"
        super().__init__(f"git {command} failed: {detail}", GIT_ERROR)
        self.command = command
        self.stderr = stderr
        self.returncode = returncode


class ReconciliationPartialFailure(PartialSuccessError):
    """Raised after a resync in which some files could not be reconciled."""
    def __init__(self, failed: int, succeeded: int = 0):
        super().__init__(
            f"Resync finished with {failed} error(s)",
            succeeded=succeeded,
            failed=failed,
            suggestion="Re-run with --verbose for details on each failing file",
        )
