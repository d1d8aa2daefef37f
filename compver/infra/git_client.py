"""
Git client infrastructure for compver.

Provides a clean abstraction over git command execution.
All git operations go through this client, making them:
- Easy to mock for testing
- Consistent in error handling
- Isolated from business logic

A GitClient is bound to exactly one repository root and is passed to every
service that needs it; there is no shared global instance.
"""

import subprocess
from dataclasses import dataclass
from typing import Optional, List, Sequence
from pathlib import Path
import logging

from ..exit_codes import GitCommandError, NotAGitRepository

logger = logging.getLogger(__name__)

FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"


@dataclass
class GitResult:
    """Result of a git invocation."""
    stdout: str
    stderr: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass
class GitTag:
    """A git tag with metadata."""
    name: str
    commit: str
    date: str
    tagger: str = ""
    message: str = ""


@dataclass
class GitCommit:
    """A git commit with metadata, plus the tracked path's name at that commit."""
    hash: str
    date: str
    author: str
    email: str
    message: str
    path: Optional[str] = None


class GitClient:
    """
    Abstraction over git commands for one repository.

    Example:
        client = GitClient("/path/to/repo")
        sha = client.rev_parse("HEAD")
        if client.tag_exists("components/prompts/greeting-prompt/v1.0.0"):
            ...
    """

    def __init__(self, repo_root: str, timeout: int = 30):
        """
        Initialize GitClient.

        Args:
            repo_root: Repository working tree root
            timeout: Command timeout in seconds (default: 30)
        """
        self.repo_root = str(repo_root)
        self.timeout = timeout

    @staticmethod
    def find_repo_root(path: str = ".", timeout: int = 30) -> str:
        """
        Find the working tree root containing `path`.

        Raises:
            NotAGitRepository: if `path` is not inside a git work tree
        """
        try:
            result = subprocess.run(
                ["git", "rev-parse", "--show-toplevel"],
                cwd=path,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"git rev-parse --show-toplevel failed in {path}: {e}")
            raise NotAGitRepository(str(path)) from e
        if result.returncode != 0 or not result.stdout.strip():
            raise NotAGitRepository(str(path))
        return str(Path(result.stdout.strip()).resolve())

    def _run(self, args: Sequence[str], check: bool = False, strip: bool = True) -> GitResult:
        """
        Run a git command in the repository root.

        Args:
            args: Arguments after ``git``
            check: Raise GitCommandError on non-zero exit
            strip: Drop trailing newlines from stdout

        Returns:
            GitResult with stripped stderr
        """
        cmd = ["git", "-c", "core.quotepath=off", *args]
        logger.debug("git %s", " ".join(args))
        try:
            proc = subprocess.run(
                cmd,
                cwd=self.repo_root,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
            stdout = proc.stdout.strip("\n") if strip else proc.stdout
            result = GitResult(stdout, proc.stderr.strip(), proc.returncode)
        except subprocess.TimeoutExpired:
            logger.warning(f"Git command timed out: git {' '.join(args)}")
            result = GitResult("", "timed out", -1)
        except OSError as e:
            logger.error(f"Git command failed: git {' '.join(args)} - {e}")
            result = GitResult("", str(e), -1)

        if check and not result.ok:
            raise GitCommandError(" ".join(args[:2]), result.stderr, result.returncode)
        return result

    # -- references -------------------------------------------------------

    def rev_parse(self, ref: str) -> Optional[str]:
        """Resolve `ref` to a full commit id, or None."""
        result = self._run(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"])
        if result.ok and result.stdout:
            return result.stdout.strip()
        return None

    def head(self) -> Optional[str]:
        """Commit id of HEAD, or None in a repository without commits."""
        return self.rev_parse("HEAD")

    def file_exists_at_commit(self, commit: str, path: str) -> bool:
        """True if `path` exists in the tree of `commit`."""
        if not commit or not path:
            return False
        return self._run(["cat-file", "-e", f"{commit}:{path}"]).ok

    def show_file(self, commit: str, path: str) -> str:
        """
        Contents of `path` as of `commit`, trailing newline included.

        Raises:
            GitCommandError: if the path is not in that commit's tree
        """
        return self._run(["show", f"{commit}:{path}"], check=True, strip=False).stdout

    # -- tags -------------------------------------------------------------

    def tag_exists(self, name: str) -> bool:
        """Check if a tag exists locally."""
        return self._run(["rev-parse", "--verify", "--quiet", f"refs/tags/{name}"]).ok

    def create_tag(self, name: str, commit: str, message: str, force: bool = False) -> None:
        """
        Create an annotated tag.

        Args:
            force: Replace an existing tag of the same name
        """
        args = ["tag", "-a"]
        if force:
            args.append("-f")
        args += ["-m", message, name, commit]
        self._run(args, check=True)

    def delete_tag(self, name: str) -> None:
        """Delete a local tag."""
        self._run(["tag", "-d", name], check=True)

    def list_tags(self, prefix: str = "") -> List[str]:
        """
        List tag names under a prefix.

        Args:
            prefix: Tag name prefix such as ``components/prompts/greeting-prompt/``
        """
        pattern = f"refs/tags/{prefix}" if prefix else "refs/tags"
        result = self._run(["for-each-ref", "--format=%(refname:strip=2)", pattern])
        if not result.ok or not result.stdout:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def tag_info(self, name: str) -> Optional[GitTag]:
        """
        Get tag metadata.

        The commit is the peeled target for annotated tags; the tagger falls
        back to the commit author for lightweight tags.
        """
        fmt = FIELD_SEP.join([
            "%(refname:strip=2)",
            "%(if)%(*objectname)%(then)%(*objectname)%(else)%(objectname)%(end)",
            "%(if)%(taggername)%(then)%(taggername)%(else)%(authorname)%(end)",
            "%(creatordate:iso-strict)",
            "%(contents)",
        ])
        result = self._run(["for-each-ref", f"--format={fmt}", f"refs/tags/{name}"])
        if not result.ok or not result.stdout:
            return None
        # Exactly one ref matches; the message may span several lines.
        parts = result.stdout.split(FIELD_SEP, 4)
        if len(parts) < 4 or parts[0] != name:
            return None
        return GitTag(
            name=parts[0],
            commit=parts[1],
            tagger=parts[2],
            date=parts[3],
            message=parts[4].strip() if len(parts) > 4 else "",
        )

    def tags_at_commit(self, commit: str, prefix: str = "") -> List[str]:
        """Tag names under `prefix` that point at `commit`."""
        pattern = f"refs/tags/{prefix}" if prefix else "refs/tags"
        result = self._run(["for-each-ref", "--points-at", commit,
                            "--format=%(refname:strip=2)", pattern])
        if not result.ok or not result.stdout:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    # -- remotes ----------------------------------------------------------

    def push_ref(self, remote: str, refspec: str, force: bool = False) -> GitResult:
        """Push one refspec; failures are returned, not raised."""
        args = ["push"]
        if force:
            args.append("--force")
        args += [remote, refspec]
        return self._run(args)

    def delete_remote_tag(self, remote: str, name: str) -> GitResult:
        """Remove a tag from a remote."""
        return self._run(["push", remote, f":refs/tags/{name}"])

    # -- files and history ------------------------------------------------

    def ls_files(self) -> List[str]:
        """Tracked files, relative to the repository root."""
        result = self._run(["ls-files", "-z"])
        if not result.ok or not result.stdout:
            return []
        return [p for p in result.stdout.split("\0") if p]

    def log_path(
        self,
        path: Optional[str] = None,
        since: Optional[str] = None,
        until: Optional[str] = None,
        follow: bool = False,
        reverse: bool = False,
    ) -> List[GitCommit]:
        """
        Commits touching `path` (or all commits reachable from HEAD).

        Args:
            path: Limit to commits touching this path
            since: Only commits after this ISO time
            until: Only commits before this ISO time
            follow: Follow renames; each commit records the path's name then
            reverse: Oldest first

        Returns:
            List of GitCommit objects, newest first unless `reverse`
        """
        fmt = RECORD_SEP + FIELD_SEP.join(["%H", "%aI", "%an", "%ae", "%s"])
        args = ["log", f"--format={fmt}"]
        if since:
            args.append(f"--since={since}")
        if until:
            args.append(f"--until={until}")
        if path:
            args.append("--name-only")
            if follow:
                args.append("--follow")
            args += ["--", path]

        result = self._run(args)
        if not result.ok or not result.stdout:
            return []

        commits = []
        for record in result.stdout.split(RECORD_SEP):
            if not record.strip():
                continue
            lines = record.split("\n")
            parts = lines[0].split(FIELD_SEP, 4)
            if len(parts) < 5:
                continue
            names = [n.strip() for n in lines[1:] if n.strip()]
            commits.append(GitCommit(
                hash=parts[0],
                date=parts[1],
                author=parts[2],
                email=parts[3],
                message=parts[4],
                path=names[-1] if names else path,
            ))

        if reverse:
            # --reverse does not combine reliably with --follow
            commits.reverse()
        return commits
