"""Repository snapshots around delegated work.

``GitSnapshotService`` records the workspace in a shadow git repository kept
under the agent state directory, so the user's own repository (if any) is
never touched. ``snapshot(label)`` returns a commit id, ``diff(a, b)`` the
paths that changed between two snapshots.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from codingAgent.utils.error_handler import ExecutionError

LOGGER = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 60


class SnapshotError(ExecutionError):
    """A snapshot or diff command failed."""


class SnapshotService(Protocol):
    async def snapshot(self, label: str) -> str:
        ...

    async def diff(self, before_id: str, after_id: str) -> List[str]:
        ...


class GitSnapshotService:
    """Snapshots via ``git --git-dir=<shadow> --work-tree=<workspace>``.

    Snapshots from unrelated delegations are not coordinated here; callers
    that snapshot concurrently must serialize themselves.
    """

    def __init__(self, workspace: Path, shadow_dir: Path, git_binary: str = "git"):
        self.workspace = Path(workspace).resolve()
        self.shadow_dir = Path(shadow_dir).resolve()
        self.git_binary = git_binary
        self._initialized = False

    async def snapshot(self, label: str) -> str:
        await self._ensure_initialized()
        await self._git("add", "-A", ".")
        await self._git("commit", "--allow-empty", "--no-verify", "-q", "-m", label)
        commit = (await self._git("rev-parse", "HEAD")).strip()
        LOGGER.info(f"Snapshot {commit[:10]}: {label}")
        return commit

    async def diff(self, before_id: str, after_id: str) -> List[str]:
        output = await self._git("diff", "--name-only", before_id, after_id)
        return [line.strip() for line in output.splitlines() if line.strip()]

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        if not (self.shadow_dir / "HEAD").exists():
            self.shadow_dir.mkdir(parents=True, exist_ok=True)
            await self._git("init", "-q")
            await self._git("config", "user.name", "codingAgent")
            await self._git("config", "user.email", "snapshots@codingagent.local")
            await self._git("config", "commit.gpgsign", "false")
        self._write_excludes()
        self._initialized = True

    def _write_excludes(self) -> None:
        excludes = [".git/"]
        try:
            excludes.append(f"{self.shadow_dir.relative_to(self.workspace).parts[0]}/")
        except ValueError:
            pass
        info_dir = self.shadow_dir / "info"
        info_dir.mkdir(parents=True, exist_ok=True)
        (info_dir / "exclude").write_text("\n".join(excludes) + "\n", encoding="utf-8")

    async def _git(self, *args: str) -> str:
        return await run_git(
            [self.git_binary, f"--git-dir={self.shadow_dir}", f"--work-tree={self.workspace}", *args],
            cwd=self.workspace,
        )


async def run_git(command: Sequence[str], cwd: Optional[Path] = None) -> str:
    """Run a git command and return stdout.

    Raises:
        SnapshotError: non-zero exit, timeout, or git missing
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise SnapshotError(f"Failed to start git: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=GIT_TIMEOUT_SECONDS)
    except asyncio.TimeoutError as e:
        process.kill()
        await process.wait()
        raise SnapshotError(f"git timed out: {' '.join(command[3:])}") from e

    if process.returncode != 0:
        message = stderr.decode("utf-8", errors="replace").strip()
        raise SnapshotError(f"git {' '.join(command[3:])} failed ({process.returncode}): {message}")
    return stdout.decode("utf-8", errors="replace")
