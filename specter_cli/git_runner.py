"""Bounded, timeout-guarded execution of git commands.

Every call returns a :class:`GitResult`; failures (missing git binary,
timeouts, non-zero exit) are reported through ``ok=False`` and never raised,
so analyzers can degrade to empty results with a single check.
"""

from __future__ import annotations

import logging
import subprocess
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from . import config

logger = logging.getLogger(__name__)

# Field and record separators used in --format strings.
FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"


@dataclass
class GitResult:
    ok: bool
    stdout: str = ""
    stderr: str = ""
    returncode: int = -1

    @property
    def lines(self) -> List[str]:
        if not self.ok:
            return []
        return [line for line in self.stdout.splitlines() if line.strip()]


class GitRunner:
    """Run git as an argv array against a working directory."""

    def __init__(
        self,
        root: Path,
        timeout: Optional[float] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self.root = Path(root)
        self.timeout = timeout if timeout is not None else config.GIT_TIMEOUT
        self.max_workers = max(1, max_workers if max_workers is not None else config.GIT_MAX_WORKERS)

    def run(self, args: Sequence[str]) -> GitResult:
        cmd = ["git", "-c", "core.quotepath=off", *args]
        try:
            proc = subprocess.run(
                cmd,
                cwd=str(self.root),
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.warning("git %s timed out after %ss", " ".join(args[:2]), self.timeout)
            return GitResult(ok=False, stderr="timeout")
        except (FileNotFoundError, NotADirectoryError, OSError) as exc:
            logger.debug("git %s failed to start: %s", " ".join(args[:2]), exc)
            return GitResult(ok=False, stderr=str(exc))

        if proc.returncode != 0:
            logger.debug("git %s exited %d: %s", " ".join(args[:2]), proc.returncode, proc.stderr.strip())
            return GitResult(ok=False, stdout=proc.stdout, stderr=proc.stderr, returncode=proc.returncode)
        return GitResult(ok=True, stdout=proc.stdout, stderr=proc.stderr, returncode=0)

    def run_many(self, commands: Sequence[Sequence[str]], batch_size: Optional[int] = None) -> List[GitResult]:
        """Run commands concurrently, at most ``max_workers`` at a time.

        Results come back in the order of ``commands``. With ``batch_size`` the
        commands are processed in consecutive groups; each group finishes
        before the next one starts.
        """
        if not commands:
            return []
        size = batch_size or len(commands)
        results: List[GitResult] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            for start in range(0, len(commands), size):
                batch = commands[start:start + size]
                results.extend(executor.map(self.run, batch))
        return results

    def is_repo(self) -> bool:
        result = self.run(["rev-parse", "--is-inside-work-tree"])
        return result.ok and result.stdout.strip() == "true"

    def head_commit(self, length: int = 8) -> Optional[str]:
        result = self.run(["rev-parse", "HEAD"])
        if not result.ok or not result.stdout.strip():
            return None
        return result.stdout.strip()[:length]
