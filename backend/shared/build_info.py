"""Version and uptime reported by the health and status endpoints.

APP_VERSION and GIT_COMMIT come from the deploy environment; locally the
commit falls back to `git rev-parse`. Both are resolved once per process.
"""

import os
import subprocess
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field


def _git_short_sha() -> str:
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],  # noqa: S607
            text=True,
            stderr=subprocess.DEVNULL,
        ).strip()
    except (FileNotFoundError, subprocess.CalledProcessError):
        return "dev"


@dataclass(frozen=True)
class BuildInfo:
    version: str
    commit: str
    clock: Callable[[], float] = field(default=time.monotonic, repr=False, compare=False)
    started_at: float = field(default=0.0, compare=False)

    def uptime_seconds(self) -> int:
        return max(0, int(self.clock() - self.started_at))

    def as_dict(self) -> dict[str, str]:
        return {"version": self.version, "commit": self.commit}


def read_build_info(
    environ: Mapping[str, str] | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> BuildInfo:
    env = os.environ if environ is None else environ
    return BuildInfo(
        version=env.get("APP_VERSION") or "dev",
        commit=env.get("GIT_COMMIT") or _git_short_sha(),
        clock=clock,
        started_at=clock(),
    )


BUILD_INFO = read_build_info()
