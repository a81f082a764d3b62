"""Build metadata for the exporter.

Values are stamped into the environment at image build time
(DOCKER_EXPORTER_GIT_COMMIT / DOCKER_EXPORTER_BUILD_DATE) and read once at
startup into an immutable BuildInfo that is passed to whoever needs it.
"""

import os
import platform
from dataclasses import dataclass
from typing import Mapping, Optional

from docker_exporter import __version__


@dataclass(frozen=True)
class BuildInfo:
    version: str = __version__
    git_commit: str = "unknown"
    build_date: str = "unknown"
    python_version: str = platform.python_version()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BuildInfo":
        env = os.environ if environ is None else environ
        return cls(
            version=env.get("DOCKER_EXPORTER_VERSION") or __version__,
            git_commit=env.get("DOCKER_EXPORTER_GIT_COMMIT") or "unknown",
            build_date=env.get("DOCKER_EXPORTER_BUILD_DATE") or "unknown",
        )

    def describe(self) -> str:
        """Multi-line text printed by ``--version``."""
        return "\n".join(
            [
                f"docker-exporter {self.version}",
                f"  Git Commit: {self.git_commit}",
                f"  Build Date: {self.build_date}",
                f"  Python Version: {self.python_version}",
            ]
        )
