"""Selection between the yarn and npm installation workflows."""

import shlex
from abc import ABC, abstractmethod
from typing import Optional

from node_buildpack.installs.cache import CacheManager
from node_buildpack.installs.commands import CommandRunner, run_build_command, run_checked
from node_buildpack.logging import get_logger, status
from node_buildpack.types import (
    BuildEnvironment,
    CacheRestore,
    InstallPlan,
    is_unspecified,
)

logger = get_logger(__name__)


def select_install_plan(secondary_constraint: Optional[str]) -> InstallPlan:
    """Yarn when its constraint is given, npm otherwise."""
    if is_unspecified(secondary_constraint):
        return InstallPlan.FALLBACK
    return InstallPlan.PRIMARY


class InstallWorkflow(ABC):
    """One of the two mutually exclusive dependency installation strategies."""

    plan: InstallPlan

    def __init__(self, cache: CacheManager, runner: CommandRunner = run_build_command):
        self.cache = cache
        self.runner = runner

    def configure(self, build: BuildEnvironment) -> None:
        """Adjust the build environment before any command runs."""

    async def restore(self, build: BuildEnvironment) -> CacheRestore:
        return self.cache.restore(self.plan)

    @abstractmethod
    def install_command(self, build: BuildEnvironment) -> str:
        """Command installing the dependency tree."""

    def prune_command(self, build: BuildEnvironment) -> Optional[str]:
        return None

    async def install(self, build: BuildEnvironment) -> None:
        status("Installing dependencies")
        await run_checked(
            build,
            self.install_command(build),
            self.runner,
            description=f"{self.plan.value} install failed",
        )

    async def prune(self, build: BuildEnvironment) -> bool:
        cmd = self.prune_command(build)
        if cmd is None:
            return False
        status("Pruning unused dependencies")
        await run_checked(build, cmd, self.runner, description=f"{self.plan.value} prune failed")
        return True

    def persist(self) -> None:
        self.cache.persist(self.plan)


class YarnWorkflow(InstallWorkflow):
    """Yarn keeps its own incremental cache and prunes while installing."""

    plan = InstallPlan.PRIMARY

    def configure(self, build: BuildEnvironment) -> None:
        build.env_vars["YARN_CACHE_FOLDER"] = str(self.cache.yarn_cache)
        logger.debug({"event": "yarn_cache_configured", "path": str(self.cache.yarn_cache)})

    def install_command(self, build: BuildEnvironment) -> str:
        return "yarn install --pure-lockfile --ignore-engines"


class NpmWorkflow(InstallWorkflow):
    """npm gets a wholesale node_modules snapshot restored from the cache."""

    plan = InstallPlan.FALLBACK

    async def restore(self, build: BuildEnvironment) -> CacheRestore:
        restored = self.cache.restore(self.plan)
        if restored == CacheRestore.REBUILD:
            status("Found existing node_modules directory; skipping cache")
            status("Rebuilding any native dependencies")
            await run_checked(build, "npm rebuild", self.runner, description="npm rebuild failed")
        elif restored == CacheRestore.RESTORED:
            status("Restoring node_modules from cache")
        return restored

    def install_command(self, build: BuildEnvironment) -> str:
        userconfig = shlex.quote(str(build.build_dir / ".npmrc"))
        return f"npm install --unsafe-perm --userconfig {userconfig}"

    def prune_command(self, build: BuildEnvironment) -> Optional[str]:
        return "npm prune"


WORKFLOWS: dict[InstallPlan, type[InstallWorkflow]] = {
    InstallPlan.PRIMARY: YarnWorkflow,
    InstallPlan.FALLBACK: NpmWorkflow,
}


def workflow_for(
    plan: InstallPlan, cache: CacheManager, runner: CommandRunner = run_build_command
) -> InstallWorkflow:
    return WORKFLOWS[plan](cache, runner)
