"""Provisioning run: resolve, install, cache, clean up."""

import asyncio
import shlex
from pathlib import Path
from typing import Optional

from fuuid import b58_fuuid

from node_buildpack.builds.environment import (
    add_bin_path,
    create_build_environment,
    write_export,
    write_profile,
)
from node_buildpack.builds.manifest import read_engines
from node_buildpack.config import Settings
from node_buildpack.errors import BuildpackError, log_error
from node_buildpack.installs.cache import CacheManager
from node_buildpack.installs.commands import CommandRunner, run_build_command, run_checked
from node_buildpack.installs.runtime import ArchiveInstaller, RuntimeInstaller
from node_buildpack.installs.strategy import select_install_plan, workflow_for
from node_buildpack.logging import get_logger, info, status, warning
from node_buildpack.types import (
    BuildEnvironment,
    EngineConstraints,
    InstallPlan,
    ProvisionResult,
    ProvisionState,
    ResolvedVersion,
    Tool,
    is_unspecified,
)
from node_buildpack.utils.fs import make_executable, remove_path
from node_buildpack.versions.advisor import advise
from node_buildpack.versions.backends import VersionResolverBackend, create_backend
from node_buildpack.versions.resolver import Sleep, resolve_or_fail

logger = get_logger(__name__)

POST_INSTALL_HOOK = Path("bin") / "post_compile"
TRANSIENT_ARTIFACTS = (".node-gyp", ".npm")


class Orchestrator:
    """Runs one provisioning pass over a build directory.

    Resolution failures and failed install commands abort the run before the
    cache is persisted; cleanup runs either way.
    """

    def __init__(
        self,
        backend: VersionResolverBackend,
        installer: Optional[RuntimeInstaller] = None,
        runner: CommandRunner = run_build_command,
        sleep: Sleep = asyncio.sleep,
        export_file: Optional[Path] = None,
    ):
        self.backend = backend
        self.installer = installer or ArchiveInstaller()
        self.runner = runner
        self.sleep = sleep
        self.export_file = export_file

    async def run(self, build: BuildEnvironment, engines: EngineConstraints) -> ProvisionResult:
        run_id = b58_fuuid()
        log = logger.bind(run_id=run_id)
        states: list[ProvisionState] = []

        def enter(state: ProvisionState) -> None:
            states.append(state)
            log.debug({"event": "state_entered", "state": state.value})

        status("Resolving engine versions")
        info(f"engines.node (package.json):  {self._describe(engines.node)}")
        info(f"engines.npm (package.json):   {self._describe(engines.npm, 'use default')}")
        info(f"engines.yarn (package.json):  {self._describe(engines.yarn, 'use npm')}")

        try:
            try:
                enter(ProvisionState.RESOLVE_RUNTIME)
                node = await self.resolve_runtime(engines.node)

                enter(ProvisionState.ADVISE_CONSTRAINTS)
                warnings = advise(engines.node, engines.yarn)
                for message in warnings:
                    warning(message)

                enter(ProvisionState.INSTALL_RUNTIME)
                await self.install_runtime(build, node, engines.npm)

                enter(ProvisionState.SELECT_PLAN)
                plan = select_install_plan(engines.yarn)
                log.info({"event": "install_plan_selected", "plan": plan.value})
                workflow = workflow_for(plan, CacheManager(build.build_dir, build.cache_dir), self.runner)
                yarn = None
                if plan == InstallPlan.PRIMARY:
                    yarn = await self.install_yarn(build, engines.yarn)
                workflow.configure(build)

                enter(ProvisionState.RESTORE_CACHE)
                restored = await workflow.restore(build)

                enter(ProvisionState.INSTALL_DEPENDENCIES)
                await workflow.install(build)

                enter(ProvisionState.PRUNE_OR_SKIP)
                await workflow.prune(build)

                enter(ProvisionState.PERSIST_CACHE)
                if plan == InstallPlan.FALLBACK:
                    status("Caching node_modules directory for future builds")
                workflow.persist()

            except BuildpackError as e:
                log_error(e, {"run_id": run_id, "state": states[-1].value}, logger=log)
                raise

            finally:
                enter(ProvisionState.CLEANUP)
                self.cleanup(build)

            await self.run_post_install_hook(build)

        finally:
            # the hook may still need TMPDIR
            self.remove_scratch(build)

        enter(ProvisionState.DONE)
        status("Build succeeded!")

        return ProvisionResult(
            run_id=run_id,
            node=node,
            yarn=yarn,
            plan=plan,
            cache=restored,
            warnings=warnings,
            states=states,
        )

    @staticmethod
    def _describe(constraint: str, default: str = "unspecified") -> str:
        return default if is_unspecified(constraint) else constraint

    async def resolve_runtime(self, constraint: str) -> ResolvedVersion:
        node = await resolve_or_fail(self.backend, Tool.NODE, constraint, sleep=self.sleep)
        if is_unspecified(constraint):
            status(f"Defaulting to latest stable node: {node.version}")
        else:
            status(f"Requested node range:  {constraint}")
            status(f"Resolved node version: {node.version}")
        return node

    async def install_runtime(self, build: BuildEnvironment, node: ResolvedVersion, npm_constraint: str) -> None:
        status(f"Downloading and installing node {node.version}")
        await self.installer.install(Tool.NODE, node, build.runtime_dir, build.tmp_dir)
        add_bin_path(build, build.runtime_dir / "bin")
        build.env_vars["NODE_HOME"] = str(build.runtime_dir)

        await self.install_npm(build, npm_constraint)

        write_profile(build)
        if self.export_file is not None:
            write_export(build, self.export_file)

    async def install_npm(self, build: BuildEnvironment, constraint: str) -> None:
        bundled = (await run_checked(build, "npm --version", self.runner, description="npm is not available")).strip()

        if is_unspecified(constraint):
            status(f"Using default npm version: {bundled}")
            return
        if bundled == constraint.strip():
            status(f"npm {bundled} already installed with node")
            return

        status(f"Bootstrapping npm {constraint} (replacing {bundled})")
        await run_checked(
            build,
            f"npm install --unsafe-perm --quiet -g {shlex.quote('npm@' + constraint.strip())}",
            self.runner,
            description=f"Unable to install npm {constraint}; does it exist?",
        )
        status(f"npm {constraint} installed")

    async def install_yarn(self, build: BuildEnvironment, constraint: str) -> ResolvedVersion:
        status(f"Resolving yarn version {constraint}")
        yarn = await resolve_or_fail(self.backend, Tool.YARN, constraint, sleep=self.sleep)
        status(f"Downloading and installing yarn ({yarn.version})")
        await self.installer.install(Tool.YARN, yarn, build.yarn_dir, build.tmp_dir)
        add_bin_path(build, build.yarn_dir / "bin")
        return yarn

    def cleanup(self, build: BuildEnvironment) -> None:
        """Remove transient artifacts; failures here never fail the build."""
        status("Cleaning up node-gyp and npm artifacts")
        for target in (build.build_dir / name for name in TRANSIENT_ARTIFACTS):
            self._remove_quietly(target)

    def remove_scratch(self, build: BuildEnvironment) -> None:
        """Remove the download directory that TMPDIR points at."""
        self._remove_quietly(build.tmp_dir)

    @staticmethod
    def _remove_quietly(target: Path) -> None:
        try:
            remove_path(target)
        except OSError as e:
            logger.warning({"event": "cleanup_failed", "path": str(target), "error": str(e)})

    async def run_post_install_hook(self, build: BuildEnvironment) -> bool:
        hook = build.build_dir / POST_INSTALL_HOOK
        if not hook.is_file():
            return False
        status(f"Running {POST_INSTALL_HOOK} hook")
        make_executable(hook)
        await run_checked(
            build,
            shlex.quote(str(hook)),
            self.runner,
            description=f"{POST_INSTALL_HOOK} hook failed",
        )
        return True


async def compile_build(
    build_dir: Path,
    cache_dir: Path,
    env_dir: Optional[Path] = None,
    settings: Optional[Settings] = None,
) -> ProvisionResult:
    """Provision node, its package manager and dependencies into build_dir."""
    settings = settings or Settings.from_env()
    engines = read_engines(build_dir)
    build = create_build_environment(build_dir, cache_dir, env_dir)
    orchestrator = Orchestrator(
        backend=create_backend(settings),
        export_file=settings.export_file,
    )
    return await orchestrator.run(build, engines)
