import json
import os
from functools import partial

import pytest
from unittest.mock import patch

from node_buildpack.builds.orchestrator import Orchestrator, compile_build
from node_buildpack.config import Settings
from node_buildpack.errors import InstallCommandError, ManifestError, ResolutionError
from node_buildpack.installs.commands import run_build_command
from node_buildpack.types import (
    CacheRestore,
    EngineConstraints,
    InstallPlan,
    ProvisionState,
    ResolverReply,
    Tool,
)

NODE_REPLY = "14.2.0 https://example.com/node-v14.2.0-linux-x64.tar.gz"
YARN_REPLY = "1.22.4 https://example.com/yarn-v1.22.4.tar.gz"


@pytest.fixture
def orchestrator_for(installer, runner, no_sleep):
    def make(backend, **kwargs):
        return Orchestrator(backend, installer=installer, runner=runner, sleep=no_sleep, **kwargs)
    return make


def install_package(build):
    (build.node_modules / "left-pad").mkdir(parents=True, exist_ok=True)
    (build.node_modules / "left-pad" / "index.js").write_text("module.exports = 1")


@pytest.mark.asyncio
async def test_unspecified_node_defaults_to_latest_stable(
    build, scripted_backend, orchestrator_for, installer, runner, capsys
):
    """An app without engines gets the latest stable node and npm"""
    backend = scripted_backend({Tool.NODE: [NODE_REPLY]})
    runner.on("npm install", install_package)

    result = await orchestrator_for(backend).run(build, EngineConstraints())

    out = capsys.readouterr().out
    assert "-----> Defaulting to latest stable node: 14.2.0" in out
    assert "-----> Build succeeded!" in out
    assert backend.calls == [(Tool.NODE, "")]

    assert result.node.version == "14.2.0"
    assert result.yarn is None
    assert result.plan == InstallPlan.FALLBACK
    assert result.cache == CacheRestore.EMPTY
    assert len(result.warnings) == 1
    assert result.warnings[0].startswith("Node version not specified in package.json")
    assert result.states == list(ProvisionState)

    assert installer.calls[0][0] == Tool.NODE
    assert installer.calls[0][2] == build.runtime_dir
    assert runner.ran("npm install --unsafe-perm --userconfig")
    assert runner.ran("npm prune")
    assert not runner.ran("yarn")

    # npm path persists the tree for the next build
    assert (build.cache_dir / "node_modules" / "left-pad" / "index.js").exists()


@pytest.mark.asyncio
async def test_requested_range_is_reported(build, scripted_backend, orchestrator_for, capsys):
    backend = scripted_backend({Tool.NODE: [NODE_REPLY]})

    result = await orchestrator_for(backend).run(build, EngineConstraints(node="14.x"))

    out = capsys.readouterr().out
    assert "-----> Requested node range:  14.x" in out
    assert "-----> Resolved node version: 14.2.0" in out
    assert result.warnings == []


@pytest.mark.asyncio
async def test_runtime_on_build_path(build, scripted_backend, orchestrator_for, runner):
    """Later commands see the installed node first on PATH; the host is untouched"""
    host_path = os.environ.get("PATH")
    backend = scripted_backend({Tool.NODE: [NODE_REPLY]})

    await orchestrator_for(backend).run(build, EngineConstraints(node="14.x"))

    install_env = runner.envs[runner.commands.index("npm prune")]
    assert install_env["PATH"].split(":")[0] == str(build.runtime_dir / "bin")
    assert install_env["NODE_HOME"] == str(build.runtime_dir)
    assert os.environ.get("PATH") == host_path

    profile = (build.profile_dir / "nodejs.sh").read_text()
    assert '$HOME/.heroku/node/bin' in profile


@pytest.mark.asyncio
async def test_resolution_failure_is_fatal(build, scripted_backend, orchestrator_for, installer, runner):
    """Nothing is installed when the node range cannot be resolved"""
    backend = scripted_backend({Tool.NODE: [ResolverReply(1, "No result")]})
    orchestrator = orchestrator_for(backend)

    with pytest.raises(ResolutionError) as exc_info:
        await orchestrator.run(build, EngineConstraints(node="99.x"))

    assert "Could not find Node version corresponding to version requirement: 99.x" in str(exc_info.value)
    assert installer.calls == []
    assert runner.commands == []
    assert not build.tmp_dir.exists()


@pytest.mark.asyncio
async def test_install_failure_skips_cache_persist(build, scripted_backend, orchestrator_for, runner):
    """A failed install leaves the previous cache alone"""
    (build.cache_dir / "node_modules" / "previous").mkdir(parents=True)
    runner.on("npm install", install_package)
    runner.respond("npm install --unsafe-perm --userconfig", 1, b"", b"npm ERR! 404\n")
    backend = scripted_backend({Tool.NODE: [NODE_REPLY]})

    with pytest.raises(InstallCommandError):
        await orchestrator_for(backend).run(build, EngineConstraints(node="14.x"))

    assert (build.cache_dir / "node_modules" / "previous").is_dir()
    assert not (build.cache_dir / "node_modules" / "left-pad").exists()
    assert not runner.ran("npm prune")
    assert not build.tmp_dir.exists()


@pytest.mark.asyncio
async def test_yarn_workflow_selected(build, scripted_backend, orchestrator_for, installer, runner):
    """engines.yarn installs yarn and drops the stale node_modules snapshot"""
    (build.cache_dir / "node_modules" / "stale").mkdir(parents=True)
    backend = scripted_backend({Tool.NODE: [NODE_REPLY], Tool.YARN: [YARN_REPLY]})

    result = await orchestrator_for(backend).run(build, EngineConstraints(node="14.x", yarn="1.x"))

    assert result.plan == InstallPlan.PRIMARY
    assert result.cache == CacheRestore.TOOL_MANAGED
    assert result.yarn.version == "1.22.4"
    assert [tool for tool, _, _ in installer.calls] == [Tool.NODE, Tool.YARN]
    assert backend.calls == [(Tool.NODE, "14.x"), (Tool.YARN, "1.x")]

    assert runner.ran("yarn install --pure-lockfile --ignore-engines")
    assert not runner.ran("npm prune")
    assert not (build.cache_dir / "node_modules").exists()

    yarn_env = runner.envs[runner.commands.index("yarn install --pure-lockfile --ignore-engines")]
    assert yarn_env["YARN_CACHE_FOLDER"] == str(build.cache_dir / "yarn")
    assert yarn_env["PATH"].split(":")[0] == str(build.yarn_dir / "bin")


@pytest.mark.asyncio
async def test_yarn_resolution_failure(build, scripted_backend, orchestrator_for, runner):
    backend = scripted_backend({Tool.NODE: [NODE_REPLY], Tool.YARN: [ResolverReply(1, "No result")]})

    with pytest.raises(ResolutionError, match="Could not find Yarn version"):
        await orchestrator_for(backend).run(build, EngineConstraints(node="14.x", yarn="9.x"))

    assert not runner.ran("yarn install")


@pytest.mark.asyncio
async def test_npm_bootstrap(build, scripted_backend, orchestrator_for, runner, capsys):
    """A requested npm different from the bundled one is installed globally"""
    backend = scripted_backend({Tool.NODE: [NODE_REPLY]})

    await orchestrator_for(backend).run(build, EngineConstraints(node="14.x", npm="7.0.0"))

    assert "npm install --unsafe-perm --quiet -g npm@7.0.0" in runner.commands
    assert "-----> Bootstrapping npm 7.0.0 (replacing 6.14.4)" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_npm_already_bundled(build, scripted_backend, orchestrator_for, runner, capsys):
    backend = scripted_backend({Tool.NODE: [NODE_REPLY]})

    await orchestrator_for(backend).run(build, EngineConstraints(node="14.x", npm="6.14.4"))

    assert not runner.ran("npm install --unsafe-perm --quiet -g")
    assert "npm 6.14.4 already installed with node" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_npm_bootstrap_failure(build, scripted_backend, orchestrator_for, runner):
    runner.respond("npm install --unsafe-perm --quiet -g", 1)
    backend = scripted_backend({Tool.NODE: [NODE_REPLY]})

    with pytest.raises(InstallCommandError, match=r"Unable to install npm 99\.0\.0; does it exist\?"):
        await orchestrator_for(backend).run(build, EngineConstraints(node="14.x", npm="99.0.0"))


@pytest.mark.asyncio
async def test_cleanup_removes_transient_artifacts(build, scripted_backend, orchestrator_for):
    (build.build_dir / ".npm" / "_cacache").mkdir(parents=True)
    (build.build_dir / ".node-gyp" / "14.2.0").mkdir(parents=True)
    backend = scripted_backend({Tool.NODE: [NODE_REPLY]})

    await orchestrator_for(backend).run(build, EngineConstraints(node="14.x"))

    assert not (build.build_dir / ".npm").exists()
    assert not (build.build_dir / ".node-gyp").exists()
    assert not build.tmp_dir.exists()


@pytest.mark.asyncio
async def test_post_install_hook(build, scripted_backend, orchestrator_for, runner):
    """bin/post_compile runs after cleanup and is made executable"""
    hook = build.build_dir / "bin" / "post_compile"
    hook.parent.mkdir()
    hook.write_text("#!/bin/sh\necho done\n")
    backend = scripted_backend({Tool.NODE: [NODE_REPLY]})

    await orchestrator_for(backend).run(build, EngineConstraints(node="14.x"))

    assert runner.commands[-1] == str(hook)
    assert os.access(hook, os.X_OK)


@pytest.mark.asyncio
async def test_post_install_hook_failure_is_fatal(build, scripted_backend, orchestrator_for, runner):
    hook = build.build_dir / "bin" / "post_compile"
    hook.parent.mkdir()
    hook.write_text("#!/bin/sh\nexit 3\n")
    runner.respond(str(hook), 3)
    backend = scripted_backend({Tool.NODE: [NODE_REPLY]})

    with pytest.raises(InstallCommandError, match="bin/post_compile hook failed"):
        await orchestrator_for(backend).run(build, EngineConstraints(node="14.x"))


@pytest.mark.asyncio
async def test_post_install_hook_can_use_tmpdir(build, scripted_backend, installer, runner, no_sleep):
    """The scratch dir behind TMPDIR survives until the hook has run"""
    hook = build.build_dir / "bin" / "post_compile"
    hook.parent.mkdir()
    hook.write_text('#!/bin/sh\nset -e\nscratch=$(mktemp)\necho ok > "$scratch"\ncat "$scratch"\n')

    async def run_hook_for_real(build_env, cmd):
        if cmd == str(hook):
            return await run_build_command(build_env, cmd)
        return await runner(build_env, cmd)

    backend = scripted_backend({Tool.NODE: [NODE_REPLY]})
    orchestrator = Orchestrator(backend, installer=installer, runner=run_hook_for_real, sleep=no_sleep)

    result = await orchestrator.run(build, EngineConstraints(node="14.x"))

    assert result.states[-1] == ProvisionState.DONE
    assert not build.tmp_dir.exists()


@pytest.mark.asyncio
async def test_scratch_removed_when_hook_fails(build, scripted_backend, orchestrator_for, runner):
    hook = build.build_dir / "bin" / "post_compile"
    hook.parent.mkdir()
    hook.write_text("#!/bin/sh\nexit 1\n")
    runner.respond(str(hook), 1)
    backend = scripted_backend({Tool.NODE: [NODE_REPLY]})

    with pytest.raises(InstallCommandError):
        await orchestrator_for(backend).run(build, EngineConstraints(node="14.x"))

    assert not build.tmp_dir.exists()


@pytest.mark.asyncio
async def test_export_file_written(build, scripted_backend, orchestrator_for, tmp_path):
    export = tmp_path / "export"
    backend = scripted_backend({Tool.NODE: [NODE_REPLY]})

    await orchestrator_for(backend, export_file=export).run(build, EngineConstraints(node="14.x"))

    assert f'export NODE_HOME="{build.runtime_dir}"' in export.read_text()


@pytest.mark.asyncio
async def test_compile_build_reads_manifest(tmp_path, scripted_backend, installer, runner):
    """compile_build wires the manifest, settings and backend together"""
    build_dir = tmp_path / "app"
    build_dir.mkdir()
    (build_dir / "package.json").write_text(json.dumps({"engines": {"node": "14.x"}}))
    backend = scripted_backend({Tool.NODE: [NODE_REPLY]})

    orchestrator = partial(Orchestrator, installer=installer, runner=runner)

    with patch("node_buildpack.builds.orchestrator.create_backend", return_value=backend), \
            patch("node_buildpack.builds.orchestrator.Orchestrator", orchestrator):
        result = await compile_build(build_dir, tmp_path / "cache", settings=Settings())

    assert backend.calls == [(Tool.NODE, "14.x")]
    assert result.node.version == "14.2.0"


@pytest.mark.asyncio
async def test_compile_build_rejects_bad_manifest(tmp_path):
    build_dir = tmp_path / "app"
    build_dir.mkdir()
    (build_dir / "package.json").write_text("{not json")

    with pytest.raises(ManifestError):
        await compile_build(build_dir, tmp_path / "cache", settings=Settings())
