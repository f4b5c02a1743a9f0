"""Build directory layout and child-process environment."""

import sys
import tempfile
from pathlib import Path
from typing import Optional

from node_buildpack.config import load_env_dir
from node_buildpack.logging import get_logger
from node_buildpack.types import BuildEnvironment

logger = get_logger(__name__)

PROFILE_SCRIPT = "nodejs.sh"


def get_system_paths() -> str:
    """Get essential system binary paths for the current platform."""
    match sys.platform:
        case "darwin":
            return "/usr/local/bin:/usr/bin:/bin:/usr/sbin:/sbin"
        case "linux":
            return "/usr/local/bin:/usr/bin:/bin:/usr/local/sbin:/usr/sbin:/sbin"
        case _:
            raise RuntimeError(f"Unsupported platform: {sys.platform}")


def create_build_environment(
    build_dir: Path, cache_dir: Path, env_dir: Optional[Path] = None
) -> BuildEnvironment:
    """Prepare directories and the environment every build command runs with."""
    build_dir = build_dir.resolve()
    cache_dir = cache_dir.resolve()
    build_dir.mkdir(parents=True, exist_ok=True)
    cache_dir.mkdir(parents=True, exist_ok=True)
    tmp_dir = Path(tempfile.mkdtemp(prefix="node-buildpack-"))

    env_vars = {
        "PATH": get_system_paths(),
        "HOME": str(build_dir),
        "TMPDIR": str(tmp_dir),
        "NODE_ENV": "production",
    }
    env_vars.update(load_env_dir(env_dir))

    build = BuildEnvironment(
        build_dir=build_dir,
        cache_dir=cache_dir,
        tmp_dir=tmp_dir,
        env_vars=env_vars,
        env_dir=env_dir,
    )

    logger.info({
        "event": "build_environment_created",
        "build_dir": str(build_dir),
        "cache_dir": str(cache_dir),
    })
    return build


def add_bin_path(build: BuildEnvironment, bin_dir: Path) -> None:
    """Prepend a directory to the PATH of later build commands."""
    current_path = build.env_vars.get("PATH", "")
    build.env_vars["PATH"] = f"{bin_dir}:{current_path}" if current_path else str(bin_dir)
    logger.debug({"event": "updated_build_path", "bin_path": str(bin_dir)})


def write_profile(build: BuildEnvironment) -> Path:
    """Write the script that sets up PATH when the app starts."""
    build.profile_dir.mkdir(parents=True, exist_ok=True)
    profile = build.profile_dir / PROFILE_SCRIPT
    profile.write_text(
        'export PATH="$HOME/.heroku/node/bin:$HOME/.heroku/yarn/bin:'
        '$PATH:$HOME/bin:$HOME/node_modules/.bin"\n'
        'export NODE_HOME="$HOME/.heroku/node"\n'
    )
    logger.debug({"event": "profile_written", "path": str(profile)})
    return profile


def write_export(build: BuildEnvironment, export_file: Path) -> Path:
    """Write the environment used by later build stages in the same build."""
    export_file.parent.mkdir(parents=True, exist_ok=True)
    export_file.write_text(
        f'export PATH="{build.runtime_dir / "bin"}:{build.yarn_dir / "bin"}:'
        f'$PATH:{build.node_modules / ".bin"}"\n'
        f'export NODE_HOME="{build.runtime_dir}"\n'
    )
    logger.debug({"event": "export_written", "path": str(export_file)})
    return export_file
