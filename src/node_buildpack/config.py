"""Buildpack settings and application config vars."""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import appdirs

from node_buildpack.logging import get_logger

logger = get_logger(__name__)

APP_NAME = "node-buildpack"

DEFAULT_NODE_MIRROR = "https://nodejs.org/dist"
DEFAULT_NPM_REGISTRY = "https://registry.npmjs.org"

# Config vars that would break the build if copied from the env dir
ENV_DIR_BLACKLIST = re.compile(r"^(PATH|GIT_DIR|CPATH|CPPATH|LD_PRELOAD|LIBRARY_PATH)$")

RESOLVER_BINARY = "binary"
RESOLVER_INDEX = "index"


def default_vendor_dir() -> Path:
    return Path(__file__).resolve().parent / "vendor"


def default_cache_dir() -> Path:
    return Path(appdirs.user_cache_dir(APP_NAME))


@dataclass(frozen=True)
class Settings:
    """Buildpack behaviour controlled through NODE_BUILDPACK_* variables"""
    resolver: str = RESOLVER_INDEX
    vendor_dir: Path = default_vendor_dir()
    log_level: str = "INFO"
    node_mirror: str = DEFAULT_NODE_MIRROR
    npm_registry: str = DEFAULT_NPM_REGISTRY
    export_file: Optional[Path] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        environ = os.environ if environ is None else environ

        resolver = environ.get("NODE_BUILDPACK_RESOLVER", RESOLVER_INDEX).strip().lower()
        if resolver not in (RESOLVER_BINARY, RESOLVER_INDEX):
            raise ValueError(f"Unsupported resolver: {resolver}")

        vendor_dir = environ.get("NODE_BUILDPACK_VENDOR_DIR")
        export_file = environ.get("NODE_BUILDPACK_EXPORT_FILE")

        return cls(
            resolver=resolver,
            vendor_dir=Path(vendor_dir) if vendor_dir else default_vendor_dir(),
            log_level=environ.get("NODE_BUILDPACK_LOG_LEVEL", "INFO").upper(),
            node_mirror=environ.get("NODE_BUILDPACK_NODE_MIRROR", DEFAULT_NODE_MIRROR).rstrip("/"),
            npm_registry=environ.get("NODE_BUILDPACK_NPM_REGISTRY", DEFAULT_NPM_REGISTRY).rstrip("/"),
            export_file=Path(export_file) if export_file else None,
        )


def load_env_dir(env_dir: Optional[Path]) -> dict[str, str]:
    """Read application config vars, one file per variable."""
    if env_dir is None or not env_dir.is_dir():
        return {}

    config_vars = {}
    for path in sorted(env_dir.iterdir()):
        if not path.is_file():
            continue
        if ENV_DIR_BLACKLIST.match(path.name):
            logger.debug({"event": "env_var_skipped", "name": path.name})
            continue
        config_vars[path.name] = path.read_text().rstrip("\n")

    logger.debug({"event": "env_dir_loaded", "names": list(config_vars)})
    return config_vars
