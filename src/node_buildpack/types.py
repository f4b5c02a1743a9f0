"""Core type definitions"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

UNSPECIFIED = "null"
WILDCARD = "*"


class Tool(Enum):
    NODE = "node"
    YARN = "yarn"
    NPM = "npm"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class InstallPlan(Enum):
    """Dependency installation workflow, selected once per run"""
    PRIMARY = "yarn"
    FALLBACK = "npm"


class CacheRestore(Enum):
    """What a cache restore did to the build tree"""
    RESTORED = "restored"
    EMPTY = "empty"
    REBUILD = "rebuild"
    TOOL_MANAGED = "tool_managed"


class ProvisionState(Enum):
    RESOLVE_RUNTIME = "resolve_runtime"
    ADVISE_CONSTRAINTS = "advise_constraints"
    INSTALL_RUNTIME = "install_runtime"
    SELECT_PLAN = "select_plan"
    RESTORE_CACHE = "restore_cache"
    INSTALL_DEPENDENCIES = "install_dependencies"
    PRUNE_OR_SKIP = "prune_or_skip"
    PERSIST_CACHE = "persist_cache"
    CLEANUP = "cleanup"
    DONE = "done"


def is_unspecified(constraint: Optional[str]) -> bool:
    """True for a missing constraint, an empty one, or the "null" sentinel."""
    return constraint is None or constraint.strip() in ("", UNSPECIFIED)


def normalize_constraint(constraint: Optional[str]) -> str:
    """Map the unspecified sentinel to the empty range understood by resolvers."""
    if is_unspecified(constraint):
        return ""
    return constraint.strip()


@dataclass(frozen=True)
class ResolvedVersion:
    """Concrete version and where to download it"""
    version: str
    location: str


@dataclass(frozen=True)
class ResolverReply:
    """Raw single-line answer from a resolver backend"""
    returncode: int
    output: str


@dataclass(frozen=True)
class Resolved:
    resolved: ResolvedVersion


@dataclass(frozen=True)
class NoMatch:
    pass


@dataclass(frozen=True)
class Invalid:
    reason: str


@dataclass(frozen=True)
class TransientFailure:
    detail: str = ""


ResolutionOutcome = Resolved | NoMatch | Invalid | TransientFailure


@dataclass(frozen=True)
class EngineConstraints:
    """Version constraints declared by the application"""
    node: str = UNSPECIFIED
    yarn: str = UNSPECIFIED
    npm: str = UNSPECIFIED


@dataclass
class BuildEnvironment:
    """Directories and child-process environment for one provisioning run"""
    build_dir: Path
    cache_dir: Path
    tmp_dir: Path
    env_vars: dict[str, str]
    env_dir: Optional[Path] = None

    @property
    def runtime_dir(self) -> Path:
        return self.build_dir / ".heroku" / "node"

    @property
    def yarn_dir(self) -> Path:
        return self.build_dir / ".heroku" / "yarn"

    @property
    def node_modules(self) -> Path:
        return self.build_dir / "node_modules"

    @property
    def profile_dir(self) -> Path:
        return self.build_dir / ".profile.d"


@dataclass
class ProvisionResult:
    """Summary of a successful provisioning run"""
    run_id: str
    node: ResolvedVersion
    plan: InstallPlan
    cache: CacheRestore
    yarn: Optional[ResolvedVersion] = None
    warnings: list[str] = field(default_factory=list)
    states: list[ProvisionState] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "node": {"version": self.node.version, "url": self.node.location},
            "yarn": (
                {"version": self.yarn.version, "url": self.yarn.location}
                if self.yarn
                else None
            ),
            "plan": self.plan.value,
            "cache": self.cache.value,
            "warnings": self.warnings,
            "states": [s.value for s in self.states],
        }
