"""Node.js buildpack: runtime provisioning and dependency installation."""

from node_buildpack.types import (
    Tool,
    InstallPlan,
    CacheRestore,
    ProvisionState,
    ResolvedVersion,
    Resolved,
    NoMatch,
    Invalid,
    TransientFailure,
    EngineConstraints,
    BuildEnvironment,
    ProvisionResult,
)
from node_buildpack.errors import (
    BuildpackError,
    ResolutionError,
    InstallCommandError,
    DownloadError,
    ManifestError,
)

__version__ = "0.1.0"

__all__ = [
    # Types
    "Tool",
    "InstallPlan",
    "CacheRestore",
    "ProvisionState",
    "ResolvedVersion",
    "Resolved",
    "NoMatch",
    "Invalid",
    "TransientFailure",
    "EngineConstraints",
    "BuildEnvironment",
    "ProvisionResult",

    # Errors
    "BuildpackError",
    "ResolutionError",
    "InstallCommandError",
    "DownloadError",
    "ManifestError",
]
