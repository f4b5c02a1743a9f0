"""Build environment and provisioning orchestration."""
from node_buildpack.builds.environment import create_build_environment
from node_buildpack.builds.manifest import read_engines
from node_buildpack.builds.orchestrator import Orchestrator, compile_build

__all__ = [
    "create_build_environment",
    "read_engines",
    "Orchestrator",
    "compile_build",
]
