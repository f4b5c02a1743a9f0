"""Runtime and dependency installation."""
from node_buildpack.installs.cache import CacheManager
from node_buildpack.installs.commands import run_build_command, run_checked
from node_buildpack.installs.runtime import ArchiveInstaller, RuntimeInstaller
from node_buildpack.installs.strategy import (
    InstallWorkflow,
    NpmWorkflow,
    YarnWorkflow,
    select_install_plan,
    workflow_for,
)

__all__ = [
    "CacheManager",
    "run_build_command",
    "run_checked",
    "ArchiveInstaller",
    "RuntimeInstaller",
    "InstallWorkflow",
    "NpmWorkflow",
    "YarnWorkflow",
    "select_install_plan",
    "workflow_for",
]
