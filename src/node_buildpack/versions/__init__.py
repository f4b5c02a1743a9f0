"""Version resolution and constraint advice."""
from node_buildpack.versions.advisor import advise
from node_buildpack.versions.backends import (
    VersionResolverBackend,
    BinaryResolverBackend,
    LinuxResolverBackend,
    DarwinResolverBackend,
    IndexResolverBackend,
    backend_for_platform,
    create_backend,
)
from node_buildpack.versions.resolver import (
    classify,
    resolve,
    resolve_or_fail,
    describe_failure,
    failure_message,
)

__all__ = [
    "advise",
    "VersionResolverBackend",
    "BinaryResolverBackend",
    "LinuxResolverBackend",
    "DarwinResolverBackend",
    "IndexResolverBackend",
    "backend_for_platform",
    "create_backend",
    "classify",
    "resolve",
    "resolve_or_fail",
    "describe_failure",
    "failure_message",
]
