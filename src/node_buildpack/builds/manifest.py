"""Engine constraints from package.json."""

import json
from pathlib import Path
from typing import Any

from node_buildpack.errors import ManifestError
from node_buildpack.types import UNSPECIFIED, EngineConstraints

MANIFEST = "package.json"


def _engine_field(engines: dict, name: str) -> str:
    value: Any = engines.get(name)
    if value is None:
        return UNSPECIFIED
    return str(value).strip() or UNSPECIFIED


def read_engines(build_dir: Path) -> EngineConstraints:
    """Read engines.node, engines.yarn and engines.npm; missing fields read as "null"."""
    path = build_dir / MANIFEST
    if not path.exists():
        return EngineConstraints()

    try:
        manifest = json.loads(path.read_text())
    except (OSError, ValueError) as e:
        raise ManifestError(str(path), str(e)) from e

    engines = manifest.get("engines") if isinstance(manifest, dict) else None
    if not isinstance(engines, dict):
        return EngineConstraints()

    return EngineConstraints(
        node=_engine_field(engines, "node"),
        yarn=_engine_field(engines, "yarn"),
        npm=_engine_field(engines, "npm"),
    )
