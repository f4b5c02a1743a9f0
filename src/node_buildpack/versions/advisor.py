"""Advisory warnings for risky version constraints."""

from typing import Optional

from node_buildpack.types import UNSPECIFIED, WILDCARD, is_unspecified


def advise(constraint: Optional[str], secondary_constraint: Optional[str] = UNSPECIFIED) -> list[str]:
    """Warnings for the node constraint and the yarn constraint. Never raises."""
    warnings = []

    if is_unspecified(constraint):
        warnings.append(
            "Node version not specified in package.json: "
            "specify a version in engines.node to keep builds reproducible"
        )

    for field, value in (("node", constraint), ("yarn", secondary_constraint)):
        if is_unspecified(value):
            continue
        value = value.strip()
        if value == WILDCARD:
            warnings.append(f"Avoid using semver ranges like '*' in engines.{field}")
        elif value.startswith(">"):
            warnings.append(f"Avoid using semver ranges starting with '>' in engines.{field}")

    return warnings
