"""Constraint resolution with bounded retry and failure classification."""

import asyncio
from typing import Awaitable, Callable, Optional

from node_buildpack.errors import ResolutionError
from node_buildpack.logging import get_logger
from node_buildpack.types import (
    Invalid,
    NoMatch,
    ResolutionOutcome,
    Resolved,
    ResolvedVersion,
    ResolverReply,
    Tool,
    TransientFailure,
    normalize_constraint,
)
from node_buildpack.versions.backends import NO_RESULT, VersionResolverBackend

logger = get_logger(__name__)

MAX_ATTEMPTS = 5
INVALID_PREFIXES = ("Could not parse", "Could not get")

Sleep = Callable[[float], Awaitable[None]]


def classify(reply: ResolverReply) -> ResolutionOutcome:
    """Turn a raw backend reply into a resolution outcome."""
    output = reply.output.strip()

    if output == NO_RESULT:
        return NoMatch()
    if output.startswith(INVALID_PREFIXES):
        return Invalid(reason=output)
    if reply.returncode != 0:
        return TransientFailure(detail=output or f"resolver exited with code {reply.returncode}")

    parts = output.split()
    if len(parts) != 2 or not parts[1].startswith(("http://", "https://")):
        return TransientFailure(detail=f"unexpected resolver output: {output!r}")

    version, location = parts
    return Resolved(ResolvedVersion(version=version, location=location))


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after the given 1-based attempt failed transiently."""
    return float(attempt + 1)


async def resolve(
    backend: VersionResolverBackend,
    tool: Tool,
    constraint: Optional[str],
    sleep: Sleep = asyncio.sleep,
) -> ResolutionOutcome:
    """Resolve a constraint, retrying transient failures with linear backoff."""
    requirement = normalize_constraint(constraint)
    outcome: ResolutionOutcome = TransientFailure()

    for attempt in range(1, MAX_ATTEMPTS + 1):
        outcome = classify(await backend.query(tool, requirement))
        logger.debug({
            "event": "resolve_attempt",
            "tool": tool.value,
            "constraint": requirement,
            "attempt": attempt,
            "outcome": type(outcome).__name__,
        })

        if not isinstance(outcome, TransientFailure):
            return outcome

        if attempt < MAX_ATTEMPTS:
            delay = backoff_delay(attempt)
            logger.info({
                "event": "resolve_retry",
                "tool": tool.value,
                "attempt": attempt,
                "delay": delay,
                "detail": outcome.detail,
            })
            await sleep(delay)

    logger.warning({
        "event": "resolve_exhausted",
        "tool": tool.value,
        "constraint": requirement,
        "attempts": MAX_ATTEMPTS,
    })
    return outcome


def failure_message(tool: Tool, constraint: Optional[str], outcome: ResolutionOutcome) -> str:
    """User-facing diagnostic for a failed resolution."""
    requirement = normalize_constraint(constraint)
    match outcome:
        case NoMatch():
            return (
                f"Could not find {tool.display_name} version corresponding "
                f"to version requirement: {requirement}"
            )
        case Invalid(reason=reason):
            return f'Error: Invalid semantic version "{requirement}" ({reason})'
        case _:
            return f'Error: Unknown error installing "{requirement}" of {tool.value}'


async def describe_failure(
    backend: VersionResolverBackend,
    tool: Tool,
    constraint: Optional[str],
    outcome: ResolutionOutcome,
) -> tuple[ResolutionOutcome, str]:
    """Explain a failed resolution.

    After retries ran out the backend is asked once more, purely to recover a
    diagnostic; definitive negatives are explained as they are.
    """
    if isinstance(outcome, TransientFailure):
        outcome = classify(await backend.query(tool, normalize_constraint(constraint)))
        if isinstance(outcome, Resolved):
            # A late success does not rescue a run that already failed
            outcome = TransientFailure(detail="resolved only after retries were exhausted")
    return outcome, failure_message(tool, constraint, outcome)


async def resolve_or_fail(
    backend: VersionResolverBackend,
    tool: Tool,
    constraint: Optional[str],
    sleep: Sleep = asyncio.sleep,
) -> ResolvedVersion:
    """Resolve a constraint or raise ResolutionError with the diagnostic."""
    outcome = await resolve(backend, tool, constraint, sleep=sleep)
    if isinstance(outcome, Resolved):
        logger.info({
            "event": "version_resolved",
            "tool": tool.value,
            "version": outcome.resolved.version,
            "url": outcome.resolved.location,
        })
        return outcome.resolved

    outcome, message = await describe_failure(backend, tool, constraint, outcome)
    raise ResolutionError(tool, normalize_constraint(constraint), outcome, message)
