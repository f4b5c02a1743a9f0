"""Error handling for the Node.js buildpack."""
from typing import Any, Dict, Optional

from mcp.types import ErrorData, INVALID_PARAMS, INTERNAL_ERROR

from node_buildpack.logging import get_logger
from node_buildpack.types import (
    Invalid,
    NoMatch,
    ResolutionOutcome,
    Tool,
    TransientFailure,
)


def log_error(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
    logger: Optional[Any] = None
) -> None:
    """Log an error with context."""
    logger = logger or get_logger(__name__)

    error_info = {
        "error_type": error.__class__.__name__,
        "error_message": str(error)
    }
    if context:
        error_info["context"] = context
    if isinstance(error, BuildpackError):
        error_info["code"] = error.code
        error_info["details"] = error.details

    logger.error({"event": "buildpack_error", **error_info})


class BuildpackError(Exception):
    """Base error class for the buildpack."""
    def __init__(
        self,
        message: str,
        code: int = INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.code = code
        self.details = details or {}

    def to_error_data(self) -> ErrorData:
        """Convert to ErrorData format."""
        return ErrorData(
            code=self.code,
            message=str(self),
            data=self.details
        )


class ResolutionError(BuildpackError):
    """A constraint could not be resolved to an installable version."""
    def __init__(
        self,
        tool: Tool,
        constraint: str,
        outcome: ResolutionOutcome,
        message: str,
    ):
        user_error = isinstance(outcome, (NoMatch, Invalid))
        super().__init__(
            message,
            code=INVALID_PARAMS if user_error else INTERNAL_ERROR,
            details={
                "tool": tool.value,
                "constraint": constraint,
                "outcome": type(outcome).__name__,
            },
        )
        self.tool = tool
        self.constraint = constraint
        self.outcome = outcome

    @property
    def retryable(self) -> bool:
        return isinstance(self.outcome, TransientFailure)


class InstallCommandError(BuildpackError):
    """An install, rebuild, prune or hook command exited non-zero."""
    def __init__(
        self,
        command: str,
        returncode: int,
        stdout: str = "",
        stderr: str = "",
        description: Optional[str] = None,
    ):
        super().__init__(
            f"{description or 'Command failed'}: `{command}` exited with code {returncode}",
            details={"command": command, "returncode": returncode},
        )
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class DownloadError(BuildpackError):
    """Archive download or extraction error."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=INTERNAL_ERROR, details=details)


class ManifestError(BuildpackError):
    """Unreadable package.json."""
    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Unable to read {path}: {reason}",
            code=INVALID_PARAMS,
            details={"path": path},
        )
