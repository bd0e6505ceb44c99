"""
Changegraph structured error codes.

Error codes callers can handle programmatically:
- CHANGEGRAPH_ERR_READ: File content could not be read
- CHANGEGRAPH_ERR_NOT_FOUND: File or node not found
- CHANGEGRAPH_ERR_VCS: git command failed
- CHANGEGRAPH_ERR_TIMEOUT: Build deadline passed before a file was scheduled
- CHANGEGRAPH_ERR_INTERNAL: Anything else
"""

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


# Error codes
ERR_READ = "CHANGEGRAPH_ERR_READ"
ERR_NOT_FOUND = "CHANGEGRAPH_ERR_NOT_FOUND"
ERR_VCS = "CHANGEGRAPH_ERR_VCS"
ERR_TIMEOUT = "CHANGEGRAPH_ERR_TIMEOUT"
ERR_INTERNAL = "CHANGEGRAPH_ERR_INTERNAL"


class ContentReadError(OSError):
    """Raised by a content reader when a file cannot be read."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


class VcsError(RuntimeError):
    """Raised when a git command fails or a ref does not resolve."""


class ManifestError(ValueError):
    """Raised by a manifest parser; the manifest is then ignored."""


@dataclass
class ChangegraphError:
    """Structured error response for machine parsing."""

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


@dataclass(frozen=True)
class FileError:
    """A failure confined to one file's contribution to the graph."""

    path: str
    code: str
    message: str

    def to_dict(self) -> dict:
        return {"path": self.path, "code": self.code, "message": self.message}


def make_error(code: str, message: str, **details) -> dict:
    """Create a structured error response dict."""
    return ChangegraphError(code=code, message=message, details=details).to_dict()


def log_and_return_empty(
    logger_: logging.Logger,
    level: int,
    message: str,
    exc: Exception | None = None,
    return_value: Any = None,
) -> Any:
    """
    Log exception and return a default value.

    Used to replace silent `except: pass` with logged fallbacks.
    """
    if exc:
        logger_.log(level, f"{message}: {exc}")
    else:
        logger_.log(level, message)
    return return_value if return_value is not None else []


def make_read_error(file_path: str, reason: str) -> FileError:
    """Create the per-file record for an unreadable file."""
    return FileError(path=file_path, code=ERR_READ, message=f"Failed to read {file_path}: {reason}")
