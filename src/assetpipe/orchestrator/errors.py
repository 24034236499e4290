from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Sequence


class AssetPipeError(RuntimeError):
    """
    Base error for build components. Carries metadata for structured logging.
    """

    category: str = "runtime"

    def __init__(self, message: str, *, metadata: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.metadata = metadata or {}


class ConfigError(AssetPipeError):
    """Raised when the build configuration is invalid."""

    category = "config"


class CompileError(AssetPipeError):
    """Raised when a style or script source fails to compile."""

    category = "compile"

    def __init__(self, message: str, *, source: Optional[Path] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.source = source


class PipelineError(AssetPipeError):
    """Raised when one or more steps of a task sequence failed."""

    category = "pipeline"

    def __init__(self, message: str, *, failed: Sequence[str] = (), **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.failed = list(failed)


class ServerCrashed(AssetPipeError):
    """Raised when the supervised application server exits with an error."""

    category = "serve"

    def __init__(self, message: str, *, returncode: Optional[int] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.returncode = returncode
