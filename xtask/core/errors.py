"""
Typed error model for the build/run pipeline

Every stage raises one of these instead of exiting the process; the CLI is the
only place that turns an error into an exit status.
"""
from enum import Enum
from typing import Dict, Mapping, Optional


class ErrorCode(str, Enum):
    """Stable error identifiers"""
    UNSUPPORTED_ARCHITECTURE = "E_UNSUPPORTED_ARCH"
    CONFIG_NOT_FOUND = "E_CONFIG_NOT_FOUND"
    COPY_FAILED = "E_COPY_FAILED"
    COMPILE_FAILED = "E_COMPILE_FAILED"
    CONVERT_FAILED = "E_CONVERT_FAILED"
    IMAGE_CREATE_FAILED = "E_IMAGE_CREATE_FAILED"
    FORMAT_FAILED = "E_FORMAT_FAILED"
    FILESYSTEM_WRITE_FAILED = "E_FS_WRITE_FAILED"
    LAUNCH_FAILED = "E_LAUNCH_FAILED"
    GUEST_EXIT_NON_ZERO = "E_GUEST_EXIT"
    GENERAL = "E_XTASK"


class XtaskError(Exception):
    """Base error carrying a code, an exit status, an optional hint and context."""

    code: ErrorCode = ErrorCode.GENERAL
    default_exit_code: int = 1

    def __init__(
        self,
        message: str,
        *,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
        context: Optional[Mapping[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code if exit_code is not None else self.default_exit_code
        self.hint = hint
        self.context: Dict[str, str] = dict(context or {})

    def __str__(self) -> str:
        parts = [self.message]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        for key, value in self.context.items():
            if value:
                parts.append(f"  {key}: {value}")
        return "\n".join(parts)

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "code": self.code.value,
            "message": self.message,
            "exit_code": self.exit_code,
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class UnsupportedArchitectureError(XtaskError):
    code = ErrorCode.UNSUPPORTED_ARCHITECTURE


class ConfigNotFoundError(XtaskError):
    code = ErrorCode.CONFIG_NOT_FOUND


class CopyFailedError(XtaskError):
    code = ErrorCode.COPY_FAILED


class CompileFailedError(XtaskError):
    code = ErrorCode.COMPILE_FAILED


class ConvertFailedError(XtaskError):
    code = ErrorCode.CONVERT_FAILED


class ImageCreateFailedError(XtaskError):
    code = ErrorCode.IMAGE_CREATE_FAILED


class FormatFailedError(XtaskError):
    code = ErrorCode.FORMAT_FAILED


class FileSystemWriteFailedError(XtaskError):
    code = ErrorCode.FILESYSTEM_WRITE_FAILED


class LaunchFailedError(XtaskError):
    code = ErrorCode.LAUNCH_FAILED
    default_exit_code = 127


class GuestExitNonZeroError(XtaskError):
    """QEMU ran, but the guest (or QEMU itself) exited with a non-zero status."""
    code = ErrorCode.GUEST_EXIT_NON_ZERO


__all__ = [
    "ErrorCode",
    "XtaskError",
    "UnsupportedArchitectureError",
    "ConfigNotFoundError",
    "CopyFailedError",
    "CompileFailedError",
    "ConvertFailedError",
    "ImageCreateFailedError",
    "FormatFailedError",
    "FileSystemWriteFailedError",
    "LaunchFailedError",
    "GuestExitNonZeroError",
]
