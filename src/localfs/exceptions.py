"""
LocalFS Exception Hierarchy

This module defines the error taxonomy shared by every layer of localfs:
address translation, the host registry, durable state and the virtual
filesystem operations.

Every error carries:
1. A stable ``error_code`` for programmatic handling
2. The real or virtual path involved (when there is one)
3. Free-form context and an optional suggestion for the caller
"""

import time
from typing import Any, Dict, Optional


class LocalFsError(Exception):
    """
    Base exception class for all localfs errors.

    Attributes:
        error_code: Unique error code for programmatic handling
        path: Real path or virtual address the error refers to (if applicable)
        timestamp: When the error occurred
        context: Additional context information
        suggestion: Suggested fix or next steps (if applicable)
    """

    def __init__(
        self,
        message: str,
        error_code: str = "LOCALFS_ERROR",
        path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.path = path
        self.timestamp = time.time()
        self.context = context or {}
        self.suggestion = suggestion

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "path": self.path,
            "timestamp": self.timestamp,
            "context": self.context,
            "suggestion": self.suggestion,
        }

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# =============================================================================
# FILE OPERATION ERRORS
# =============================================================================

class FileSystemOperationError(LocalFsError):
    """Base class for errors raised by the virtual filesystem operations."""

    def __init__(self, message: str, **kwargs):
        error_code = kwargs.pop("error_code", "FILE_SYSTEM_ERROR")
        super().__init__(message, error_code=error_code, **kwargs)


class EntryNotFoundError(FileSystemOperationError):
    """Raised when a file or directory is absent but its presence is required."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "FILE_NOT_FOUND")
        super().__init__(message, **kwargs)


class EntryExistsError(FileSystemOperationError):
    """Raised when the target exists and no overwrite was requested."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "FILE_EXISTS")
        kwargs.setdefault("suggestion", "Pass overwrite=True to replace the existing entry.")
        super().__init__(message, **kwargs)


class ParentMissingError(FileSystemOperationError):
    """
    Raised when the directory that should contain the target does not exist.

    Examples:
    - writeFile with create=True under a missing directory
    - createDirectory of ``/missing/child``
    - rename/copy into a directory that does not exist
    """

    def __init__(self, message: str, parent: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", "PARENT_MISSING")
        context = kwargs.pop("context", None) or {}
        if parent is not None:
            context["parent"] = parent
        super().__init__(message, context=context, **kwargs)
        self.parent = parent


class NoPermissionsError(FileSystemOperationError):
    """Raised when the native filesystem rejects the call for access-control reasons."""

    def __init__(self, message: str, errno_code: Optional[int] = None, **kwargs):
        kwargs.setdefault("error_code", "NO_PERMISSIONS")
        context = kwargs.pop("context", None) or {}
        if errno_code is not None:
            context["errno"] = errno_code
        super().__init__(message, context=context, **kwargs)
        self.errno_code = errno_code


class EntryNotADirectoryError(FileSystemOperationError):
    """Raised when a directory was required but the entry is something else."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "FILE_NOT_A_DIRECTORY")
        super().__init__(message, **kwargs)


class EntryIsADirectoryError(FileSystemOperationError):
    """Raised when a file was required but the entry is a directory."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "FILE_IS_A_DIRECTORY")
        super().__init__(message, **kwargs)


class UnknownFsError(FileSystemOperationError):
    """
    Raised for native failures that no other member of the taxonomy covers.

    The native exception message is preserved in ``native_message`` so it
    can be logged for diagnostics.
    """

    def __init__(
        self,
        message: str,
        native_message: Optional[str] = None,
        errno_code: Optional[int] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "UNKNOWN")
        context = kwargs.pop("context", None) or {}
        if native_message is not None:
            context["native_message"] = native_message
        if errno_code is not None:
            context["errno"] = errno_code
        super().__init__(message, context=context, **kwargs)
        self.native_message = native_message
        self.errno_code = errno_code


# =============================================================================
# ADDRESS TRANSLATION ERRORS
# =============================================================================

class AddressNotFoundError(LocalFsError):
    """
    Base class for failures to translate between virtual addresses and real paths.

    Virtual filesystem operations let these propagate unchanged, so callers can
    catch ``AddressNotFoundError`` for any translation failure.
    """

    def __init__(self, message: str, **kwargs):
        error_code = kwargs.pop("error_code", "ADDRESS_NOT_FOUND")
        super().__init__(message, error_code=error_code, **kwargs)


class UnknownHostError(AddressNotFoundError):
    """Raised when a virtual address names a host that is not mounted."""

    def __init__(self, message: str, host: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", "UNKNOWN_HOST")
        context = kwargs.pop("context", None) or {}
        if host is not None:
            context["host"] = host
        super().__init__(message, context=context, **kwargs)
        self.host = host


class PathNotMountedError(AddressNotFoundError):
    """Raised when a real path is not under any mounted base directory."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "PATH_NOT_MOUNTED")
        kwargs.setdefault("suggestion", "Mount a directory that contains this path first.")
        super().__init__(message, **kwargs)


class InvalidAddressError(AddressNotFoundError):
    """Raised when an address string cannot be parsed or uses an unknown scheme."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "INVALID_ADDRESS")
        super().__init__(message, **kwargs)


class PathTraversalError(AddressNotFoundError):
    """Raised when a virtual path would climb above its host's base directory."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "PATH_TRAVERSAL")
        super().__init__(message, **kwargs)


# =============================================================================
# REGISTRY, STATE AND CONFIGURATION ERRORS
# =============================================================================

class RegistryError(LocalFsError):
    """Raised when a mount request is invalid (e.g. a relative directory)."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "REGISTRY_ERROR")
        super().__init__(message, **kwargs)


class StateStoreError(LocalFsError):
    """Raised when durable state cannot be written."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "STATE_STORE_ERROR")
        super().__init__(message, **kwargs)


class ConfigurationError(LocalFsError):
    """Raised when a configuration value is invalid."""

    def __init__(
        self,
        message: str,
        config_field: Optional[str] = None,
        config_value: Any = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "CONFIGURATION_ERROR")
        context = kwargs.pop("context", None) or {}
        if config_field is not None:
            context["config_field"] = config_field
            context["config_value"] = config_value
        super().__init__(message, context=context, **kwargs)
        self.config_field = config_field
        self.config_value = config_value
