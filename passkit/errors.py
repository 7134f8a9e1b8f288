"""
Error taxonomy for the pass assembly pipeline.

Every stage raises a subclass of PasskitError. Client errors (bad package
type, unusable pass model) are correctable by the caller; everything else
is a server-side failure for that request.
"""

from typing import Any, Dict, Optional


class PasskitError(Exception):
    """Base class for all pipeline failures."""

    code = "passkit_error"
    http_status = 500
    client_error = False

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        """JSON body used by the HTTP transport."""
        return {
            'ecode': self.http_status,
            'status': False,
            'error': self.code,
            'message': self.message,
        }


class ConfigurationError(PasskitError):
    code = "configuration_error"


# -----------------------------------------------------------------------------
# Routing / enumeration (client-correctable)
# -----------------------------------------------------------------------------

class ClientError(PasskitError):
    client_error = True
    http_status = 422


class UnsupportedPackageType(ClientError):
    code = "unsupported_package_type"
    http_status = 400

    def __init__(self, package_type: str, supported: str = ""):
        message = f"Model unsupported: '{package_type}'."
        if supported:
            message += f" Supported pass models: {supported.replace('|', ', ')}."
        super().__init__(message, package_type=package_type)
        self.package_type = package_type


class SourceNotFound(ClientError):
    code = "source_not_found"
    http_status = 404

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"Model not available at {path}. Provide a folder named after the "
            f"type with a .pass extension.",
            path=path,
        )
        self.path = path
        self.cause = cause


class EmptySource(ClientError):
    code = "empty_source"

    def __init__(self, path: str):
        super().__init__(f"Model at {path} has no contents.", path=path)
        self.path = path


class MissingRequiredEntry(ClientError):
    code = "missing_required_entry"

    def __init__(self, path: str, entry: str):
        super().__init__(f"Model at {path} has no {entry}.", path=path, entry=entry)
        self.path = path
        self.entry = entry


# -----------------------------------------------------------------------------
# Hash stage
# -----------------------------------------------------------------------------

class FileReadFailure(PasskitError):
    code = "file_read_failure"

    def __init__(self, name: str, cause: BaseException):
        super().__init__(f"Unable to compile manifest. Reading {name} failed: {cause}", name=name)
        self.name = name
        self.cause = cause


class HashAborted(PasskitError):
    """A read stopped because another file in the batch already failed."""
    code = "hash_aborted"


# -----------------------------------------------------------------------------
# Manifest stage (programmer-facing)
# -----------------------------------------------------------------------------

class InvalidManifestInput(PasskitError):
    code = "invalid_manifest_input"


class InvalidScratchPath(PasskitError):
    code = "invalid_scratch_path"


# -----------------------------------------------------------------------------
# Signing stage
# -----------------------------------------------------------------------------

class SigningPrerequisitesUnavailable(PasskitError):
    code = "signing_prerequisites_unavailable"

    def __init__(self, missing):
        missing = list(missing)
        super().__init__(
            "Cannot fulfill signature requirements. Unavailable: " + ", ".join(missing),
            missing=missing,
        )
        self.missing = missing


class SigningFailed(PasskitError):
    code = "signing_failed"

    def __init__(self, message: str, diagnostic: bytes = b"", returncode: Optional[int] = None):
        detail = diagnostic.decode('utf-8', errors='replace').strip()
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, returncode=returncode)
        self.diagnostic = diagnostic
        self.returncode = returncode


# -----------------------------------------------------------------------------
# Archive stage
# -----------------------------------------------------------------------------

class ArchiveWriteFailure(PasskitError):
    code = "archive_write_failure"

    def __init__(self, path: str, cause: BaseException):
        super().__init__(f"Unable to write archive {path}: {cause}", path=path)
        self.path = path
        self.cause = cause


__all__ = [
    'PasskitError',
    'ConfigurationError',
    'ClientError',
    'UnsupportedPackageType',
    'SourceNotFound',
    'EmptySource',
    'MissingRequiredEntry',
    'FileReadFailure',
    'HashAborted',
    'InvalidManifestInput',
    'InvalidScratchPath',
    'SigningPrerequisitesUnavailable',
    'SigningFailed',
    'ArchiveWriteFailure',
]
