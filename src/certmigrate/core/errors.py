"""
Error taxonomy for CertMigrate export and import operations.

Setup-phase errors (privilege, unreachable store, uncreatable folder,
invalid password) abort a whole operation. Encode and decode errors are
always per-item and are recorded in the audit log instead of propagating.
"""


class CertMigrateError(Exception):
    """Base class for all CertMigrate errors."""


class PermissionDeniedError(CertMigrateError):
    """A machine-scoped operation was attempted without elevated privilege."""


class ReadError(CertMigrateError):
    """The source store or source folder cannot be enumerated."""


class WriteError(CertMigrateError):
    """A destination folder, file or store entry cannot be written."""


class EncodeError(CertMigrateError):
    """A PKCS#12 container could not be built."""


class KeyNotExportableError(EncodeError):
    """The private key is missing or marked as non-exportable."""


class DecodeError(CertMigrateError):
    """A PKCS#12 container could not be parsed."""


class ValidationError(CertMigrateError):
    """Caller-supplied input was rejected before any I/O."""
