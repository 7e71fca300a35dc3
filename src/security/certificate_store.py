"""
Certificate store collaborators for export and import.

This module defines the store capability consumed by the engines and the
file-backed implementation shipped with CertMigrate. Each scope maps to
one directory holding a PEM certificate, an optional PEM private key and
a small metadata document per entry, keyed by thumbprint.
"""

import abc
import json
import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Set

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from src.certmigrate.core.errors import KeyNotExportableError, ReadError, WriteError
from src.certmigrate.core.models import CertificateRecord, StoreScope, compute_thumbprint
from src.i18n import _

logger = logging.getLogger(__name__)


@dataclass
class StoredMaterial:
    """Certificate and private key pulled out of a store for one encode call."""

    certificate: x509.Certificate
    private_key: object
    friendly_name: str = ""


class StoreProvider(abc.ABC):
    """Capability the engines use to read from and write to a store."""

    @abc.abstractmethod
    def list_certificates(self, scope: StoreScope) -> List[CertificateRecord]:
        """Enumerate every certificate in ``scope``."""

    @abc.abstractmethod
    def export_key_material(self, scope: StoreScope, thumbprint: str) -> StoredMaterial:
        """Return the certificate and private key for ``thumbprint``."""

    @abc.abstractmethod
    def add_certificate(  # pylint: disable=too-many-arguments
        self,
        scope: StoreScope,
        certificate: x509.Certificate,
        private_key,
        friendly_name: str = "",
        exportable: bool = True,
    ) -> bool:
        """Store a certificate and key. Returns True if a new entry was created."""

    @abc.abstractmethod
    def remove_certificate(self, scope: StoreScope, thumbprint: str) -> bool:
        """Delete the entry for ``thumbprint``. Returns True if one was removed."""

    def thumbprints(self, scope: StoreScope) -> Set[str]:
        """Thumbprints currently present in ``scope``."""
        return {record.thumbprint for record in self.list_certificates(scope)}


def default_store_dir(scope: StoreScope) -> Path:
    """Platform-specific default directory for ``scope``."""
    if scope is StoreScope.USER:
        return Path.home() / ".certmigrate" / "store"
    if os.name == "nt":  # Windows
        return Path(r"C:\ProgramData\CertMigrate\store")
    return Path("/var/lib/certmigrate/store")


class FileCertificateStore(StoreProvider):
    """Directory-per-scope certificate store."""

    def __init__(self, directories: Optional[Dict[StoreScope, str]] = None):
        directories = directories or {}
        self.directories: Dict[StoreScope, Path] = {
            scope: Path(directories[scope]) if directories.get(scope) else default_store_dir(scope)
            for scope in StoreScope
        }

    @classmethod
    def from_config(cls, config) -> "FileCertificateStore":
        """Build a store using ``store.user_dir`` and ``store.machine_dir``."""
        return cls({scope: config.get_store_dir(scope) for scope in StoreScope})

    def _entry_paths(self, scope: StoreScope, thumbprint: str) -> Dict[str, Path]:
        base = self.directories[scope]
        return {
            "cert": base / f"{thumbprint}.crt",
            "key": base / f"{thumbprint}.key",
            "meta": base / f"{thumbprint}.json",
        }

    def _read_metadata(self, path: Path) -> Dict[str, object]:
        if not path.exists():
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as error:
            logger.warning(_("Ignoring unreadable metadata %s: %s"), path, error)
            return {}
        return data if isinstance(data, dict) else {}

    def list_certificates(self, scope: StoreScope) -> List[CertificateRecord]:
        directory = self.directories[scope]
        if not directory.exists():
            return []
        if not directory.is_dir():
            raise ReadError(_("Store location is not a directory: %s") % directory)

        try:
            cert_files = sorted(directory.glob("*.crt"))
        except OSError as error:
            raise ReadError(
                _("Cannot enumerate store %s: %s") % (directory, error)
            ) from error

        records = []
        for cert_file in cert_files:
            try:
                certificate = x509.load_pem_x509_certificate(cert_file.read_bytes())
            except (OSError, ValueError) as error:
                logger.warning(_("Skipping unreadable store entry %s: %s"), cert_file, error)
                continue

            paths = self._entry_paths(scope, cert_file.stem)
            metadata = self._read_metadata(paths["meta"])
            try:
                records.append(
                    CertificateRecord.from_x509(
                        certificate,
                        has_private_key=paths["key"].exists(),
                        friendly_name=str(metadata.get("friendly_name", "")),
                    )
                )
            except ValueError as error:
                logger.warning(_("Skipping invalid certificate %s: %s"), cert_file, error)

        logger.debug("Enumerated %d certificates from %s", len(records), directory)
        return records

    def export_key_material(self, scope: StoreScope, thumbprint: str) -> StoredMaterial:
        paths = self._entry_paths(scope, thumbprint)
        if not paths["cert"].exists():
            raise ReadError(_("Certificate %s not found in store") % thumbprint)

        metadata = self._read_metadata(paths["meta"])
        if not metadata.get("exportable", True):
            raise KeyNotExportableError(
                _("Private key of %s is marked as non-exportable") % thumbprint
            )
        if not paths["key"].exists():
            raise KeyNotExportableError(
                _("Certificate %s has no private key") % thumbprint
            )

        try:
            certificate = x509.load_pem_x509_certificate(paths["cert"].read_bytes())
            private_key = serialization.load_pem_private_key(
                paths["key"].read_bytes(), password=None
            )
        except OSError as error:
            raise ReadError(
                _("Cannot read store entry %s: %s") % (thumbprint, error)
            ) from error
        except (ValueError, TypeError) as error:
            raise KeyNotExportableError(
                _("Cannot load key material of %s: %s") % (thumbprint, error)
            ) from error

        return StoredMaterial(
            certificate=certificate,
            private_key=private_key,
            friendly_name=str(metadata.get("friendly_name", "")),
        )

    def add_certificate(  # pylint: disable=too-many-arguments
        self,
        scope: StoreScope,
        certificate: x509.Certificate,
        private_key,
        friendly_name: str = "",
        exportable: bool = True,
    ) -> bool:
        thumbprint = compute_thumbprint(certificate)
        paths = self._entry_paths(scope, thumbprint)
        if paths["cert"].exists():
            logger.debug("Certificate %s already present in %s store", thumbprint, scope.value)
            return False

        directory = self.directories[scope]
        try:
            directory.mkdir(parents=True, exist_ok=True)
            if os.name != "nt":  # Unix only
                os.chmod(directory, stat.S_IRUSR | stat.S_IWUSR | stat.S_IXUSR)

            # Key first, so a visible certificate always has its key beside it
            if private_key is not None:
                key_pem = private_key.private_bytes(
                    encoding=serialization.Encoding.PEM,
                    format=serialization.PrivateFormat.PKCS8,
                    encryption_algorithm=serialization.NoEncryption(),
                )
                paths["key"].write_bytes(key_pem)
                if os.name != "nt":
                    os.chmod(paths["key"], stat.S_IRUSR | stat.S_IWUSR)

            with open(paths["meta"], "w", encoding="utf-8") as f:
                json.dump({"friendly_name": friendly_name or "", "exportable": exportable}, f)

            paths["cert"].write_bytes(
                certificate.public_bytes(serialization.Encoding.PEM)
            )
            if os.name != "nt":
                os.chmod(
                    paths["cert"],
                    stat.S_IRUSR | stat.S_IWUSR | stat.S_IRGRP | stat.S_IROTH,
                )
        except OSError as error:
            self._discard(paths)
            raise WriteError(
                _("Cannot write certificate %s to %s: %s") % (thumbprint, directory, error)
            ) from error

        logger.info("Added certificate %s to %s store", thumbprint, scope.value)
        return True

    def remove_certificate(self, scope: StoreScope, thumbprint: str) -> bool:
        paths = self._entry_paths(scope, thumbprint)
        existed = paths["cert"].exists()
        try:
            self._discard(paths, strict=True)
        except OSError as error:
            raise WriteError(
                _("Cannot remove certificate %s: %s") % (thumbprint, error)
            ) from error
        return existed

    @staticmethod
    def _discard(paths: Dict[str, Path], strict: bool = False) -> None:
        # Certificate goes first so a half-removed entry is never listed
        for name in ("cert", "key", "meta"):
            try:
                paths[name].unlink(missing_ok=True)
            except OSError:
                if strict:
                    raise
                logger.warning(_("Could not clean up %s"), paths[name])
