"""
PKCS#12 (PFX) encoding and decoding.

Wraps ``cryptography``'s pkcs12 serialization. Passwords arrive as
``SecretPassword`` objects and are revealed only for the duration of the
underlying call.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from src.certmigrate.core.errors import DecodeError, EncodeError, KeyNotExportableError
from src.certmigrate.core.models import compute_thumbprint
from src.i18n import _
from src.security.secret_password import SecretPassword

logger = logging.getLogger(__name__)

# Iteration count used by older CSPs for the legacy 3DES profile
_LEGACY_KDF_ROUNDS = 2048


@dataclass
class DecodedPfx:
    """Contents of a successfully decoded container."""

    certificate: x509.Certificate
    private_key: object
    friendly_name: str = ""
    additional_certs: List[x509.Certificate] = field(default_factory=list)

    @property
    def thumbprint(self) -> str:
        """Identity fingerprint of the leaf certificate."""
        return compute_thumbprint(self.certificate)

    @property
    def subject(self) -> str:
        """RFC 4514 subject of the leaf certificate."""
        return self.certificate.subject.rfc4514_string()


def _public_bytes(public_key) -> bytes:
    return public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


class PfxCodec:
    """Builds and parses password-protected PKCS#12 containers."""

    def __init__(self, encryption: str = "aes256"):
        if encryption not in ("aes256", "legacy"):
            raise ValueError(f"Unsupported PKCS#12 encryption profile: {encryption}")
        self.encryption = encryption

    def _encryption_algorithm(self, password: bytes):
        if self.encryption == "legacy":
            return (
                serialization.PrivateFormat.PKCS12.encryption_builder()
                .kdf_rounds(_LEGACY_KDF_ROUNDS)
                .key_cert_algorithm(pkcs12.PBES.PBESv1SHA1And3KeyTripleDESCBC)
                .hmac_hash(hashes.SHA1())
                .build(password)
            )
        return serialization.BestAvailableEncryption(password)

    def encode(
        self,
        certificate: x509.Certificate,
        private_key,
        password: SecretPassword,
        friendly_name: Optional[str] = None,
        ca_certs: Optional[List[x509.Certificate]] = None,
    ) -> bytes:
        """
        Serialize a certificate and its private key into PFX bytes.

        Raises:
            KeyNotExportableError: If no private key is available
            EncodeError: If the key does not match or serialization fails
        """
        if private_key is None:
            raise KeyNotExportableError(_("No private key available for export"))

        try:
            if _public_bytes(private_key.public_key()) != _public_bytes(
                certificate.public_key()
            ):
                raise EncodeError(
                    _("Private key does not match certificate public key")
                )
        except (AttributeError, ValueError, TypeError) as error:
            raise EncodeError(_("Unsupported private key: %s") % error) from error

        name = friendly_name.encode("utf-8") if friendly_name else None
        try:
            with password.reveal() as secret:
                return pkcs12.serialize_key_and_certificates(
                    name=name,
                    key=private_key,
                    cert=certificate,
                    cas=ca_certs or None,
                    encryption_algorithm=self._encryption_algorithm(secret),
                )
        except (ValueError, TypeError) as error:
            raise EncodeError(_("PKCS#12 serialization failed: %s") % error) from error

    def decode(self, data: bytes, password: SecretPassword) -> DecodedPfx:
        """
        Parse PFX bytes.

        Raises:
            DecodeError: Wrong password, corrupt or truncated data, or a
                container without a certificate or private key
        """
        try:
            with password.reveal() as secret:
                bundle = pkcs12.load_pkcs12(data, secret)
        except (ValueError, TypeError) as error:
            # Generic message so callers cannot tell a bad password from bad data
            logger.debug("PKCS#12 parse failure: %s", error)
            raise DecodeError(
                _("Failed to decrypt PKCS#12 (wrong password or corrupted data)")
            ) from error

        if bundle.cert is None:
            raise DecodeError(_("PKCS#12 container holds no certificate"))
        if bundle.key is None:
            raise DecodeError(_("PKCS#12 container holds no private key"))

        friendly_name = bundle.cert.friendly_name
        return DecodedPfx(
            certificate=bundle.cert.certificate,
            private_key=bundle.key,
            friendly_name=friendly_name.decode("utf-8", "replace") if friendly_name else "",
            additional_certs=[extra.certificate for extra in bundle.additional_certs],
        )
