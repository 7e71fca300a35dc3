"""
Filesystem-safe file names for exported PKCS#12 containers.

Names are ``<CN>_<serial[:8]>.pfx``. A name already taken in the
destination folder gets the first eight thumbprint characters appended,
and only if that is taken too, a running counter.
"""

import re
from pathlib import Path
from typing import Iterable, List, Optional

from src.certmigrate.core.models import CertificateRecord

RESERVED_CHARACTERS = re.compile(r'[\\/:*?"<>|]')
PREFIX_LENGTH = 8
PFX_EXTENSION = ".pfx"


def split_distinguished_name(subject: str) -> List[str]:
    """
    Split a distinguished name into attributes on unescaped "," and "+".

    ``CN=Doe\\, John,O=Example`` yields ``["CN=Doe\\, John", "O=Example"]``.
    """
    parts = []
    current = []
    escaped = False
    for char in subject:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            current.append(char)
            escaped = True
        elif char in ",+":
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


def _unescape(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)


def extract_common_name(subject: str) -> Optional[str]:
    """Return the first CN attribute of ``subject``, or None if there is none."""
    for part in split_distinguished_name(subject or ""):
        attribute, sep, value = part.partition("=")
        if sep and attribute.strip().upper() == "CN":
            return _unescape(value.strip())
    return None


def sanitize(value: str) -> str:
    """Replace filesystem-reserved characters with underscores."""
    return RESERVED_CHARACTERS.sub("_", value)


class NameGenerator:
    """Derives base names and collision-free paths for exported certificates."""

    def __init__(self, extension: str = PFX_EXTENSION):
        self.extension = extension

    def base_name(self, cert: CertificateRecord) -> str:
        """Pure function of the subject and serial number."""
        serial_prefix = cert.serial_number[:PREFIX_LENGTH]

        common_name = extract_common_name(cert.subject)
        label = sanitize(common_name if common_name is not None else cert.subject).strip()
        if not label:
            return f"Cert_{serial_prefix}"
        return f"{label}_{serial_prefix}"

    def resolve_path(
        self,
        cert: CertificateRecord,
        folder: Path,
        reserved: Iterable[str] = (),
    ) -> Path:
        """
        Pick the target path for ``cert`` inside ``folder``.

        ``reserved`` holds file names already claimed without being on disk
        yet, which is how a dry run predicts collisions.
        """
        taken = set(reserved)

        def is_free(name: str) -> bool:
            return name not in taken and not (folder / name).exists()

        base = self.base_name(cert)
        candidate = f"{base}{self.extension}"
        if is_free(candidate):
            return folder / candidate

        base = f"{base}_{cert.thumbprint[:PREFIX_LENGTH]}"
        candidate = f"{base}{self.extension}"
        counter = 1
        while not is_free(candidate):
            candidate = f"{base}_{counter}{self.extension}"
            counter += 1
        return folder / candidate
