"""
Pytest configuration and shared fixtures for CertMigrate tests.
"""

from datetime import timedelta
from unittest.mock import Mock

import pytest

from src.certmigrate.core.models import CertificateRecord, StoreScope
from src.security.certificate_store import FileCertificateStore
from tests.cert_test_base import FIXED_NOW, build_certificate


@pytest.fixture
def cert_factory():
    """Factory fixture producing (certificate, private_key) pairs."""
    return build_certificate


@pytest.fixture
def record_factory():
    """Factory fixture producing CertificateRecord snapshots without crypto."""
    counter = {"value": 0}

    def make(  # pylint: disable=too-many-arguments
        subject="CN=test.example.com,O=Example Org",
        issuer="CN=Example CA,O=Example Org",
        serial_number=None,
        thumbprint=None,
        days_valid=365,
        has_private_key=True,
        friendly_name="",
    ):
        counter["value"] += 1
        return CertificateRecord(
            subject=subject,
            issuer=issuer,
            serial_number=serial_number or f"{counter['value']:016X}",
            thumbprint=thumbprint or f"{counter['value']:064X}",
            not_before=FIXED_NOW - timedelta(days=400),
            not_after=FIXED_NOW + timedelta(days=days_valid),
            has_private_key=has_private_key,
            friendly_name=friendly_name,
        )

    return make


@pytest.fixture
def file_store(tmp_path):
    """File-backed store with both scopes rooted in a temporary directory."""
    return FileCertificateStore(
        {
            StoreScope.USER: str(tmp_path / "user-store"),
            StoreScope.MACHINE: str(tmp_path / "machine-store"),
        }
    )


@pytest.fixture
def elevated_checker():
    """Privilege checker reporting an elevated process."""
    checker = Mock()
    checker.require = Mock(return_value=None)
    checker.is_elevated = Mock(return_value=True)
    return checker
