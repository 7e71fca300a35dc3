"""
Tests for the click command-line interface.
"""

# pylint: disable=redefined-outer-name

import logging
from unittest.mock import Mock

import pytest
import yaml
from click.testing import CliRunner

from src.certmigrate.cli.commands import EXIT_FATAL, EXIT_OK, EXIT_PARTIAL, cli
from src.certmigrate.core.errors import PermissionDeniedError
from src.certmigrate.core.models import StoreScope
from src.certmigrate.operations.pfx_codec import PfxCodec
from src.security.secret_password import SecretPassword
from tests.cert_test_base import build_certificate


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging replaces root handlers; put the originals back."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def config_path(tmp_path):
    """Configuration file keeping the application log inside tmp_path."""
    path = tmp_path / "certmigrate.yaml"
    path.write_text(
        yaml.safe_dump({"logging": {"file": str(tmp_path / "certmigrate.log")}}),
        encoding="utf-8",
    )
    return str(path)


@pytest.fixture
def invoke(config_path, file_store, elevated_checker):
    """Run the CLI with the temporary store and an elevated checker."""
    runner = CliRunner()

    def run(args, checker=None, **kwargs):
        obj = {"store": file_store, "privilege_checker": checker or elevated_checker}
        return runner.invoke(cli, ["--config", config_path] + args, obj=obj, **kwargs)

    return run


def _populate(store, names, exportable=True):
    for name in names:
        certificate, key = build_certificate(common_name=name)
        store.add_certificate(StoreScope.USER, certificate, key, exportable=exportable)


def _write_pfx(folder, name, password):
    certificate, key = build_certificate(common_name=name)
    folder.mkdir(exist_ok=True)
    (folder / f"{name}.pfx").write_bytes(
        PfxCodec().encode(certificate, key, SecretPassword(password))
    )


class TestExportCommand:
    """Tests for ``certmigrate export``."""

    def test_export_success(self, invoke, file_store, tmp_path):
        """A clean export exits 0 and reports the audit log."""
        _populate(file_store, ["alpha", "beta"])
        destination = tmp_path / "out"

        result = invoke(
            ["export", "--scope", "user", "-d", str(destination), "--password", "pw1234"]
        )

        assert result.exit_code == EXIT_OK, result.output
        assert "Exported: 2" in result.output
        assert "Failed: 0" in result.output
        assert "Audit log:" in result.output
        assert len(list(destination.glob("*.pfx"))) == 2

    def test_export_partial_failure(self, invoke, file_store, tmp_path):
        """Per-item failures give exit code 2."""
        _populate(file_store, ["alpha"])
        _populate(file_store, ["locked"], exportable=False)

        result = invoke(
            ["export", "--scope", "user", "-d", str(tmp_path / "out"), "--password", "pw1234"]
        )

        assert result.exit_code == EXIT_PARTIAL
        assert "Exported: 1" in result.output
        assert "Failed: 1" in result.output

    def test_export_password_prompt(self, invoke, file_store, tmp_path):
        """Without --password the password is prompted twice."""
        _populate(file_store, ["alpha"])

        result = invoke(
            ["export", "--scope", "user", "-d", str(tmp_path / "out")],
            input="pw1234\npw1234\n",
        )

        assert result.exit_code == EXIT_OK, result.output
        assert "Exported: 1" in result.output

    def test_export_password_from_environment(self, invoke, file_store, tmp_path):
        """CERTMIGRATE_PASSWORD supplies the password."""
        _populate(file_store, ["alpha"])

        result = invoke(
            ["export", "--scope", "user", "-d", str(tmp_path / "out")],
            env={"CERTMIGRATE_PASSWORD": "pw1234"},
        )

        assert result.exit_code == EXIT_OK, result.output

    def test_export_dry_run(self, invoke, file_store, tmp_path):
        """A dry run needs no password and writes nothing."""
        _populate(file_store, ["alpha"])
        destination = tmp_path / "out"

        result = invoke(["export", "--scope", "user", "-d", str(destination), "--dry-run"])

        assert result.exit_code == EXIT_OK, result.output
        assert "Dry run: 1 certificate would be exported" in result.output
        assert not destination.exists()

    def test_export_filters(self, invoke, file_store, tmp_path):
        """Subject filters are passed through."""
        _populate(file_store, ["payroll", "mail"])

        result = invoke(
            [
                "export",
                "--scope",
                "user",
                "-d",
                str(tmp_path / "out"),
                "--password",
                "pw1234",
                "--subject",
                "payroll",
            ]
        )

        assert "Exported: 1" in result.output
        assert "Excluded by filters: 1" in result.output

    def test_export_machine_scope_denied(self, invoke, tmp_path):
        """A missing privilege is fatal."""
        checker = Mock()
        checker.require.side_effect = PermissionDeniedError("needs elevation")

        result = invoke(
            ["export", "--scope", "machine", "-d", str(tmp_path / "out"), "--password", "pw1234"],
            checker=checker,
        )

        assert result.exit_code == EXIT_FATAL
        assert "needs elevation" in result.output

    def test_negative_min_days_rejected(self, invoke, tmp_path):
        """--min-days must not be negative."""
        result = invoke(
            ["export", "--scope", "user", "-d", str(tmp_path), "--password", "x", "--min-days", "-1"]
        )

        assert result.exit_code != EXIT_OK


class TestImportCommand:
    """Tests for ``certmigrate import``."""

    def test_import_success(self, invoke, file_store, tmp_path):
        """Importing valid files exits 0."""
        source = tmp_path / "in"
        _write_pfx(source, "alpha", "pw1234")
        _write_pfx(source, "beta", "pw1234")

        result = invoke(["import", "--scope", "user", "-s", str(source), "--password", "pw1234"])

        assert result.exit_code == EXIT_OK, result.output
        assert "Imported: 2" in result.output
        assert len(file_store.list_certificates(StoreScope.USER)) == 2

    def test_import_wrong_password_file(self, invoke, tmp_path):
        """A file with another password gives exit code 2."""
        source = tmp_path / "in"
        _write_pfx(source, "alpha", "pw1234")
        _write_pfx(source, "beta", "other1")

        result = invoke(["import", "--scope", "user", "-s", str(source), "--password", "pw1234"])

        assert result.exit_code == EXIT_PARTIAL
        assert "Imported: 1" in result.output
        assert "Failed: 1" in result.output

    def test_import_skip_existing(self, invoke, tmp_path):
        """The second run with --skip-existing skips everything."""
        source = tmp_path / "in"
        _write_pfx(source, "alpha", "pw1234")
        args = ["import", "--scope", "user", "-s", str(source), "--password", "pw1234", "--skip-existing"]

        invoke(args)
        result = invoke(args)

        assert result.exit_code == EXIT_OK, result.output
        assert "Imported: 0" in result.output
        assert "Skipped: 1" in result.output

    def test_import_direct_mode(self, invoke, tmp_path):
        """--validation-mode direct is accepted."""
        source = tmp_path / "in"
        _write_pfx(source, "alpha", "pw1234")

        result = invoke(
            [
                "import",
                "--scope",
                "user",
                "-s",
                str(source),
                "--password",
                "pw1234",
                "--validation-mode",
                "direct",
            ]
        )

        assert result.exit_code == EXIT_OK, result.output
        assert "Imported: 1" in result.output

    def test_import_missing_source(self, invoke, tmp_path):
        """A missing folder is fatal."""
        result = invoke(
            ["import", "--scope", "user", "-s", str(tmp_path / "nope"), "--password", "pw1234"]
        )

        assert result.exit_code == EXIT_FATAL

    def test_import_dry_run(self, invoke, file_store, tmp_path):
        """A dry run lists files without a password."""
        source = tmp_path / "in"
        _write_pfx(source, "alpha", "pw1234")

        result = invoke(["import", "--scope", "user", "-s", str(source), "--dry-run"])

        assert result.exit_code == EXIT_OK, result.output
        assert "Dry run: 1 file would be imported" in result.output
        assert "alpha.pfx" in result.output
        assert file_store.list_certificates(StoreScope.USER) == []


class TestListCommand:
    """Tests for ``certmigrate list``."""

    def test_list(self, invoke, file_store):
        """Every certificate is printed with a count."""
        _populate(file_store, ["alpha", "beta"])

        result = invoke(["list", "--scope", "user"])

        assert result.exit_code == EXIT_OK, result.output
        assert "CN=alpha" in result.output
        assert "CN=beta" in result.output
        assert "2 certificates" in result.output

    def test_list_with_filter(self, invoke, file_store):
        """Filters narrow the listing."""
        _populate(file_store, ["alpha", "beta"])

        result = invoke(["list", "--scope", "user", "--subject", "beta"])

        assert "CN=alpha" not in result.output
        assert "1 certificate" in result.output


class TestGroupOptions:
    """Tests for the top-level options."""

    def test_missing_config_file(self, tmp_path):
        """A named config file that does not exist is fatal."""
        result = CliRunner().invoke(
            cli, ["--config", str(tmp_path / "missing.yaml"), "list", "--scope", "user"], obj={}
        )

        assert result.exit_code == EXIT_FATAL

    def test_invalid_config_value(self, tmp_path, file_store):
        """Unknown encryption profiles are rejected up front."""
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump({"pfx": {"encryption": "rc2"}}), encoding="utf-8")

        result = CliRunner().invoke(
            cli, ["--config", str(path), "list", "--scope", "user"], obj={"store": file_store}
        )

        assert result.exit_code == EXIT_FATAL
        assert "rc2" in result.output
