"""
Command-line interface for CertMigrate.

Exit codes: 0 when every item succeeded (or was skipped), 2 when some
items failed, 1 when the operation could not run at all.
"""

import logging
import os
from typing import Optional

import click

from src.certmigrate.collection.store_inventory import StoreInventory
from src.certmigrate.core.config import VALIDATION_MODES, ConfigManager
from src.certmigrate.core.errors import CertMigrateError
from src.certmigrate.core.models import ExportFilterSpec, StoreScope
from src.certmigrate.core.privilege import PrivilegeChecker
from src.certmigrate.operations.export_engine import ExportEngine
from src.certmigrate.operations.import_engine import ImportEngine
from src.certmigrate.operations.pfx_codec import PfxCodec
from src.certmigrate.utils.logging_formatter import UTCTimestampFormatter
from src.certmigrate.utils.verbosity_logger import get_logger
from src.i18n import _, ngettext, set_language
from src.security.certificate_store import FileCertificateStore
from src.security.secret_password import SecretPassword

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_PARTIAL = 2

SCOPE_CHOICE = click.Choice([scope.value for scope in StoreScope])


def setup_logging(config: ConfigManager, verbose: bool = False) -> str:
    """Attach file (and optionally console) handlers to the root logger."""
    log_level = config.get_log_level()
    log_file = config.get_log_file()

    if not log_file:
        env_log_dir = os.environ.get("CERTMIGRATE_LOG_DIR")
        logs_dir = env_log_dir or os.path.join(os.getcwd(), "logs")
        os.makedirs(logs_dir, exist_ok=True)
        log_file = os.path.join(logs_dir, "certmigrate.log")

    # Pipe-separated levels are filtered by FlexibleLogger; handlers use the first
    if "|" in log_level:
        log_level = log_level.split("|")[0].strip()
    level = logging.DEBUG if verbose else getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = UTCTimestampFormatter(config.get_log_format())
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)
    root_logger.setLevel(level)

    if os.environ.get("CERTMIGRATE_LOG_CONSOLE", "").lower() in ("1", "true", "yes"):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    return log_file


def _progress_printer(enabled: bool):
    if not enabled:
        return None

    def report(percent: int, label: str) -> None:
        click.echo(f"  [{percent:3d}%] {label}", err=True)

    return report


def _make_filter(min_days: Optional[int], subject: str, issuer: str) -> ExportFilterSpec:
    return ExportFilterSpec(
        min_days_remaining=min_days or 0,
        subject_filter=subject or "",
        issuer_filter=issuer or "",
    )


def _read_password(password: Optional[str], needed: bool, confirm: bool) -> Optional[SecretPassword]:
    if password is None and needed:
        password = click.prompt(_("PFX password"), hide_input=True, confirmation_prompt=confirm)
    return SecretPassword(password) if password is not None else None


def _fail(ctx: click.Context, error: Exception) -> None:
    ctx.obj["logger"].error("Operation aborted: %s", error)
    click.echo(f"✗ {error}", err=True)
    ctx.exit(EXIT_FATAL)


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Configuration file path")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Export and import certificates with private keys as PFX files."""
    ctx.ensure_object(dict)
    try:
        config = ConfigManager(config_path)
        config.get_pfx_encryption()
        config.get_validation_mode()
    except (FileNotFoundError, ValueError, RuntimeError) as error:
        click.echo(f"✗ {error}", err=True)
        ctx.exit(EXIT_FATAL)

    set_language(config.get_language())
    setup_logging(config, verbose)

    ctx.obj["config"] = config
    ctx.obj["logger"] = get_logger("certmigrate.cli", config)
    ctx.obj.setdefault("store", FileCertificateStore.from_config(config))
    ctx.obj.setdefault("privilege_checker", PrivilegeChecker())


@cli.command("export")
@click.option("--scope", type=SCOPE_CHOICE, required=True, help="Store to export from")
@click.option("--destination", "-d", required=True, type=click.Path(file_okay=False), help="Output folder")
@click.option("--password", envvar="CERTMIGRATE_PASSWORD", default=None,
              help="PFX password (prompted when omitted)")
@click.option("--min-days", type=click.IntRange(min=0), default=0, help="Minimum days before expiry")
@click.option("--subject", default="", help="Subject substring filter")
@click.option("--issuer", default="", help="Issuer substring filter")
@click.option("--dry-run", is_flag=True, help="Show what would be exported")
@click.option("--progress", is_flag=True, help="Report progress")
@click.pass_context
def export_command(ctx, scope, destination, password, min_days, subject, issuer, dry_run, progress):  # pylint: disable=too-many-arguments
    """Export certificates with private keys to PFX files."""
    config = ctx.obj["config"]
    engine = ExportEngine(
        ctx.obj["store"],
        codec=PfxCodec(config.get_pfx_encryption()),
        privilege_checker=ctx.obj["privilege_checker"],
    )

    try:
        summary = engine.export(
            StoreScope(scope),
            destination,
            _read_password(password, needed=not dry_run, confirm=True),
            filter_spec=_make_filter(min_days, subject, issuer),
            preview=dry_run,
            progress=_progress_printer(progress),
        )
    except CertMigrateError as error:
        _fail(ctx, error)
        return

    if dry_run:
        count = len(summary.preview)
        click.echo(
            ngettext(
                "Dry run: %d certificate would be exported",
                "Dry run: %d certificates would be exported",
                count,
            )
            % count
        )
        for item in summary.preview:
            expiry = item.not_after.date().isoformat() if item.not_after else "?"
            click.echo(f"  {item.subject}  [{item.thumbprint}]  -> {item.target}  (expires {expiry})")
        return

    click.echo(_("Exported: %d") % summary.exported)
    click.echo(_("Failed: %d") % summary.failed)
    if summary.filtered_out:
        click.echo(_("Excluded by filters: %d") % summary.filtered_out)
    if summary.log_path:
        click.echo(_("Audit log: %s") % summary.log_path)
    ctx.exit(EXIT_PARTIAL if summary.failed else EXIT_OK)


@cli.command("import")
@click.option("--scope", type=SCOPE_CHOICE, required=True, help="Store to import into")
@click.option("--source", "-s", required=True, type=click.Path(file_okay=False), help="Folder holding PFX files")
@click.option("--password", envvar="CERTMIGRATE_PASSWORD", default=None,
              help="PFX password (prompted when omitted)")
@click.option("--skip-existing", is_flag=True, help="Skip certificates already in the store")
@click.option("--validation-mode", type=click.Choice(VALIDATION_MODES), default=None,
              help="prevalidate decodes every file first; direct writes immediately")
@click.option("--dry-run", is_flag=True, help="List candidate files only")
@click.option("--progress", is_flag=True, help="Report progress")
@click.pass_context
def import_command(ctx, scope, source, password, skip_existing, validation_mode, dry_run, progress):  # pylint: disable=too-many-arguments
    """Import PFX files from a folder into a certificate store."""
    config = ctx.obj["config"]
    engine = ImportEngine(
        ctx.obj["store"],
        codec=PfxCodec(config.get_pfx_encryption()),
        privilege_checker=ctx.obj["privilege_checker"],
        extensions=config.get_pfx_extensions(),
        mark_exportable=config.should_mark_exportable(),
    )

    try:
        summary = engine.import_certificates(
            StoreScope(scope),
            source,
            _read_password(password, needed=not dry_run, confirm=False),
            skip_existing=skip_existing,
            validation_mode=validation_mode or config.get_validation_mode(),
            preview=dry_run,
            progress=_progress_printer(progress),
        )
    except CertMigrateError as error:
        _fail(ctx, error)
        return

    if dry_run:
        count = len(summary.preview)
        click.echo(
            ngettext(
                "Dry run: %d file would be imported",
                "Dry run: %d files would be imported",
                count,
            )
            % count
        )
        for item in summary.preview:
            click.echo(f"  {item.name}  ({item.size} bytes)")
        return

    click.echo(_("Imported: %d") % summary.imported)
    click.echo(_("Skipped: %d") % summary.skipped)
    click.echo(_("Failed: %d") % summary.failed)
    if summary.log_path:
        click.echo(_("Audit log: %s") % summary.log_path)
    ctx.exit(EXIT_PARTIAL if summary.failed else EXIT_OK)


@cli.command("list")
@click.option("--scope", type=SCOPE_CHOICE, required=True, help="Store to list")
@click.option("--min-days", type=click.IntRange(min=0), default=None, help="Minimum days before expiry")
@click.option("--subject", default="", help="Subject substring filter")
@click.option("--issuer", default="", help="Issuer substring filter")
@click.pass_context
def list_command(ctx, scope, min_days, subject, issuer):
    """List certificates in a store."""
    inventory = StoreInventory(ctx.obj["store"])
    filter_spec = None
    if min_days is not None or subject or issuer:
        filter_spec = _make_filter(min_days, subject, issuer)

    try:
        rows = inventory.list(StoreScope(scope), filter_spec)
    except CertMigrateError as error:
        _fail(ctx, error)
        return

    for row in rows:
        key_marker = "key" if row["has_private_key"] else "no key"
        click.echo(
            f"{row['thumbprint'][:16]}  {row['days_remaining']:>5}d  {key_marker:6}  {row['subject']}"
        )
    click.echo(ngettext("%d certificate", "%d certificates", len(rows)) % len(rows))


def main() -> None:
    """Console script entry point."""
    cli(obj={})  # pylint: disable=no-value-for-parameter
