"""
Configuration management for CertMigrate.
Reads YAML configuration files and provides configuration data.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import yaml

from src.certmigrate.core.models import StoreScope
from src.i18n import _

CONFIG_ENV_VAR = "CERTMIGRATE_CONFIG"
CONFIG_FILENAME = "certmigrate.yaml"

VALIDATION_MODES = ("prevalidate", "direct")
ENCRYPTION_PROFILES = ("aes256", "legacy")


class ConfigManager:
    """Manages configuration for CertMigrate."""

    def __init__(self, config_file: Optional[str] = None):
        self.logger = logging.getLogger(__name__)

        # An explicitly named file must exist; implicit lookups may fall back to defaults
        self.explicit = config_file is not None
        self.config_file = self._determine_config_path(config_file)
        self.config_data: Dict[str, Any] = {}
        self.load_config()

    def _determine_config_path(self, config_file: Optional[str]) -> Optional[str]:
        """
        Determine configuration file path.

        Priority order:
        1. Explicitly provided path
        2. CERTMIGRATE_CONFIG environment variable
        3. Platform-specific system config location
        4. ./certmigrate.yaml (local config)
        """
        if config_file:
            return config_file

        env_config = os.environ.get(CONFIG_ENV_VAR)
        if env_config:
            self.explicit = True
            return env_config

        if os.name == "nt":  # Windows
            system_config = r"C:\ProgramData\CertMigrate\certmigrate.yaml"
        else:  # Unix-like (Linux, macOS, BSD)
            system_config = "/etc/certmigrate.yaml"

        local_config = os.path.join(".", CONFIG_FILENAME)

        if os.path.exists(system_config):
            return system_config
        if os.path.exists(local_config):
            return local_config
        return None

    def load_config(self) -> None:
        """Load configuration from YAML file."""
        if self.config_file is None:
            self.logger.debug("No configuration file found, using defaults")
            return

        if not os.path.exists(self.config_file):
            if self.explicit:
                raise FileNotFoundError(
                    _("Configuration file '%s' not found") % self.config_file
                )
            return

        try:
            with open(self.config_file, "r", encoding="utf-8") as file:
                self.config_data = yaml.safe_load(file) or {}
        except yaml.YAMLError as e:
            raise ValueError(_("Invalid YAML in configuration file: %s") % e) from e
        except OSError as e:
            raise RuntimeError(_("Failed to load configuration file: %s") % e) from e

        if not isinstance(self.config_data, dict):
            raise ValueError(
                _("Configuration file '%s' must contain a mapping") % self.config_file
            )

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key_path: Dot-separated path to the configuration key (e.g., 'store.user_dir')
            default: Default value if key is not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split(".")
        value = self.config_data

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def get_store_dir(self, scope: StoreScope) -> Optional[str]:
        """Get the configured store directory for ``scope``, if any."""
        value = self.get(f"store.{scope.value}_dir")
        return os.path.expanduser(value) if value else None

    def get_pfx_encryption(self) -> str:
        """Get the PKCS#12 encryption profile."""
        profile = str(self.get("pfx.encryption", "aes256")).lower()
        if profile not in ENCRYPTION_PROFILES:
            raise ValueError(_("Unknown pfx.encryption profile: %s") % profile)
        return profile

    def get_pfx_extensions(self) -> List[str]:
        """Get file extensions recognised as PKCS#12 containers."""
        extensions = self.get("pfx.extensions", [".pfx", ".p12"])
        if isinstance(extensions, str):
            extensions = [extensions]
        return [
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in extensions
        ]

    def get_validation_mode(self) -> str:
        """Get the default import validation mode."""
        mode = str(self.get("import.validation_mode", "prevalidate")).lower()
        if mode not in VALIDATION_MODES:
            raise ValueError(_("Unknown import.validation_mode: %s") % mode)
        return mode

    def should_mark_exportable(self) -> bool:
        """Check if imported keys should be marked exportable."""
        return bool(self.get("import.mark_exportable", True))

    def get_log_level(self) -> str:
        """Get logging level."""
        return self.get("logging.level", "INFO")

    def get_log_file(self) -> Optional[str]:
        """Get log file path if specified."""
        return self.get("logging.file")

    def get_log_format(self) -> str:
        """Get log format string."""
        return self.get("logging.format", "%(levelname)s: %(name)s: %(message)s")

    def get_language(self) -> str:
        """Get configured language/locale."""
        return self.get("i18n.language", "en")
