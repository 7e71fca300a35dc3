"""
Privilege detection for machine-scoped store access.
"""

import logging
import os
import sys

from src.certmigrate.core.errors import PermissionDeniedError
from src.certmigrate.core.models import StoreScope
from src.i18n import _

logger = logging.getLogger(__name__)


def is_running_privileged() -> bool:
    """
    Detect if the process is running with elevated/privileged access.

    Windows checks for an administrator token, Unix-like systems check for
    an effective UID of 0.

    Returns:
        bool: True if running with elevated privileges, False otherwise
    """
    try:
        if sys.platform == "win32":
            import ctypes  # pylint: disable=import-outside-toplevel

            return ctypes.windll.shell32.IsUserAnAdmin() != 0

        return os.geteuid() == 0

    except Exception:  # pylint: disable=broad-exception-caught
        # If we can't determine privilege level, assume non-privileged
        logger.debug("Unable to determine privilege level", exc_info=True)
        return False


class PrivilegeChecker:
    """Gatekeeper used by the engines before touching a store."""

    def is_elevated(self) -> bool:
        """Return True when the current process holds elevated privilege."""
        return is_running_privileged()

    def require(self, scope: StoreScope) -> None:
        """Raise PermissionDeniedError when ``scope`` needs elevation we lack."""
        if scope.requires_elevation and not self.is_elevated():
            raise PermissionDeniedError(
                _("Access to the %s store requires elevated privileges") % scope.label
            )
