"""
UTC timestamp logging formatter for CertMigrate.

Every log line is prefixed with a UTC timestamp in square brackets so that
the application log lines up with the ISO timestamps of the audit logs.
"""

import datetime
import logging


class UTCTimestampFormatter(logging.Formatter):
    """
    Formatter that prefixes records with the UTC time they were created.

    Format: [YYYY-MM-DD HH:MM:SS.sss UTC] LEVEL: message
    """

    def format(self, record):
        created = datetime.datetime.fromtimestamp(
            record.created, tz=datetime.timezone.utc
        )
        timestamp = created.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

        return f"[{timestamp} UTC] {super().format(record)}"
