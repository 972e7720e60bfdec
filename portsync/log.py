"""Logging setup for the pod forwarder."""
import logging

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class SafeUnicodeFilter(logging.Filter):
    """Replace surrogate characters in log records.

    kubectl stderr and API error bodies can carry undecodable bytes that
    surface as surrogates (U+D800 to U+DFFF); writing those to a UTF-8
    stream raises UnicodeEncodeError.
    """

    @staticmethod
    def _sanitize(value):
        if not isinstance(value, str):
            return value
        try:
            value.encode('utf-8')
        except UnicodeEncodeError:
            return value.encode('utf-8', errors='replace').decode('utf-8')
        return value

    def filter(self, record):
        record.msg = self._sanitize(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(self._sanitize(arg) for arg in record.args)
        return True


def configure_logging(level="INFO"):
    """
    Configure root logging for a forwarding session.

    Args:
        level: Log level name or number (default: INFO)
    """
    logging.basicConfig(level=level, format=LOG_FORMAT)
    safe_filter = SafeUnicodeFilter()
    for handler in logging.root.handlers:
        if not any(isinstance(f, SafeUnicodeFilter) for f in handler.filters):
            handler.addFilter(safe_filter)
