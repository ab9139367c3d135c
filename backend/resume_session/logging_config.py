"""
Logging configuration for the resume session backend.

Log lines carry the structured `extra=` fields as key=value pairs, e.g.

    [INFO] 14:02:11 resume_session.services.workflow_router - Resolved editor entry | signal=url_payload workflow=tailor
"""
import logging
import sys

from resume_session.config import LOG_LEVEL

# Third-party loggers that are only useful when debugging them
QUIET_LOGGERS = ('werkzeug', 'httpx', 'httpcore', 'urllib3', 'google.auth', 'google.api_core')

MAX_FIELD_LENGTH = 120


class ExtraFieldsFormatter(logging.Formatter):
    """Formatter that appends extra fields to log messages."""

    STANDARD_FIELDS = set(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {'message', 'asctime'}

    def format(self, record):
        base_message = super().format(record)

        extra_fields = {
            k: v for k, v in record.__dict__.items()
            if k not in self.STANDARD_FIELDS
        }
        if not extra_fields:
            return base_message

        pairs = []
        for key, value in sorted(extra_fields.items()):
            text = str(value)
            if len(text) > MAX_FIELD_LENGTH:
                # Job titles and error bodies can be arbitrarily long
                text = text[:MAX_FIELD_LENGTH] + '...'
            pairs.append(f'{key}={text}')
        return f"{base_message} | {' '.join(pairs)}"


def configure_logging(level=None):
    """Route root logging to stdout through ExtraFieldsFormatter."""
    formatter = ExtraFieldsFormatter(
        fmt='[%(levelname)s] %(asctime)s %(name)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level or LOG_LEVEL)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
