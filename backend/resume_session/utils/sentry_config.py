"""
Sentry error tracking configuration
"""
import logging

import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration

from resume_session.config import SENTRY_DSN

logger = logging.getLogger(__name__)


def init_sentry(app, dsn: str = None):
    """
    Initialize Sentry error tracking.
    Set SENTRY_DSN environment variable to enable.
    """
    sentry_dsn = dsn or SENTRY_DSN

    if not sentry_dsn:
        logger.info("Sentry DSN not configured. Error tracking disabled.")
        return False

    sentry_sdk.init(
        dsn=sentry_dsn,
        integrations=[
            FlaskIntegration(transaction_style='url'),
        ],
        traces_sample_rate=0.1,
        environment=app.config.get('ENV', 'production'),
        before_send=lambda event, hint: filter_sensitive_data(event),
    )
    logger.info("Sentry error tracking initialized")
    return True


def filter_sensitive_data(event):
    """
    Filter out sensitive data from Sentry events.
    Resume content and job descriptions never leave the process.
    """
    if 'request' in event:
        if 'headers' in event['request']:
            sensitive_headers = ['authorization', 'cookie', 'x-api-key']
            for header in list(event['request']['headers']):
                if header.lower() in sensitive_headers:
                    event['request']['headers'].pop(header, None)

        if 'data' in event['request']:
            event['request']['data'] = '[Filtered]'

        query_string = event['request'].get('query_string')
        if query_string and ('job=' in query_string or 'token' in query_string.lower()):
            event['request']['query_string'] = '[Filtered]'

    if 'user' in event:
        event['user'].pop('email', None)
        event['user'].pop('username', None)

    return event
