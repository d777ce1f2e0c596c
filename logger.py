"""
Structured request logging.

One StructuredLogger per HTTP request, carrying a correlation id taken from
the X-Request-ID header (or generated). Entries are written as single JSON
lines through the stdlib `logging` module under the "myflix" logger.

Sensitive fields (passwords, tokens, authorization headers) are redacted
before anything is written.
"""

import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Mapping

LOGGER_NAME = "myflix"

# Sensitive field names that should never be logged
SENSITIVE_FIELDS = {
    'password',
    'token',
    'access_token',
    'secret',
    'authorization',
    'credentials',
}


class StructuredLogger:
    """
    Structured logger for one request.

    Usage:
        logger = StructuredLogger(correlation_id='abc-123', operation='PATCH /users/alice')
        logger.log_request_start(path='/users/alice', method='PATCH')
        # ... process request ...
        logger.log_request_complete(status_code=200)
    """

    def __init__(self, correlation_id: str, operation: str):
        self.correlation_id = correlation_id
        self.operation = operation
        self.start_time = time.time()
        self._logger = logging.getLogger(LOGGER_NAME)

    def _sanitize_data(self, data: Any) -> Any:
        if isinstance(data, list):
            return [self._sanitize_data(item) for item in data]
        if not isinstance(data, dict):
            return data

        sanitized = {}
        for key, value in data.items():
            if str(key).lower() in SENSITIVE_FIELDS:
                sanitized[key] = '[REDACTED]'
            else:
                sanitized[key] = self._sanitize_data(value)
        return sanitized

    def _latency_ms(self) -> int:
        return int((time.time() - self.start_time) * 1000)

    def _log(self, level: int, event: str, **kwargs: Any) -> None:
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'correlationId': self.correlation_id,
            'operation': self.operation,
            'event': event,
            **self._sanitize_data(kwargs)
        }
        self._logger.log(level, json.dumps(log_entry, default=str))

    def log_request_start(self, path: str, method: str, **additional_fields: Any) -> None:
        self._log(logging.INFO, 'request_start', path=path, httpMethod=method, **additional_fields)

    def log_request_complete(self, status_code: int, **additional_fields: Any) -> None:
        """Log request completion with latency in milliseconds."""
        self._log(
            logging.INFO,
            'request_complete',
            statusCode=status_code,
            latencyMs=self._latency_ms(),
            **additional_fields
        )

    def log_validation_error(self, message: str, **additional_fields: Any) -> None:
        self._log(logging.INFO, 'validation_error', errorMessage=message, latencyMs=self._latency_ms(),
                  **additional_fields)

    def log_domain_error(self, error_code: str, error_message: str, **additional_fields: Any) -> None:
        """
        Log an expected, non-validation failure (not found, forbidden,
        database error met while validating).
        """
        level = logging.ERROR if error_code == 'DATABASE_ERROR' else logging.WARNING
        self._log(
            level,
            'domain_error',
            errorCode=error_code,
            errorMessage=error_message,
            latencyMs=self._latency_ms(),
            **additional_fields
        )

    def log_unexpected_error(self, error_type: str, error_message: str, **additional_fields: Any) -> None:
        self._log(
            logging.ERROR,
            'unexpected_error',
            errorType=error_type,
            errorMessage=error_message,
            latencyMs=self._latency_ms(),
            **additional_fields
        )


def create_logger(headers: Mapping[str, str], operation: str) -> StructuredLogger:
    correlation_id = headers.get('x-request-id') or str(uuid.uuid4())
    return StructuredLogger(correlation_id, operation)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format="%(message)s")
