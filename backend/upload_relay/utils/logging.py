"""
Structured JSON logging for the upload relay.

Every record carries timestamp, level, logger name and service. The
event helpers below add an "event" field plus whatever is relevant:
- record_id, pathway and duration_ms for ledger writes
- keys and expires_in for issued credentials
- operation and key for storage failures

Signed upload URLs are capabilities and are never passed to these helpers.

Usage:
    from upload_relay.utils.logging import configure_logging, log_upload_recorded

    configure_logging('upload-relay', 'INFO')
    log_upload_recorded(logger, record_id='123', pathway='presigned', url_count=1)
"""
import logging
import sys
from typing import Optional, Dict, Any
from pythonjsonlogger import jsonlogger

_LOG_FORMAT = '%(timestamp)s %(levelname)s %(name)s %(service)s %(message)s'

_handler: Optional[logging.Handler] = None


class ServiceFilter(logging.Filter):
    """Stamps the service name on every record passing the handler."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def filter(self, record):
        record.service = self.service_name
        return True


def configure_logging(service_name: str, log_level: str = "INFO") -> logging.Handler:
    """
    Route the root logger to a single JSON handler on stdout.

    Safe to call more than once: the handler installed by an earlier
    call is replaced, so the level and service name can change.
    """
    global _handler

    root_logger = logging.getLogger()
    if _handler is not None:
        root_logger.removeHandler(_handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(jsonlogger.JsonFormatter(
        _LOG_FORMAT,
        timestamp=True,
        json_ensure_ascii=False
    ))
    handler.addFilter(ServiceFilter(service_name))

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    _handler = handler
    return handler


def _build_log_extra(
    event: str,
    record_id: Optional[str] = None,
    pathway: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **kwargs
) -> Dict[str, Any]:
    """Assemble the extra dict; optional fields are left out when unset."""
    extra = {
        "event": event,
        **kwargs
    }

    if record_id:
        extra["record_id"] = record_id
    if pathway:
        extra["pathway"] = pathway
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)

    return extra


def log_credentials_issued(
    logger: logging.Logger,
    keys: list,
    expires_in: int
):
    """
    Log presigned credential issuance.

    Only storage keys are logged, never the signed URLs.
    """
    extra = _build_log_extra(
        event="credentials_issued",
        pathway="presigned",
        keys=keys,
        count=len(keys),
        expires_in=expires_in,
    )

    logger.info(f"Issued {len(keys)} upload credential(s)", extra=extra)


def log_upload_recorded(
    logger: logging.Logger,
    record_id: str,
    pathway: str,
    url_count: int,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """
    Log a ledger write.

    Args:
        logger: Logger instance
        record_id: Ledger record ID
        pathway: direct_proxy or presigned
        url_count: Number of objects covered by the record
        duration_ms: Time spent in the INSERT and commit
        **kwargs: Additional fields (e.g. backend)
    """
    extra = _build_log_extra(
        event="upload_recorded",
        record_id=record_id,
        pathway=pathway,
        duration_ms=duration_ms,
        url_count=url_count,
        **kwargs
    )

    logger.info(f"Upload recorded: {record_id} ({pathway})", extra=extra)


def log_storage_failure(
    logger: logging.Logger,
    operation: str,
    error: str,
    key: Optional[str] = None
):
    """
    Log a storage backend failure.

    Args:
        logger: Logger instance
        operation: sign, put or head
        error: Error message
        key: Storage key involved, if any
    """
    extra = _build_log_extra(
        event="storage_failure",
        operation=operation,
        error=str(error),
    )
    if key:
        extra["key"] = key

    logger.error(f"Storage failure: {operation} - {error}", extra=extra)


def log_request_failed(
    logger: logging.Logger,
    method: str,
    path: str,
    error_type: str,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
    exc_info: Any = None
):
    """
    Log a request that ended in an error response.

    5xx responses are logged at ERROR, everything else at WARNING.
    Pass exc_info for unexpected exceptions so the traceback is kept.
    """
    extra = _build_log_extra(
        event="request_failed",
        error_type=error_type,
        status_code=status_code,
        details=details or {},
    )
    level = logging.ERROR if status_code >= 500 else logging.WARNING

    logger.log(
        level,
        f"{error_type} on {method} {path}: {message}",
        extra=extra,
        exc_info=exc_info,
    )
