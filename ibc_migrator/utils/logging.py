"""
Logging setup for ibc-migrator runs.

Every command logs to the console and, once a run directory exists, to
``migration.log`` inside it. With ``--debug_api`` the REST traffic to the
chains is also captured, redacted and truncated, in ``api_debug.log``.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

LOGGER_NAME = "ibc_migrator"

BASIC_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
VERBOSE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(module)s:%(lineno)d] - %(message)s"
)

# Record attributes rendered as a trailing "[chain=.. phase=..]" suffix
CONTEXT_FIELDS = ("chain", "phase", "scenario")

# Parameter names containing any of these are never written to a log
SENSITIVE_MARKERS = ("mnemonic", "password", "secret", "key")

MAX_STRUCTURED_BODY = 2000
MAX_TEXT_BODY = 1000
TRUNCATION_MARK = "... [truncated]"

# Set by setup_logger; read through is_debug_api_enabled()
_DEBUG_API_ENABLED = False


class EnhancedFormatter(logging.Formatter):
    """Formatter that appends run context and, optionally, REST payloads.

    ``verbose`` switches to a format that names the emitting module and
    line. ``include_api_details`` adds the ``api_data`` and ``response``
    attributes set by :func:`log_api_request` / :func:`log_api_response`
    on their own lines.
    """

    def __init__(
        self,
        fmt=None,
        datefmt=None,
        style="%",
        verbose=False,
        include_api_details=False,
    ):
        if verbose:
            fmt = VERBOSE_FORMAT
        super().__init__(fmt or BASIC_FORMAT, datefmt, style)
        self.include_api_details = include_api_details

    def format(self, record):
        lines = [super().format(record)]

        pairs = []
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value:
                pairs.append(f"{field}={value}")
        if pairs:
            lines[0] = f"{lines[0]} [{' '.join(pairs)}]"

        if self.include_api_details:
            payload = getattr(record, "api_data", None)
            if payload:
                lines.append(f"API Data: {payload}")
            body = getattr(record, "response", None)
            if body:
                lines.append(f"Response: {body}")

        return "\n".join(lines)


def _has_api_payload(record: logging.LogRecord) -> bool:
    return hasattr(record, "api_data") or hasattr(record, "response")


def _file_handler(path: str, formatter: logging.Formatter) -> logging.FileHandler:
    handler = logging.FileHandler(path, mode="w")
    # Files keep everything; the console level is what verbosity controls
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_main_log_file(
    output_dir: str, debug_api: bool = False
) -> logging.FileHandler:
    """
    Attach ``<output_dir>/migration.log`` to the migrator logger.

    The directory is created when missing. ``debug_api`` makes the file
    include REST payloads alongside the ordinary messages.
    """
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, "migration.log")

    handler = _file_handler(
        path, EnhancedFormatter(BASIC_FORMAT, include_api_details=debug_api)
    )
    migrator_logger = logging.getLogger(LOGGER_NAME)
    migrator_logger.addHandler(handler)
    migrator_logger.info(f"Writing run log to {path}")
    return handler


def _enable_api_debug(migrator_logger: logging.Logger, output_dir: Optional[str]) -> None:
    # requests logs connection setup and retries through urllib3
    urllib3_logger = logging.getLogger("urllib3")
    urllib3_logger.setLevel(logging.DEBUG)

    if not output_dir:
        migrator_logger.info("REST payload logging is on (console only)")
        return

    path = os.path.join(output_dir, "api_debug.log")
    handler = _file_handler(path, EnhancedFormatter(include_api_details=True))
    handler.addFilter(_has_api_payload)
    migrator_logger.addHandler(handler)
    urllib3_logger.addHandler(handler)
    migrator_logger.info(f"REST payload logging is on, see {path}")


def setup_logger(
    verbose: bool = False, debug_api: bool = False, output_dir: Optional[str] = None
) -> logging.Logger:
    """
    Configure the migrator logger for one command invocation.

    Args:
        verbose: Show DEBUG messages on the console instead of INFO and up
        debug_api: Record REST requests and responses
        output_dir: Run directory receiving migration.log (and api_debug.log)

    Returns:
        The configured ``ibc_migrator`` logger
    """
    global _DEBUG_API_ENABLED
    _DEBUG_API_ENABLED = debug_api

    migrator_logger = logging.getLogger(LOGGER_NAME)
    # A second call in the same process replaces the previous handlers
    for existing in list(migrator_logger.handlers):
        migrator_logger.removeHandler(existing)
    migrator_logger.setLevel(logging.DEBUG)

    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(EnhancedFormatter(verbose=verbose, include_api_details=debug_api))
    migrator_logger.addHandler(console)

    if output_dir:
        setup_main_log_file(output_dir, debug_api)
    if debug_api:
        _enable_api_debug(migrator_logger, output_dir)

    return migrator_logger


def log_with_context(level: int, message: str, **kwargs: Any) -> None:
    """
    Log ``message`` with keyword arguments attached as record attributes.

    ``None`` values are dropped so callers can pass optional context
    unconditionally. ``exc_info`` is forwarded to the logging call.
    """
    context = {name: value for name, value in kwargs.items() if value is not None}
    exc_info = context.pop("exc_info", None)

    # Payload records always carry both attributes so formatters can rely on them
    if "api_data" in context or "response" in context:
        context.setdefault("api_data", "")
        context.setdefault("response", "")

    logging.getLogger(LOGGER_NAME).log(level, message, extra=context, exc_info=exc_info)


def _redact(params: Dict[str, Any]) -> Dict[str, Any]:
    return {
        name: "[REDACTED]"
        if any(marker in name.lower() for marker in SENSITIVE_MARKERS)
        else value
        for name, value in params.items()
    }


def _clip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARK


def log_api_request(
    method: str, url: str, data: Optional[Dict] = None, **kwargs: Any
) -> None:
    """Record an outgoing REST call. No-op unless API debugging is on."""
    if not is_debug_api_enabled():
        return

    if isinstance(data, dict) and data:
        kwargs["api_data"] = json.dumps(_redact(data), indent=2)
    log_with_context(logging.DEBUG, f"REST {method} {url}", **kwargs)


def log_api_response(
    status_code: int, url: str, response_data: Any = None, **kwargs: Any
) -> None:
    """Record a REST reply, truncating large bodies. No-op unless API debugging is on."""
    if not is_debug_api_enabled():
        return

    if response_data:
        if isinstance(response_data, (dict, list)):
            body = _clip(json.dumps(response_data, indent=2), MAX_STRUCTURED_BODY)
        else:
            body = _clip(str(response_data), MAX_TEXT_BODY)
        kwargs["response"] = body
    log_with_context(logging.DEBUG, f"REST {status_code} <- {url}", **kwargs)


def is_debug_api_enabled() -> bool:
    return _DEBUG_API_ENABLED


def get_logger():
    """Return the migrator logger, giving it a console handler on first use."""
    migrator_logger = logging.getLogger(LOGGER_NAME)
    if migrator_logger.handlers:
        return migrator_logger

    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(EnhancedFormatter())
    migrator_logger.setLevel(logging.INFO)
    migrator_logger.addHandler(console)
    return migrator_logger


logger = get_logger()
