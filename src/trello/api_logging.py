"""Record outbound API traffic as JSON files for debugging and test fixtures.

Set CARDFLOW_LOG_API=1 and every call made through ``create_logging_client``
(Trello, GitHub and Mattermost) is written out as a numbered pair::

    0001_request.json
    0001_response.json

into ~/.cardflow/api_logs/, or CARDFLOW_LOG_API_DIR when set.

Trello credentials travel as query parameters, so URLs are redacted as well
as Authorization headers.
"""

import itertools
import json
import logging
import os
import threading
from datetime import UTC, datetime
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = {"authorization", "x-github-token"}
SENSITIVE_PARAMS = {"key", "token"}
REDACTED = "[REDACTED]"
TRUTHY = ("1", "true", "yes", "on")

_lock = threading.Lock()
_counter = itertools.count(1)


def _next_sequence() -> int:
    with _lock:
        return next(_counter)


def _reset_sequence() -> None:
    """Start numbering from 1 again (clear_logs and tests)."""
    global _counter
    with _lock:
        _counter = itertools.count(1)


def is_api_logging_enabled() -> bool:
    return os.environ.get("CARDFLOW_LOG_API", "").lower() in TRUTHY


def get_log_directory() -> Path:
    custom_dir = os.environ.get("CARDFLOW_LOG_API_DIR")
    return Path(custom_dir) if custom_dir else Path.home() / ".cardflow" / "api_logs"


def _sanitize_headers(headers: httpx.Headers | dict) -> dict:
    """Mask credential headers; "Bearer abc" becomes "Bearer [REDACTED]"."""
    result = dict(headers)
    for name, value in result.items():
        if name.lower() not in SENSITIVE_HEADERS or not isinstance(value, str):
            continue
        scheme, _, secret = value.partition(" ")
        result[name] = f"{scheme} {REDACTED}" if secret else REDACTED
    return result


def _sanitize_url(url: httpx.URL | str) -> str:
    """Replace credential query parameters with a placeholder."""
    parsed = httpx.URL(str(url))
    if not parsed.params:
        return str(parsed)
    params = [
        (name, REDACTED if name.lower() in SENSITIVE_PARAMS else value)
        for name, value in parsed.params.multi_items()
    ]
    return str(parsed.copy_with(params=params))


def _api_name(url: httpx.URL | str) -> str:
    host = httpx.URL(str(url)).host
    for known in ("trello", "github"):
        if known in host:
            return known
    return host or "unknown"


def _timestamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def _decode_body(content: bytes):
    if not content:
        return None
    try:
        return json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return content.decode("utf-8", errors="replace")


def _request_record(request: httpx.Request, seq: int) -> dict:
    try:
        body = _decode_body(request.content)
    except httpx.RequestNotRead:
        # Multipart uploads are streamed and cannot be read twice
        body = "[streamed body]"
    return {
        "sequence": seq,
        "timestamp": _timestamp(),
        "api": _api_name(request.url),
        "method": request.method,
        "url": _sanitize_url(request.url),
        "headers": _sanitize_headers(request.headers),
        "body": body,
    }


def _response_record(response: httpx.Response, seq: int) -> dict:
    try:
        body = response.json()
    except ValueError:
        body = response.text
    return {
        "sequence": seq,
        "timestamp": _timestamp(),
        "api": _api_name(response.request.url),
        "status_code": response.status_code,
        "url": _sanitize_url(response.request.url),
        "headers": dict(response.headers),
        "body": body,
    }


def _write(kind: str, record: dict) -> None:
    log_dir = get_log_directory()
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        path = log_dir / f"{record['sequence']:04d}_{kind}.json"
        path.write_text(json.dumps(record, indent=2, default=str), encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to log API %s: %s", kind, e)
        return
    logger.debug("Logged API %s to %s", kind, path)


def log_request(request: httpx.Request) -> None:
    if not is_api_logging_enabled():
        return
    seq = _next_sequence()
    # The response reuses the request's number
    request.extensions["log_sequence"] = seq
    _write("request", _request_record(request, seq))


def log_response(response: httpx.Response) -> None:
    if not is_api_logging_enabled():
        return
    seq = response.request.extensions.get("log_sequence") or _next_sequence()
    _write("response", _response_record(response, seq))


class LoggingTransport(httpx.BaseTransport):
    """Wraps another transport and records each exchange."""

    def __init__(self, transport: httpx.BaseTransport | None = None):
        self._transport = transport or httpx.HTTPTransport()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        log_request(request)
        response = self._transport.handle_request(request)
        # Responses are streamed; the body has to be read before logging it
        response.read()
        log_response(response)
        return response

    def close(self) -> None:
        self._transport.close()


def create_logging_client(
    headers: dict | None = None,
    timeout: float = 30.0,
    transport: httpx.BaseTransport | None = None,
    **kwargs,
) -> httpx.Client:
    """Build the httpx Client used by every API wrapper.

    Args:
        headers: Default request headers
        timeout: Request timeout in seconds
        transport: Underlying transport (tests pass httpx.MockTransport)
        **kwargs: Passed through to httpx.Client (base_url, params, ...)
    """
    if is_api_logging_enabled():
        transport = LoggingTransport(transport)
    if transport is not None:
        kwargs["transport"] = transport
    return httpx.Client(headers=headers, timeout=timeout, **kwargs)


def clear_logs() -> int:
    """Delete recorded exchanges and restart numbering.

    Returns:
        Number of files deleted
    """
    log_dir = get_log_directory()
    if not log_dir.exists():
        return 0

    count = 0
    for path in log_dir.glob("*.json"):
        try:
            path.unlink()
        except OSError as e:
            logger.warning("Failed to delete %s: %s", path, e)
        else:
            count += 1

    _reset_sequence()
    return count
