import json
import logging

import functions_framework

from .config import configure_logging
from .errors import InternalError, RelayError
from .relay import UploadRelay

configure_logging()
logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

_relay = None


def get_relay() -> UploadRelay:
    """Lazy-initialize the relay so importing this module never touches credentials."""
    global _relay
    if _relay is None:
        _relay = UploadRelay()
    return _relay


def _response(payload, status):
    headers = dict(CORS_HEADERS)
    if payload is None:
        return ("", status, headers)
    headers["Content-Type"] = "application/json"
    return (json.dumps(payload, ensure_ascii=False), status, headers)


@functions_framework.http
def upload(request):
    try:
        status, payload = get_relay().handle(request)
        return _response(payload, status)
    except RelayError as e:
        logger.error("Upload rejected (%s): %s", type(e).__name__, e.message)
        return _response(e.to_dict(), e.status)
    except Exception as e:
        logger.exception("Upload handler error")
        err = InternalError(str(e))
        return _response(err.to_dict(), err.status)
