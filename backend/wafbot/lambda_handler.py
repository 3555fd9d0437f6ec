"""
AWS Lambda entry point (API Gateway proxy integration)

The orchestrator, and with it the dedup caches, is built on the first
invocation and reused while the container stays warm.
"""

import asyncio
import base64
import binascii
import json
from typing import Any, Dict

from wafbot.core.exceptions import BaseAppException
from wafbot.core.initializers import get_or_create_orchestrator
from wafbot.core.logging_config import get_logger, setup_logging
from wafbot.orchestrator.processor import WebhookResponse

setup_logging()
logger = get_logger(__name__)


def _request_body(event: Dict[str, Any]) -> str:
    """Raises binascii.Error or UnicodeDecodeError on an undecodable body"""
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        return base64.b64decode(body, validate=True).decode("utf-8")
    return body


def _proxy_response(result: WebhookResponse) -> Dict[str, Any]:
    return {
        "statusCode": result.status_code,
        "headers": {**result.headers, "Content-Type": result.content_type},
        "body": result.body,
    }


def handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """API Gateway proxy event in, proxy response out"""
    try:
        body = _request_body(event)
    except (binascii.Error, UnicodeDecodeError) as e:
        logger.warning("Failed to decode request body", error=str(e))
        return _proxy_response(WebhookResponse.status("invalid request", status_code=400))
    headers = event.get("headers") or {}
    logger.info("Received request", body_length=len(body))

    orchestrator = get_or_create_orchestrator()
    try:
        result = asyncio.run(orchestrator.handle_webhook(body, headers))
    except BaseAppException as e:
        logger.error("Application error", error_code=e.error_code, status_code=e.status_code, detail=e.message)
        return {
            "statusCode": e.status_code,
            "headers": {"Content-Type": "application/problem+json"},
            "body": json.dumps(e.to_rfc7807()),
        }

    return _proxy_response(result)
