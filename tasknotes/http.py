"""Lambda proxy event helpers and JSON responses with CORS headers."""
from __future__ import annotations

import base64
import json
from typing import Any, Dict, Optional

from .clock import utc_now_iso


def method_of(event: Dict[str, Any]) -> str:
    """HTTP method of an API Gateway payload 2.0 event, falling back to 1.0."""
    method = event.get("requestContext", {}).get("http", {}).get("method") or event.get("httpMethod") or "GET"
    return method.upper()


def query_param(event: Dict[str, Any], name: str) -> Optional[str]:
    params = event.get("queryStringParameters") or {}
    return params.get(name)


def json_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Parse the request body as a JSON object.

    Raises:
        ValueError("invalid_json") if the body is not a JSON object.
    """
    raw = event.get("body") or "{}"
    try:
        if event.get("isBase64Encoded"):
            raw = base64.b64decode(raw).decode("utf-8")
        body = json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        raise ValueError("invalid_json")
    if not isinstance(body, dict):
        raise ValueError("invalid_json")
    return body


def cors_headers(methods: str) -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": methods,
        "Access-Control-Allow-Headers": "Content-Type",
    }


def json_response(status: int, body: Dict[str, Any], methods: str) -> Dict[str, Any]:
    headers = cors_headers(methods)
    headers["Content-Type"] = "application/json"
    return {
        "statusCode": status,
        "headers": headers,
        "body": json.dumps(body, ensure_ascii=False),
    }


def options_response(methods: str) -> Dict[str, Any]:
    return {"statusCode": 200, "headers": cors_headers(methods), "body": ""}


def error_response(status: int, message: str, methods: str, **debug: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": message}
    if debug:
        body["debug"] = debug_block(**debug)
    return json_response(status, body, methods)


def debug_block(**fields: Any) -> Dict[str, Any]:
    fields.setdefault("timestamp", utc_now_iso())
    return fields
