# spentiva/client/response_parser.py
"""
Helpers for reading the API's response envelope on the client side:

    {"message": str, "data": Any, "status": str, "statusCode": int}

Every function accepts either the decoded JSON body or the wrapper
``{"data": body, "status": http_status}`` returned by ``ApiClient``, and
never raises on unexpected shapes.
"""
import json
import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

SUCCESS_CODES = (200, 201, 204)
ERROR_CODES = (400, 401, 403, 404, 500)

DEFAULT_ERROR = "An unexpected error occurred"
NETWORK_ERROR = "Network error. Please check your connection."


def _get(obj: Any, key: str) -> Any:
    return obj.get(key) if isinstance(obj, dict) else None


def parse_response_data(response: Any, fallback: Any = None) -> Any:
    if response is None:
        return fallback
    data = _get(response, "data")
    if data:
        if isinstance(data, dict) and "data" in data:
            return data["data"]
        return data
    return response


def parse_response_message(response: Any, fallback: str = "") -> str:
    return _get(_get(response, "data"), "message") or _get(response, "message") or fallback


def parse_response_status(response: Any) -> Optional[int]:
    for value in (_get(_get(response, "data"), "statusCode"), _get(response, "statusCode"), _get(response, "status")):
        if isinstance(value, int) and not isinstance(value, bool) and value:
            return value
    return None


def is_success_response(response: Any) -> bool:
    code = parse_response_status(response)
    if code:
        return code in SUCCESS_CODES
    return bool(_get(response, "data"))


def is_error_response(response: Any) -> bool:
    code = parse_response_status(response)
    return code in ERROR_CODES if code else False


def parse_paginated_response(response: Any, data_key: str = "data") -> Dict[str, Any]:
    data = parse_response_data(response)
    if not data:
        return {"items": [], "total": 0, "page": 1, "limit": 10}

    if isinstance(_get(data, data_key), list):
        items = data[data_key]
    elif isinstance(data, list):
        items = data
    else:
        items = []

    return {
        "items": items,
        "total": _get(data, "total") or _get(data, "count") or len(items),
        "page": _get(data, "page") or 1,
        "limit": _get(data, "limit") or 10,
        "count": _get(data, "count"),
    }


def extract_nested_data(response: Any, path: str, fallback: Any = None) -> Any:
    """extract_nested_data(resp, "data.user.profile")"""
    current = response
    for key in path.split("."):
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return fallback
    return current


def safe_json_parse(text: Any, fallback: Any = None) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        logger.debug("Could not parse JSON: %r", text)
        return fallback


def _http_body(error: requests.HTTPError) -> Any:
    if error.response is None:
        return None
    try:
        return error.response.json()
    except ValueError:
        return error.response.text or None


def parse_error_message(error: Any) -> str:
    if isinstance(error, requests.RequestException):
        body = _http_body(error) if isinstance(error, requests.HTTPError) else None
        if _get(body, "message"):
            return body["message"]
        if error.response is None:
            return NETWORK_ERROR
        return str(error) or DEFAULT_ERROR
    if isinstance(error, str):
        return error or DEFAULT_ERROR
    if _get(error, "message"):
        return error["message"]
    if isinstance(error, BaseException) and str(error):
        return str(error)
    return DEFAULT_ERROR


def parse_error(error: Any) -> Dict[str, Any]:
    """Normalize an exception or error body to {message, statusCode, data}."""
    status = None
    data = None
    if isinstance(error, requests.RequestException):
        if error.response is not None:
            status = error.response.status_code
            data = _http_body(error) if isinstance(error, requests.HTTPError) else None
        else:
            status = 0
    elif isinstance(error, dict):
        status = error.get("statusCode")
        data = error.get("data")
    return {"message": parse_error_message(error), "statusCode": status, "data": data}


def _status_of(error: Any) -> Optional[int]:
    return error.get("statusCode") if isinstance(error, dict) else parse_error(error)["statusCode"]


def is_network_error(error: Any) -> bool:
    return _status_of(error) == 0


def is_auth_error(error: Any) -> bool:
    return _status_of(error) in (401, 403)


def is_validation_error(error: Any) -> bool:
    return _status_of(error) in (400, 422)
