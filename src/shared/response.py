"""API Gateway proxy responses."""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,X-Amz-Date,Authorization,X-Api-Key,X-Amz-Security-Token",
    "Access-Control-Allow-Methods": "GET,POST,PUT,DELETE,OPTIONS"
}


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder for Decimal, dates and pydantic models."""

    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, BaseModel):
            return obj.model_dump()
        return super().default(obj)


def api_response(
    status_code: int,
    body: str,
    content_type: str = "application/json",
    headers: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    """Lambda proxy response with CORS headers."""
    response_headers = {"Content-Type": content_type, **CORS_HEADERS}
    if headers:
        response_headers.update(headers)

    return {
        "statusCode": status_code,
        "headers": response_headers,
        "body": body
    }


def success_response(
    data: Any = None,
    message: Optional[str] = None,
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    """
    JSON success envelope: {"success": true, "data": ..., "message": ...}.

    Args:
        data: Payload; models, Decimals and dates are encoded
        message: Optional human-readable message
        status_code: HTTP status code (default: 200)
        headers: Optional extra headers
    """
    body = {"success": True, "data": data}
    if message:
        body["message"] = message

    return api_response(status_code, json.dumps(body, cls=DecimalEncoder), headers=headers)


def error_response(
    message: str,
    status_code: int = 500,
    error_code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    """
    JSON error envelope: {"success": false, "error": {"message", "code"}}.

    The code defaults to ERROR_<status>.
    """
    error = {"message": message, "code": error_code or f"ERROR_{status_code}"}
    if details:
        error["details"] = details

    body = {"success": False, "error": error}
    return api_response(status_code, json.dumps(body, cls=DecimalEncoder), headers=headers)


def validation_error_response(
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    return error_response(message, 400, "VALIDATION_ERROR", details)


def not_found_response(message: str = "Resource not found") -> Dict[str, Any]:
    return error_response(message, 404, "NOT_FOUND")


def unauthorized_response(message: str = "Unauthorized") -> Dict[str, Any]:
    return error_response(message, 401, "UNAUTHORIZED")


def file_response(
    content: str,
    file_name: str,
    mime_type: str,
    headers: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    """
    Downloadable file response.

    Args:
        content: File body
        file_name: Name offered to the browser or share sheet
        mime_type: Content type of the body
        headers: Optional extra headers
    """
    download_headers = {
        "Content-Disposition": f'attachment; filename="{file_name}"',
        "Access-Control-Expose-Headers": "Content-Disposition"
    }
    if headers:
        download_headers.update(headers)

    return api_response(200, content, f"{mime_type}; charset=utf-8", download_headers)
