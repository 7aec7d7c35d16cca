# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Standardized error responses for the HTTP layer.

REST endpoints use the JSON body:
{
    "success": false,
    "error": {
        "code": "ERROR_CODE",
        "message": "Human readable message"
    }
}

The MCP endpoint speaks JSON-RPC and uses ``rpc_error`` instead.
"""

from __future__ import annotations

import logging
from typing import Any

from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

# =============================================================================
# STANDARD ERROR CODES
# =============================================================================

NOT_FOUND_SESSION = "NOT_FOUND_SESSION"
VALIDATION_MISSING_FIELD = "VALIDATION_MISSING_FIELD"
FEATURE_NOT_ENABLED = "FEATURE_NOT_ENABLED"

# JSON-RPC 2.0 error codes
RPC_PARSE_ERROR = -32700
RPC_INVALID_REQUEST = -32600
RPC_METHOD_NOT_FOUND = -32601
RPC_INVALID_PARAMS = -32602
RPC_INTERNAL_ERROR = -32603
RPC_UNAUTHORIZED = -32001


# =============================================================================
# ERROR RESPONSE HELPERS
# =============================================================================


def error_response(
    code: str,
    message: str,
    status_code: int = 400,
) -> JSONResponse:
    """Create a standardized error response.

    Args:
        code: Error code (e.g., NOT_FOUND_SESSION)
        message: Human-readable error message
        status_code: HTTP status code (default 400)

    Returns:
        JSONResponse with standardized error format
    """
    return JSONResponse(
        {
            "success": False,
            "error": {
                "code": code,
                "message": message,
            },
        },
        status_code=status_code,
    )


def not_found_error(resource: str, code: str = NOT_FOUND_SESSION) -> JSONResponse:
    """Create a 404 not found error response."""
    return error_response(code, f"{resource} not found", status_code=404)


def feature_not_enabled_error(feature: str) -> JSONResponse:
    """Create a 404 error for disabled features."""
    return error_response(FEATURE_NOT_ENABLED, f"{feature} not enabled", status_code=404)


def missing_field_error(field_name: str) -> JSONResponse:
    """Create a 400 error for missing required field."""
    return error_response(VALIDATION_MISSING_FIELD, f"{field_name} is required", status_code=400)


def rpc_error(code: int, message: str, request_id: Any = None) -> dict[str, Any]:
    """Build a JSON-RPC 2.0 error object."""
    return {
        "jsonrpc": "2.0",
        "error": {"code": code, "message": message},
        "id": request_id,
    }
