"""
Common utility functions for Lambda handlers.
"""
import json
import traceback
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict

from shared.errors import LedgerError
from shared.logging import logger


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and set types from DynamoDB."""

    def default(self, o):
        if isinstance(o, Decimal):
            # Convert to int if it's a whole number, otherwise float
            if o % 1 == 0:
                return int(o)
            return float(o)
        if isinstance(o, (set, frozenset)):
            return sorted(o)
        return super().default(o)


def format_response(
    status_code: int,
    body: Any,
    headers: Dict[str, str] = None
) -> Dict[str, Any]:
    """
    Format a standard API Gateway response with CORS headers.

    Args:
        status_code: HTTP status code
        body: Response body (will be JSON serialized)
        headers: Additional headers to include

    Returns:
        API Gateway response dict
    """
    default_headers = {
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Allow-Credentials': True,
        'Content-Type': 'application/json'
    }

    if headers:
        default_headers.update(headers)

    return {
        'statusCode': status_code,
        'headers': default_headers,
        'body': json.dumps(body, cls=DecimalEncoder)
    }


def error_response(error: Exception) -> Dict[str, Any]:
    """Map a refused ledger operation, or an unexpected failure, to a response."""
    if isinstance(error, LedgerError):
        return format_response(error.status_code, error.to_body())
    logger.error(f"Unhandled error: {error}")
    traceback.print_exc()
    return format_response(500, {'error': 'InternalError', 'message': 'Internal Server Error'})


def unauthorized() -> Dict[str, Any]:
    return format_response(401, {'error': 'Unauthorized', 'message': 'Sign in to continue'})


def parse_body(event: dict) -> dict:
    """
    Safely parse JSON body from API Gateway event.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        Parsed body dict or empty dict if invalid
    """
    try:
        body = event.get('body') or '{}'
        if isinstance(body, str):
            return json.loads(body)
        return body or {}
    except (json.JSONDecodeError, TypeError):
        return {}


def get_path_param(event: dict, param_name: str) -> str:
    """Extract path parameter from event."""
    try:
        return event['pathParameters'][param_name]
    except (KeyError, TypeError):
        return None


def get_query_param(event: dict, param_name: str, default: str = None) -> str:
    """Extract query string parameter from event."""
    params = event.get('queryStringParameters') or {}
    return params.get(param_name, default)


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string (sortable createdAt values)."""
    return datetime.now(timezone.utc).isoformat()


def today() -> date:
    return datetime.now(timezone.utc).date()
