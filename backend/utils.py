"""Backend utility functions for the Fast Shipper API."""
from flask import jsonify, request
from pydantic import ValidationError as PydanticValidationError
from shared.validation import ValidationError
import logging


logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def api_success(data=None, message=None, status_code=200):
    """
    Standardized API success envelope.

    Args:
        data (dict, optional): Payload returned under ``data``
        message (str, optional): Human readable message
        status_code (int): HTTP status code

    Returns:
        Flask response: JSON success response
    """
    body = {'success': True}
    if message:
        body['message'] = message
    body['data'] = data if data is not None else {}
    return jsonify(body), status_code


def api_error(message, status_code=400, log_level='warning', details=None, errors=None):
    """
    Standardized API error response with consistent logging.

    Args:
        message (str): Error message for the client
        status_code (int): HTTP status code
        log_level (str): Logging level ('debug', 'info', 'warning', 'error', 'critical')
        details (dict, optional): Additional details for logging
        errors (list, optional): Field level validation errors returned to the client

    Returns:
        Flask response: JSON error response
    """
    log_func = getattr(logger, log_level, logger.warning)
    if details:
        log_func(f"API Error ({status_code}): {message} - Details: {details}")
    else:
        log_func(f"API Error ({status_code}): {message}")

    body = {'success': False, 'error': message}
    if errors:
        body['errors'] = errors
    return jsonify(body), status_code


def handle_api_exception(e, operation="operation", status_code=500):
    """
    Handle exceptions in API endpoints with consistent logging and responses.

    Args:
        e (Exception): The exception that occurred
        operation (str): Description of the operation being performed
        status_code (int): HTTP status code to return

    Returns:
        Flask response: JSON error response
    """
    logger.error(f"Exception during {operation}: {str(e)}", exc_info=True)
    return api_error(f"Failed to {operation}", status_code, 'error')


def not_found(message='Resource not found'):
    return api_error(message, 404, 'info')


def unauthorized(message='Authentication required'):
    return api_error(message, 401, 'info')


def forbidden(message='Access denied'):
    return api_error(message, 403)


def validation_error_response(e):
    """Turn a shared or pydantic validation error into a 400 envelope."""
    if isinstance(e, PydanticValidationError):
        errors = format_pydantic_errors(e)
        message = errors[0]['message'] if len(errors) == 1 else 'Validation failed'
        return api_error(message, 400, details=errors, errors=errors)
    return api_error(str(e), 400)


def format_pydantic_errors(e):
    """Flatten pydantic errors into ``[{'field': 'a.b', 'message': ...}]``."""
    errors = []
    for err in e.errors():
        field = '.'.join(str(part) for part in err.get('loc', ()))
        message = err.get('msg', 'Invalid value')
        if message.startswith('Value error, '):
            message = message[len('Value error, '):]
        errors.append({'field': field, 'message': message})
    return errors


def get_json_data():
    """Get and validate JSON data from request.

    Returns:
        Dictionary of request JSON data

    Raises:
        ValidationError: If JSON is invalid or not a dict
    """
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError('Request body must contain valid JSON')
    if not isinstance(data, dict):
        raise ValidationError('Request data must be a JSON object')
    return data


def parse_body(schema):
    """Validate the request JSON against a pydantic schema.

    Raises:
        ValidationError: If the body is not a JSON object
        pydantic.ValidationError: If the payload does not match the schema
    """
    return schema.model_validate(get_json_data())


def get_pagination_args():
    """Read ``page`` and ``limit`` query arguments with sane bounds."""
    page = max(request.args.get('page', 1, type=int) or 1, 1)
    limit = request.args.get('limit', DEFAULT_PAGE_SIZE, type=int) or DEFAULT_PAGE_SIZE
    return page, min(max(limit, 1), MAX_PAGE_SIZE)


def paginate(query, serializer, key):
    """Paginate a query and wrap it in the success envelope.

    Args:
        query: SQLAlchemy query (already filtered and ordered)
        serializer: Callable turning a row into a dict
        key (str): Name of the list in the response data

    Returns:
        Flask response: JSON success response with ``pagination``
    """
    page, limit = get_pagination_args()
    pagination = query.paginate(page=page, per_page=limit, error_out=False)
    return api_success({
        key: [serializer(item) for item in pagination.items],
        'pagination': {
            'page': pagination.page,
            'limit': pagination.per_page,
            'total': pagination.total,
            'pages': pagination.pages,
        }
    })


def iso(value):
    """ISO-8601 string for a datetime, or None."""
    return value.isoformat() if value else None


def enum_value(value):
    return getattr(value, 'value', value)
