"""
Standardized API response envelope.

Every API response has the shape:
{
    "status": "success" | "error",
    "message": "string message or empty",
    "data": {...} | [] | null
}
"""
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status as http_status
from rest_framework.renderers import JSONRenderer


def custom_exception_handler(exc, context):
    """
    Run DRF's default handler, then rewrap its payload in the error envelope.
    """
    response = exception_handler(exc, context)

    if response is not None:
        response.data = format_error_response(response.data, response.status_code)

    return response


def format_error_response(errors, status_code):
    """
    Flatten DRF error payloads into a single message.

    - {"field": ["error1", "error2"]} -> "field: error1, error2"
    - {"detail": "message"} -> "message"
    - ["error1", "error2"] -> "error1, error2"
    """
    message = ""

    if isinstance(errors, dict):
        error_messages = []
        for field, field_errors in errors.items():
            if field == 'detail':
                message = str(field_errors)
            elif isinstance(field_errors, list):
                error_messages.append(f"{field}: {_join_errors(field_errors)}")
            elif isinstance(field_errors, dict):
                error_messages.append(f"{field}: {format_nested_errors(field_errors)}")
            else:
                error_messages.append(f"{field}: {field_errors}")

        if error_messages:
            message = "; ".join(error_messages)

    elif isinstance(errors, list):
        message = _join_errors(errors)

    else:
        message = str(errors)

    return {
        "status": "error",
        "message": message,
        "data": None
    }


def _join_errors(items):
    # Nested step serializers report a list of dicts, one per step
    parts = []
    for item in items:
        if isinstance(item, dict):
            if item:
                parts.append(format_nested_errors(item))
        else:
            parts.append(str(item))
    return ", ".join(parts)


def format_nested_errors(errors_dict):
    """Format nested error dictionaries."""
    messages = []
    for key, value in errors_dict.items():
        if isinstance(value, list):
            messages.append(f"{key}: {_join_errors(value)}")
        elif isinstance(value, dict):
            messages.append(f"{key}: {format_nested_errors(value)}")
        else:
            messages.append(f"{key}: {value}")
    return "; ".join(messages)


class StandardizedJSONRenderer(JSONRenderer):
    """
    JSON renderer that wraps any payload not already in the envelope.
    """

    def render(self, data, accepted_media_type=None, renderer_context=None):
        response = renderer_context.get('response') if renderer_context else None
        if response is not None and response.status_code == 204:
            return b''
        if response is not None and not self.is_already_formatted(data):
            if response.status_code >= 400:
                data = format_error_response(data, response.status_code)
            else:
                data = self.format_success_response(data)

        return super().render(data, accepted_media_type, renderer_context)

    def is_already_formatted(self, data):
        return isinstance(data, dict) and {'status', 'message', 'data'} <= data.keys()

    def format_success_response(self, data):
        if isinstance(data, dict) and 'detail' in data:
            return {"status": "success", "message": str(data['detail']), "data": None}
        if data is None or (isinstance(data, dict) and not data):
            return {"status": "success", "message": "", "data": None}
        return {"status": "success", "message": "", "data": data}


def success_response(data=None, message="", status_code=http_status.HTTP_200_OK):
    """
    Build a success envelope.

    Usage:
        return success_response(
            data=serializer.data,
            message="Approval chain created",
            status_code=status.HTTP_201_CREATED
        )
    """
    return Response({
        "status": "success",
        "message": message,
        "data": data
    }, status=status_code)


def error_response(message, data=None, status_code=http_status.HTTP_400_BAD_REQUEST):
    """
    Build an error envelope.

    Usage:
        return error_response(
            message="Approval progress not found",
            status_code=status.HTTP_404_NOT_FOUND
        )
    """
    return Response({
        "status": "error",
        "message": message,
        "data": data
    }, status=status_code)
