"""
Role decorators for function-based views.
"""
from functools import wraps
from rest_framework import status

from wrkspace_project.response_formatter import error_response


def require_roles(*roles, methods=None):
    """
    Decorator that restricts a view to users holding one of ``roles``.

    Args:
        roles: Allowed role values (e.g. 'admin', 'hr')
        methods: Optional iterable of HTTP methods to guard; other methods
            pass through. Guards every method when omitted.

    Usage:
        @api_view(['GET', 'POST'])
        @require_roles('admin', methods=['POST'])
        def chain_list(request):
            ...
    """
    guarded = {m.upper() for m in methods} if methods else None

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            if guarded is not None and request.method not in guarded:
                return view_func(request, *args, **kwargs)

            if not request.user.is_authenticated:
                return error_response(
                    "Authentication required",
                    status_code=status.HTTP_401_UNAUTHORIZED
                )

            if request.user.role not in roles:
                return error_response(
                    f"Permission denied. Requires one of roles: {', '.join(roles)}",
                    status_code=status.HTTP_403_FORBIDDEN
                )

            return view_func(request, *args, **kwargs)

        wrapper.required_roles = roles
        return wrapper
    return decorator
