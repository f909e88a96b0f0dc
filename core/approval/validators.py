"""Structural checks for approval chain definitions.

Used both by the API serializers (before anything is saved) and by the chain
manager before progress is started against a stored chain.
"""

from decimal import Decimal, InvalidOperation

from core.user_accounts.models import UserRole

from .exceptions import ValidationError


def validate_steps(steps):
    """Validate a list of step definitions.

    Args:
        steps: iterable of dicts with keys ``order``, ``approver_role``,
            ``approver_user`` and ``required_approvals``.

    Raises:
        ValidationError: on the first broken rule.
    """
    steps = list(steps)
    if not steps:
        raise ValidationError("An approval chain needs at least one step")

    seen = set()
    for step in steps:
        order = step.get('order')
        if order is None or int(order) < 1:
            raise ValidationError(f"Step order must be a positive integer, got {order!r}")
        order = int(order)
        if order in seen:
            raise ValidationError(f"Duplicate step order {order}")
        seen.add(order)

        role = step.get('approver_role') or None
        user = step.get('approver_user') or None
        if (role is None) == (user is None):
            raise ValidationError(
                f"Step {order} must name exactly one of approver_role or approver_user"
            )
        if role is not None and role not in UserRole.values:
            raise ValidationError(f"Step {order} has unknown approver_role '{role}'")

        required = step.get('required_approvals', 1)
        if required is None or int(required) < 1:
            raise ValidationError(f"Step {order} requires at least one approval")
        # One specific user can only ever contribute one approval
        if user is not None and int(required) != 1:
            raise ValidationError(
                f"Step {order} names a single approver but requires {required} approvals"
            )


def validate_conditions(min_amount=None, max_amount=None, min_days=None, categories=None):
    """Validate chain gating conditions."""
    if min_amount is not None and max_amount is not None and min_amount > max_amount:
        raise ValidationError("min_amount cannot be greater than max_amount")
    if min_days is not None and min_days < 0:
        raise ValidationError("min_days cannot be negative")
    if categories is not None:
        if not isinstance(categories, (list, tuple)):
            raise ValidationError("categories must be a list")
        if not all(isinstance(c, str) and c for c in categories):
            raise ValidationError("categories must be non-empty strings")


def normalize_attributes(attributes):
    """Coerce raw entity attributes into comparable values.

    Returns a dict with ``amount`` (Decimal), ``days`` (Decimal) and
    ``category`` (str); keys the caller did not supply map to None.
    """
    attributes = attributes or {}
    normalized = {}
    for key in ('amount', 'days'):
        value = attributes.get(key)
        if value is None or value == '':
            normalized[key] = None
            continue
        try:
            normalized[key] = Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f"{key} must be numeric, got {value!r}")
        if not normalized[key].is_finite():
            raise ValidationError(f"{key} must be a finite number")

    category = attributes.get('category')
    normalized['category'] = str(category) if category not in (None, '') else None
    return normalized
