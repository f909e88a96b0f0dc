"""Approver variants for a chain step.

A step is approved either by anyone holding a role or by one specific user,
never both. ``ApprovalChainStep.approver`` returns one of these variants.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class RoleApprover:
    role: str

    def matches(self, user):
        return user.is_active and user.role == self.role

    def __str__(self):
        return f"role:{self.role}"


@dataclass(frozen=True)
class UserApprover:
    user_id: int

    def matches(self, user):
        return user.is_active and user.pk == self.user_id

    def __str__(self):
        return f"user:{self.user_id}"
