"""Role permissions.

Operators are Django staff users; every other authenticated user is a
customer who may only see their own orders.
"""

from __future__ import annotations

from rest_framework.permissions import BasePermission


def is_operator(user) -> bool:
    return bool(user and user.is_authenticated and user.is_staff)


class IsOperator(BasePermission):
    """Allow only authenticated staff (kitchen / delivery operators)."""

    message = "Operator access required."

    def has_permission(self, request, view) -> bool:
        return is_operator(request.user)
