"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations


class OrderValidationError(Exception):
    """The order payload is malformed (empty items, bad totals...)."""


class InvalidOrderStatus(Exception):
    """The requested status is not one of the known order statuses."""


class OrderNotFound(Exception):
    """The requested order does not exist."""


class OrderAccessDenied(Exception):
    """The requester is neither the order's owner nor an operator."""


class OrderConflict(Exception):
    """The order cannot be changed in its current state."""


class InvalidStatusTransition(OrderConflict):
    """The configured transition table forbids the requested move."""


class ConcurrentOrderUpdate(OrderConflict):
    """Another writer changed the order since it was loaded."""


class ImmutableHistoryError(Exception):
    """An attempt was made to rewrite or remove status history."""
