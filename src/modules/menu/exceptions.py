"""Menu catalog exceptions."""

from __future__ import annotations


class MenuItemNotFound(Exception):
    """The referenced menu item does not exist or has been soft-deleted."""


class MenuItemUnavailable(Exception):
    """The referenced menu item exists but is not currently being sold."""
