"""Role checks shared by services that serve both customers and staff."""

from __future__ import annotations


def is_admin(user) -> bool:
    return bool(user and user.is_authenticated and user.is_staff)
