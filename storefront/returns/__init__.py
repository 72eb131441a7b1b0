"""
Returns — eligibility window and the admin-decided request lifecycle.
"""

from storefront.returns._machine import (
    RETURN_WINDOW_DAYS,
    RETURN_TRANSITIONS,
    days_since,
    can_return,
    can_transition,
)
from storefront.returns._service import ReturnService, CreateReturn

__all__ = (
    "RETURN_WINDOW_DAYS",
    "RETURN_TRANSITIONS",
    "days_since",
    "can_return",
    "can_transition",
    "ReturnService",
    "CreateReturn",
)
