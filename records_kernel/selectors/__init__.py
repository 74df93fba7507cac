"""Read-only selectors for approval queries."""

from records_kernel.selectors.approval_selector import ApprovalSelector
from records_kernel.selectors.base import BaseSelector

__all__ = [
    "ApprovalSelector",
    "BaseSelector",
]
