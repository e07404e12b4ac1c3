"""
Letters Module - permission letter records consumed by the document pipeline
"""

from .records import (
    ApprovalState,
    ReviewerRole,
    LetterRecord,
    ApprovedRollNumbers,
    CANONICAL_ROLE_ORDER,
    CANONICAL_GROUP_ORDER,
    approved_roll_numbers,
    ensure_approved_subset,
    group_label,
    ordered_approvals,
    ordered_groups,
    split_roll_numbers,
)

__all__ = [
    "ApprovalState",
    "ReviewerRole",
    "LetterRecord",
    "ApprovedRollNumbers",
    "CANONICAL_ROLE_ORDER",
    "CANONICAL_GROUP_ORDER",
    "approved_roll_numbers",
    "ensure_approved_subset",
    "group_label",
    "ordered_approvals",
    "ordered_groups",
    "split_roll_numbers",
]
