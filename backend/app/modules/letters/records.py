"""
Permission Letter Records

Closed, immutable view of a stored permission letter as consumed by the
document pipeline. Reviewer roles and student groups have a fixed canonical
order so rendered blocks never depend on the iteration order of stored maps.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional
import enum

from app.core.exceptions import LetterValidationError
from app.core.logging_config import logger


class ApprovalState(str, enum.Enum):
    """Reviewer decision"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def parse(cls, value: Any) -> "ApprovalState":
        """Unknown or missing decisions count as pending"""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.PENDING


class ReviewerRole(str, enum.Enum):
    """College officials who review a letter, declared in canonical display order"""
    DIRECTOR = "director"
    DSAA = "dsaa"
    TPO = "tpo"
    CSE_HOD = "cseHod"
    CSM_HOD = "csmHod"
    CSD_HOD = "csdHod"
    FRSH_HOD = "frshHod"
    ECE_HOD = "eceHod"

    @property
    def label(self) -> str:
        return ROLE_LABELS[self]


ROLE_LABELS: Dict[ReviewerRole, str] = {
    ReviewerRole.DIRECTOR: "Director",
    ReviewerRole.DSAA: "DSAA",
    ReviewerRole.TPO: "TPO",
    ReviewerRole.CSE_HOD: "CSE HOD",
    ReviewerRole.CSM_HOD: "CSM HOD",
    ReviewerRole.CSD_HOD: "CSD HOD",
    ReviewerRole.FRSH_HOD: "Freshman HOD",
    ReviewerRole.ECE_HOD: "ECE HOD",
}

CANONICAL_ROLE_ORDER = tuple(ReviewerRole)

# Department / category keys used for roll-number groups
CANONICAL_GROUP_ORDER = ("cse", "csm", "csd", "frsh", "ece")

GROUP_LABELS: Dict[str, str] = {
    "frsh": "Freshman",
}

# group-key -> ordered roll numbers that passed review
ApprovedRollNumbers = Dict[str, List[str]]


def group_label(group: str) -> str:
    """Display label for a roll-number group key"""
    return GROUP_LABELS.get(group, group.upper())


def ordered_groups(groups) -> List[str]:
    """Canonical groups first, anything else afterwards in sorted order"""
    groups = list(groups)
    known = [g for g in CANONICAL_GROUP_ORDER if g in groups]
    extra = sorted(g for g in groups if g not in CANONICAL_GROUP_ORDER)
    return known + extra


def ordered_approvals(approvals: Mapping[ReviewerRole, ApprovalState]) -> List[tuple]:
    """(role, state) pairs in canonical role order"""
    return [(role, approvals[role]) for role in CANONICAL_ROLE_ORDER if role in approvals]


def split_roll_numbers(text: Optional[str]) -> List[str]:
    """Free-text roll-number list, one record per line"""
    if not text:
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]


def _coerce_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, Mapping) and "seconds" in value:
        # Stored timestamp objects ({"seconds": ..., "nanoseconds": ...})
        return datetime.fromtimestamp(value["seconds"], tz=timezone.utc)
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LetterRecord:
    """Fully-resolved permission letter, immutable during generation"""

    id: str
    club_name: str
    subject: str
    body: str
    sincerely: str
    date: datetime
    approvals: Mapping[ReviewerRole, ApprovalState] = field(default_factory=dict)
    roll_numbers_by_group: Mapping[str, str] = field(default_factory=dict)
    status: ApprovalState = ApprovalState.PENDING

    def __post_init__(self):
        object.__setattr__(self, "approvals", MappingProxyType(dict(self.approvals)))
        object.__setattr__(
            self, "roll_numbers_by_group", MappingProxyType(dict(self.roll_numbers_by_group))
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LetterRecord":
        """Build a record from a stored document (camelCase or snake_case keys)"""
        approvals: Dict[ReviewerRole, ApprovalState] = {}
        for key, value in (data.get("approvals") or {}).items():
            try:
                role = ReviewerRole(key)
            except ValueError:
                logger.warning(f"[LetterRecord] Ignoring unknown reviewer role '{key}'")
                continue
            approvals[role] = ApprovalState.parse(value)

        roll_numbers = data.get("rollNos", data.get("roll_numbers_by_group")) or {}

        return cls(
            id=str(data.get("id") or ""),
            club_name=data.get("clubName", data.get("club_name")) or "",
            subject=data.get("subject") or "",
            body=data.get("body") or "",
            sincerely=data.get("sincerely") or "",
            date=_coerce_datetime(data.get("date")),
            approvals=approvals,
            roll_numbers_by_group={str(k): v or "" for k, v in roll_numbers.items()},
            status=ApprovalState.parse(data.get("status")),
        )

    @property
    def is_fully_approved(self) -> bool:
        return self.status == ApprovalState.APPROVED

    def submitted_roll_numbers(self, group: str) -> List[str]:
        return split_roll_numbers(self.roll_numbers_by_group.get(group))

    def validate(self) -> None:
        """Reject records that cannot be rendered"""
        required = {
            "id": self.id,
            "club_name": self.club_name,
            "subject": self.subject,
            "body": self.body,
            "sincerely": self.sincerely,
        }
        for name, value in required.items():
            if not value or not str(value).strip():
                raise LetterValidationError(f"Letter field '{name}' is required", field=name)


def approved_roll_numbers(roll_no_approvals: Optional[Mapping[str, Mapping[str, Any]]]) -> ApprovedRollNumbers:
    """
    Derive the approved roll-number map from per-student decisions.

    Args:
        roll_no_approvals: {group: {rollNo: "approved" | "rejected"}}

    Returns:
        {group: [rollNo, ...]} keeping only approved entries, in stored order
    """
    approved: ApprovedRollNumbers = {}
    for group, decisions in (roll_no_approvals or {}).items():
        approved[group] = [
            roll_no for roll_no, state in (decisions or {}).items()
            if ApprovalState.parse(state) == ApprovalState.APPROVED
        ]
    return approved


def ensure_approved_subset(letter: LetterRecord, approved: Mapping[str, List[str]]) -> None:
    """Every approved roll number must appear in the letter's submitted list"""
    for group, roll_numbers in approved.items():
        submitted = {r.upper() for r in letter.submitted_roll_numbers(group)}
        unknown = [r for r in roll_numbers if r.strip().upper() not in submitted]
        if unknown:
            raise LetterValidationError(
                f"Approved roll numbers not submitted for group '{group}': {', '.join(unknown)}",
                field="rollNoApprovals",
            )
