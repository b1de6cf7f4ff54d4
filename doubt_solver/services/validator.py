from typing import Optional

from doubt_solver.core.errors import InvalidInput
from doubt_solver.models.schemas import Subject

MIN_QUERY_CHARS = 5
MAX_QUERY_CHARS = 1500
SUBJECTS = frozenset(s.value for s in Subject)


def validate(user_id: Optional[str], query: Optional[str], subject: Optional[str]) -> Optional[InvalidInput]:
    """Return the first failing rule as an ``InvalidInput``, or None when the request is acceptable."""
    if not user_id or not str(user_id).strip():
        return InvalidInput("User ID required")
    if not query or len(query) < MIN_QUERY_CHARS:
        return InvalidInput(f"Question too short (min {MIN_QUERY_CHARS} chars)")
    if len(query) > MAX_QUERY_CHARS:
        return InvalidInput(f"Question too long (max {MAX_QUERY_CHARS} chars)")
    if normalize_subject(subject) not in SUBJECTS:
        return InvalidInput("Invalid subject")
    return None


def normalize_subject(subject: Optional[str]) -> str:
    return (subject or "").strip().lower()
