"""Account policy checks."""

from .config import get_protected_user


def is_protected_user(name: str | None) -> bool:
    """Whether ``name`` is the account that must never be deleted."""
    if not name:
        return False
    return name.strip().lower() == get_protected_user().strip().lower()
