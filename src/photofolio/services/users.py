"""User directory: credential validation and account management."""

import duckdb
from passlib.context import CryptContext

from ..config import get_bcrypt_rounds
from ..errors import AuthenticationError, DatabaseError, NotFoundError, ValidationError
from ..logging_config import get_logger, log_security_event, log_user_action
from ..models.gallery import User
from .documents import DocumentStore

logger = get_logger(__name__)

# Seed accounts for an empty directory. "star" is the protected identity.
DEFAULT_USERS: tuple[tuple[str, str], ...] = (
    ("isabella", "password123"),
    ("studio", "firebase"),
    ("star", "supernova"),
)


def normalize_name(name: str | None) -> str:
    return (name or "").strip().lower()


class UserDirectory:
    """
    Looks up and manages gallery accounts.

    Names are case-insensitive: they are stored lowercase and every lookup
    lowercases its input. Passwords are kept as bcrypt hashes only.
    """

    def __init__(self, documents: DocumentStore, rounds: int | None = None):
        self.documents = documents
        self._crypt = CryptContext(schemes=["bcrypt"], bcrypt__rounds=rounds or get_bcrypt_rounds())

    def hash_password(self, password: str) -> str:
        return self._crypt.hash(password)

    def validate_user(self, name: str, password: str) -> User | None:
        """
        Check a name/password pair.

        Returns:
            The matching user, or None. Unknown names and wrong passwords are
            indistinguishable to the caller.
        """
        normalized = normalize_name(name)
        user = self.documents.find_user(normalized) if normalized else None

        if user is None or not user.password_hash:
            # Keep timing close to a real verification
            self._crypt.dummy_verify()
            log_security_event("login_failed", user_id=normalized or None, reason="invalid_credentials")
            return None

        try:
            valid = bool(password) and self._crypt.verify(password, user.password_hash)
        except ValueError as e:
            # Stored value is not a bcrypt hash
            logger.warning("unrecognized_password_hash", user_id=normalized, error=str(e))
            valid = False

        if not valid:
            log_security_event("login_failed", user_id=normalized, reason="invalid_credentials")
            return None

        log_user_action(user.name, "credentials_validated")
        return user

    def add_user(self, name: str, password: str) -> User:
        """
        Create an account.

        Raises:
            ValidationError: Missing name or password, or a name that already
                exists in any letter case
        """
        normalized = normalize_name(name)
        if not normalized or not password:
            raise ValidationError("Name and password are required", code="missing_fields")

        if self.documents.find_user(normalized) is not None:
            raise ValidationError(
                f"User '{normalized}' already exists", code="duplicate_user", details={"name": normalized}
            )

        try:
            user = self.documents.add_user(normalized, self.hash_password(password))
        except DatabaseError as e:
            if isinstance(e.original_exception, duckdb.ConstraintException):
                raise ValidationError(
                    f"User '{normalized}' already exists", code="duplicate_user", details={"name": normalized}
                ) from e
            raise

        log_user_action(user.name, "user_created")
        return user

    def change_password(self, name: str, old_password: str, new_password: str) -> None:
        """
        Replace a user's password after verifying the current one.

        Raises:
            ValidationError: Empty new password
            AuthenticationError: Current password does not match
        """
        if not new_password:
            raise ValidationError("New password must not be empty", code="missing_fields")

        user = self.validate_user(name, old_password)
        if user is None:
            raise AuthenticationError(
                "Current password is incorrect",
                code="wrong_password",
                user_message="The current password is incorrect.",
            )

        self.documents.update_user_password(user.id, self.hash_password(new_password))
        log_user_action(user.name, "password_changed")

    def list_users(self) -> list[User]:
        return self.documents.list_users()

    def get_user(self, name: str) -> User:
        normalized = normalize_name(name)
        user = self.documents.find_user(normalized) if normalized else None
        if user is None:
            raise NotFoundError(f"User '{normalized}' not found", details={"name": normalized})
        return user

    def bootstrap_default_users(self, seed: tuple[tuple[str, str], ...] = DEFAULT_USERS) -> int:
        """
        Seed an empty directory.

        Inserts the seed accounts in one batch, and only when no user exists.
        Safe to run on every start.

        Returns:
            Number of users created
        """
        if self.documents.count_users() > 0:
            logger.debug("user_bootstrap_skipped")
            return 0

        records = [(normalize_name(name), self.hash_password(password)) for name, password in seed]
        created = self.documents.add_users(records)
        logger.info("default_users_created", count=len(created), names=[user.name for user in created])
        return len(created)
