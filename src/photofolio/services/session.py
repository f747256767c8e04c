"""Login session kept in Streamlit session state (or any mutable mapping)."""

from collections.abc import MutableMapping
from typing import Any

from ..errors import AuthenticationError
from ..logging_config import get_logger, log_security_event, log_user_action

logger = get_logger(__name__)

AUTHENTICATED_KEY = "is_authenticated"
CURRENT_USER_KEY = "current_user"


class SessionManager:
    """Tracks who is logged in for one browser session."""

    def __init__(self, state: MutableMapping[str, Any] | None = None):
        if state is None:
            import streamlit as st

            state = st.session_state
        self.state = state

    @property
    def current_user(self) -> str | None:
        return self.state.get(CURRENT_USER_KEY) if self.is_authenticated else None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.state.get(AUTHENTICATED_KEY, False))

    def is_current_user(self, name: str | None) -> bool:
        current = self.current_user
        return bool(current and name and current == name.strip().lower())

    def login(self, directory: Any, name: str, password: str) -> Any:
        """
        Validate credentials against the directory and start a session.

        Returns:
            The user on success, None otherwise
        """
        user = directory.validate_user(name, password)
        if user is None:
            self.logout()
            log_security_event("session_login_rejected", user_id=(name or "").strip().lower() or None)
            return None

        self.state[AUTHENTICATED_KEY] = True
        self.state[CURRENT_USER_KEY] = user.name
        log_user_action(user.name, "login")
        return user

    def logout(self) -> None:
        user = self.state.get(CURRENT_USER_KEY)
        self.state[AUTHENTICATED_KEY] = False
        self.state.pop(CURRENT_USER_KEY, None)
        if user:
            log_user_action(user, "logout")

    def require_authenticated(self) -> str:
        """
        Gate for authenticated views.

        Raises:
            AuthenticationError: Nobody is logged in
        """
        if not self.is_authenticated or not self.current_user:
            raise AuthenticationError("Authentication required", code="not_authenticated")
        return self.current_user
