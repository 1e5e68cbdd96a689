"""
Auth Provider Abstract Base Class

Defines sign in / sign up / sign out and the current-session accessor.
The admin flag of a session is derived from the stored profile role.

Version: 1.0.0
"""

from abc import ABC, abstractmethod
from typing import Optional

from orderdesk.schemas import AuthSession


class BaseAuthProvider(ABC):
    """
    Abstract base class for auth providers.

    Example:
        >>> auth = get_auth_provider()
        >>> session = await auth.sign_in("admin@example.com", "secret123")
        >>> session.is_admin
        True
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def sign_up(self, email: str, password: str, full_name: str) -> AuthSession:
        """
        Create an account and return a signed-in session.

        Raises:
            ValidationError: Malformed email, short password or taken email
        """
        pass

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession:
        """
        Raises:
            AuthenticationError: Unknown email or wrong password
        """
        pass

    @abstractmethod
    async def sign_out(self, token: str) -> None:
        """End the session; unknown tokens are ignored."""
        pass

    @abstractmethod
    async def get_session(self, token: Optional[str]) -> Optional[AuthSession]:
        """Return the session for a token, or None if it is not signed in."""
        pass
