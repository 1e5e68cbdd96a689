"""
Store-Backed Auth Provider

Keeps accounts in the "profiles" table with passlib password hashes.
Sessions are signed JWTs, so any API worker holding the secret can
resolve them; the admin flag is re-read from the profile on every
lookup. Signing out records the token id in client storage, which
every worker consults before accepting a token. Emails listed in
ADMIN_EMAILS get the admin role when they sign up.

Version: 1.0.0
"""

import logging
import re
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from orderdesk.core.config import get_settings
from orderdesk.core.exceptions import AuthenticationError, ValidationError
from orderdesk.schemas import AuthSession, Profile, UserRole
from orderdesk.services.auth.base import BaseAuthProvider
from orderdesk.services.storage.base import BaseKeyValueStorage
from orderdesk.services.store.base import BaseDataStore

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[\w\.\+-]+@[\w\.-]+\.\w+$")

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class StoreAuthProvider(BaseAuthProvider):
    """Auth provider over the data store's profiles table."""

    def __init__(
        self,
        store: BaseDataStore,
        storage: BaseKeyValueStorage,
        settings=None,
    ):
        self.store = store
        self.storage = storage
        self.settings = settings or get_settings()

    @property
    def provider_name(self) -> str:
        return "store"

    # =========================================================================
    # TOKENS
    # =========================================================================

    def _create_token(self, user_id: str) -> str:
        expire = datetime.now(timezone.utc) + timedelta(minutes=self.settings.access_token_expire_minutes)
        claims = {"sub": user_id, "jti": uuid.uuid4().hex, "exp": expire}
        return jwt.encode(claims, self.settings.jwt_secret_key, algorithm=self.settings.jwt_algorithm)

    def _decode(self, token: str) -> Optional[dict]:
        try:
            return jwt.decode(token, self.settings.jwt_secret_key, algorithms=[self.settings.jwt_algorithm])
        except JWTError as e:
            logger.debug(f"Rejected session token: {e}")
            return None

    def _revoked_key(self, jti: str) -> str:
        return f"{self.settings.revoked_token_key}:{jti}"

    @staticmethod
    def _session(token: str, profile_row: dict) -> AuthSession:
        profile = Profile.model_validate(profile_row)
        return AuthSession(
            token=token,
            user_id=profile.user_id,
            email=profile.email,
            full_name=profile.full_name,
            is_admin=profile.role == UserRole.ADMIN,
        )

    # =========================================================================
    # ACCOUNT OPERATIONS
    # =========================================================================

    async def sign_up(self, email: str, password: str, full_name: str) -> AuthSession:
        email = (email or "").strip().lower()
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format", field="email")
        if len(password or "") < self.settings.min_password_length:
            raise ValidationError(
                f"Password must be at least {self.settings.min_password_length} characters",
                field="password",
            )
        if await self.store.select_one("profiles", eq={"email": email}):
            raise ValidationError("An account with this email already exists", field="email")

        role = UserRole.ADMIN if email in self.settings.admin_emails_list else UserRole.CUSTOMER
        [row] = await self.store.insert("profiles", [{
            "user_id": secrets.token_hex(16),
            "email": email,
            "full_name": (full_name or "").strip() or None,
            "role": role.value,
            "password_hash": pwd_context.hash(password),
        }])

        logger.info(f"Account created for {email} (role={role.value})")
        return self._session(self._create_token(row["user_id"]), row)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        email = (email or "").strip().lower()
        row = await self.store.select_one("profiles", eq={"email": email})
        if row is None or not pwd_context.verify(password or "", row["password_hash"]):
            logger.info(f"Failed sign in for {email}")
            raise AuthenticationError("Invalid email or password")

        return self._session(self._create_token(row["user_id"]), row)

    async def sign_out(self, token: str) -> None:
        claims = self._decode(token) if token else None
        if claims is None:
            return
        self.storage.set(self._revoked_key(claims["jti"]), str(claims["exp"]))
        logger.debug(f"Session {claims['jti']} of {claims['sub']} signed out")

    async def get_session(self, token: Optional[str]) -> Optional[AuthSession]:
        if not token:
            return None
        claims = self._decode(token)
        if claims is None or self.storage.get(self._revoked_key(claims.get("jti", ""))) is not None:
            return None

        row = await self.store.select_one("profiles", eq={"user_id": claims.get("sub")})
        if row is None:
            return None
        return self._session(token, row)
