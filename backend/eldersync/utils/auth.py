"""
Authentication utilities - identity providers, JWT token handling and
password hashing.

Two providers validate caregiver bearer tokens and yield a stable user id:
``LocalIdentityProvider`` issues its own JWTs over accounts kept in the
key-value store, ``SupabaseIdentityProvider`` delegates to the hosted auth
service.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import bcrypt
import httpx
from jose import JWTError, jwt

from ..core.exceptions import BadInput, StoreFailure, Unauthorized
from ..models import Token, TokenData, User
from ..storage.user_storage import UserStorage

logger = logging.getLogger(__name__)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password."""
    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


def get_password_hash(password: str) -> str:
    """Hash a password."""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def create_access_token(
    data: dict,
    secret_key: str,
    algorithm: str = "HS256",
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Data to encode in the token
        secret_key: Signing key
        algorithm: Signing algorithm
        expires_delta: Optional expiration time delta (defaults to 15 minutes)

    Returns:
        str: Encoded JWT token
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


def decode_access_token(token: str, secret_key: str, algorithm: str = "HS256") -> Optional[TokenData]:
    """
    Decode and verify a JWT access token.

    Args:
        token: JWT token string
        secret_key: Signing key
        algorithm: Expected signing algorithm

    Returns:
        Optional[TokenData]: Token data if valid, None otherwise
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError:
        return None

    user_id: Optional[str] = payload.get("sub")
    if user_id is None:
        return None
    return TokenData(user_id=user_id, email=payload.get("email"))


class IdentityProvider(ABC):
    """Issues and validates caregiver sessions."""

    @abstractmethod
    async def signup(self, email: str, password: str, name: str) -> Tuple[User, Token]:
        """Create an account and open a session for it."""
        pass

    @abstractmethod
    async def login(self, email: str, password: str) -> Token:
        """Open a session for existing credentials."""
        pass

    @abstractmethod
    async def authenticate(self, token: str) -> User:
        """
        Resolve a bearer token to its user.

        Raises:
            Unauthorized: If the token is invalid or expired
        """
        pass

    async def close(self) -> None:
        return None


class LocalIdentityProvider(IdentityProvider):
    """Accounts in the key-value store, HS256 tokens signed with the app secret."""

    def __init__(
        self,
        user_storage: UserStorage,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 60 * 24 * 7,
    ):
        self.user_storage = user_storage
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expires_delta = timedelta(minutes=access_token_expire_minutes)

    def _issue_token(self, account: dict) -> Token:
        access_token = create_access_token(
            data={"sub": account["id"], "email": account["email"]},
            secret_key=self.secret_key,
            algorithm=self.algorithm,
            expires_delta=self.expires_delta,
        )
        return Token(access_token=access_token, token_type="bearer")

    async def signup(self, email: str, password: str, name: str) -> Tuple[User, Token]:
        if await self.user_storage.get_user_by_email(email):
            raise BadInput("Email already registered")

        account = await self.user_storage.create_user(
            user_id=str(uuid.uuid4()),
            email=email,
            hashed_password=get_password_hash(password),
            name=name,
        )
        return User.model_validate(account), self._issue_token(account)

    async def login(self, email: str, password: str) -> Token:
        account = await self.user_storage.get_user_by_email(email)
        if not account or not verify_password(password, account["hashedPassword"]):
            raise Unauthorized("Incorrect email or password")
        return self._issue_token(account)

    async def authenticate(self, token: str) -> User:
        token_data = decode_access_token(token, self.secret_key, self.algorithm)
        if token_data is None:
            raise Unauthorized("Invalid or expired token")

        account = await self.user_storage.get_user(token_data.user_id)
        if account is None:
            raise Unauthorized("User not found")
        return User.model_validate(account)


class SupabaseIdentityProvider(IdentityProvider):
    """Delegates accounts and sessions to the hosted auth service."""

    def __init__(
        self,
        url: str,
        service_role_key: str,
        anon_key: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the hosted identity provider.

        Args:
            url: Project URL
            service_role_key: Service role key, used for admin calls and token checks
            anon_key: Public key used for password logins (defaults to the service key)
            timeout: Request timeout in seconds
            client: Optional pre-built HTTP client (used by tests)
        """
        if not url or not service_role_key:
            raise ValueError("Hosted auth requires both a project URL and a service role key")
        self.auth_url = f"{url.rstrip('/')}/auth/v1"
        self.service_role_key = service_role_key
        self.anon_key = anon_key or service_role_key
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self, api_key: str, bearer: Optional[str] = None) -> dict:
        return {"apikey": api_key, "Authorization": f"Bearer {bearer or api_key}"}

    @staticmethod
    def _to_user(data: dict) -> User:
        return User(
            id=data["id"],
            email=data.get("email"),
            name=(data.get("user_metadata") or {}).get("name"),
            created_at=data.get("created_at"),
        )

    async def _post(self, path: str, payload: dict, headers: dict, params: Optional[dict] = None) -> httpx.Response:
        try:
            return await self._client.post(
                f"{self.auth_url}{path}", json=payload, headers=headers, params=params
            )
        except httpx.HTTPError as e:
            logger.error(f"Auth service request failed: {path}: {e}")
            raise StoreFailure(f"Auth service unavailable: {e}") from e

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text
        if isinstance(body, dict):
            for key in ("msg", "message", "error_description", "error"):
                if body.get(key):
                    return str(body[key])
        return resp.text

    async def signup(self, email: str, password: str, name: str) -> Tuple[User, Token]:
        resp = await self._post(
            "/admin/users",
            {
                "email": email,
                "password": password,
                "user_metadata": {"name": name},
                "email_confirm": True,
            },
            self._headers(self.service_role_key),
        )
        if resp.status_code >= 400:
            logger.error("Signup rejected by auth service", extra={"extra_fields": {"status_code": resp.status_code}})
            raise BadInput(self._error_message(resp))

        user = self._to_user(resp.json())
        logger.info("Account created", extra={"extra_fields": {"user_id": user.id}})
        return user, await self.login(email, password)

    async def login(self, email: str, password: str) -> Token:
        resp = await self._post(
            "/token",
            {"email": email, "password": password},
            self._headers(self.anon_key),
            params={"grant_type": "password"},
        )
        if resp.status_code >= 400:
            raise Unauthorized(self._error_message(resp))

        data = resp.json()
        return Token(
            access_token=data["access_token"],
            token_type=data.get("token_type", "bearer"),
            refresh_token=data.get("refresh_token"),
        )

    async def authenticate(self, token: str) -> User:
        try:
            resp = await self._client.get(
                f"{self.auth_url}/user",
                headers=self._headers(self.service_role_key, bearer=token),
            )
        except httpx.HTTPError as e:
            logger.error(f"Auth service request failed: /user: {e}")
            raise StoreFailure(f"Auth service unavailable: {e}") from e

        if resp.status_code >= 400:
            raise Unauthorized(f"Invalid or expired token: {self._error_message(resp)}")

        data = resp.json()
        if not data.get("id"):
            raise Unauthorized("User not found")
        return self._to_user(data)

    async def close(self) -> None:
        await self._client.aclose()
