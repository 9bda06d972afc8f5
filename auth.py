import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer
from sqlalchemy import select
from sqlalchemy.orm import Session

from config import get_settings
from models import User

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "fm_session"
PBKDF2_ITERATIONS = 260_000


@dataclass(frozen=True)
class SessionUser:
    id: int
    email: str
    name: Optional[str]


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.session_secret, salt="session")


def session_max_age_secs() -> int:
    return get_settings().session_max_age_days * 24 * 3600


def create_session_token(user: SessionUser) -> str:
    return _serializer().dumps({"sub": user.id, "email": user.email, "name": user.name})


def get_user_from_token(token: Optional[str]) -> Optional[SessionUser]:
    """Return the signed-in user, or None when there is no valid session."""
    if not token:
        return None
    try:
        data = _serializer().loads(token, max_age=session_max_age_secs())
    except BadSignature:
        return None

    try:
        user_id = int(data.get("sub"))
    except (TypeError, ValueError):
        return None
    name = data.get("name")
    return SessionUser(
        id=user_id,
        email=str(data.get("email") or ""),
        name=str(name) if name is not None else None,
    )


def hash_password(password: str, *, iterations: int = PBKDF2_ITERATIONS) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("ascii"), iterations
    )
    return f"pbkdf2_sha256${iterations}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        scheme, iterations_raw, salt, expected = stored.split("$")
        iterations = int(iterations_raw)
    except ValueError:
        return False
    if scheme != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("ascii"), iterations
    )
    return hmac.compare_digest(digest.hex(), expected)


def authenticate(session: Session, email: str, password: str) -> Optional[SessionUser]:
    user = session.scalar(select(User).where(User.email == email).limit(1))
    if user is None:
        logger.warning("login_failed: reason=unknown_email")
        return None
    if not verify_password(password, user.password_hash):
        logger.warning(f"login_failed: reason=bad_password user_id={user.id}")
        return None
    return SessionUser(id=user.id, email=user.email, name=user.name)
