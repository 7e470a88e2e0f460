# todo_app/core/security.py
"""
Security module for authentication.
Handles password hashing and issuing/verifying signed session tokens.
"""
import datetime as dt
import logging
import jwt  # PyJWT
from passlib.context import CryptContext

logger = logging.getLogger(__name__)

# Password hashing context
# Argon2 is a modern, salted, memory-hard password hashing algorithm
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",   # Automatically handle deprecated schemes
)

JWT_ALG = "HS256"  # JWT signing algorithm (HMAC SHA-256)


def hash_password(plain: str) -> str:
    """
    Hash a plain text password using Argon2.

    Args:
        plain: Plain text password to hash

    Returns:
        Hashed password string (safe to store in database)
    """
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    """
    Verify a plain text password against a hashed password.

    Returns:
        True if password matches, False otherwise (including unparseable hashes)
    """
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        logger.warning("stored password hash could not be parsed")
        return False


class TokenService:
    """
    Issues and verifies signed, time-limited session tokens.

    Tokens are stateless: the payload carries the user id (`sub`), the issue
    time and the expiry. Nothing is stored server-side, so logging out only
    drops the client copy.
    """

    def __init__(self, secret: str, algorithm: str = JWT_ALG):
        self._secret = secret
        self._algorithm = algorithm

    def issue(self, user_id: str, ttl: dt.timedelta) -> str:
        """
        Create a token for `user_id` that expires `ttl` after now.

        Token payload:
            - sub: Subject (user ID)
            - iat: Issued at timestamp
            - exp: Expiration timestamp
        """
        now = dt.datetime.now(dt.timezone.utc)
        payload = {
            "sub": str(user_id),
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str | None) -> str | None:
        """
        Return the user id embedded in `token`, or None when the token is
        missing, malformed, expired or signed with another key.
        """
        if not token:
            return None
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            logger.info("token verification failed: expired")
            return None
        except jwt.InvalidTokenError as exc:
            logger.info("token verification failed: %s", exc)
            return None
        user_id = payload.get("sub")
        if not user_id or not isinstance(user_id, str):
            logger.info("token verification failed: no subject")
            return None
        return user_id
