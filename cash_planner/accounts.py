# cash_planner/accounts.py
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import sqlite3
import time
import uuid

import bcrypt

from cash_planner.database import connect
from cash_planner.errors import AuthError, DuplicateId, ValidationError

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
_BCRYPT_MAX_BYTES = 72
_TOKEN_PREFIX = "cp1"


def _init_accounts(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS accounts (
            id TEXT PRIMARY KEY,
            username TEXT UNIQUE NOT NULL,
            password_hash TEXT NOT NULL
        )
        """
    )
    conn.commit()


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("utf-8").rstrip("=")


def _b64decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode((text + padding).encode("utf-8"))


def hash_password(password: str) -> str:
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > _BCRYPT_MAX_BYTES:
        raise ValidationError(f"password must be at most {_BCRYPT_MAX_BYTES} bytes")
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, stored: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), stored.encode("utf-8"))
    except ValueError:
        # malformed stored hash or an over-long password
        return False


def _require_credentials(username, password) -> tuple:
    if not isinstance(username, str) or not isinstance(password, str):
        raise ValidationError("username and password must be strings")
    username = username.strip()
    if not username or not password:
        raise ValidationError("username and password are required")
    return username, password


def create_account(db_path: str, username: str, password: str) -> str:
    """Create an account and return its owner id."""
    username, password = _require_credentials(username, password)
    owner_id = uuid.uuid4().hex
    conn = connect(db_path)
    try:
        _init_accounts(conn)
        with conn:
            conn.execute(
                "INSERT INTO accounts (id, username, password_hash) VALUES (?, ?, ?)",
                (owner_id, username, hash_password(password)),
            )
    except sqlite3.IntegrityError:
        raise DuplicateId(f"Account already exists: {username}") from None
    finally:
        conn.close()
    logger.info("Created account %s", username)
    return owner_id


def authenticate(db_path: str, username: str, password: str) -> str:
    """Return the owner id for valid credentials, else raise :class:`AuthError`.

    Non-string or blank credentials are a :class:`ValidationError`.
    """
    username, password = _require_credentials(username, password)
    conn = connect(db_path)
    try:
        _init_accounts(conn)
        row = conn.execute(
            "SELECT id, password_hash FROM accounts WHERE username = ?",
            (username,),
        ).fetchone()
    finally:
        conn.close()
    if row is None or not check_password(password, row["password_hash"]):
        logger.warning("Failed login for %s", username)
        raise AuthError("Invalid username or password")
    return row["id"]


def issue_token(owner_id: str, secret: str, ttl_seconds: int = 86400, now: float | None = None) -> str:
    issued = int(now if now is not None else time.time())
    payload = _b64encode(
        json.dumps({"sub": owner_id, "exp": issued + int(ttl_seconds)}).encode("utf-8")
    )
    signature = _sign(f"{_TOKEN_PREFIX}.{payload}", secret)
    return f"{_TOKEN_PREFIX}.{payload}.{signature}"


def verify_token(token: str, secret: str, now: float | None = None) -> str:
    """Return the owner id carried by a valid, unexpired token."""
    if not token:
        raise AuthError("Missing token")
    parts = token.split(".")
    if len(parts) != 3 or parts[0] != _TOKEN_PREFIX:
        raise AuthError("Malformed token")
    expected = _sign(f"{parts[0]}.{parts[1]}", secret)
    if not hmac.compare_digest(parts[2], expected):
        raise AuthError("Invalid token signature")
    try:
        claims = json.loads(_b64decode(parts[1]))
    except (ValueError, UnicodeDecodeError):
        raise AuthError("Malformed token") from None
    current = now if now is not None else time.time()
    if not isinstance(claims, dict) or not claims.get("sub"):
        raise AuthError("Malformed token")
    if int(claims.get("exp", 0)) <= current:
        raise AuthError("Token expired")
    return str(claims["sub"])


def _sign(message: str, secret: str) -> str:
    if not secret:
        raise AuthError("Token secret is not configured")
    digest = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
    return _b64encode(digest)


def resolve_owner(auth_cfg: dict, token: str | None) -> str:
    """Map a request credential to an owner id.

    With ``auth.enabled`` false every caller is ``auth.default_owner_id``;
    otherwise the token must verify against ``auth.token_secret``.
    """
    if not auth_cfg.get("enabled", True):
        return str(auth_cfg["default_owner_id"])
    if not token:
        raise AuthError("Missing bearer token")
    return verify_token(token, auth_cfg.get("token_secret"))


def extract_bearer_token(header_value: str | None) -> str | None:
    if not header_value:
        return None
    if header_value.startswith("Bearer "):
        token = header_value[7:].strip()
        return token or None
    return None
