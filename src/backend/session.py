"""Signed-in session context.

An AuthSession is created from a successful login response and passed
explicitly to the backend client and repository. The CLI persists it to a
JSON file between invocations and deletes that file on logout.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_TOKEN_KEYS = ("authToken", "token", "auth_token")


class AuthError(Exception):
    """Raised when a login response or stored session is unusable."""


@dataclass(frozen=True)
class AuthSession:
    token: str
    user_id: str


def decode_jwt_payload(token: str) -> dict:
    """Decode the (unverified) payload segment of a JWT.

    Raises:
        AuthError: If the token is not a three-part JWT with a JSON payload.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise AuthError("Invalid token format")
    segment = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        return json.loads(base64.urlsafe_b64decode(segment))
    except (ValueError, TypeError) as e:
        raise AuthError(f"Failed to decode token: {token[:50]}...") from e


def session_from_auth_response(response) -> AuthSession:
    """Build a session from a login/register response.

    The backend returns the token under one of several keys (or as a bare
    string). The user id is the JWT's `id` claim.
    """
    token = None
    if isinstance(response, str):
        token = response
    elif isinstance(response, dict):
        token = next((response[k] for k in _TOKEN_KEYS if response.get(k)), None)
    if not token:
        raise AuthError(f"No auth token received. Response: {json.dumps(response, default=str)}")

    payload = decode_jwt_payload(token)
    user_id = payload.get("id")
    if user_id is None:
        raise AuthError("Token payload has no 'id' claim")
    return AuthSession(token=token, user_id=str(user_id))


def save_session(session: AuthSession, path: Path) -> None:
    path.write_text(json.dumps(asdict(session)))
    logger.info("Session saved for user %s", session.user_id)


def load_session(path: Path) -> AuthSession | None:
    """Return the stored session, or None when not signed in."""
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text())
        return AuthSession(token=data["token"], user_id=str(data["user_id"]))
    except (ValueError, KeyError, TypeError) as e:
        raise AuthError(f"Corrupt session file {path}: {e}") from e


def clear_session(path: Path) -> bool:
    """Delete the stored session. Returns False if there was none."""
    if not path.exists():
        return False
    path.unlink()
    return True
