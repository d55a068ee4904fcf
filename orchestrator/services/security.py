"""
Security Service for Habit Saga Orchestrator

Provides JWT authentication and prompt-input sanitization.
"""

import logging
import re
from typing import Any, Dict, Optional, Tuple

import jwt
from fastapi import Request

from core.errors import unauthorized

logger = logging.getLogger("orchestrator.security")

JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"

# Set at startup from SagaConfiguration
_jwt_secret: Optional[str] = None

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


class AuthenticationError(Exception):
    """Raised when authentication fails."""
    pass


def configure_auth(jwt_secret: Optional[str]) -> None:
    global _jwt_secret
    _jwt_secret = jwt_secret or None
    if not _jwt_secret:
        logger.warning("[configure_auth] No JWT secret configured - token signatures will NOT be verified")


def decode_jwt(token: str, secret: Optional[str] = None) -> Dict[str, Any]:
    """
    Decode and validate a Supabase JWT token.

    Args:
        token: JWT token string
        secret: Override for the configured secret

    Returns:
        Decoded token payload

    Raises:
        AuthenticationError: If token is invalid or expired
    """
    secret = secret or _jwt_secret
    if not secret:
        # Development mode: no secret configured
        try:
            return jwt.decode(token, options={"verify_signature": False})
        except jwt.DecodeError as e:
            raise AuthenticationError(f"Invalid token format: {e}")

    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE,
            options={
                "verify_exp": True,
                "require": ["exp", "sub"],
            },
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise AuthenticationError(f"Invalid token: {e}")


def extract_user_id(payload: Dict[str, Any]) -> str:
    """
    Extract user ID from JWT payload.

    Raises:
        AuthenticationError: If user ID not found in payload
    """
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("User ID not found in token")
    return user_id


def extract_bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


async def get_current_user(request: Request) -> Tuple[str, Dict[str, Any]]:
    """
    Get the current authenticated user from the Authorization header.
    Query-parameter tokens are not accepted.

    Returns:
        Tuple of (user_id, token_payload)

    Raises:
        ClientInputError: UNAUTHORIZED if authentication fails
    """
    token = extract_bearer_token(request)
    if not token:
        raise unauthorized("Missing Authorization header")

    try:
        payload = decode_jwt(token)
        return extract_user_id(payload), payload
    except AuthenticationError as e:
        logger.info(f"[get_current_user] Rejected token: {e}")
        raise unauthorized(str(e))


def sanitize_for_prompt(text: Optional[str], max_length: int = 1000) -> str:
    """
    Clean user text before embedding it in a prompt: strip control
    characters and code fences, trim, then truncate to max_length.
    """
    if not text:
        return ""
    cleaned = _CONTROL_CHARS.sub("", text)
    cleaned = cleaned.replace("```", "")
    return cleaned.strip()[:max_length]
