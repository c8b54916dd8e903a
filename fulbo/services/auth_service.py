"""
Authentication service for identity-provider tokens.

The identity provider signs a JWT for each signed-in member. Claims used:
sub (stable user id), email, name, picture.
"""

import os
import logging
from datetime import timedelta
from typing import Optional, Dict
from jose import jwt, JWTError
from dotenv import load_dotenv
from fulbo.utils.datetime_utils import utcnow

load_dotenv()

logger = logging.getLogger(__name__)

IDENTITY_JWT_SECRET = os.getenv("IDENTITY_JWT_SECRET", "dev-secret-change-me")
IDENTITY_JWT_ALGORITHM = os.getenv("IDENTITY_JWT_ALGORITHM", "HS256")
IDENTITY_JWT_AUDIENCE = os.getenv("IDENTITY_JWT_AUDIENCE")
ACCESS_TOKEN_EXPIRE_MINUTES = 60

if IDENTITY_JWT_SECRET == "dev-secret-change-me":
    logger.warning("IDENTITY_JWT_SECRET not configured. Using development secret.")


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed token carrying identity claims.

    Used for local development and tests; production tokens come from the
    identity provider.

    Args:
        data: Claims to encode (sub, email, name, picture)
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT string
    """
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode["exp"] = expire
    if IDENTITY_JWT_AUDIENCE:
        to_encode.setdefault("aud", IDENTITY_JWT_AUDIENCE)
    return jwt.encode(to_encode, IDENTITY_JWT_SECRET, algorithm=IDENTITY_JWT_ALGORITHM)


def verify_token(token: str) -> Optional[Dict]:
    """
    Verify and decode an identity token.

    Args:
        token: Bearer token from the Authorization header

    Returns:
        Claims dictionary, or None if the token is invalid, expired or has no subject
    """
    options = {"verify_aud": IDENTITY_JWT_AUDIENCE is not None}
    try:
        payload = jwt.decode(
            token,
            IDENTITY_JWT_SECRET,
            algorithms=[IDENTITY_JWT_ALGORITHM],
            audience=IDENTITY_JWT_AUDIENCE,
            options=options,
        )
    except JWTError as e:
        logger.debug(f"Token verification failed: {e}")
        return None

    if not payload.get("sub"):
        return None
    return payload
