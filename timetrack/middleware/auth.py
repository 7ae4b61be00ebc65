"""
Supabase JWT Authentication Middleware

Verifies bearer tokens against the Supabase JWKS endpoint and resolves the
authenticated user id for the timer and time entry routes.
"""
import time
import logging
from typing import Optional
from fastapi import HTTPException, Header
from jose import jwt, jwk
import httpx

from timetrack.config import SUPABASE_URL

logger = logging.getLogger(__name__)

_jwks_cache: Optional[dict] = None
_jwks_cache_time: float = 0
JWKS_CACHE_DURATION = 60 * 60  # 1 hour in seconds

JWT_AUDIENCE = "authenticated"


def get_supabase_url() -> str:
    """Get Supabase URL from configuration"""
    if not SUPABASE_URL:
        raise ValueError("SUPABASE_URL must be set")
    return SUPABASE_URL


def get_jwks_url() -> str:
    """Get JWKS URL from Supabase URL"""
    return f"{get_supabase_url()}/auth/v1/.well-known/jwks.json"


def get_jwt_issuer() -> str:
    """Get JWT issuer from Supabase URL"""
    return f"{get_supabase_url()}/auth/v1"


async def get_jwks() -> dict:
    """
    Fetch and cache JWKS from Supabase
    Returns cached JWKS if available and not expired
    """
    global _jwks_cache, _jwks_cache_time

    now = time.time()

    if _jwks_cache and (now - _jwks_cache_time) < JWKS_CACHE_DURATION:
        return _jwks_cache

    try:
        jwks_url = get_jwks_url()
        logger.info(f"Fetching JWKS from Supabase: {jwks_url}")
        async with httpx.AsyncClient() as client:
            response = await client.get(jwks_url, timeout=10.0)
            response.raise_for_status()
            _jwks_cache = response.json()
            _jwks_cache_time = now
            logger.info("JWKS cached successfully")
            return _jwks_cache
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Failed to fetch JWKS: {e}")
        # Serve the stale copy rather than locking every user out
        if _jwks_cache:
            logger.warning("Using expired JWKS cache due to fetch failure")
            return _jwks_cache
        raise HTTPException(
            status_code=500,
            detail="Failed to fetch authentication keys"
        )


async def verify_token(token: str) -> dict:
    """
    Verify a Supabase JWT token using JWKS (public keys).

    Supports ES256 and RS256 signed tokens.

    Returns the decoded JWT payload
    Raises HTTPException if verification fails
    """
    try:
        jwks = await get_jwks()

        unverified_header = jwt.get_unverified_header(token)
        kid = unverified_header.get("kid")

        if not kid:
            raise HTTPException(
                status_code=401,
                detail="Token missing key ID (kid)"
            )

        key_data = next(
            (jwk_key for jwk_key in jwks.get("keys", []) if jwk_key.get("kid") == kid),
            None,
        )
        if not key_data:
            raise HTTPException(
                status_code=401,
                detail=f"Key with ID '{kid}' not found in JWKS"
            )

        key = jwk.construct(key_data)

        return jwt.decode(
            token,
            key,
            algorithms=["ES256", "RS256"],
            audience=JWT_AUDIENCE,
            issuer=get_jwt_issuer(),
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=401,
            detail="Token has expired"
        )
    except jwt.JWTClaimsError as e:
        raise HTTPException(
            status_code=401,
            detail=f"Token validation failed: {str(e)}"
        )
    except jwt.JWTError as e:
        raise HTTPException(
            status_code=401,
            detail=f"Invalid token: {str(e)}"
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Token verification error: {e}", exc_info=True)
        raise HTTPException(
            status_code=401,
            detail="Token verification failed"
        )


def get_user_id_from_payload(payload: dict) -> str:
    """
    Extract user ID from JWT payload
    Raises HTTPException if user ID is not present
    """
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=401,
            detail="Invalid token: no user ID"
        )
    return user_id


async def get_current_user_id(
    authorization: Optional[str] = Header(None)
) -> str:
    """
    FastAPI dependency to extract and verify JWT token from Authorization header
    Returns the authenticated user ID
    """
    if not authorization:
        raise HTTPException(
            status_code=401,
            detail="Authorization header missing"
        )

    try:
        scheme, token = authorization.split(" ", 1)
    except ValueError:
        raise HTTPException(
            status_code=401,
            detail="Invalid authorization header format. Expected 'Bearer <token>'"
        )

    if scheme.lower() != "bearer":
        raise HTTPException(
            status_code=401,
            detail="Invalid authorization scheme. Expected 'Bearer'"
        )

    payload = await verify_token(token)
    return get_user_id_from_payload(payload)
