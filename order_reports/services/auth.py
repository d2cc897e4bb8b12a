"""Bearer-token checks for report requests.

Tokens are issued elsewhere (shop OAuth flow); here they are only verified.
A token grants access to the shops listed in its ``shops`` claim, ``"*"``
meaning every shop.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from order_reports.config import Settings, get_settings
from order_reports.services.errors import ShopAccessDenied

security = HTTPBearer(auto_error=False)

ALGORITHM = "HS256"
ALL_SHOPS = "*"


def create_access_token(
    subject: str,
    shops: Iterable,
    settings: Optional[Settings] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    claims = {
        "sub": subject,
        "shops": [str(s) for s in shops],
        "exp": expire,
        "iat": now,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str, settings: Optional[Settings] = None) -> dict:
    settings = settings or get_settings()
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> Optional[dict]:
    """Dependency: validated JWT claims, or None when auth is disabled."""
    if not settings.auth_enabled:
        return None
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return decode_token(credentials.credentials, settings)


def authorize_shop(claims: Optional[dict], shop_id: int) -> None:
    """Raise unless ``claims`` cover ``shop_id``. No claims means auth is off."""
    if claims is None:
        return
    shops = {str(s) for s in claims.get("shops") or []}
    if ALL_SHOPS in shops or str(shop_id) in shops:
        return
    raise ShopAccessDenied(f"Token is not valid for shop {shop_id}")
