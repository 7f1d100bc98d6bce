import jwt
import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from api.utils.logger import logger, myself
from core import security

bearer_scheme = HTTPBearer(auto_error=False)
api_key_scheme = APIKeyHeader(name="api_key", auto_error=False)


def get_current_wallet(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> str:
    """wallet address carried in the bearer token subject"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    try:
        payload = security.decode_access_token(credentials.credentials)
    except jwt.PyJWTError as e:
        logger.warning(f'{myself()}: rejected token ({e})')
        raise credentials_exception

    wallet = payload.get("sub")
    if not wallet:
        raise credentials_exception
    return wallet.lower()


def require_admin_key(apiKey: str = Depends(api_key_scheme)) -> None:
    adminKey = security.CFG.adminApiKey
    if not adminKey or not apiKey or not secrets.compare_digest(apiKey, adminKey):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="invalid api key")
