from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from . import config

security = HTTPBearer()

# Tokens are issued by the auth service at login; the chat backend only
# verifies them. create_token mirrors that service's claims.


def create_token(user_id: int, email: str, role: str, expires: timedelta = timedelta(days=7)) -> str:
    payload = {
        "id": user_id,
        "email": email,
        "role": role,
        "iat": datetime.now(timezone.utc),
        "exp": datetime.now(timezone.utc) + expires,
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALG)


def decode_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALG])


def auth_required(creds: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    try:
        data = decode_token(creds.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="invalid token")
    if "id" not in data:
        raise HTTPException(status_code=401, detail="invalid token")
    return data
