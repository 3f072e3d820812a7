from datetime import timedelta
import os
from uuid import uuid4

from dotenv import load_dotenv
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from arena.deps import get_context
from arena.errors import AuthenticationError
from arena.schemas import User
from arena.utils import utcnow

load_dotenv()

SECRET_KEY = os.getenv("JWT_SECRET", "dev-secret-change-me")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
EXPIRY_MINUTES = int(os.getenv("JWT_EXPIRY_MINUTES", "1440"))

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/github/callback")


def create_access_token(data: dict) -> str:
    to_encode = data.copy()
    to_encode.update({"exp": utcnow() + timedelta(minutes=EXPIRY_MINUTES), "jti": uuid4().hex})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise AuthenticationError("Invalid token") from exc
    if not payload.get("uid") or not payload.get("jti"):
        raise AuthenticationError("Invalid token")
    return payload


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    context=Depends(get_context),
) -> User:
    payload = decode_access_token(token)
    if context.auth.is_revoked(payload["jti"]):
        raise AuthenticationError("Session has ended")

    user = await context.auth.get_user(payload["uid"])
    if user is None:
        raise AuthenticationError("Invalid token")
    return user
