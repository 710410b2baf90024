from passlib.context import CryptContext
from fastapi import Depends, Request, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from copo.database import get_db
from copo.models.user import User

pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt_sha256", "bcrypt"], deprecated="auto")

def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password):
    return pwd_context.hash(password)

def login_user(request: Request, user: User):
    request.session["user_id"] = user.id

def session_user_id(request: Request):
    """The id stored in the session cookie, or None for anonymous requests."""
    return request.session.get("user_id")

async def get_current_user_id(request: Request):
    user_id = session_user_id(request)
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id

async def get_current_user(
    request: Request,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
) -> User:
    user = await db.get(User, user_id)
    if not user:
        request.session.clear()
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user

async def get_optional_user(request: Request, db: AsyncSession = Depends(get_db)):
    user_id = session_user_id(request)
    if not user_id:
        return None
    return await db.get(User, user_id)
