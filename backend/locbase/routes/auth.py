import logging
import os

from fastapi import APIRouter, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models, schemas, audit
from ..audit import ActivityType
from ..auth import Principal, get_password_hash, verify_password, create_access_token, get_current_user

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
testing = os.getenv("TESTING") == "1"


def rate_limit(limit: str):
    if testing:
        def wrapper(func):
            return func
        return wrapper
    return limiter.limit(limit)


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=schemas.Token)
@rate_limit("5/minute")
async def register(request: Request, user: schemas.UserCreate, db: Session = Depends(get_db)):
    existing = db.query(models.User).filter(models.User.email == user.email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    db_user = models.User(
        email=user.email,
        hashed_password=get_password_hash(user.password),
        full_name=user.full_name,
    )
    db.add(db_user)
    db.flush()
    audit.log_action(db, Principal(user=db_user), ActivityType.REGISTER, target_type="user", target_id=db_user.id)
    db.commit()
    db.refresh(db_user)
    logger.info("Registered user %s", db_user.id)
    token = create_access_token({"sub": db_user.email})
    return schemas.Token(access_token=token)


@router.post("/login", response_model=schemas.Token)
@rate_limit("10/minute")
async def login(request: Request, user: schemas.LoginRequest, db: Session = Depends(get_db)):
    db_user = db.query(models.User).filter(models.User.email == user.email).first()
    if not db_user or not verify_password(user.password, db_user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not db_user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")
    token = create_access_token({"sub": db_user.email})
    audit.log_action(db, Principal(user=db_user), ActivityType.LOGIN, target_type="user", target_id=db_user.id)
    db.commit()
    return schemas.Token(access_token=token)


@router.get("/me", response_model=schemas.UserOut)
def me(current_user: models.User = Depends(get_current_user)):
    return current_user
