import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import get_settings
from database import get_db, User
from errors import AuthError, ConflictError, ValidationError
from schemas import LoginResponse, RegisterResponse, UserCreate, UserLogin, UserOut

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "
# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_PASSWORD_BYTES = 72

auth_router = APIRouter()


def hash_password(password: str) -> str:
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_PASSWORD_BYTES:
        raise ValidationError("Password is too long")
    salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
    return bcrypt.hashpw(encoded, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))


def create_access_token(user: User) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(
        days=settings.access_token_expire_days
    )
    to_encode = {"userId": user.id, "email": user.email, "exp": expire}
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(authorization: Optional[str]) -> Optional[int]:
    """
    Returns the user id carried by an ``Authorization: Bearer <token>``
    header, or None when the header is absent, malformed, badly signed
    or expired.
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        return None

    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp"]},
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Rejected expired token")
        return None
    except jwt.InvalidTokenError:
        logger.debug("Rejected invalid token")
        return None

    user_id = payload.get("userId")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        return None
    return user_id


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    user_id = verify_token(authorization)
    if user_id is None:
        raise AuthError("Unauthorized")

    user = db.get(User, user_id)
    if user is None:
        raise AuthError("Unauthorized")
    return user


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def register_user(db: Session, email: str, password: str) -> User:
    if not email or not password:
        raise ValidationError("Email and password are required")

    if find_user_by_email(db, email) is not None:
        raise ConflictError("User with this email already exists")

    new_user = User(email=email, password_hash=hash_password(password))
    db.add(new_user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email
        db.rollback()
        raise ConflictError("User with this email already exists")
    db.refresh(new_user)
    logger.info("Registered user %s", new_user.id)
    return new_user


def authenticate_user(db: Session, email: str, password: str) -> User:
    if not email or not password:
        raise ValidationError("Email and password are required")

    user = find_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed login attempt")
        raise AuthError("Invalid credentials")
    return user


@auth_router.post(
    "/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED
)
def register(user: UserCreate, db: Session = Depends(get_db)):
    new_user = register_user(db, user.email, user.password)
    return RegisterResponse(id=new_user.id, email=new_user.email)


@auth_router.post("/login", response_model=LoginResponse)
def login(user: UserLogin, db: Session = Depends(get_db)):
    db_user = authenticate_user(db, user.email, user.password)
    return LoginResponse(
        token=create_access_token(db_user), user=UserOut.model_validate(db_user)
    )
