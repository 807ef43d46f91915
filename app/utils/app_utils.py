import logging
import re
import secrets
from fastapi import HTTPException, Depends
from fastapi.security import OAuth2PasswordBearer
from typing import Dict, Any, Optional
import bcrypt
from bson import ObjectId
from pymongo.errors import DuplicateKeyError
from jose import JWTError, jwt
from aiosmtplib import send
from email.mime.text import MIMEText
from db import users_collection
from config import settings
from exceptions import get_user_exception, get_unknown_entity_exception, ForbiddenError

from datetime import datetime, timedelta
from pytz import UTC

logger = logging.getLogger(__name__)

oauth2_bearer = OAuth2PasswordBearer(tokenUrl="auth/login")

secret_key = settings.SECRET_KEY
refresh_secret_key = settings.REFRESH_SECRET_KEY
algorithm = settings.ALGORITHM

STAFF_ROLES = ("admin", "hr")


def hash_password(password: str) -> bytes:
    salt = bcrypt.gensalt()
    hashed_password = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed_password


def verify_password(plain_password: str, hashed_password) -> bool:
    if isinstance(hashed_password, str):
        hashed_password = hashed_password.encode('utf-8')

    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password)


def create_access_token(payload: Dict[str, Any], expiry: timedelta = None):
    expiry = expiry or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    data_to_encode = {"data": payload}
    expiry_delta = datetime.now(UTC) + expiry
    data_to_encode.update({"exp": expiry_delta})
    encoded_data: str = jwt.encode(data_to_encode, secret_key, algorithm)

    return encoded_data


def create_refresh_token(payload: Dict[str, Any], expiry: timedelta = None):
    expiry = expiry or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    data_to_encode = {"data": payload, "jti": secrets.token_hex(8)}
    data_to_encode.update({"exp": datetime.now(UTC) + expiry})
    return jwt.encode(data_to_encode, refresh_secret_key, algorithm)


def decode_refresh_token(token: str) -> Optional[str]:
    """Returns the subject (email) of a valid refresh token, or None."""
    try:
        payload = jwt.decode(token, refresh_secret_key, algorithms=[algorithm])
    except JWTError as e:
        logger.info("Rejected refresh token: %s", e)
        return None
    data = payload.get("data") or {}
    return data.get("sub")


async def authenticate_user(email: str, password: str):
    """
    authenticates user
    args:-
        - email: login email of the user account
        - password: plain password
    """
    user = await users_collection.find_one({"email": email.lower()})
    if not user:
        return False

    if not verify_password(plain_password=password, hashed_password=user["password"]):
        return False
    return user


async def get_current_user(token: str = Depends(oauth2_bearer)) -> tuple:
    """
    Resolves the bearer token to the principal making the request.
    Returns (user, role) where role is one of admin, hr or employee.
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
        data = payload.get("data")

        if data is None:
            raise HTTPException(status_code=401, detail="Invalid token data.")

        pk: str = data.get("sub")

        if pk is None:
            raise get_user_exception()

        user = await users_collection.find_one({"email": pk})
        if not user:
            raise HTTPException(status_code=401, detail="User not found.")

        if not user.get("is_active", True):
            raise HTTPException(status_code=401, detail="Your account has been deactivated")

        return user, user.get("role", "employee")

    except JWTError as e:
        logger.info("JWT Error %s", e)
        raise HTTPException(status_code=401, detail="JWT Error - could not validate user.")


def ensure_role(user_type: str, *allowed_roles: str):
    if user_type not in allowed_roles:
        raise ForbiddenError()


def to_object_id(value) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not value or not ObjectId.is_valid(str(value)):
        raise get_unknown_entity_exception()
    return ObjectId(str(value))


async def find_by_id(collection, value, projection=None) -> Optional[dict]:
    """find_one by _id that tolerates missing or malformed references."""
    if not value or not ObjectId.is_valid(str(value)):
        return None
    return await collection.find_one({"_id": ObjectId(str(value))}, projection)


def duplicate_key_field(error: DuplicateKeyError) -> Optional[str]:
    """
    Name of the field a unique index rejected, from the server's keyPattern or, failing that,
    the index name in the error message (e.g. "index: employee_code_1 dup key").
    """
    details = error.details or {}
    for key in ("keyPattern", "keyValue"):
        if details.get(key):
            return next(iter(details[key]))
    match = re.search(r"index: (\w+?)_-?1\b", str(error))
    return match.group(1) if match else None


def serialize_document(document):
    """Converts ObjectId values (at any depth) to strings so documents are JSON-ready."""
    if isinstance(document, ObjectId):
        return str(document)
    if isinstance(document, list):
        return [serialize_document(item) for item in document]
    if isinstance(document, dict):
        return {key: serialize_document(value) for key, value in document.items()}
    return document


def public_user(user: dict) -> dict:
    return {
        "_id": str(user["_id"]),
        "email": user.get("email"),
        "role": user.get("role"),
        "employee_id": user.get("employee_id"),
        "is_active": user.get("is_active", True),
        "last_login": user.get("last_login"),
    }


def pagination(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": (total + limit - 1) // limit if limit else 0,
    }


async def send_email(email: str, subject: str, message: str):
    mime_message = MIMEText(message)
    mime_message["From"] = settings.SMTP_USER
    mime_message["To"] = email
    mime_message["Subject"] = subject

    try:
        await send(mime_message, hostname=settings.SMTP_HOST, port=settings.SMTP_PORT,
                   username=settings.SMTP_USER, password=settings.SMTP_USER_PWD, use_tls=True)
    except Exception:
        logger.exception("Sending email to %s failed", email)
