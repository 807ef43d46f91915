import hashlib
import logging
import secrets
from datetime import timedelta
from fastapi import APIRouter, BackgroundTasks, Cookie, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from typing import Optional
from pymongo.errors import PyMongoError

from config import settings
from db import users_collection
from exceptions import get_server_exception
from schemas.auth import Token, ChangePassword, ForgotPassword, PasswordReset
from utils.app_utils import (create_access_token, create_refresh_token, decode_refresh_token,
                             authenticate_user, hash_password, verify_password, get_current_user,
                             public_user, send_email)
from utils.date_utils import utc_now
from utils.employee_utils import get_employee_summary

logger = logging.getLogger(__name__)

router = APIRouter()

REFRESH_COOKIE = "refresh_token"


def _hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _set_refresh_cookie(response: Response, refresh_token: str):
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=refresh_token,
        httponly=True,
        secure=settings.PRODUCTION_MODE,
        samesite="strict",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


@router.post("/login", response_model=Token)
async def login_for_access_token(response: Response, form_data: OAuth2PasswordRequestForm = Depends()):
    """
    Handles user authentication and generates JWT tokens.
    The access token is returned in the body, the refresh token is set as an httpOnly cookie.
    Args:
        form_data (OAuth2PasswordRequestForm): username (the account email) and password
    Returns:
        dict: {"access_token": str, "token_type": "bearer"}
    Raises:
        HTTPException: 401 Unauthorized if the credentials are invalid or the account is deactivated
    """
    user = await authenticate_user(email=form_data.username, password=form_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid login details",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.get("is_active", True):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Your account has been deactivated")

    token = create_access_token(payload={"sub": user["email"]})
    refresh_token = create_refresh_token(payload={"sub": user["email"]})

    try:
        await users_collection.update_one(
            {"_id": user["_id"]},
            {"$set": {"refresh_token": refresh_token, "last_login": utc_now()}}
        )
    except PyMongoError as e:
        raise get_server_exception(e, "Login")

    _set_refresh_cookie(response, refresh_token)
    logger.info("User %s logged in", user["email"])

    return {"access_token": token, "token_type": "bearer"}


@router.post("/refresh", response_model=Token)
async def refresh_access_token(response: Response, refresh_token: Optional[str] = Cookie(None)):
    """
    Issues a new access token from the refresh token cookie and rotates the cookie.
    Only the most recently issued refresh token of an account is accepted.
    """
    if not refresh_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token required")

    email = decode_refresh_token(refresh_token)
    if email is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    user = await users_collection.find_one({"email": email, "refresh_token": refresh_token})
    if not user or not user.get("is_active", True):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    new_refresh_token = create_refresh_token(payload={"sub": email})
    await users_collection.update_one({"_id": user["_id"]}, {"$set": {"refresh_token": new_refresh_token}})
    _set_refresh_cookie(response, new_refresh_token)

    return {"access_token": create_access_token(payload={"sub": email}), "token_type": "bearer"}


@router.post("/logout")
async def logout(response: Response, user_and_type: tuple = Depends(get_current_user)):
    user, _ = user_and_type

    await users_collection.update_one({"_id": user["_id"]}, {"$set": {"refresh_token": None}})
    response.delete_cookie(REFRESH_COOKIE)

    return {"message": "Logged out successfully"}


@router.get("/me")
async def get_me(user_and_type: tuple = Depends(get_current_user)):
    """The authenticated account, with a summary of its linked employee profile when there is one."""
    user, _ = user_and_type

    data = public_user(user)
    data["employee"] = await get_employee_summary(user.get("employee_id"))
    return {"data": data}


@router.patch("/change-password")
async def change_password(password_data: ChangePassword, user_and_type: tuple = Depends(get_current_user)):
    """
    Change the password of the authenticated account.
    Raises:
        HTTPException: 400 if the current password is wrong
    """
    user, _ = user_and_type

    if not verify_password(plain_password=password_data.current_password, hashed_password=user["password"]):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    try:
        await users_collection.update_one(
            {"_id": user["_id"]},
            {"$set": {"password": hash_password(password_data.new_password), "updated_at": utc_now()}}
        )
    except PyMongoError as e:
        raise get_server_exception(e, "Change password")

    return {"message": "Password changed successfully"}


@router.post("/forgot-password")
async def forgot_password(email_data: ForgotPassword, background_tasks: BackgroundTasks):
    """
    Issue a password reset token valid for PASSWORD_RESET_EXPIRE_MINUTES.
    The token is emailed when SMTP is configured. Outside production mode it is also
    returned in the response body. Unknown addresses get the same answer as known ones.
    """
    message = "If the email exists, a password reset token has been sent"
    email = email_data.email.lower()

    user = await users_collection.find_one({"email": email})
    if not user:
        return {"message": message}

    reset_token = secrets.token_hex(32)
    expires = utc_now() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)

    try:
        await users_collection.update_one(
            {"_id": user["_id"]},
            {"$set": {"password_reset_token": _hash_reset_token(reset_token), "password_reset_expires": expires}}
        )
    except PyMongoError as e:
        raise get_server_exception(e, "Forgot password")

    if settings.SMTP_HOST:
        background_tasks.add_task(
            send_email,
            email=email,
            subject="Password reset",
            message=f"Your password reset token is {reset_token}. "
                    f"It expires in {settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes.",
        )

    response = {"message": message}
    if not settings.PRODUCTION_MODE:
        response["reset_token"] = reset_token
    return response


@router.post("/reset-password")
async def reset_password(password_reset: PasswordReset):
    """
    Reset a password with a token issued by /forgot-password.
    Raises:
        HTTPException: 400 if the token is invalid or has expired
    """
    user = await users_collection.find_one({
        "email": password_reset.email.lower(),
        "password_reset_token": _hash_reset_token(password_reset.reset_token),
        "password_reset_expires": {"$gt": utc_now()},
    })
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    try:
        await users_collection.update_one(
            {"_id": user["_id"]},
            {"$set": {
                "password": hash_password(password_reset.new_password),
                "password_reset_token": None,
                "password_reset_expires": None,
                "refresh_token": None,
                "updated_at": utc_now(),
            }}
        )
    except PyMongoError as e:
        raise get_server_exception(e, "Reset password")

    return {"message": "Password reset successful"}
