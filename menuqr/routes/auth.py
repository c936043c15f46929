"""
Authentication routes: registration, login and password reset.

Login failures never reveal whether the email or the password was wrong,
and forgot-password answers the same way for known and unknown emails.
"""

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from menuqr.core.errors import server_error
from menuqr.core.security import (
    create_access_token,
    generate_reset_token,
    hash_password,
    reset_token_expiry,
    verify_password,
)
from menuqr.database import get_db
from menuqr.dependencies import get_email_service
from menuqr.models import Restaurant
from menuqr.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyResetTokenRequest,
)
from menuqr.services.email import BaseEmailService

logger = logging.getLogger(__name__)

router = APIRouter()

FORGOT_PASSWORD_MESSAGE = (
    "If an account with that email exists, a password reset link has been sent."
)


async def send_welcome_email(
    email_service: BaseEmailService,
    email: str,
    restaurant_name: str,
) -> None:
    """Background task; a failed welcome email never fails registration."""
    try:
        result = await email_service.send_welcome_email(email, restaurant_name)
        if not result.success:
            logger.warning(f"Welcome email to {email} failed: {result.error_message}")
    except Exception as e:
        logger.error(f"Welcome email to {email} raised: {e}")


async def _restaurant_by_reset_token(db: AsyncSession, token: str) -> Restaurant:
    result = await db.execute(
        select(Restaurant).where(
            Restaurant.reset_token == token,
            Restaurant.reset_token_expiry > datetime.now(),
        )
    )
    restaurant = result.scalar_one_or_none()
    if restaurant is None:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")
    return restaurant


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    email_service: BaseEmailService = Depends(get_email_service),
) -> dict[str, Any]:
    """Create the restaurant account and queue a welcome email."""
    logger.info(f"Registering restaurant: {body.email}")

    existing = await db.execute(select(Restaurant.id).where(Restaurant.email == body.email))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="Email already registered")

    restaurant = Restaurant(
        name=body.name,
        email=body.email,
        password=hash_password(body.password),
        phone_number=body.phone_number,
        address=body.address,
        description=body.description,
    )

    try:
        db.add(restaurant)
        await db.commit()
        await db.refresh(restaurant)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="Email already registered")
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error registering {body.email}: {e}")
        raise server_error("Failed to register restaurant", e)

    background_tasks.add_task(send_welcome_email, email_service, restaurant.email, restaurant.name)

    logger.info(f"Restaurant #{restaurant.id} registered")
    return {"message": "Restaurant registered successfully", "restaurant_id": restaurant.id}


@router.post("/login")
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    result = await db.execute(select(Restaurant).where(Restaurant.email == body.email))
    restaurant = result.scalar_one_or_none()

    if restaurant is None or not verify_password(body.password, restaurant.password):
        logger.info(f"Failed login for {body.email}")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_access_token(restaurant.id, restaurant.email)

    try:
        restaurant.token = token
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error storing token for {body.email}: {e}")
        raise server_error("Failed to login", e)

    return {
        "message": "Login successful",
        "token": token,
        "restaurant": {
            "id": restaurant.id,
            "name": restaurant.name,
            "email": restaurant.email,
            "phone_number": restaurant.phone_number,
            "address": restaurant.address,
            "description": restaurant.description,
        },
    }


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
    email_service: BaseEmailService = Depends(get_email_service),
) -> dict[str, Any]:
    """Issue a one-hour reset token. Same answer whether or not the email exists."""
    result = await db.execute(select(Restaurant).where(Restaurant.email == body.email))
    restaurant = result.scalar_one_or_none()

    if restaurant is None:
        logger.info(f"Password reset requested for unknown email {body.email}")
        return {"message": FORGOT_PASSWORD_MESSAGE}

    restaurant.reset_token = generate_reset_token()
    restaurant.reset_token_expiry = reset_token_expiry()
    await db.commit()

    sent = await email_service.send_password_reset_email(
        restaurant.email, restaurant.name, restaurant.reset_token
    )
    if not sent.success:
        logger.error(f"Password reset email to {restaurant.email} failed: {sent.error_message}")
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to send password reset email", "details": sent.error_message},
        )

    logger.info(f"Password reset email sent to restaurant #{restaurant.id}")
    return {"message": FORGOT_PASSWORD_MESSAGE}


@router.post("/verify-reset-token")
async def verify_reset_token(
    body: VerifyResetTokenRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    restaurant = await _restaurant_by_reset_token(db, body.token)
    return {"valid": True, "email": restaurant.email}


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    restaurant = await _restaurant_by_reset_token(db, body.token)

    restaurant.password = hash_password(body.new_password)
    restaurant.reset_token = None
    restaurant.reset_token_expiry = None
    await db.commit()

    logger.info(f"Password reset for restaurant #{restaurant.id}")
    return {"message": "Password has been reset successfully"}
