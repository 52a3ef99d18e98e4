# spentiva/api/v1/auth.py
import logging
from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, File, Request, UploadFile
from sqlalchemy.orm import Session

from spentiva.api.v1.deps import get_current_user, get_db_dep
from spentiva.core.config import settings
from spentiva.core.rate_limit import auth_limiter, otp_limiter
from spentiva.core.responses import bad_request, success_response
from spentiva.db import models
from spentiva.schemas.auth import EmailOnly, ProfileUpdate, ResetPassword, UserCreate, UserLogin, VerifyEmail
from spentiva.services import mailer, storage
from spentiva.services.otp import INVALID_OTP, find_valid_otp, issue_otp
from spentiva.services.security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)
router = APIRouter(tags=["auth"])

RESET_SENT = "If an account exists with this email, a password reset code has been sent"


def user_to_dict(user: models.User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "emailVerified": user.email_verified,
        "phone": user.phone,
        "phoneVerified": user.phone_verified,
        "profilePhoto": user.profile_photo,
        "role": user.role.value,
        "accountType": user.account_type.value,
    }


def issue_token(user: models.User) -> str:
    return create_access_token(user.id, {"email": user.email, "role": user.role.value})


def _find_user(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email.lower()).first()


@router.post("/signup", dependencies=[Depends(auth_limiter)])
def signup(payload: UserCreate, background_tasks: BackgroundTasks, db: Session = Depends(get_db_dep)):
    email = payload.email.lower()
    if _find_user(db, email):
        raise bad_request("Email already registered")
    user = models.User(
        name=payload.name.strip(),
        email=email,
        hashed_password=hash_password(payload.password),
        account_type=payload.accountType or models.AccountType.free,
    )
    db.add(user)
    db.flush()
    otp = issue_otp(db, email, models.OtpPurpose.verification)
    db.commit()
    db.refresh(user)
    logger.info("New user signed up: %s", user.id)

    background_tasks.add_task(mailer.send_welcome_email, user.email, user.name)
    background_tasks.add_task(mailer.send_otp_email, user.email, user.name, otp.otp, "verification")
    return success_response({"token": issue_token(user), "user": user_to_dict(user)}, "User registered successfully")


@router.post("/login", dependencies=[Depends(auth_limiter)])
def login(payload: UserLogin, request: Request, background_tasks: BackgroundTasks, db: Session = Depends(get_db_dep)):
    user = _find_user(db, payload.email)
    if not user or not verify_password(payload.password, user.hashed_password):
        raise bad_request("Invalid credentials")
    device = request.headers.get("user-agent", "Unknown Device")
    background_tasks.add_task(mailer.send_login_notification_email, user.email, user.name, device, datetime.utcnow())
    return success_response({"token": issue_token(user), "user": user_to_dict(user)}, "Login successful")


@router.post("/forgot-password", dependencies=[Depends(auth_limiter)])
def forgot_password(payload: EmailOnly, background_tasks: BackgroundTasks, db: Session = Depends(get_db_dep)):
    user = _find_user(db, payload.email)
    if user:
        otp = issue_otp(db, user.email, models.OtpPurpose.reset)
        db.commit()
        background_tasks.add_task(mailer.send_otp_email, user.email, user.name, otp.otp, "reset")
    # same answer either way so emails can't be enumerated
    return success_response(None, RESET_SENT)


@router.post("/reset-password", dependencies=[Depends(auth_limiter)])
def reset_password(payload: ResetPassword, background_tasks: BackgroundTasks, db: Session = Depends(get_db_dep)):
    if payload.newPassword != payload.confirmPassword:
        raise bad_request("Passwords do not match")
    user = _find_user(db, payload.email)
    otp = find_valid_otp(db, payload.email, models.OtpPurpose.reset, payload.otp) if user else None
    if otp is None:
        raise bad_request(INVALID_OTP)
    user.hashed_password = hash_password(payload.newPassword)
    otp.verified = True
    db.commit()
    background_tasks.add_task(mailer.send_password_reset_success_email, user.email, user.name)
    return success_response(None, "Password reset successfully")


@router.post("/verify-email")
def verify_email(payload: VerifyEmail, db: Session = Depends(get_db_dep)):
    user = _find_user(db, payload.email)
    if not user:
        raise bad_request("User not found")
    otp = find_valid_otp(db, payload.email, models.OtpPurpose.verification, payload.otp)
    if otp is None:
        raise bad_request(INVALID_OTP)
    otp.verified = True
    user.email_verified = True
    db.commit()
    db.refresh(user)
    return success_response({"user": user_to_dict(user)}, "Email verified successfully")


@router.post("/send-verification-otp", dependencies=[Depends(otp_limiter)])
def send_verification_otp(payload: EmailOnly, background_tasks: BackgroundTasks, db: Session = Depends(get_db_dep)):
    user = _find_user(db, payload.email)
    if not user:
        raise bad_request("User not found")
    if user.email_verified:
        raise bad_request("Email already verified")
    otp = issue_otp(db, user.email, models.OtpPurpose.verification)
    db.commit()
    background_tasks.add_task(mailer.send_otp_email, user.email, user.name, otp.otp, "verification")
    return success_response({"expiresAt": otp.expires_at}, "Verification code sent")


@router.get("/me")
def me(current_user: models.User = Depends(get_current_user)):
    return success_response({"user": user_to_dict(current_user)})


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    if payload.email is not None:
        email = payload.email.lower()
        if email != current_user.email:
            taken = db.query(models.User).filter(models.User.email == email, models.User.id != current_user.id).first()
            if taken:
                raise bad_request("Email already in use")
            current_user.email = email
            current_user.email_verified = False
    if payload.name is not None:
        current_user.name = payload.name.strip()
    if payload.phone is not None:
        if payload.phone != current_user.phone:
            current_user.phone_verified = False
        current_user.phone = payload.phone
    db.commit()
    db.refresh(current_user)
    return success_response({"user": user_to_dict(current_user)}, "Profile updated successfully")


@router.post("/profile-photo")
def upload_profile_photo(
    file: UploadFile = File(...),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    if not (file.content_type or "").startswith("image/"):
        raise bad_request("Only image files are allowed")
    content = file.file.read()
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise bad_request(f"File too large: {file.filename}")
    rec = storage.save_file(db, current_user.id, file.filename or "photo", content, file.content_type)
    current_user.profile_photo = rec.file_url
    db.commit()
    db.refresh(current_user)
    return success_response({"user": user_to_dict(current_user)}, "Profile photo updated successfully")
