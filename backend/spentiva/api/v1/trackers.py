# spentiva/api/v1/trackers.py
import logging
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from spentiva.api.v1.deps import get_current_user, get_db_dep
from spentiva.core.rate_limit import otp_limiter
from spentiva.core.responses import bad_request, success_response
from spentiva.db import models
from spentiva.schemas.tracker import DeleteConfirm, InviteResponse, ShareCreate, ShareEmail, TrackerCreate, TrackerUpdate
from spentiva.services import mailer, usage_logs
from spentiva.services.otp import INVALID_OTP, find_valid_otp, issue_otp
from spentiva.services.trackers import (
    OWNER,
    TRACKER_NOT_FOUND,
    get_tracker_for,
    readable_tracker_ids,
    seed_default_categories,
    share_to_dict,
    tracker_role,
    tracker_to_dict,
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["tracker"])

DELETED_MESSAGE = "Tracker and associated expenses deleted successfully"


def delete_tracker_and_data(db: Session, tracker: models.Tracker) -> None:
    """Flag usage snapshots, then drop the tracker with its expenses, categories, shares and schedules."""
    usage_logs.mark_tracker_as_deleted(db, tracker.id)
    db.delete(tracker)


@router.get("/all")
def list_trackers(current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    ids = readable_tracker_ids(db, current_user)
    rows = (
        db.query(models.Tracker)
        .filter(models.Tracker.id.in_(ids))
        .order_by(models.Tracker.created_at.desc(), models.Tracker.id.desc())
        .all()
    )
    return success_response({"trackers": [tracker_to_dict(t, tracker_role(t, current_user)) for t in rows]})


@router.post("/create")
def create_tracker(
    payload: TrackerCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    tracker = models.Tracker(
        user_id=current_user.id,
        name=payload.name.strip(),
        type=payload.type,
        currency=payload.currency,
        description=payload.description,
        bot_image=payload.botImage,
    )
    db.add(tracker)
    db.flush()
    seed_default_categories(db, tracker)
    db.commit()
    db.refresh(tracker)
    logger.info("Tracker %s created by user %s", tracker.id, current_user.id)
    return success_response({"tracker": tracker_to_dict(tracker, OWNER)}, "Tracker created successfully")


@router.get("/get/{tracker_id}")
def get_tracker(tracker_id: int, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    tracker = get_tracker_for(db, tracker_id, current_user)
    role = tracker_role(tracker, current_user)
    return success_response({"tracker": tracker_to_dict(tracker, role, include_shares=True)})


@router.put("/update/{tracker_id}")
def update_tracker(
    tracker_id: int,
    payload: TrackerUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    tracker = get_tracker_for(db, tracker_id, current_user, owner_only=True)
    old_name, old_type = tracker.name, tracker.type

    if payload.name is not None:
        tracker.name = payload.name.strip()
    if payload.type is not None:
        tracker.type = payload.type
    if payload.currency is not None:
        tracker.currency = payload.currency
    if payload.description is not None:
        tracker.description = payload.description
    if payload.botImage is not None:
        tracker.bot_image = payload.botImage

    if tracker.name != old_name or tracker.type != old_type:
        try:
            usage_logs.update_tracker_in_usage(db, tracker.id, tracker.name, tracker.type.value)
        except SQLAlchemyError:
            logger.exception("Failed to update usage snapshots for tracker %s", tracker.id)
        db.query(models.ReportSchedule).filter(models.ReportSchedule.tracker_id == tracker.id).update(
            {"tracker_name": tracker.name}, synchronize_session=False
        )

    db.commit()
    db.refresh(tracker)
    return success_response({"tracker": tracker_to_dict(tracker, OWNER)}, "Tracker updated successfully")


@router.delete("/delete/{tracker_id}")
def delete_tracker(tracker_id: int, current_user: models.User = Depends(get_current_user), db: Session = Depends(get_db_dep)):
    tracker = get_tracker_for(db, tracker_id, current_user, owner_only=True)
    delete_tracker_and_data(db, tracker)
    db.commit()
    logger.info("Tracker %s deleted by user %s", tracker_id, current_user.id)
    return success_response({"id": tracker_id, "message": DELETED_MESSAGE}, DELETED_MESSAGE)


@router.post("/delete-request/{tracker_id}", dependencies=[Depends(otp_limiter)])
def request_tracker_delete(
    tracker_id: int,
    background_tasks: BackgroundTasks,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    tracker = get_tracker_for(db, tracker_id, current_user, owner_only=True)
    otp = issue_otp(db, current_user.email, models.OtpPurpose.tracker_delete, tracker_id=tracker.id)
    db.commit()
    background_tasks.add_task(mailer.send_otp_email, current_user.email, current_user.name, otp.otp, "tracker-delete")
    return success_response({"expiresAt": otp.expires_at}, "Deletion code sent to your email")


@router.post("/delete-confirm/{tracker_id}")
def confirm_tracker_delete(
    tracker_id: int,
    payload: DeleteConfirm,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    tracker = get_tracker_for(db, tracker_id, current_user, owner_only=True)
    otp = find_valid_otp(db, current_user.email, models.OtpPurpose.tracker_delete, payload.otp, tracker_id=tracker.id)
    if otp is None:
        raise bad_request(INVALID_OTP)
    delete_tracker_and_data(db, tracker)
    otp.verified = True
    db.commit()
    logger.info("Tracker %s deleted after OTP confirmation by user %s", tracker_id, current_user.id)
    return success_response({"id": tracker_id, "message": DELETED_MESSAGE}, DELETED_MESSAGE)


@router.post("/share/{tracker_id}")
def share_tracker(
    tracker_id: int,
    payload: ShareCreate,
    background_tasks: BackgroundTasks,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    tracker = get_tracker_for(db, tracker_id, current_user, owner_only=True)
    email = payload.email.lower()
    if email == current_user.email:
        raise bad_request("You cannot share a tracker with yourself")
    if any(s.email == email for s in tracker.shares):
        raise bad_request("Tracker already shared with this email")

    invitee = db.query(models.User).filter(models.User.email == email).first()
    tracker.shares.append(
        models.TrackerShare(
            email=email,
            user_id=invitee.id if invitee else None,
            name=invitee.name if invitee else None,
            role=payload.role,
            status=models.ShareStatus.pending,
            invited_at=datetime.utcnow(),
        )
    )
    db.commit()
    db.refresh(tracker)
    background_tasks.add_task(mailer.send_tracker_invite_email, email, current_user.name, tracker.name, payload.role.value)
    return success_response({"sharedWith": [share_to_dict(s) for s in tracker.shares]}, "Tracker shared successfully")


@router.post("/unshare/{tracker_id}")
def unshare_tracker(
    tracker_id: int,
    payload: ShareEmail,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    tracker = get_tracker_for(db, tracker_id, current_user, owner_only=True)
    email = payload.email.lower()
    share = next((s for s in tracker.shares if s.email == email), None)
    if share is None:
        raise bad_request("User not found in shared list")
    tracker.shares.remove(share)
    # their report schedules go with the access
    schedules = db.query(models.ReportSchedule).filter(models.ReportSchedule.tracker_id == tracker.id)
    if share.user_id is not None:
        schedules = schedules.filter(models.ReportSchedule.user_id == share.user_id)
    else:
        schedules = schedules.filter(models.ReportSchedule.user_email == email)
    removed = schedules.delete(synchronize_session=False)
    if removed:
        logger.info("Removed %s report schedule(s) of %s on tracker %s", removed, email, tracker.id)
    db.commit()
    db.refresh(tracker)
    return success_response({"sharedWith": [share_to_dict(s) for s in tracker.shares]}, "Access removed successfully")


@router.post("/resend-invite/{tracker_id}", dependencies=[Depends(otp_limiter)])
def resend_invite(
    tracker_id: int,
    payload: ShareEmail,
    background_tasks: BackgroundTasks,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    tracker = get_tracker_for(db, tracker_id, current_user, owner_only=True)
    email = payload.email.lower()
    share = next((s for s in tracker.shares if s.email == email), None)
    if share is None:
        raise bad_request("User not found in shared list")
    if share.status != models.ShareStatus.pending:
        raise bad_request("Invite is not pending")
    share.invited_at = datetime.utcnow()
    db.commit()
    background_tasks.add_task(mailer.send_tracker_invite_email, email, current_user.name, tracker.name, share.role.value)
    return success_response({"share": share_to_dict(share)}, "Invite resent successfully")


@router.post("/respond-invite/{tracker_id}")
def respond_invite(
    tracker_id: int,
    payload: InviteResponse,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_dep),
):
    tracker = db.query(models.Tracker).filter(models.Tracker.id == tracker_id).first()
    if tracker is None:
        raise bad_request(TRACKER_NOT_FOUND)
    share = next(
        (
            s for s in tracker.shares
            if s.status == models.ShareStatus.pending and (s.user_id == current_user.id or s.email == current_user.email)
        ),
        None,
    )
    if share is None:
        raise bad_request("No pending invite for this tracker")

    share.status = models.ShareStatus.accepted if payload.action == "accept" else models.ShareStatus.rejected
    share.user_id = current_user.id
    share.name = current_user.name
    db.commit()
    db.refresh(tracker)

    if share.status == models.ShareStatus.accepted:
        data = {"tracker": tracker_to_dict(tracker, share.role.value)}
        return success_response(data, "Invite accepted")
    return success_response({"share": share_to_dict(share)}, "Invite rejected")
