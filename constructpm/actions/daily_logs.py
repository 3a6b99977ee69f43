"""
Daily site logs: one report per project per day with weather, crew size,
equipment on site, the work done and any issues.

Anyone who can update phases may file a log. Only its author or an ADMIN may
delete it.
"""
from typing import List

from sqlalchemy.orm import Session

from constructpm.actions.common import bad_request, forbidden, get_project, not_found, require_user, validate
from constructpm.core.permissions import ADMIN, can
from constructpm.db.models.daily_log import DailyLog
from constructpm.db.models.user import User
from constructpm.schemas import DailyLogCreate
from constructpm.utils.activity import log_activity

RECENT_LIMIT = 30


def list_logs(db: Session, user: User, project_id: int, limit: int = RECENT_LIMIT) -> List[DailyLog]:
    project = get_project(db, user, project_id)
    return db.query(DailyLog).filter(DailyLog.project_id == project.id)\
        .order_by(DailyLog.date.desc(), DailyLog.id.desc()).limit(limit).all()


def create_log(db: Session, user: User, project_id: int, **data) -> DailyLog:
    project = get_project(db, user, project_id)
    if not can(user.role, "update", "phase"):
        raise forbidden()
    payload = validate(DailyLogCreate, **data)

    duplicate = db.query(DailyLog).filter(
        DailyLog.project_id == project.id,
        DailyLog.date == payload.date,
    ).first()
    if duplicate:
        raise bad_request(f"A daily log for {payload.date.isoformat()} already exists")

    log = DailyLog(project_id=project.id, author_id=user.id, **payload.model_dump())
    db.add(log)
    db.commit()
    db.refresh(log)

    log_activity(
        db, user, "DAILY_LOG_CREATED", f"Daily log filed for {log.date.isoformat()}",
        project_id=project.id, data={"dailyLogId": log.id},
    )
    return log


def delete_log(db: Session, user: User, log_id: int) -> None:
    require_user(user)
    log = db.query(DailyLog).filter(DailyLog.id == log_id).first()
    if not log:
        raise not_found("Daily log")
    get_project(db, user, log.project_id)
    if log.author_id != user.id and user.role != ADMIN:
        raise forbidden("Only the author or an admin can delete this log")

    project_id, log_date = log.project_id, log.date
    db.delete(log)
    db.commit()
    log_activity(
        db, user, "DAILY_LOG_DELETED", f"Deleted daily log for {log_date.isoformat()}",
        project_id=project_id, data={"dailyLogId": log_id},
    )
