"""
Scheduled portfolio reports.

A schedule is due when it has not been sent in the last 20 hours, the
current UTC hour equals its send hour and the day matches: weekday for
WEEKLY (0 = Sunday, default Monday), day of month for MONTHLY (default 1st).
"""
import calendar
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from constructpm.actions.common import bad_request, not_found, require_user, validate
from constructpm.core.dates import utcnow
from constructpm.core.permissions import check_admin
from constructpm.db.models.phase import Phase
from constructpm.db.models.project import Project
from constructpm.db.models.punch_list import PunchListItem
from constructpm.db.models.report import ReportSchedule
from constructpm.db.models.user import User
from constructpm.schemas import ReportScheduleCreate
from constructpm.utils.email import send_template_email

logger = logging.getLogger(__name__)

RESEND_GUARD = timedelta(hours=20)


def list_schedules(db: Session, user: User) -> List[ReportSchedule]:
    require_user(user)
    check_admin(user)
    return db.query(ReportSchedule).filter(ReportSchedule.organization_id == user.organization_id)\
        .order_by(ReportSchedule.created_at.desc()).all()


def create_schedule(db: Session, user: User, **data) -> ReportSchedule:
    require_user(user)
    check_admin(user)
    payload = validate(ReportScheduleCreate, **data)

    project_ids = []
    if payload.include_projects:
        requested = set(payload.include_projects)
        project_ids = [
            row[0] for row in db.query(Project.id).filter(
                Project.id.in_(requested),
                Project.organization_id == user.organization_id,
            ).order_by(Project.id).all()
        ]
        if len(project_ids) != len(requested):
            raise bad_request("One or more selected projects were not found")

    schedule = ReportSchedule(
        organization_id=user.organization_id,
        created_by_id=user.id,
        frequency=payload.frequency,
        day_of_week=payload.day_of_week if payload.frequency == "WEEKLY" else None,
        day_of_month=payload.day_of_month if payload.frequency == "MONTHLY" else None,
        send_hour=payload.send_hour,
        recipients=[str(r).lower() for r in payload.recipients],
        include_projects=project_ids,
        active=True,
    )
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    return schedule


def _get_schedule(db: Session, user: User, schedule_id: int) -> ReportSchedule:
    require_user(user)
    check_admin(user)
    schedule = db.query(ReportSchedule).filter(
        ReportSchedule.id == schedule_id,
        ReportSchedule.organization_id == user.organization_id,
    ).first()
    if not schedule:
        raise not_found("Report schedule")
    return schedule


def toggle_schedule(db: Session, user: User, schedule_id: int, active: bool) -> ReportSchedule:
    schedule = _get_schedule(db, user, schedule_id)
    schedule.active = active
    db.commit()
    return schedule


def delete_schedule(db: Session, user: User, schedule_id: int) -> None:
    schedule = _get_schedule(db, user, schedule_id)
    db.delete(schedule)
    db.commit()


def is_schedule_due(schedule: ReportSchedule, now: datetime) -> bool:
    if schedule.last_sent_at and now - schedule.last_sent_at < RESEND_GUARD:
        return False
    if now.hour != schedule.send_hour:
        return False
    if schedule.frequency == "WEEKLY":
        day_of_week = 1 if schedule.day_of_week is None else schedule.day_of_week
        return now.isoweekday() % 7 == day_of_week
    if schedule.frequency == "MONTHLY":
        day_of_month = 1 if schedule.day_of_month is None else schedule.day_of_month
        # 29-31 fall back to the last day of shorter months
        last_day = calendar.monthrange(now.year, now.month)[1]
        return now.day == min(day_of_month, last_day)
    return False


def portfolio_summary(db: Session, organization_id: int, project_ids: Optional[List[int]] = None) -> List[dict]:
    query = db.query(Project).filter(
        Project.organization_id == organization_id,
        Project.status.notin_(["ARCHIVED", "CANCELLED"]),
    )
    if project_ids is not None:
        query = query.filter(Project.id.in_(project_ids))

    today = utcnow().date()
    summary = []
    for project in query.order_by(Project.name).all():
        phases = db.query(Phase).filter(Phase.project_id == project.id).all()
        open_punch = db.query(PunchListItem).join(Phase).filter(
            Phase.project_id == project.id,
            PunchListItem.status != "CLOSED",
        ).count()
        summary.append({
            "name": project.name,
            "status": project.status,
            "phase_count": len(phases),
            "complete": len([p for p in phases if p.status == "COMPLETE"]),
            "overdue": len([p for p in phases if p.status != "COMPLETE" and p.est_end and p.est_end < today]),
            "progress": round(sum(p.progress or 0 for p in phases) / len(phases)) if phases else 0,
            "open_punch_items": open_punch,
            "est_completion": project.est_completion,
        })
    return summary


async def send_due_reports(db: Session, now: Optional[datetime] = None) -> int:
    """Send every due schedule's report and stamp it. Returns how many went out."""
    now = now or utcnow()
    sent = 0
    for schedule in db.query(ReportSchedule).filter(ReportSchedule.active == True).all():
        if not is_schedule_due(schedule, now):
            continue
        # An empty selection means the whole portfolio
        selection = list(schedule.include_projects or []) or None
        projects = portfolio_summary(db, schedule.organization_id, selection)
        if selection and not projects:
            logger.warning("Report schedule %s skipped: none of its projects are reportable", schedule.id)
            continue
        await send_template_email(
            list(schedule.recipients or []),
            subject=f"{schedule.frequency.title()} project report",
            template_name="emails/portfolio_report.html",
            body={"projects": projects, "generated_at": now.strftime("%Y-%m-%d %H:%M UTC")},
        )
        schedule.last_sent_at = now
        db.commit()
        sent += 1
        logger.info("Sent report schedule %s to %d recipients", schedule.id, len(schedule.recipients or []))
    return sent
