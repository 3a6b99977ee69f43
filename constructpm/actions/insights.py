"""
AI project insights.

Each insight gathers project rows into a plain-text brief, asks the
organisation's AI provider for a JSON answer and falls back to a default
payload when the reply is not valid JSON. When the provider call itself
fails the result is marked unsuccessful and still carries the default
payload, so the page always has something to render.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from constructpm.actions.common import get_project, require_user, validate
from constructpm.core.dates import utcnow
from constructpm.core.permissions import check_admin
from constructpm.db.models.activity import ActivityLog
from constructpm.db.models.ai import AISettings, AIUsageLog
from constructpm.db.models.phase import Phase
from constructpm.db.models.punch_list import PunchListItem
from constructpm.db.models.user import User
from constructpm.schemas import AISettingsUpdate
from constructpm.utils.ai import call_ai, get_ai_settings, parse_json_response

logger = logging.getLogger(__name__)

LOOKBACK = timedelta(days=7)


@dataclass
class InsightResult:
    success: bool
    data: dict = field(default_factory=dict)
    error: Optional[str] = None


def _phases(db: Session, project_id: int) -> List[Phase]:
    return db.query(Phase).filter(Phase.project_id == project_id).order_by(Phase.sort_order).all()


def _recent_activity(db: Session, project_id: int, limit: int) -> List[ActivityLog]:
    return db.query(ActivityLog).filter(
        ActivityLog.project_id == project_id,
        ActivityLog.created_at >= utcnow() - LOOKBACK,
    ).order_by(ActivityLog.created_at.desc()).limit(limit).all()


def _money(value) -> str:
    return f"${value or 0:,.0f}"


def _ask(db: Session, user: User, feature: str, system: str, context: str, fallback: dict,
         fallback_text_key: str, fallback_text_len: int, temperature: float = 0.3) -> InsightResult:
    result = call_ai(
        db,
        [{"role": "system", "content": system}, {"role": "user", "content": context}],
        organization_id=user.organization_id,
        user_id=user.id,
        feature=feature,
        max_tokens=1024,
        temperature=temperature,
    )
    if not result.success or not result.text:
        return InsightResult(False, fallback, result.error or "Empty response")

    try:
        parsed = parse_json_response(result.text)
    except ValueError:
        logger.warning("%s reply was not JSON, using fallback", feature)
        fallback[fallback_text_key] = result.text[:fallback_text_len]
        return InsightResult(True, fallback)
    if not isinstance(parsed, dict):
        fallback[fallback_text_key] = result.text[:fallback_text_len]
        return InsightResult(True, fallback)
    return InsightResult(True, {**fallback, **parsed})


def stakeholder_update(db: Session, user: User, project_id: int) -> InsightResult:
    """Weekly progress summary for owners and investors."""
    project = get_project(db, user, project_id)
    phases = _phases(db, project.id)
    activities = _recent_activity(db, project.id, 30)

    completed = len([p for p in phases if p.status == "COMPLETE"])
    in_progress = len([p for p in phases if p.status == "IN_PROGRESS"])
    spent = sum(p.actual_cost or 0 for p in phases)

    lines = [
        f'Project: "{project.name}" ({project.status})',
        f"Address: {project.address or 'N/A'}",
        f"Budget: {_money(project.budget)} | Spent: {_money(spent)}",
        f"Phases: {completed}/{len(phases)} complete, {in_progress} in progress",
        "\n## Phase Status",
    ]
    lines += [f"- {p.name}: {p.status} ({p.progress or 0}% complete)" for p in phases]
    lines.append(f"\n## This Week's Activity ({len(activities)} events)")
    lines += [f"- {a.message}" for a in activities[:15]]

    system = (
        "You are a construction project manager writing a weekly stakeholder update. "
        "Generate a professional, concise report suitable for project owners and investors.\n\n"
        "Return ONLY valid JSON:\n"
        '{"summary": "2-3 sentence executive summary", "highlights": ["achievement 1", ...], '
        '"risks": ["risk 1", ...], "nextWeekPriorities": ["priority 1", ...], '
        '"metrics": {"phasesCompleted": N, "phasesInProgress": N, "budgetSpent": "$X / $Y", "overallProgress": "X%"}}'
    )
    fallback = {
        "summary": "",
        "highlights": [],
        "risks": [],
        "nextWeekPriorities": [],
        "metrics": {
            "phasesCompleted": completed,
            "phasesInProgress": in_progress,
            "budgetSpent": f"{_money(spent)} / {_money(project.budget)}",
            "overallProgress": f"{round(completed / (len(phases) or 1) * 100)}%",
        },
    }
    return _ask(db, user, "stakeholder_update", system, "\n".join(lines), fallback, "summary", 500)


def meeting_prep(db: Session, user: User, project_id: int) -> InsightResult:
    """Pre-meeting brief: status, open issues and a suggested agenda."""
    project = get_project(db, user, project_id)
    phases = _phases(db, project.id)
    activities = _recent_activity(db, project.id, 20)
    punch_items = db.query(PunchListItem).join(Phase).filter(
        Phase.project_id == project.id,
        PunchListItem.status != "CLOSED",
    ).limit(10).all()

    today = utcnow().date()
    overdue = [p for p in phases if p.status != "COMPLETE" and p.est_end < today]

    lines = [f'Project: "{project.name}" ({project.status})', "\n## Phases:"]
    for p in phases:
        flag = " (OVERDUE)" if p in overdue else ""
        lines.append(f"- {p.name}: {p.status}, {p.progress or 0}% complete{flag}")
    if overdue:
        lines.append(f"\n## Overdue Items: {len(overdue)} phases behind schedule")
    if punch_items:
        lines.append(f"\n## Open Punch List Items: {len(punch_items)}")
        lines += [f"- [{i.priority}] {i.title} ({i.status})" for i in punch_items]
    lines.append("\n## Recent Activity:")
    lines += [f"- {a.message}" for a in activities]

    system = (
        "You are a construction PM preparing a meeting brief. Generate an actionable prep document.\n\n"
        "Return ONLY valid JSON:\n"
        '{"projectSnapshot": "2-sentence status summary", "keyDecisionsNeeded": ["decision 1", ...], '
        '"openIssues": ["issue 1", ...], "recentChanges": ["change 1", ...], '
        '"talkingPoints": ["point 1", ...], "suggestedAgenda": ["agenda item 1", ...]}'
    )
    fallback = {
        "projectSnapshot": "",
        "keyDecisionsNeeded": [],
        "openIssues": [],
        "recentChanges": [],
        "talkingPoints": [],
        "suggestedAgenda": [],
    }
    return _ask(db, user, "meeting_prep", system, "\n".join(lines), fallback, "projectSnapshot", 300)


def schedule_risk(db: Session, user: User, project_id: int) -> InsightResult:
    """Schedule slip risk per phase plus an overall 0-100 score."""
    project = get_project(db, user, project_id)
    phases = _phases(db, project.id)
    today = utcnow().date()

    lines = [
        f'Project: "{project.name}" ({project.status})',
        f"Estimated completion: {project.est_completion or 'N/A'}",
        f"Today: {today.isoformat()}",
        f"\n## Phases ({len(phases)} total):",
    ]
    for p in phases:
        days_left = (p.est_end - today).days
        if p.status != "COMPLETE" and days_left < 0:
            timing = f"OVERDUE by {-days_left}d"
        else:
            timing = f"{days_left}d remaining"
        milestone = " [MILESTONE]" if p.is_milestone else ""
        lines.append(f"- {p.name}: {p.status}, {p.progress or 0}% done, {timing}{milestone}")

    system = (
        "You are a construction schedule risk analyst. Assess schedule risk based on phase progress, "
        "deadlines, and patterns.\n\n"
        "Return ONLY valid JSON:\n"
        '{"overallRisk": "low|medium|high|critical", "riskScore": 0-100, '
        '"phaseRisks": [{"phaseName": "...", "riskLevel": "low|medium|high|critical", '
        '"riskFactors": ["..."], "recommendation": "..."}], '
        '"summary": "2-sentence risk assessment", "mitigations": ["mitigation 1", ...]}'
        "\n\nRisk guide: low=on track, medium=minor delays possible, high=likely delays, "
        "critical=major schedule slip imminent."
    )
    fallback = {"overallRisk": "medium", "riskScore": 50, "phaseRisks": [], "summary": "", "mitigations": []}
    return _ask(db, user, "schedule_risk", system, "\n".join(lines), fallback, "summary", 300, temperature=0.2)


INSIGHTS = {
    "stakeholder-update": stakeholder_update,
    "meeting-prep": meeting_prep,
    "schedule-risk": schedule_risk,
}


# Organisation AI settings

def get_settings(db: Session, user: User) -> AISettings:
    require_user(user)
    check_admin(user)
    return get_ai_settings(db, user.organization_id)


def update_settings(db: Session, user: User, **data) -> AISettings:
    require_user(user)
    check_admin(user)
    payload = validate(AISettingsUpdate, **data)

    row = db.query(AISettings).filter(AISettings.organization_id == user.organization_id).first()
    if row is None:
        row = AISettings(organization_id=user.organization_id)
        db.add(row)
    row.enabled = payload.enabled
    row.provider = payload.provider
    row.model = payload.model
    row.max_tokens = payload.max_tokens
    db.commit()
    db.refresh(row)
    return row


def usage_summary(db: Session, user: User, days: int = 30) -> dict:
    require_user(user)
    check_admin(user)
    rows = db.query(AIUsageLog).filter(
        AIUsageLog.organization_id == user.organization_id,
        AIUsageLog.created_at >= utcnow() - timedelta(days=days),
    ).all()
    by_feature = {}
    for row in rows:
        by_feature[row.feature] = by_feature.get(row.feature, 0) + 1
    return {
        "calls": len(rows),
        "failed": len([r for r in rows if not r.success]),
        "tokens": sum((r.input_tokens or 0) + (r.output_tokens or 0) for r in rows),
        "cost_usd": round(sum(r.cost_usd or 0 for r in rows), 4),
        "by_feature": by_feature,
    }
