from typing import List

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from constructpm.actions.common import forbidden, get_phase, not_found, project_member_ids, require_user, validate
from constructpm.core.permissions import ADMIN
from constructpm.db.models.phase import PhaseComment
from constructpm.db.models.user import User
from constructpm.schemas import CommentCreate
from constructpm.utils.activity import log_activity
from constructpm.utils.notifications import notify

PREVIEW_LENGTH = 120


def list_comments(db: Session, user: User, phase_id: int) -> List[PhaseComment]:
    """Newest first."""
    phase = get_phase(db, user, phase_id)
    return db.query(PhaseComment).filter(PhaseComment.phase_id == phase.id)\
        .order_by(PhaseComment.created_at.desc(), PhaseComment.id.desc()).all()


def add_comment(db: Session, user: User, phase_id: int, content: str, background: BackgroundTasks = None) -> PhaseComment:
    # Everyone who can see the phase can discuss it
    phase = get_phase(db, user, phase_id)
    payload = validate(CommentCreate, content=content)

    comment = PhaseComment(phase_id=phase.id, user_id=user.id, content=payload.content)
    db.add(comment)
    db.commit()
    db.refresh(comment)

    project = phase.project
    preview = payload.content if len(payload.content) <= PREVIEW_LENGTH else payload.content[:PREVIEW_LENGTH - 3] + "..."
    notify(
        db, "COMMENT_ADDED", f"New comment on {phase.name}",
        f"{user.display_name}: {preview}",
        project_member_ids(db, project.id), actor_id=user.id,
        data={"projectId": project.id, "phaseId": phase.id, "commentId": comment.id},
        background=background,
    )
    log_activity(
        db, user, "COMMENT_ADDED", f"{user.display_name} commented on {phase.name}",
        project_id=project.id, data={"phaseId": phase.id, "commentId": comment.id},
    )
    return comment


def delete_comment(db: Session, user: User, comment_id: int) -> None:
    require_user(user)
    comment = db.query(PhaseComment).filter(PhaseComment.id == comment_id).first()
    if not comment:
        raise not_found("Comment")
    phase = get_phase(db, user, comment.phase_id)
    if comment.user_id != user.id and user.role != ADMIN:
        raise forbidden("Not authorized to delete this comment")

    db.delete(comment)
    db.commit()
    log_activity(
        db, user, "COMMENT_DELETED", f"Deleted a comment on {phase.name}",
        project_id=phase.project_id, data={"phaseId": phase.id, "commentId": comment_id},
    )
