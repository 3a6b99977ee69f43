from typing import List, Optional

from sqlalchemy.orm import Session

from constructpm.actions.common import (
    bad_request, clean, forbidden, get_phase, not_found, project_member_ids, require_user,
)
from constructpm.core.config import settings
from constructpm.core.permissions import can
from constructpm.db.models.document import DOCUMENT_CATEGORIES, DOCUMENT_STATUSES, Document
from constructpm.db.models.user import User
from constructpm.utils.activity import log_activity
from constructpm.utils.notifications import notify
from constructpm.utils.storage import delete_upload, save_upload


def check_upload(content: bytes, filename: str):
    if not filename:
        raise bad_request("A file is required")
    if not content:
        raise bad_request("File is empty")
    if len(content) > settings.MAX_UPLOAD_MB * 1024 * 1024:
        raise bad_request(f"File exceeds {settings.MAX_UPLOAD_MB} MB")


def get_document(db: Session, user: User, document_id: int) -> Document:
    require_user(user)
    document = db.query(Document).filter(Document.id == document_id).first()
    if not document:
        raise not_found("Document")
    get_phase(db, user, document.phase_id)
    return document


def list_documents(db: Session, user: User, phase_id: int) -> List[Document]:
    phase = get_phase(db, user, phase_id)
    return db.query(Document).filter(Document.phase_id == phase.id).order_by(Document.created_at.desc()).all()


def create_document(
    db: Session,
    user: User,
    phase_id: int,
    filename: str,
    content: bytes,
    mime_type: Optional[str] = None,
    category: str = "OTHER",
    notes: Optional[str] = None,
    background=None,
) -> Document:
    require_user(user)
    if not can(user.role, "create", "document"):
        raise forbidden()
    phase = get_phase(db, user, phase_id)
    if category not in DOCUMENT_CATEGORIES:
        raise bad_request("Invalid category")
    check_upload(content, filename)

    # Re-uploading a file with the same name bumps its version
    previous = db.query(Document).filter(Document.phase_id == phase.id, Document.name == filename)\
        .order_by(Document.version.desc()).first()

    document = Document(
        phase_id=phase.id,
        uploaded_by_id=user.id,
        name=filename,
        file_path=save_upload(content, filename, "documents"),
        size=len(content),
        mime_type=mime_type,
        category=category,
        notes=clean(notes),
        version=(previous.version + 1) if previous else 1,
    )
    db.add(document)
    db.commit()
    db.refresh(document)

    log_activity(
        db, user, "DOCUMENT_UPLOADED", f'Uploaded "{document.name}" to {phase.name}',
        project_id=phase.project_id, data={"documentId": document.id, "phaseId": phase.id},
    )
    notify(
        db, "DOCUMENT_UPLOADED", f"New document: {document.name}",
        f"{user.display_name} uploaded {document.name} to {phase.name}",
        project_member_ids(db, phase.project_id), actor_id=user.id,
        data={"projectId": phase.project_id, "phaseId": phase.id, "documentId": document.id},
        background=background,
    )
    return document


def update_document_status(db: Session, user: User, document_id: int, status: str, background=None) -> Document:
    require_user(user)
    if not can(user.role, "update", "document"):
        raise forbidden()
    if status not in DOCUMENT_STATUSES:
        raise bad_request("Invalid status")
    document = get_document(db, user, document_id)

    old_status = document.status
    document.status = status
    db.commit()

    phase = document.phase
    log_activity(
        db, user, "DOCUMENT_STATUS_CHANGED",
        f'"{document.name}" changed from {old_status} to {status}',
        project_id=phase.project_id,
        data={"documentId": document.id, "oldStatus": old_status, "newStatus": status},
    )
    notify(
        db, "DOCUMENT_STATUS_CHANGED", f"Document {status.lower()}: {document.name}",
        f"{document.name} on {phase.name} is now {status.lower()}",
        project_member_ids(db, phase.project_id), actor_id=user.id,
        data={"projectId": phase.project_id, "phaseId": phase.id, "documentId": document.id, "newStatus": status},
        background=background,
    )
    return document


def delete_document(db: Session, user: User, document_id: int) -> None:
    require_user(user)
    if not can(user.role, "delete", "document"):
        raise forbidden()
    document = get_document(db, user, document_id)
    project_id, name, path = document.phase.project_id, document.name, document.file_path

    db.delete(document)
    db.commit()
    # Missing blobs are logged by delete_upload; the row is gone either way
    delete_upload(path)
    log_activity(db, user, "DOCUMENT_DELETED", f'Deleted "{name}"', project_id=project_id, data={"documentId": document_id})
