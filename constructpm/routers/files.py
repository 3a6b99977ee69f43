from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Request, UploadFile
from sqlalchemy.orm import Session

from constructpm.actions import documents as document_actions
from constructpm.actions import photos as photo_actions
from constructpm.actions import voice_notes as voice_actions
from constructpm.core.permissions import ADMIN
from constructpm.core.templates import templates
from constructpm.db.models.document import ANNOTATION_TYPES
from constructpm.db.models.user import User
from constructpm.routers import deps

router = APIRouter(
    tags=["files"],
    dependencies=[Depends(deps.get_current_user)]
)

# Documents

@router.post("/phases/{phase_id}/documents")
async def upload_document(
    phase_id: int,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    category: str = Form("OTHER"),
    notes: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    content = await file.read()
    document_actions.create_document(
        db, user, phase_id, file.filename, content,
        mime_type=file.content_type, category=category, notes=notes, background=background_tasks
    )
    return deps.toast_redirect(f"/phases/{phase_id}", "Document uploaded")

@router.post("/documents/{document_id}/status")
async def update_document_status(
    document_id: int,
    background_tasks: BackgroundTasks,
    status: str = Form(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    document = document_actions.update_document_status(db, user, document_id, status, background=background_tasks)
    return deps.toast_redirect(f"/phases/{document.phase_id}", "Document status updated")

@router.post("/documents/{document_id}/delete")
async def delete_document(document_id: int, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    phase_id = document_actions.get_document(db, user, document_id).phase_id
    document_actions.delete_document(db, user, document_id)
    return deps.toast_redirect(f"/phases/{phase_id}", "Document deleted")

# Photos

@router.post("/phases/{phase_id}/photos")
async def upload_photo(
    phase_id: int,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    caption: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    content = await file.read()
    photo_actions.create_photo(
        db, user, phase_id, file.filename, content,
        mime_type=file.content_type, caption=caption, background=background_tasks
    )
    return deps.toast_redirect(f"/phases/{phase_id}", "Photo uploaded")

@router.get("/photos/{photo_id}")
async def photo_detail(photo_id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    photo = photo_actions.get_photo(db, user, photo_id)
    return templates.TemplateResponse("phases/photo.html", {
        "request": request,
        "user": user,
        "photo": photo,
        "phase": photo.phase,
        "annotations": photo_actions.list_annotations(db, user, photo_id),
        "annotation_types": ANNOTATION_TYPES,
        "is_admin": user.role == ADMIN
    })

@router.post("/photos/{photo_id}/caption")
async def update_caption(
    photo_id: int,
    caption: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    photo_actions.update_caption(db, user, photo_id, caption)
    return deps.toast_redirect(f"/photos/{photo_id}", "Caption saved")

@router.post("/photos/{photo_id}/delete")
async def delete_photo(photo_id: int, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    phase_id = photo_actions.get_photo(db, user, photo_id).phase_id
    photo_actions.delete_photo(db, user, photo_id)
    return deps.toast_redirect(f"/phases/{phase_id}", "Photo deleted")

@router.post("/photos/{photo_id}/annotations")
async def add_annotation(
    photo_id: int,
    type: str = Form(...),
    x: float = Form(...),
    y: float = Form(...),
    width: Optional[str] = Form(None),
    height: Optional[str] = Form(None),
    radius: Optional[str] = Form(None),
    color: Optional[str] = Form(None),
    label: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    photo_actions.add_annotation(
        db, user, photo_id,
        type=type, x=x, y=y, width=width, height=height, radius=radius, color=color, label=label
    )
    return deps.toast_redirect(f"/photos/{photo_id}", "Annotation added")

@router.post("/annotations/{annotation_id}/delete")
async def delete_annotation(annotation_id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    photo_actions.delete_annotation(db, user, annotation_id)
    return deps.toast_redirect(deps.back_url(request), "Annotation deleted")

# Voice notes

@router.post("/phases/{phase_id}/voice-notes")
async def upload_voice_note(
    phase_id: int,
    file: UploadFile = File(...),
    duration: str = Form(""),
    label: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    content = await file.read()
    voice_actions.create_voice_note(db, user, phase_id, file.filename, content, duration, label)
    return deps.toast_redirect(f"/phases/{phase_id}", "Voice note saved")

@router.post("/voice-notes/{note_id}/transcribe")
async def transcribe_voice_note(note_id: int, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    note = voice_actions.transcribe_voice_note(db, user, note_id)
    return deps.toast_redirect(f"/phases/{note.phase_id}", "Transcript ready")

@router.post("/voice-notes/{note_id}/delete")
async def delete_voice_note(note_id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    voice_actions.delete_voice_note(db, user, note_id)
    return deps.toast_redirect(deps.back_url(request), "Voice note deleted")
