from typing import List, Optional

from sqlalchemy.orm import Session

from constructpm.actions.common import clean, forbidden, get_phase, not_found, project_member_ids, require_user, validate, bad_request
from constructpm.actions.documents import check_upload
from constructpm.core.permissions import ADMIN, can
from constructpm.db.models.document import Photo, PhotoAnnotation
from constructpm.db.models.user import User
from constructpm.schemas import AnnotationCreate
from constructpm.utils.activity import log_activity
from constructpm.utils.notifications import notify
from constructpm.utils.storage import delete_upload, save_upload

IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp", "image/heic", "image/gif")


def get_photo(db: Session, user: User, photo_id: int) -> Photo:
    require_user(user)
    photo = db.query(Photo).filter(Photo.id == photo_id).first()
    if not photo:
        raise not_found("Photo")
    get_phase(db, user, photo.phase_id)
    return photo


def list_photos(db: Session, user: User, phase_id: int) -> List[Photo]:
    phase = get_phase(db, user, phase_id)
    return db.query(Photo).filter(Photo.phase_id == phase.id).order_by(Photo.created_at.desc()).all()


def create_photo(db: Session, user: User, phase_id: int, filename: str, content: bytes,
                 mime_type: Optional[str] = None, caption: Optional[str] = None, background=None) -> Photo:
    require_user(user)
    if not can(user.role, "create", "photo"):
        raise forbidden()
    phase = get_phase(db, user, phase_id)
    check_upload(content, filename)
    if mime_type and mime_type not in IMAGE_TYPES:
        raise bad_request("Only image files can be uploaded as photos")

    photo = Photo(
        phase_id=phase.id,
        uploaded_by_id=user.id,
        file_path=save_upload(content, filename, "photos"),
        caption=clean(caption),
    )
    db.add(photo)
    db.commit()
    db.refresh(photo)

    log_activity(
        db, user, "PHOTO_UPLOADED", f"Uploaded a photo to {phase.name}",
        project_id=phase.project_id, data={"photoId": photo.id, "phaseId": phase.id},
    )
    notify(
        db, "PHOTO_UPLOADED", f"New photo on {phase.name}",
        f"{user.display_name} added a photo to {phase.name}",
        project_member_ids(db, phase.project_id), actor_id=user.id,
        data={"projectId": phase.project_id, "phaseId": phase.id, "photoId": photo.id},
        background=background,
    )
    return photo


def update_caption(db: Session, user: User, photo_id: int, caption: Optional[str]) -> Photo:
    require_user(user)
    if not can(user.role, "create", "photo"):
        raise forbidden()
    photo = get_photo(db, user, photo_id)
    caption = clean(caption)
    if caption and len(caption) > 500:
        raise bad_request("Caption is too long")
    photo.caption = caption
    db.commit()
    return photo


def delete_photo(db: Session, user: User, photo_id: int) -> None:
    require_user(user)
    if not can(user.role, "delete", "photo"):
        raise forbidden()
    photo = get_photo(db, user, photo_id)
    path = photo.file_path
    db.delete(photo)
    db.commit()
    delete_upload(path)


# Annotations

def list_annotations(db: Session, user: User, photo_id: int) -> List[PhotoAnnotation]:
    photo = get_photo(db, user, photo_id)
    return db.query(PhotoAnnotation).filter(PhotoAnnotation.photo_id == photo.id)\
        .order_by(PhotoAnnotation.created_at).all()


def add_annotation(db: Session, user: User, photo_id: int, **data) -> PhotoAnnotation:
    photo = get_photo(db, user, photo_id)
    if not can(user.role, "view", "photo"):
        raise forbidden()
    payload = validate(AnnotationCreate, **data)

    annotation = PhotoAnnotation(photo_id=photo.id, created_by_id=user.id, **payload.model_dump())
    db.add(annotation)
    db.commit()
    db.refresh(annotation)
    return annotation


def delete_annotation(db: Session, user: User, annotation_id: int) -> None:
    require_user(user)
    annotation = db.query(PhotoAnnotation).filter(PhotoAnnotation.id == annotation_id).first()
    if not annotation:
        raise not_found("Annotation")
    get_photo(db, user, annotation.photo_id)
    if annotation.created_by_id != user.id and user.role != ADMIN:
        raise forbidden("Only the author or an admin can delete this annotation")
    db.delete(annotation)
    db.commit()
