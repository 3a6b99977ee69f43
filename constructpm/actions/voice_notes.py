import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from constructpm.actions.common import bad_request, forbidden, get_phase, not_found, require_user, validate
from constructpm.actions.documents import check_upload
from constructpm.core.permissions import ADMIN
from constructpm.db.models.user import User
from constructpm.db.models.voice_note import VoiceNote
from constructpm.schemas import VoiceNoteCreate
from constructpm.utils.activity import log_activity
from constructpm.utils.ai import transcribe_audio
from constructpm.utils.storage import delete_upload, resolve_path, save_upload

logger = logging.getLogger(__name__)


def list_voice_notes(db: Session, user: User, phase_id: int) -> List[VoiceNote]:
    phase = get_phase(db, user, phase_id)
    return db.query(VoiceNote).filter(VoiceNote.phase_id == phase.id)\
        .order_by(VoiceNote.created_at.desc(), VoiceNote.id.desc()).all()


def create_voice_note(db: Session, user: User, phase_id: int, filename: str, content: bytes,
                      duration, label: Optional[str] = None) -> VoiceNote:
    phase = get_phase(db, user, phase_id)
    payload = validate(VoiceNoteCreate, duration=duration, label=label)
    check_upload(content, filename)

    note = VoiceNote(
        phase_id=phase.id,
        created_by_id=user.id,
        audio_path=save_upload(content, filename, "voice"),
        duration=payload.duration,
        label=payload.label,
    )
    db.add(note)
    db.commit()
    db.refresh(note)

    log_activity(
        db, user, "VOICE_NOTE_ADDED", f"{user.display_name} added a voice note to {phase.name}",
        project_id=phase.project_id, data={"phaseId": phase.id, "voiceNoteId": note.id},
    )
    return note


def _get_note(db: Session, user: User, note_id: int) -> VoiceNote:
    require_user(user)
    note = db.query(VoiceNote).filter(VoiceNote.id == note_id).first()
    if not note:
        raise not_found("Voice note")
    get_phase(db, user, note.phase_id)
    return note


def transcribe_voice_note(db: Session, user: User, note_id: int) -> VoiceNote:
    note = _get_note(db, user, note_id)
    path = resolve_path(note.audio_path)
    if path is None or not path.exists():
        raise bad_request("Audio file is missing")

    result = transcribe_audio(path.read_bytes(), path.name)
    if not result.success:
        logger.warning("Transcription of voice note %s failed: %s", note.id, result.error)
        raise bad_request(f"Transcription failed: {result.error}")
    note.transcript = result.text
    db.commit()
    return note


def delete_voice_note(db: Session, user: User, note_id: int) -> None:
    note = _get_note(db, user, note_id)
    if note.created_by_id != user.id and user.role != ADMIN:
        raise forbidden("Not authorized to delete this voice note")
    path = note.audio_path
    db.delete(note)
    db.commit()
    delete_upload(path)
