"""
Finish-to-start links between phases of one project.

A link says "phase cannot start until depends_on has finished, plus
lag_days". Links never cross projects and never form a cycle, direct or
through other phases.
"""
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from constructpm.actions.common import bad_request, forbidden, get_phase, get_project, not_found, require_user, validate
from constructpm.core.permissions import can_manage_phase
from constructpm.db.models.phase import Phase, PhaseDependency
from constructpm.db.models.user import User
from constructpm.schemas import DependencyCreate
from constructpm.utils.activity import log_activity
from constructpm.utils.gantt import earliest_start


def _reaches(edges: Dict[int, List[int]], start: int, target: int) -> bool:
    seen, stack = set(), [start]
    while stack:
        node = stack.pop()
        if node == target:
            return True
        if node in seen:
            continue
        seen.add(node)
        stack.extend(edges.get(node, []))
    return False


def _edges(db: Session, project_id: int) -> Dict[int, List[int]]:
    """phase id -> ids of the phases it depends on."""
    rows = db.query(PhaseDependency.phase_id, PhaseDependency.depends_on_id)\
        .join(Phase, Phase.id == PhaseDependency.phase_id)\
        .filter(Phase.project_id == project_id).all()
    edges = defaultdict(list)
    for phase_id, depends_on_id in rows:
        edges[phase_id].append(depends_on_id)
    return edges


def add_dependency(db: Session, user: User, phase_id: int, **data) -> PhaseDependency:
    phase = get_phase(db, user, phase_id)
    if not can_manage_phase(user.role):
        raise forbidden()
    payload = validate(DependencyCreate, **data)

    if payload.depends_on_id == phase.id:
        raise bad_request("A phase cannot depend on itself")
    depends_on = db.query(Phase).filter(Phase.id == payload.depends_on_id).first()
    if depends_on is None:
        raise not_found("Phase")
    if depends_on.project_id != phase.project_id:
        raise bad_request("Phases must belong to the same project")

    existing = db.query(PhaseDependency).filter(
        PhaseDependency.phase_id == phase.id,
        PhaseDependency.depends_on_id == depends_on.id,
    ).first()
    if existing:
        existing.lag_days = payload.lag_days
        db.commit()
        return existing

    # Walking from the prerequisite back through its own prerequisites must not reach this phase
    if _reaches(_edges(db, phase.project_id), depends_on.id, phase.id):
        raise bad_request("Circular dependency detected")

    dependency = PhaseDependency(phase_id=phase.id, depends_on_id=depends_on.id, lag_days=payload.lag_days)
    db.add(dependency)
    db.commit()
    db.refresh(dependency)

    log_activity(
        db, user, "DEPENDENCY_ADDED", f"{phase.name} now depends on {depends_on.name}",
        project_id=phase.project_id,
        data={"phaseId": phase.id, "dependsOnId": depends_on.id, "lagDays": payload.lag_days},
    )
    return dependency


def remove_dependency(db: Session, user: User, dependency_id: int) -> None:
    require_user(user)
    dependency = db.query(PhaseDependency).filter(PhaseDependency.id == dependency_id).first()
    if not dependency:
        raise not_found("Dependency")
    phase = get_phase(db, user, dependency.phase_id)
    if not can_manage_phase(user.role):
        raise forbidden()

    depends_on_name = dependency.depends_on.name
    db.delete(dependency)
    db.commit()
    log_activity(
        db, user, "DEPENDENCY_REMOVED", f"{phase.name} no longer depends on {depends_on_name}",
        project_id=phase.project_id, data={"phaseId": phase.id, "dependencyId": dependency_id},
    )


def project_dependencies(db: Session, user: User, project_id: int) -> List[PhaseDependency]:
    """Every link in the project, for drawing the schedule."""
    project = get_project(db, user, project_id)
    return db.query(PhaseDependency).join(Phase, Phase.id == PhaseDependency.phase_id)\
        .filter(Phase.project_id == project.id).order_by(PhaseDependency.id).all()


def phase_dependencies(db: Session, user: User, phase_id: int) -> List[dict]:
    """Predecessors of a phase and the earliest start each one allows."""
    phase = get_phase(db, user, phase_id)
    rows = []
    for dependency in phase.dependencies:
        allowed = earliest_start(dependency.depends_on.est_end, dependency.lag_days)
        rows.append({
            "dependency": dependency,
            "phase": dependency.depends_on,
            "earliest_start": allowed,
            "blocked": dependency.depends_on.status != "COMPLETE",
            "conflict": phase.est_start < allowed,
        })
    return rows


def phase_dependents(db: Session, user: User, phase_id: int) -> List[PhaseDependency]:
    """Phases that slip if this one does."""
    phase = get_phase(db, user, phase_id)
    return list(phase.dependents)


def blocked_until(db: Session, user: User, phase_id: int) -> Optional[date]:
    """Latest earliest-start over the unfinished predecessors, or None when nothing blocks the phase."""
    dates = [row["earliest_start"] for row in phase_dependencies(db, user, phase_id) if row["blocked"]]
    return max(dates) if dates else None
