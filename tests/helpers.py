import unittest
from datetime import date

from sqlalchemy.orm import sessionmaker

from constructpm.db.base import Base
from constructpm.db.models.organization import Organization
from constructpm.db.models.phase import Phase, PhaseAssignment
from constructpm.db.models.project import Project, ProjectMember
from constructpm.db.models.staff import Staff
from constructpm.db.models.user import User
from constructpm.db.session import build_engine


class DatabaseTestCase(unittest.TestCase):
    """Fresh in-memory database per test, plus small row factories."""

    def setUp(self):
        self.engine = build_engine("sqlite://")
        Base.metadata.create_all(bind=self.engine)
        self.db = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)()
        self.org = self.make_org()

    def tearDown(self):
        self.db.close()
        Base.metadata.drop_all(bind=self.engine)
        self.engine.dispose()

    def make_org(self, name="Acme Builders"):
        org = Organization(name=name)
        self.db.add(org)
        self.db.commit()
        return org

    def make_user(self, role="ADMIN", email=None, org=None, **extra):
        org = org or self.org
        email = email or f"{role.lower()}{self.db.query(User).count() + 1}@example.com"
        user = User(
            organization_id=org.id,
            email=email,
            hashed_password="not-a-real-hash",
            full_name=extra.pop("full_name", role.title()),
            role=role,
            is_active=extra.pop("is_active", True),
            **extra
        )
        self.db.add(user)
        self.db.commit()
        return user

    def make_project(self, owner=None, name="Maple Street Duplex", org=None, **extra):
        org = org or (owner.organization if owner else self.org)
        project = Project(organization_id=org.id, name=name, status=extra.pop("status", "PLANNING"), **extra)
        self.db.add(project)
        self.db.flush()
        if owner is not None:
            self.db.add(ProjectMember(project_id=project.id, user_id=owner.id, role="OWNER"))
        self.db.commit()
        return project

    def add_member(self, project, user, role="VIEWER"):
        member = ProjectMember(project_id=project.id, user_id=user.id, role=role)
        self.db.add(member)
        self.db.commit()
        return member

    def make_phase(self, project, name="Framing", status="PENDING", **extra):
        phase = Phase(
            project_id=project.id,
            name=name,
            status=status,
            est_start=extra.pop("est_start", date(2024, 3, 1)),
            est_end=extra.pop("est_end", date(2024, 3, 31)),
            sort_order=extra.pop("sort_order", len(project.phases)),
            **extra
        )
        self.db.add(phase)
        self.db.commit()
        return phase

    def make_staff(self, name="Dana Electric", contact_type="SUBCONTRACTOR", **extra):
        staff = Staff(organization_id=self.org.id, name=name, contact_type=contact_type, **extra)
        self.db.add(staff)
        self.db.commit()
        return staff

    def assign(self, phase, staff, is_owner=False):
        assignment = PhaseAssignment(phase_id=phase.id, staff_id=staff.id, is_owner=is_owner)
        self.db.add(assignment)
        self.db.commit()
        return assignment
