from datetime import date

from fastapi import HTTPException

from constructpm.actions import daily_logs as daily_log_actions
from constructpm.actions import members as member_actions
from constructpm.actions import projects as project_actions
from constructpm.db.models.activity import ActivityLog
from constructpm.db.models.daily_log import DailyLog
from constructpm.db.models.notification import Notification
from constructpm.db.models.project import Project, ProjectMember

from helpers import DatabaseTestCase


class ProjectActionTests(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.admin = self.make_user("ADMIN")
        self.pm = self.make_user("PROJECT_MANAGER")

    def test_create_with_phases_makes_creator_owner(self):
        project = project_actions.create_project(
            self.db, self.pm,
            name="  Lakeview Remodel ",
            budget="250000",
            phases=[
                {"name": "Demo", "est_start": "2024-01-02", "est_end": "2024-01-12"},
                {"name": "Framing", "est_start": "2024-01-15", "est_end": "2024-02-20"},
            ],
        )
        self.assertEqual(project.name, "Lakeview Remodel")
        self.assertEqual(project.status, "PLANNING")
        self.assertEqual(project.est_completion, date(2024, 2, 20))
        self.assertEqual([p.sort_order for p in project.phases], [0, 1])

        member = self.db.query(ProjectMember).filter(ProjectMember.project_id == project.id).one()
        self.assertEqual((member.user_id, member.role), (self.pm.id, "OWNER"))
        self.assertEqual(self.db.query(ActivityLog).one().action, "PROJECT_CREATED")

    def test_create_validates_input_and_role(self):
        with self.assertRaises(HTTPException) as ctx:
            project_actions.create_project(self.db, self.pm, name="", budget="10")
        self.assertEqual(ctx.exception.status_code, 400)

        with self.assertRaises(HTTPException) as ctx:
            project_actions.create_project(self.db, self.pm, name="Shed", budget="-5")
        self.assertEqual(ctx.exception.status_code, 400)

        contractor = self.make_user("CONTRACTOR")
        with self.assertRaises(HTTPException) as ctx:
            project_actions.create_project(self.db, contractor, name="Shed")
        self.assertEqual(ctx.exception.status_code, 403)

    def test_list_only_shows_member_projects_to_non_admins(self):
        mine = self.make_project(self.pm, name="Mine")
        self.make_project(self.admin, name="Not mine")
        phase = self.make_phase(mine, status="COMPLETE")
        self.make_phase(mine, name="Roof")

        rows = project_actions.list_projects(self.db, self.pm)
        self.assertEqual([r["project"].name for r in rows], ["Mine"])
        self.assertEqual((rows[0]["phase_count"], rows[0]["complete_count"]), (2, 1))
        self.assertEqual(len(project_actions.list_projects(self.db, self.admin)), 2)
        self.assertIsNotNone(phase.id)

    def test_projects_of_other_orgs_are_not_found(self):
        rival_admin = self.make_user("ADMIN", org=self.make_org("Rival Homes"))
        project = self.make_project(self.pm)
        with self.assertRaises(HTTPException) as ctx:
            project_actions.get_project_detail(self.db, rival_admin, project.id)
        self.assertEqual(ctx.exception.status_code, 404)

    def test_update_only_touches_supplied_fields(self):
        project = self.make_project(self.pm, description="Original")
        project_actions.update_project(self.db, self.pm, project.id, name="Renamed", description="")
        self.assertEqual(project.name, "Renamed")
        self.assertEqual(project.description, "Original")

    def test_status_change_is_logged_once(self):
        project = self.make_project(self.pm)
        project_actions.update_project_status(self.db, self.pm, project.id, "ACTIVE")
        project_actions.update_project_status(self.db, self.pm, project.id, "ACTIVE")
        logs = self.db.query(ActivityLog).filter(ActivityLog.action == "PROJECT_STATUS_CHANGED").all()
        self.assertEqual(len(logs), 1)
        self.assertEqual(logs[0].data, {"oldStatus": "PLANNING", "newStatus": "ACTIVE"})

        with self.assertRaises(HTTPException) as ctx:
            project_actions.update_project_status(self.db, self.pm, project.id, "FINISHED")
        self.assertEqual(ctx.exception.detail, "Invalid status")

    def test_only_admins_delete(self):
        project = self.make_project(self.pm)
        with self.assertRaises(HTTPException) as ctx:
            project_actions.delete_project(self.db, self.pm, project.id)
        self.assertEqual(ctx.exception.detail, "Only admins can delete projects")

        project_id = project.id
        project_actions.delete_project(self.db, self.admin, project_id)
        self.assertIsNone(self.db.query(Project).filter(Project.id == project_id).first())
        trace = self.db.query(ActivityLog).filter(ActivityLog.action == "PROJECT_DELETED").one()
        self.assertIsNone(trace.project_id)

    def test_detail_progress_is_phase_average(self):
        project = self.make_project(self.pm)
        self.make_phase(project, progress=100, status="COMPLETE")
        self.make_phase(project, name="Roof", progress=50)
        detail = project_actions.get_project_detail(self.db, self.pm, project.id)
        self.assertEqual(detail["progress"], 75)
        self.assertEqual(detail["complete_count"], 1)


class MemberActionTests(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.admin = self.make_user("ADMIN")
        self.pm = self.make_user("PROJECT_MANAGER")
        self.project = self.make_project(self.pm)
        self.owner = self.db.query(ProjectMember).filter(ProjectMember.user_id == self.pm.id).one()

    def test_add_member_by_email_notifies_invitee(self):
        viewer = self.make_user("VIEWER", email="viewer@example.com")
        member = member_actions.add_member(self.db, self.pm, self.project.id, " Viewer@Example.com ", "STAKEHOLDER")
        self.assertEqual((member.user_id, member.role), (viewer.id, "STAKEHOLDER"))
        note = self.db.query(Notification).one()
        self.assertEqual((note.user_id, note.type), (viewer.id, "MEMBER_INVITED"))

    def test_add_member_errors(self):
        viewer = self.make_user("VIEWER", email="viewer@example.com")
        member_actions.add_member(self.db, self.pm, self.project.id, viewer.email, "VIEWER")

        with self.assertRaises(HTTPException) as ctx:
            member_actions.add_member(self.db, self.pm, self.project.id, viewer.email, "VIEWER")
        self.assertEqual(ctx.exception.detail, "User is already a member of this project")

        with self.assertRaises(HTTPException) as ctx:
            member_actions.add_member(self.db, self.pm, self.project.id, "ghost@example.com", "VIEWER")
        self.assertEqual(ctx.exception.status_code, 404)

        outsider = self.make_user("VIEWER", email="out@rival.example", org=self.make_org("Rival"))
        with self.assertRaises(HTTPException) as ctx:
            member_actions.add_member(self.db, self.pm, self.project.id, outsider.email, "VIEWER")
        self.assertEqual(ctx.exception.status_code, 404)

    def test_last_owner_cannot_be_demoted_or_removed(self):
        with self.assertRaises(HTTPException) as ctx:
            member_actions.update_member_role(self.db, self.pm, self.project.id, self.owner.id, "MANAGER")
        self.assertEqual(ctx.exception.detail, "Project must keep at least one owner")

        with self.assertRaises(HTTPException) as ctx:
            member_actions.remove_member(self.db, self.admin, self.project.id, self.owner.id)
        self.assertEqual(ctx.exception.detail, "Cannot remove the last owner")

    def test_role_change_records_old_role(self):
        viewer = self.make_user("VIEWER")
        member = self.add_member(self.project, viewer, "VIEWER")
        member_actions.update_member_role(self.db, self.pm, self.project.id, member.id, "CONTRACTOR")

        log = self.db.query(ActivityLog).filter(ActivityLog.action == "MEMBER_UPDATED").one()
        self.assertEqual(log.data["oldRole"], "VIEWER")
        self.assertEqual(log.data["newRole"], "CONTRACTOR")

    def test_only_admins_remove_members(self):
        viewer = self.make_user("VIEWER")
        member = self.add_member(self.project, viewer)
        with self.assertRaises(HTTPException) as ctx:
            member_actions.remove_member(self.db, self.pm, self.project.id, member.id)
        self.assertEqual(ctx.exception.status_code, 403)

        member_actions.remove_member(self.db, self.admin, self.project.id, member.id)
        log = self.db.query(ActivityLog).filter(ActivityLog.action == "MEMBER_REMOVED").one()
        self.assertEqual(log.data["role"], "VIEWER")


class DailyLogTests(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.pm = self.make_user("PROJECT_MANAGER")
        self.project = self.make_project(self.pm)

    def _file(self, user, day="2024-06-03", **extra):
        values = dict(date=day, work_summary="Set trusses on east wing", weather="Sunny", temp_high="78",
                      temp_low="61", crew_count="6")
        values.update(extra)
        return daily_log_actions.create_log(self.db, user, self.project.id, **values)

    def test_create_converts_form_values(self):
        log = self._file(self.pm, equipment="Boom lift", issues="")
        self.assertEqual(log.date, date(2024, 6, 3))
        self.assertEqual((log.temp_high, log.temp_low, log.crew_count), (78, 61, 6))
        self.assertEqual(log.equipment, "Boom lift")
        self.assertIsNone(log.issues)
        self.assertEqual(log.author_id, self.pm.id)
        self.assertEqual(self.db.query(ActivityLog).filter(ActivityLog.action == "DAILY_LOG_CREATED").count(), 1)

    def test_validation(self):
        with self.assertRaises(HTTPException):
            self._file(self.pm, work_summary="  ")
        with self.assertRaises(HTTPException):
            self._file(self.pm, crew_count="-1")
        with self.assertRaises(HTTPException) as ctx:
            self._file(self.pm, temp_high="50", temp_low="60")
        self.assertIn("Low temperature cannot exceed the high", ctx.exception.detail)

    def test_one_log_per_day(self):
        self._file(self.pm)
        with self.assertRaises(HTTPException) as ctx:
            self._file(self.pm)
        self.assertEqual(ctx.exception.detail, "A daily log for 2024-06-03 already exists")

    def test_newest_first_and_capped(self):
        for day in ("2024-06-01", "2024-06-03", "2024-06-02"):
            self._file(self.pm, day=day)
        logs = daily_log_actions.list_logs(self.db, self.pm, self.project.id)
        self.assertEqual([log.date.day for log in logs], [3, 2, 1])
        self.assertEqual(len(daily_log_actions.list_logs(self.db, self.pm, self.project.id, limit=2)), 2)

    def test_viewers_cannot_file(self):
        viewer = self.make_user("VIEWER")
        self.add_member(self.project, viewer)
        with self.assertRaises(HTTPException) as ctx:
            self._file(viewer)
        self.assertEqual(ctx.exception.status_code, 403)

    def test_only_author_or_admin_deletes(self):
        contractor = self.make_user("CONTRACTOR")
        self.add_member(self.project, contractor, "CONTRACTOR")
        log = self._file(contractor)

        with self.assertRaises(HTTPException) as ctx:
            daily_log_actions.delete_log(self.db, self.pm, log.id)
        self.assertEqual(ctx.exception.status_code, 403)

        daily_log_actions.delete_log(self.db, contractor, log.id)
        self.assertEqual(self.db.query(DailyLog).count(), 0)

    def test_deleting_the_project_removes_its_logs(self):
        self._file(self.pm)
        admin = self.make_user("ADMIN")
        project_actions.delete_project(self.db, admin, self.project.id)
        self.assertEqual(self.db.query(DailyLog).count(), 0)
