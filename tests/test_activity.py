from fastapi import HTTPException

from constructpm.actions import activity as activity_actions
from constructpm.actions import checklists as checklist_actions
from constructpm.actions import members as member_actions
from constructpm.actions import phases as phase_actions
from constructpm.actions import projects as project_actions
from constructpm.db.models.activity import ActivityLog
from constructpm.db.models.project import ProjectMember
from constructpm.utils.activity import log_activity

from helpers import DatabaseTestCase


class ActivityUndoTests(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.admin = self.make_user("ADMIN")
        self.project = self.make_project(self.admin)

    def _last_log(self, action):
        return self.db.query(ActivityLog).filter(ActivityLog.action == action)\
            .order_by(ActivityLog.id.desc()).first()

    def test_undo_project_status(self):
        project_actions.update_project_status(self.db, self.admin, self.project.id, "ACTIVE")
        log_id = self._last_log("PROJECT_STATUS_CHANGED").id

        activity_actions.undo_activity(self.db, self.admin, log_id)

        self.db.refresh(self.project)
        self.assertEqual(self.project.status, "PLANNING")
        undo_entry = self._last_log("PROJECT_STATUS_CHANGED")
        self.assertTrue(undo_entry.message.startswith("Undo: "))
        self.assertEqual(undo_entry.data["undoneLogId"], log_id)
        self.assertIsNone(self.db.query(ActivityLog).filter(ActivityLog.id == log_id).first())

    def test_undo_phase_status_clears_stamps(self):
        phase = self.make_phase(self.project)
        phase_actions.update_phase_status(self.db, self.admin, phase.id, "IN_PROGRESS")
        log_id = self._last_log("PHASE_STATUS_CHANGED").id

        activity_actions.undo_activity(self.db, self.admin, log_id)

        self.db.refresh(phase)
        self.assertEqual(phase.status, "PENDING")
        self.assertIsNone(phase.actual_start)
        self.assertIsNone(phase.actual_end)

    def test_undo_member_removed_restores_membership(self):
        pm = self.make_user("PROJECT_MANAGER")
        member = self.add_member(self.project, pm, "MANAGER")
        member_actions.remove_member(self.db, self.admin, self.project.id, member.id)
        log_id = self._last_log("MEMBER_REMOVED").id

        activity_actions.undo_activity(self.db, self.admin, log_id)

        restored = self.db.query(ProjectMember).filter(ProjectMember.user_id == pm.id).one()
        self.assertEqual(restored.role, "MANAGER")

    def test_undo_member_role_change(self):
        pm = self.make_user("PROJECT_MANAGER")
        member = self.add_member(self.project, pm, "VIEWER")
        member_actions.update_member_role(self.db, self.admin, self.project.id, member.id, "MANAGER")

        activity_actions.undo_activity(self.db, self.admin, self._last_log("MEMBER_UPDATED").id)

        self.db.refresh(member)
        self.assertEqual(member.role, "VIEWER")

    def test_undo_cannot_demote_the_last_owner(self):
        pm = self.make_user("PROJECT_MANAGER")
        member = self.add_member(self.project, pm, "VIEWER")
        member_actions.update_member_role(self.db, self.admin, self.project.id, member.id, "OWNER")
        log_id = self._last_log("MEMBER_UPDATED").id
        admin_membership = self.db.query(ProjectMember).filter(ProjectMember.user_id == self.admin.id).one()
        member_actions.remove_member(self.db, self.admin, self.project.id, admin_membership.id)

        with self.assertRaises(HTTPException) as ctx:
            activity_actions.undo_activity(self.db, self.admin, log_id)
        self.assertEqual(ctx.exception.detail, "Cannot undo: the project must keep at least one owner")

        self.db.refresh(member)
        self.assertEqual(member.role, "OWNER")
        self.assertIsNotNone(self.db.query(ActivityLog).filter(ActivityLog.id == log_id).first())

    def test_undo_checklist_toggle(self):
        phase = self.make_phase(self.project)
        template = checklist_actions.create_template(self.db, self.admin, "Rough-in", ["Inspect boxes"])
        checklist = checklist_actions.apply_template(self.db, self.admin, phase.id, template.id)
        item = checklist.items[0]
        checklist_actions.toggle_item(self.db, self.admin, item.id)

        activity_actions.undo_activity(self.db, self.admin, self._last_log("CHECKLIST_ITEM_TOGGLED").id)

        self.db.refresh(item)
        self.assertFalse(item.completed)
        self.assertIsNone(item.completed_at)

    def test_only_admins_can_undo(self):
        pm = self.make_user("PROJECT_MANAGER")
        self.add_member(self.project, pm, "MANAGER")
        project_actions.update_project_status(self.db, self.admin, self.project.id, "ACTIVE")
        with self.assertRaises(HTTPException) as ctx:
            activity_actions.undo_activity(self.db, pm, self._last_log("PROJECT_STATUS_CHANGED").id)
        self.assertEqual(ctx.exception.status_code, 403)

    def test_unsupported_action_and_missing_data(self):
        log_activity(self.db, self.admin, "PHASE_CREATED", "Added phase", project_id=self.project.id, data={})
        with self.assertRaises(HTTPException) as ctx:
            activity_actions.undo_activity(self.db, self.admin, self._last_log("PHASE_CREATED").id)
        self.assertEqual(ctx.exception.detail, "Cannot undo action type: PHASE_CREATED")

        log_activity(self.db, self.admin, "PROJECT_STATUS_CHANGED", "Changed", project_id=self.project.id, data={})
        with self.assertRaises(HTTPException) as ctx:
            activity_actions.undo_activity(self.db, self.admin, self._last_log("PROJECT_STATUS_CHANGED").id)
        self.assertEqual(ctx.exception.detail, "Cannot undo: missing oldStatus")

    def test_other_org_logs_are_invisible(self):
        other_org = self.make_org("Rival Homes")
        rival = self.make_user("ADMIN", org=other_org)
        project_actions.update_project_status(self.db, self.admin, self.project.id, "ACTIVE")
        with self.assertRaises(HTTPException) as ctx:
            activity_actions.undo_activity(self.db, rival, self._last_log("PROJECT_STATUS_CHANGED").id)
        self.assertEqual(ctx.exception.status_code, 404)


class ActivityListTests(DatabaseTestCase):
    def test_filters_and_org_level_entries(self):
        admin = self.make_user("ADMIN")
        project = self.make_project(admin)
        log_activity(self.db, admin, "PROJECT_UPDATED", "Updated", project_id=project.id)
        log_activity(self.db, admin, "API_KEY_CREATED", "Created key")

        rival = self.make_user("ADMIN", org=self.make_org("Rival Homes"))
        log_activity(self.db, rival, "API_KEY_CREATED", "Rival key")

        result = activity_actions.list_activity(self.db, admin)
        self.assertEqual(result["total"], 2)

        filtered = activity_actions.list_activity(self.db, admin, action="PROJECT_UPDATED")
        self.assertEqual([log.message for log in filtered["logs"]], ["Updated"])

    def test_viewers_cannot_read_the_log(self):
        viewer = self.make_user("VIEWER")
        with self.assertRaises(HTTPException) as ctx:
            activity_actions.list_activity(self.db, viewer)
        self.assertEqual(ctx.exception.status_code, 403)
