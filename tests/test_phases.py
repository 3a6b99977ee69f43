import unittest
from datetime import date

from fastapi import HTTPException

from constructpm.actions import comments as comment_actions
from constructpm.actions import dependencies as dependency_actions
from constructpm.actions import phases as phase_actions
from constructpm.actions.phases import is_transition_allowed
from constructpm.db.models.activity import ActivityLog
from constructpm.db.models.notification import Notification
from constructpm.db.models.phase import PhaseAssignment, PhaseComment, PhaseDependency

from helpers import DatabaseTestCase


class TransitionRuleTests(unittest.TestCase):
    def test_single_step_forward_is_allowed(self):
        self.assertTrue(is_transition_allowed("PENDING", "IN_PROGRESS", reviewer=False))
        self.assertTrue(is_transition_allowed("IN_PROGRESS", "REVIEW_REQUESTED", reviewer=False))

    def test_skipping_ahead_needs_a_reviewer(self):
        self.assertFalse(is_transition_allowed("PENDING", "REVIEW_REQUESTED", reviewer=False))
        self.assertTrue(is_transition_allowed("PENDING", "COMPLETE", reviewer=True))

    def test_rework_goes_back_to_in_progress(self):
        self.assertTrue(is_transition_allowed("REVIEW_REQUESTED", "IN_PROGRESS", reviewer=False))
        self.assertTrue(is_transition_allowed("UNDER_REVIEW", "IN_PROGRESS", reviewer=False))
        self.assertFalse(is_transition_allowed("IN_PROGRESS", "PENDING", reviewer=True))

    def test_complete_is_final_and_same_status_is_rejected(self):
        self.assertFalse(is_transition_allowed("COMPLETE", "IN_PROGRESS", reviewer=True))
        self.assertFalse(is_transition_allowed("IN_PROGRESS", "IN_PROGRESS", reviewer=True))


class PhaseStatusTests(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.pm = self.make_user("PROJECT_MANAGER")
        self.project = self.make_project(self.pm)
        self.phase = self.make_phase(self.project)

    def test_start_stamps_actual_start_and_notifies_members(self):
        viewer = self.make_user("VIEWER")
        self.add_member(self.project, viewer)

        phase = phase_actions.update_phase_status(self.db, self.pm, self.phase.id, "IN_PROGRESS")

        self.assertEqual(phase.status, "IN_PROGRESS")
        self.assertIsNotNone(phase.actual_start)
        notes = self.db.query(Notification).all()
        self.assertEqual([n.user_id for n in notes], [viewer.id])
        self.assertEqual(notes[0].type, "PHASE_STATUS_CHANGED")
        self.assertEqual(notes[0].data["newStatus"], "IN_PROGRESS")

        log = self.db.query(ActivityLog).filter(ActivityLog.action == "PHASE_STATUS_CHANGED").one()
        self.assertEqual(log.data, {"phaseId": phase.id, "oldStatus": "PENDING", "newStatus": "IN_PROGRESS"})

    def test_review_request_uses_review_notification(self):
        viewer = self.make_user("VIEWER")
        self.add_member(self.project, viewer)
        self.phase.status = "IN_PROGRESS"
        self.db.commit()

        phase_actions.update_phase_status(self.db, self.pm, self.phase.id, "REVIEW_REQUESTED")
        self.assertEqual(self.db.query(Notification).one().type, "REVIEW_REQUESTED")

    def test_complete_sets_progress_and_end(self):
        phase = phase_actions.update_phase_status(self.db, self.pm, self.phase.id, "COMPLETE")
        self.assertEqual(phase.progress, 100)
        self.assertIsNotNone(phase.actual_end)

    def test_invalid_status_and_transition(self):
        with self.assertRaises(HTTPException) as ctx:
            phase_actions.update_phase_status(self.db, self.pm, self.phase.id, "DONE")
        self.assertEqual(ctx.exception.detail, "Invalid status")

        phase_actions.update_phase_status(self.db, self.pm, self.phase.id, "COMPLETE")
        with self.assertRaises(HTTPException) as ctx:
            phase_actions.update_phase_status(self.db, self.pm, self.phase.id, "IN_PROGRESS")
        self.assertEqual(ctx.exception.status_code, 400)

    def test_contractor_must_be_assigned(self):
        contractor = self.make_user("CONTRACTOR", email="sam@sparks.example")
        self.add_member(self.project, contractor, "CONTRACTOR")

        with self.assertRaises(HTTPException) as ctx:
            phase_actions.update_phase_status(self.db, contractor, self.phase.id, "IN_PROGRESS")
        self.assertEqual(ctx.exception.status_code, 403)

        # Assignment is matched on the contact e-mail, case-insensitively
        staff = self.make_staff(email="Sam@Sparks.example")
        self.assign(self.phase, staff)
        phase = phase_actions.update_phase_status(self.db, contractor, self.phase.id, "IN_PROGRESS")
        self.assertEqual(phase.status, "IN_PROGRESS")

    def test_contractor_cannot_set_review_statuses(self):
        contractor = self.make_user("CONTRACTOR")
        self.add_member(self.project, contractor, "CONTRACTOR")
        self.assign(self.phase, self.make_staff(user_id=contractor.id))
        self.phase.status = "REVIEW_REQUESTED"
        self.db.commit()

        with self.assertRaises(HTTPException) as ctx:
            phase_actions.update_phase_status(self.db, contractor, self.phase.id, "UNDER_REVIEW")
        self.assertEqual(ctx.exception.status_code, 403)

    def test_non_member_gets_not_found(self):
        outsider = self.make_user("PROJECT_MANAGER")
        with self.assertRaises(HTTPException) as ctx:
            phase_actions.update_phase_status(self.db, outsider, self.phase.id, "IN_PROGRESS")
        self.assertEqual(ctx.exception.status_code, 404)


class PhaseEditTests(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.pm = self.make_user("PROJECT_MANAGER")
        self.project = self.make_project(self.pm)

    def test_create_phase_appends_and_extends_completion(self):
        self.make_phase(self.project, "Foundation", est_end=date(2024, 2, 28))
        phase = phase_actions.create_phase(
            self.db, self.pm, self.project.id,
            name="Roofing", est_start="2024-04-01", est_end="2024-04-20",
        )
        self.assertEqual(phase.sort_order, 1)
        self.db.refresh(self.project)
        self.assertEqual(self.project.est_completion, date(2024, 4, 20))

    def test_create_phase_rejects_reversed_dates(self):
        with self.assertRaises(HTTPException) as ctx:
            phase_actions.create_phase(
                self.db, self.pm, self.project.id,
                name="Roofing", est_start="2024-04-20", est_end="2024-04-01",
            )
        self.assertEqual(ctx.exception.status_code, 400)

    def test_update_dates(self):
        phase = self.make_phase(self.project)
        phase_actions.update_phase_dates(self.db, self.pm, phase.id, "2024-05-01", "2024-05-10", "", None)
        self.assertEqual((phase.est_start, phase.est_end), (date(2024, 5, 1), date(2024, 5, 10)))
        self.assertIsNone(phase.worst_start)

        with self.assertRaises(HTTPException):
            phase_actions.update_phase_dates(self.db, self.pm, phase.id, "2024-05-10", "2024-05-01")

    def test_update_details_checks_progress_range(self):
        phase = self.make_phase(self.project)
        phase_actions.update_phase_details(self.db, self.pm, phase.id, name="Framing L2", progress=40)
        self.assertEqual((phase.name, phase.progress), ("Framing L2", 40))

        with self.assertRaises(HTTPException):
            phase_actions.update_phase_details(self.db, self.pm, phase.id, progress=140)

    def test_new_owner_demotes_previous_owner(self):
        phase = self.make_phase(self.project)
        first, second = self.make_staff("First Co"), self.make_staff("Second Co")

        phase_actions.assign_staff(self.db, self.pm, phase.id, first.id, is_owner=True)
        phase_actions.assign_staff(self.db, self.pm, phase.id, second.id, is_owner=True)

        owners = self.db.query(PhaseAssignment).filter(PhaseAssignment.is_owner == True).all()
        self.assertEqual([a.staff_id for a in owners], [second.id])

    def test_list_phases_counts(self):
        phase = self.make_phase(self.project)
        rows = phase_actions.list_phases(self.db, self.pm, self.project.id)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["phase"].id, phase.id)
        self.assertEqual((rows[0]["document_count"], rows[0]["photo_count"]), (0, 0))


if __name__ == "__main__":
    unittest.main()


class PhaseDependencyTests(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.pm = self.make_user("PROJECT_MANAGER")
        self.project = self.make_project(self.pm)
        self.framing = self.make_phase(self.project, "Framing", est_start=date(2024, 3, 1), est_end=date(2024, 3, 10))
        self.drywall = self.make_phase(self.project, "Drywall", est_start=date(2024, 3, 11), est_end=date(2024, 3, 20))
        self.paint = self.make_phase(self.project, "Paint", est_start=date(2024, 3, 21), est_end=date(2024, 3, 25))

    def test_add_link_with_lag_and_log_it(self):
        dependency = dependency_actions.add_dependency(
            self.db, self.pm, self.drywall.id, depends_on_id=str(self.framing.id), lag_days="2",
        )
        self.assertEqual((dependency.phase_id, dependency.depends_on_id, dependency.lag_days),
                         (self.drywall.id, self.framing.id, 2))
        log = self.db.query(ActivityLog).filter(ActivityLog.action == "DEPENDENCY_ADDED").one()
        self.assertEqual(log.message, "Drywall now depends on Framing")

        # Re-adding the same link only updates its lag
        dependency_actions.add_dependency(self.db, self.pm, self.drywall.id, depends_on_id=self.framing.id)
        self.assertEqual(self.db.query(PhaseDependency).count(), 1)
        self.assertEqual(dependency.lag_days, 0)

    def test_self_cross_project_and_cycles_are_rejected(self):
        with self.assertRaises(HTTPException) as ctx:
            dependency_actions.add_dependency(self.db, self.pm, self.framing.id, depends_on_id=self.framing.id)
        self.assertEqual(ctx.exception.detail, "A phase cannot depend on itself")

        other = self.make_phase(self.make_project(self.pm, name="Other job"), "Footings")
        with self.assertRaises(HTTPException) as ctx:
            dependency_actions.add_dependency(self.db, self.pm, self.framing.id, depends_on_id=other.id)
        self.assertEqual(ctx.exception.detail, "Phases must belong to the same project")

        dependency_actions.add_dependency(self.db, self.pm, self.drywall.id, depends_on_id=self.framing.id)
        dependency_actions.add_dependency(self.db, self.pm, self.paint.id, depends_on_id=self.drywall.id)
        for phase, prerequisite in ((self.framing, self.drywall), (self.framing, self.paint)):
            with self.assertRaises(HTTPException) as ctx:
                dependency_actions.add_dependency(self.db, self.pm, phase.id, depends_on_id=prerequisite.id)
            self.assertEqual(ctx.exception.detail, "Circular dependency detected")
        self.assertEqual(self.db.query(PhaseDependency).count(), 2)

    def test_only_managers_link_phases(self):
        contractor = self.make_user("CONTRACTOR")
        self.add_member(self.project, contractor, "CONTRACTOR")
        with self.assertRaises(HTTPException) as ctx:
            dependency_actions.add_dependency(self.db, contractor, self.drywall.id, depends_on_id=self.framing.id)
        self.assertEqual(ctx.exception.status_code, 403)

    def test_predecessors_report_blocking_and_conflicts(self):
        dependency_actions.add_dependency(self.db, self.pm, self.paint.id, depends_on_id=self.drywall.id, lag_days=3)
        dependency_actions.add_dependency(self.db, self.pm, self.paint.id, depends_on_id=self.framing.id)

        rows = {row["phase"].name: row for row in dependency_actions.phase_dependencies(self.db, self.pm, self.paint.id)}
        self.assertEqual(rows["Drywall"]["earliest_start"], date(2024, 3, 24))
        self.assertTrue(rows["Drywall"]["conflict"])
        self.assertFalse(rows["Framing"]["conflict"])
        self.assertEqual(dependency_actions.blocked_until(self.db, self.pm, self.paint.id), date(2024, 3, 24))

        self.drywall.status = "COMPLETE"
        self.framing.status = "COMPLETE"
        self.db.commit()
        self.assertIsNone(dependency_actions.blocked_until(self.db, self.pm, self.paint.id))

        dependents = dependency_actions.phase_dependents(self.db, self.pm, self.framing.id)
        self.assertEqual([d.phase.name for d in dependents], ["Paint"])
        self.assertEqual(len(dependency_actions.project_dependencies(self.db, self.pm, self.project.id)), 2)

    def test_remove_link_and_phase_delete_clears_links(self):
        link = dependency_actions.add_dependency(self.db, self.pm, self.drywall.id, depends_on_id=self.framing.id)
        dependency_actions.add_dependency(self.db, self.pm, self.paint.id, depends_on_id=self.drywall.id)

        dependency_actions.remove_dependency(self.db, self.pm, link.id)
        self.assertEqual(self.db.query(PhaseDependency).count(), 1)

        phase_actions.delete_phase(self.db, self.pm, self.drywall.id)
        self.assertEqual(self.db.query(PhaseDependency).count(), 0)


class PhaseCommentTests(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.pm = self.make_user("PROJECT_MANAGER")
        self.project = self.make_project(self.pm)
        self.phase = self.make_phase(self.project)
        self.stakeholder = self.make_user("STAKEHOLDER")
        self.add_member(self.project, self.stakeholder, "STAKEHOLDER")

    def test_members_comment_and_others_are_notified(self):
        comment = comment_actions.add_comment(self.db, self.stakeholder, self.phase.id, "  Is the header sized for the new window?  ")
        self.assertEqual(comment.content, "Is the header sized for the new window?")

        notification = self.db.query(Notification).one()
        self.assertEqual((notification.user_id, notification.type), (self.pm.id, "COMMENT_ADDED"))
        self.assertEqual(notification.data["commentId"], comment.id)
        self.assertEqual(self.db.query(ActivityLog).filter(ActivityLog.action == "COMMENT_ADDED").count(), 1)

    def test_blank_comments_are_rejected(self):
        with self.assertRaises(HTTPException) as ctx:
            comment_actions.add_comment(self.db, self.pm, self.phase.id, "   ")
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(self.db.query(PhaseComment).count(), 0)

    def test_newest_first(self):
        first = comment_actions.add_comment(self.db, self.pm, self.phase.id, "First")
        second = comment_actions.add_comment(self.db, self.pm, self.phase.id, "Second")
        first.created_at = first.created_at.replace(year=2020)
        self.db.commit()
        listed = comment_actions.list_comments(self.db, self.stakeholder, self.phase.id)
        self.assertEqual([c.id for c in listed], [second.id, first.id])

    def test_only_author_or_admin_deletes(self):
        comment = comment_actions.add_comment(self.db, self.stakeholder, self.phase.id, "Looks good")
        with self.assertRaises(HTTPException) as ctx:
            comment_actions.delete_comment(self.db, self.pm, comment.id)
        self.assertEqual(ctx.exception.status_code, 403)

        admin = self.make_user("ADMIN")
        comment_actions.delete_comment(self.db, admin, comment.id)
        self.assertEqual(self.db.query(PhaseComment).count(), 0)

    def test_outsiders_cannot_see_the_thread(self):
        outsider = self.make_user("PROJECT_MANAGER")
        with self.assertRaises(HTTPException) as ctx:
            comment_actions.add_comment(self.db, outsider, self.phase.id, "Hello")
        self.assertEqual(ctx.exception.status_code, 404)
