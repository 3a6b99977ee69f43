import unittest
from datetime import datetime
from types import SimpleNamespace

from fastapi import HTTPException

from constructpm.actions import bids as bid_actions
from constructpm.actions import lien_waivers as waiver_actions
from constructpm.actions import payment_apps as payment_actions
from constructpm.actions import punch_list as punch_actions
from constructpm.actions.payment_apps import current_payment_due, phase_totals
from constructpm.actions.punch_list import sort_items
from constructpm.db.models.activity import ActivityLog

from helpers import DatabaseTestCase


class PunchListOrderTests(unittest.TestCase):
    def _item(self, title, status, priority, day):
        return SimpleNamespace(title=title, status=status, priority=priority, created_at=datetime(2024, 5, day))

    def test_open_work_first_then_priority_then_newest(self):
        items = [
            self._item("closed critical", "CLOSED", "CRITICAL", 9),
            self._item("open low", "OPEN", "LOW", 8),
            self._item("open critical old", "OPEN", "CRITICAL", 1),
            self._item("open critical new", "OPEN", "CRITICAL", 5),
            self._item("in progress high", "IN_PROGRESS", "HIGH", 3),
        ]
        self.assertEqual(
            [i.title for i in sort_items(items)],
            ["open critical new", "open critical old", "open low", "in progress high", "closed critical"],
        )


class PunchListActionTests(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.pm = self.make_user("PROJECT_MANAGER")
        self.project = self.make_project(self.pm)
        self.phase = self.make_phase(self.project)

    def test_items_are_numbered_per_phase(self):
        first = punch_actions.create_item(self.db, self.pm, self.phase.id, title="Patch drywall")
        second = punch_actions.create_item(self.db, self.pm, self.phase.id, title="Touch-up paint", priority="HIGH")
        other_phase = self.make_phase(self.project, "Roof")
        third = punch_actions.create_item(self.db, self.pm, other_phase.id, title="Flashing")

        self.assertEqual((first.item_number, second.item_number, third.item_number), (1, 2, 1))
        self.assertEqual((first.priority, first.status), ("MEDIUM", "OPEN"))

    def test_close_and_reopen(self):
        item = punch_actions.create_item(self.db, self.pm, self.phase.id, title="Patch drywall")
        punch_actions.update_status(self.db, self.pm, item.id, "CLOSED")
        self.assertIsNotNone(item.closed_at)
        punch_actions.update_status(self.db, self.pm, item.id, "OPEN")
        self.assertIsNone(item.closed_at)

        with self.assertRaises(HTTPException):
            punch_actions.update_status(self.db, self.pm, item.id, "DONE")

    def test_update_only_changes_supplied_fields(self):
        item = punch_actions.create_item(self.db, self.pm, self.phase.id, title="Patch drywall", location="Unit 2")
        punch_actions.update_item(self.db, self.pm, item.id, priority="CRITICAL")
        self.assertEqual((item.title, item.location, item.priority), ("Patch drywall", "Unit 2", "CRITICAL"))

    def test_blank_values_clear_optional_fields(self):
        staff = self.make_staff()
        item = punch_actions.create_item(
            self.db, self.pm, self.phase.id, title="Patch drywall", location="Unit 2",
            assigned_to_id=str(staff.id), due_date="2024-04-01", description="Two coats",
        )
        punch_actions.update_item(
            self.db, self.pm, item.id, title="Patch drywall", priority="HIGH",
            location="", assigned_to_id="", due_date=" ", description="",
        )
        self.db.refresh(item)
        self.assertEqual((item.location, item.assigned_to_id, item.due_date, item.description), (None, None, None, None))
        self.assertEqual(item.priority, "HIGH")

    def test_assignee_must_be_org_staff(self):
        with self.assertRaises(HTTPException) as ctx:
            punch_actions.create_item(self.db, self.pm, self.phase.id, title="Fix", assigned_to_id="999")
        self.assertEqual(ctx.exception.status_code, 404)

    def test_summary_and_delete_rights(self):
        punch_actions.create_item(self.db, self.pm, self.phase.id, title="A", priority="CRITICAL")
        closed = punch_actions.create_item(self.db, self.pm, self.phase.id, title="B", priority="CRITICAL")
        punch_actions.update_status(self.db, self.pm, closed.id, "CLOSED")

        summary = punch_actions.project_summary(self.db, self.pm, self.project.id)
        self.assertEqual(summary["total"], 2)
        self.assertEqual((summary["open"], summary["closed"], summary["critical"]), (1, 1, 1))

        with self.assertRaises(HTTPException) as ctx:
            punch_actions.delete_item(self.db, self.pm, closed.id)
        self.assertEqual(ctx.exception.status_code, 403)

    def test_contractor_cannot_create(self):
        contractor = self.make_user("CONTRACTOR")
        self.add_member(self.project, contractor, "CONTRACTOR")
        with self.assertRaises(HTTPException) as ctx:
            punch_actions.create_item(self.db, contractor, self.phase.id, title="Patch drywall")
        self.assertEqual(ctx.exception.status_code, 403)


class LienWaiverTests(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.pm = self.make_user("PROJECT_MANAGER")
        self.project = self.make_project(self.pm)
        self.phase = self.make_phase(self.project)

    def test_approval_marks_notarized(self):
        waiver = waiver_actions.create_waiver(
            self.db, self.pm, self.phase.id,
            waiver_type="CONDITIONAL_PARTIAL", vendor_name="Dana Electric", amount="12500.00",
        )
        self.assertEqual(waiver.status, "PENDING")
        self.assertFalse(waiver.notarized)

        waiver_actions.update_waiver_status(self.db, self.pm, waiver.id, "APPROVED")
        self.assertTrue(waiver.notarized)

    def test_invalid_type_and_status(self):
        with self.assertRaises(HTTPException):
            waiver_actions.create_waiver(
                self.db, self.pm, self.phase.id, waiver_type="PARTIAL", vendor_name="X", amount="1",
            )
        waiver = waiver_actions.create_waiver(
            self.db, self.pm, self.phase.id, waiver_type="UNCONDITIONAL_FINAL", vendor_name="X", amount="1",
        )
        with self.assertRaises(HTTPException) as ctx:
            waiver_actions.update_waiver_status(self.db, self.pm, waiver.id, "SIGNED")
        self.assertEqual(ctx.exception.detail, "Invalid status")

    def test_contractor_cannot_approve(self):
        contractor = self.make_user("CONTRACTOR")
        self.add_member(self.project, contractor, "CONTRACTOR")
        waiver = waiver_actions.create_waiver(
            self.db, contractor, self.phase.id, waiver_type="CONDITIONAL_FINAL", vendor_name="X", amount="10",
        )
        with self.assertRaises(HTTPException) as ctx:
            waiver_actions.update_waiver_status(self.db, contractor, waiver.id, "APPROVED")
        self.assertEqual(ctx.exception.status_code, 403)


class PaymentApplicationTests(DatabaseTestCase):
    def test_current_payment_due(self):
        self.assertEqual(current_payment_due(50000, 2500.25, 5250, 20000), 27250.25)
        self.assertEqual(current_payment_due(0.1, 0.2, 0, 0), 0.3)
        self.assertEqual(current_payment_due(0, 0, 0, 0), 0)

    def test_phase_totals(self):
        apps = [
            SimpleNamespace(scheduled_value=100000, current_due=20000, status="PAID"),
            SimpleNamespace(scheduled_value=100000, current_due=15000, status="SUBMITTED"),
            SimpleNamespace(scheduled_value=100000, current_due=9000, status="REJECTED"),
        ]
        self.assertEqual(phase_totals(apps), {"scheduled": 100000, "billed": 35000, "paid": 20000})
        self.assertEqual(phase_totals([]), {"scheduled": 0, "billed": 0, "paid": 0})

    def test_create_numbers_and_computes_due(self):
        pm = self.make_user("PROJECT_MANAGER")
        phase = self.make_phase(self.make_project(pm))
        form = dict(
            period_start="2024-03-01", period_end="2024-03-31", scheduled_value="80000",
            work_completed="30000", materials_stored="2000", retainage="3200", previous_payments="10000",
        )
        first = payment_actions.create_application(self.db, pm, phase.id, **form)
        second = payment_actions.create_application(self.db, pm, phase.id, **form)

        self.assertEqual((first.number, second.number), (1, 2))
        self.assertEqual(first.current_due, 18800)
        self.assertEqual(first.status, "DRAFT")

        payment_actions.update_application_status(self.db, pm, first.id, "SUBMITTED")
        self.assertEqual(first.status, "SUBMITTED")

    def test_period_must_be_ordered(self):
        pm = self.make_user("PROJECT_MANAGER")
        phase = self.make_phase(self.make_project(pm))
        with self.assertRaises(HTTPException) as ctx:
            payment_actions.create_application(
                self.db, pm, phase.id, period_start="2024-03-31", period_end="2024-03-01",
            )
        self.assertEqual(ctx.exception.status_code, 400)


class BidTests(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.pm = self.make_user("PROJECT_MANAGER")
        self.project = self.make_project(self.pm)
        self.phase = self.make_phase(self.project)

    def test_members_submit_and_owners_award(self):
        viewer = self.make_user("VIEWER")
        self.add_member(self.project, viewer)
        bid = bid_actions.create_bid(self.db, viewer, self.phase.id, company_name="Acme Roofing", amount="18000")

        with self.assertRaises(HTTPException) as ctx:
            bid_actions.award_bid(self.db, viewer, bid.id, True)
        self.assertEqual(ctx.exception.detail, "Insufficient permissions")

        bid_actions.award_bid(self.db, self.pm, bid.id, True)
        self.assertTrue(bid.awarded)
        log = self.db.query(ActivityLog).filter(ActivityLog.action == "BID_AWARDED").one()
        self.assertEqual(log.data["bidId"], bid.id)

    def test_list_newest_first_and_delete(self):
        first = bid_actions.create_bid(self.db, self.pm, self.phase.id, company_name="First", amount="1")
        second = bid_actions.create_bid(self.db, self.pm, self.phase.id, company_name="Second", amount="2")
        self.assertEqual([b.id for b in bid_actions.list_bids(self.db, self.pm, self.phase.id)], [second.id, first.id])

        bid_actions.delete_bid(self.db, self.pm, first.id)
        self.assertEqual(len(bid_actions.list_bids(self.db, self.pm, self.phase.id)), 1)

    def test_amount_and_email_are_validated(self):
        with self.assertRaises(HTTPException):
            bid_actions.create_bid(self.db, self.pm, self.phase.id, company_name="X", amount="-1")
        with self.assertRaises(HTTPException):
            bid_actions.create_bid(self.db, self.pm, self.phase.id, company_name="X", amount="1", email="nope")
