from fastapi import HTTPException

from constructpm.actions import checklists as checklist_actions
from constructpm.actions import punch_list as punch_actions
from constructpm.actions import staff as staff_actions
from constructpm.actions.staff import CSV_HEADER
from constructpm.db.models.notification import Notification
from constructpm.db.models.punch_list import PunchListItem
from constructpm.db.models.staff import Staff

from helpers import DatabaseTestCase


class ChecklistTests(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.pm = self.make_user("PROJECT_MANAGER")
        self.project = self.make_project(self.pm)
        self.phase = self.make_phase(self.project)

    def _template(self):
        return checklist_actions.create_template(
            self.db, self.pm, " Framing inspection ", ["Anchor bolts", "  ", "Shear nailing"],
        )

    def test_template_skips_blank_items(self):
        template = self._template()
        self.assertEqual(template.name, "Framing inspection")
        self.assertEqual([(i.title, i.order) for i in template.items], [("Anchor bolts", 0), ("Shear nailing", 1)])

    def test_template_validation(self):
        with self.assertRaises(HTTPException) as ctx:
            checklist_actions.create_template(self.db, self.pm, "", ["One"])
        self.assertEqual(ctx.exception.detail, "Template name is required")
        with self.assertRaises(HTTPException) as ctx:
            checklist_actions.create_template(self.db, self.pm, "Empty", ["", " "])
        self.assertEqual(ctx.exception.detail, "A template needs at least one item")

    def test_one_checklist_per_phase(self):
        template = self._template()
        checklist = checklist_actions.apply_template(self.db, self.pm, self.phase.id, template.id)
        self.assertEqual(len(checklist.items), 2)
        with self.assertRaises(HTTPException) as ctx:
            checklist_actions.apply_template(self.db, self.pm, self.phase.id, template.id)
        self.assertEqual(ctx.exception.detail, "Phase already has a checklist")

    def test_completing_last_item_notifies_members(self):
        viewer = self.make_user("VIEWER")
        self.add_member(self.project, viewer)
        checklist = checklist_actions.apply_template(self.db, self.pm, self.phase.id, self._template().id)
        first, second = checklist.items

        checklist_actions.toggle_item(self.db, self.pm, first.id)
        self.assertEqual(self.db.query(Notification).count(), 0)
        self.assertEqual(first.completed_by_id, self.pm.id)

        checklist_actions.toggle_item(self.db, self.pm, second.id)
        note = self.db.query(Notification).one()
        self.assertEqual((note.user_id, note.type), (viewer.id, "CHECKLIST_COMPLETED"))

        checklist_actions.toggle_item(self.db, self.pm, second.id)
        self.assertFalse(second.completed)
        self.assertIsNone(second.completed_at)

    def test_custom_items_append(self):
        checklist = checklist_actions.apply_template(self.db, self.pm, self.phase.id, self._template().id)
        item = checklist_actions.add_custom_item(self.db, self.pm, checklist.id, "Hold-downs")
        self.assertEqual(item.order, 2)

        with self.assertRaises(HTTPException) as ctx:
            checklist_actions.delete_item(self.db, self.pm, item.id)
        self.assertEqual(ctx.exception.status_code, 403)

    def test_stakeholder_cannot_toggle(self):
        stakeholder = self.make_user("STAKEHOLDER")
        self.add_member(self.project, stakeholder, "STAKEHOLDER")
        checklist = checklist_actions.apply_template(self.db, self.pm, self.phase.id, self._template().id)
        with self.assertRaises(HTTPException) as ctx:
            checklist_actions.toggle_item(self.db, stakeholder, checklist.items[0].id)
        self.assertEqual(ctx.exception.status_code, 403)


class StaffTests(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.admin = self.make_user("ADMIN")

    def test_list_orders_by_type_then_name_and_filters(self):
        self.make_staff("Zed Plumbing", "SUBCONTRACTOR")
        self.make_staff("Amy Lumber", "VENDOR")
        self.make_staff("Bob Builder", "TEAM")
        self.make_staff("Al Wiring", "SUBCONTRACTOR", company="Sparks LLC")

        names = [s.name for s in staff_actions.list_staff(self.db, self.admin)]
        self.assertEqual(names, ["Al Wiring", "Zed Plumbing", "Bob Builder", "Amy Lumber"])

        self.assertEqual(
            [s.name for s in staff_actions.list_staff(self.db, self.admin, contact_type="VENDOR")], ["Amy Lumber"],
        )
        self.assertEqual([s.name for s in staff_actions.list_staff(self.db, self.admin, q="sparks")], ["Al Wiring"])

    def test_create_validates_email(self):
        staff = staff_actions.create_staff(self.db, self.admin, name="Dana", email="dana@sparks.example")
        self.assertEqual(staff.contact_type, "TEAM")
        with self.assertRaises(HTTPException):
            staff_actions.create_staff(self.db, self.admin, name="Dana", email="not-an-email")

    def test_update_is_full_replace(self):
        staff = self.make_staff("Dana", company="Sparks LLC", phone="555-0100")
        staff_actions.update_staff(self.db, self.admin, staff.id, name="Dana K", contact_type="VENDOR")
        self.assertEqual((staff.name, staff.contact_type, staff.company, staff.phone), ("Dana K", "VENDOR", None, None))

    def test_bulk_operations(self):
        ids = [self.make_staff(f"Sub {i}").id for i in range(3)]
        rival = self.make_org("Rival")
        foreign = Staff(organization_id=rival.id, name="Foreign", contact_type="TEAM")
        self.db.add(foreign)
        self.db.commit()

        self.assertEqual(staff_actions.bulk_update_type(self.db, self.admin, ids[:2] + [foreign.id], "VENDOR"), 2)
        with self.assertRaises(HTTPException) as ctx:
            staff_actions.bulk_update_type(self.db, self.admin, ids, "FRIEND")
        self.assertEqual(ctx.exception.detail, "Invalid type")

        self.assertEqual(staff_actions.bulk_delete_staff(self.db, self.admin, ids + [foreign.id]), 3)
        self.assertEqual(self.db.query(Staff).count(), 1)

    def test_deleting_staff_unassigns_their_punch_items(self):
        phase = self.make_phase(self.make_project(self.admin))
        keep, single, bulk = self.make_staff("Keep"), self.make_staff("Single"), self.make_staff("Bulk")
        items = [
            punch_actions.create_item(self.db, self.admin, phase.id, title=f"Fix {s.name}", assigned_to_id=s.id)
            for s in (keep, single, bulk)
        ]

        staff_actions.delete_staff(self.db, self.admin, single.id)
        staff_actions.bulk_delete_staff(self.db, self.admin, [bulk.id])

        self.db.expire_all()
        self.assertEqual(self.db.query(PunchListItem).count(), 3)
        self.assertEqual([i.assigned_to_id for i in items], [keep.id, None, None])

    def test_csv_export_quotes_every_field(self):
        self.make_staff('Dana "Sparky" K', company="Sparks, LLC", email="dana@sparks.example")
        csv_text = staff_actions.export_staff_csv(self.db, self.admin)
        lines = csv_text.split("\n")
        self.assertEqual(lines[0], CSV_HEADER)
        self.assertEqual(lines[1], '"Dana ""Sparky"" K","Sparks, LLC","","SUBCONTRACTOR","dana@sparks.example","",""')

    def test_empty_export_is_header_only(self):
        self.assertEqual(staff_actions.export_staff_csv(self.db, self.admin), CSV_HEADER)

    def test_viewers_cannot_see_staff_and_pms_cannot_delete(self):
        viewer = self.make_user("VIEWER")
        with self.assertRaises(HTTPException) as ctx:
            staff_actions.list_staff(self.db, viewer)
        self.assertEqual(ctx.exception.status_code, 403)

        pm = self.make_user("PROJECT_MANAGER")
        staff = self.make_staff()
        with self.assertRaises(HTTPException) as ctx:
            staff_actions.delete_staff(self.db, pm, staff.id)
        self.assertEqual(ctx.exception.status_code, 403)
