import unittest
from types import SimpleNamespace

from fastapi import HTTPException

from constructpm.core.permissions import (
    ADMIN, CONTRACTOR, PROJECT_MANAGER, RESOURCES, STAKEHOLDER, VIEWER,
    can, can_any, can_create_project, can_manage_phase, can_review_phase, check_admin, require,
)


class PermissionMatrixTests(unittest.TestCase):
    def test_admin_can_delete_everything_deletable(self):
        for resource in ("project", "phase", "document", "photo", "staff", "checklist", "member"):
            self.assertTrue(can(ADMIN, "delete", resource), resource)

    def test_project_manager_cannot_delete(self):
        for resource in RESOURCES:
            self.assertFalse(can(PROJECT_MANAGER, "delete", resource), resource)

    def test_project_manager_manages_phases(self):
        self.assertTrue(can(PROJECT_MANAGER, "manage", "phase"))
        self.assertTrue(can(PROJECT_MANAGER, "create", "project"))
        self.assertFalse(can(PROJECT_MANAGER, "manage", "project"))

    def test_contractor_updates_phases_and_checklists_only(self):
        self.assertTrue(can(CONTRACTOR, "update", "phase"))
        self.assertTrue(can(CONTRACTOR, "update", "checklist"))
        self.assertTrue(can(CONTRACTOR, "create", "document"))
        self.assertTrue(can(CONTRACTOR, "create", "photo"))
        self.assertFalse(can(CONTRACTOR, "update", "project"))
        self.assertFalse(can(CONTRACTOR, "create", "checklist"))

    def test_stakeholder_is_read_only(self):
        for resource in RESOURCES:
            self.assertTrue(can(STAKEHOLDER, "view", resource), resource)
            self.assertFalse(can(STAKEHOLDER, "create", resource), resource)

    def test_viewer_has_no_staff_or_member_access(self):
        self.assertFalse(can(VIEWER, "view", "staff"))
        self.assertFalse(can(VIEWER, "view", "member"))
        self.assertTrue(can(VIEWER, "view", "phase"))

    def test_unknown_role_or_resource_is_denied(self):
        self.assertFalse(can("SUPERUSER", "view", "project"))
        self.assertFalse(can(ADMIN, "view", "invoice"))

    def test_can_any(self):
        self.assertTrue(can_any(CONTRACTOR, ["delete", "update"], "phase"))
        self.assertFalse(can_any(VIEWER, ["create", "update"], "phase"))

    def test_role_helpers(self):
        for role in (ADMIN, PROJECT_MANAGER):
            self.assertTrue(can_create_project(role))
            self.assertTrue(can_manage_phase(role))
            self.assertTrue(can_review_phase(role))
        for role in (CONTRACTOR, STAKEHOLDER, VIEWER):
            self.assertFalse(can_create_project(role))
            self.assertFalse(can_manage_phase(role))
            self.assertFalse(can_review_phase(role))

    def test_require_and_check_admin_raise_403(self):
        with self.assertRaises(HTTPException) as ctx:
            require(SimpleNamespace(role=VIEWER), "create", "project")
        self.assertEqual(ctx.exception.status_code, 403)

        with self.assertRaises(HTTPException) as ctx:
            check_admin(SimpleNamespace(role=PROJECT_MANAGER))
        self.assertEqual(ctx.exception.status_code, 403)
        check_admin(SimpleNamespace(role=ADMIN))


if __name__ == "__main__":
    unittest.main()
