from datetime import timedelta
from unittest import mock
from urllib.parse import parse_qs, urlparse

import requests

from constructpm.actions import quickbooks as qb_actions
from constructpm.core.config import settings
from constructpm.core.dates import utcnow
from constructpm.db.models.quickbooks import QuickBooksConnection, QuickBooksSyncLog

from helpers import DatabaseTestCase


def _response(payload, status_code=200):
    response = mock.Mock(ok=status_code < 400, status_code=status_code)
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return response


class QuickBooksTests(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.pm = self.make_user("PROJECT_MANAGER")
        for name, value in (
            ("QUICKBOOKS_CLIENT_ID", "client-id"),
            ("QUICKBOOKS_CLIENT_SECRET", "client-secret"),
            ("QUICKBOOKS_REDIRECT_URI", "http://localhost:8000/quickbooks/callback"),
        ):
            patcher = mock.patch.object(settings, name, value)
            patcher.start()
            self.addCleanup(patcher.stop)

    def _connect(self, **extra):
        connection = QuickBooksConnection(
            organization_id=self.org.id,
            company_id="9130",
            access_token="access-1",
            refresh_token="refresh-1",
            token_expiry=extra.pop("token_expiry", utcnow() + timedelta(hours=1)),
            **extra
        )
        self.db.add(connection)
        self.db.commit()
        return connection

    def test_auth_url_carries_state(self):
        result = qb_actions.get_auth_url(self.pm)
        self.assertTrue(result.success)
        query = parse_qs(urlparse(result.data["url"]).query)
        self.assertEqual(query["client_id"], ["client-id"])
        self.assertEqual(query["state"], [result.data["state"]])

    def test_permissions_and_configuration(self):
        viewer = self.make_user("VIEWER")
        self.assertEqual(qb_actions.get_auth_url(viewer).error, "Insufficient permissions")
        self.assertEqual(qb_actions.get_auth_url(None).error, "Unauthorized")
        with mock.patch.object(settings, "QUICKBOOKS_CLIENT_ID", ""):
            self.assertEqual(qb_actions.get_auth_url(self.pm).error, "QuickBooks not configured")

    def test_exchange_code_stores_one_connection(self):
        tokens = _response({"access_token": "a", "refresh_token": "r", "expires_in": 3600})
        company = _response({"CompanyInfo": {"CompanyName": "Acme Builders LLC"}})
        with mock.patch("constructpm.actions.quickbooks.requests.post", return_value=tokens), \
                mock.patch("constructpm.actions.quickbooks.requests.get", return_value=company):
            result = qb_actions.exchange_code(self.db, self.pm, "auth-code", "9130")
            qb_actions.exchange_code(self.db, self.pm, "auth-code", "9130")

        self.assertTrue(result.success)
        connection = self.db.query(QuickBooksConnection).one()
        self.assertEqual((connection.company_name, connection.access_token), ("Acme Builders LLC", "a"))

    def test_exchange_code_failure(self):
        with mock.patch("constructpm.actions.quickbooks.requests.post", return_value=_response({}, 400)):
            result = qb_actions.exchange_code(self.db, self.pm, "auth-code", "9130")
        self.assertFalse(result.success)
        self.assertEqual(result.error, "Failed to exchange authorization code")

    def test_exchange_code_without_tokens_is_a_failed_result(self):
        odd = _response({"error": "weird"})
        with mock.patch("constructpm.actions.quickbooks.requests.post", return_value=odd):
            result = qb_actions.exchange_code(self.db, self.pm, "auth-code", "9130")
        self.assertFalse(result.success)
        self.assertEqual(result.error, "Failed to exchange authorization code")

        html = _response(None)
        html.json.side_effect = ValueError("Expecting value")
        with mock.patch("constructpm.actions.quickbooks.requests.post", return_value=html):
            self.assertFalse(qb_actions.exchange_code(self.db, self.pm, "auth-code", "9130").success)
        self.assertEqual(self.db.query(QuickBooksConnection).count(), 0)

    def test_unreadable_company_info_keeps_connection(self):
        tokens = _response({"access_token": "a", "refresh_token": "r", "expires_in": 3600})
        company = _response(None)
        company.json.side_effect = ValueError("Expecting value")
        with mock.patch("constructpm.actions.quickbooks.requests.post", return_value=tokens), \
                mock.patch("constructpm.actions.quickbooks.requests.get", return_value=company):
            result = qb_actions.exchange_code(self.db, self.pm, "auth-code", "9130")
        self.assertTrue(result.success)
        self.assertIsNone(self.db.query(QuickBooksConnection).one().company_name)

    def test_refresh_without_token_fails_the_sync(self):
        self._connect(token_expiry=utcnow() - timedelta(minutes=5))
        with mock.patch("constructpm.actions.quickbooks.requests.post", return_value=_response({})):
            result = qb_actions.trigger_sync(self.db, self.pm)
        self.assertEqual(result.error, "Failed to refresh QuickBooks token")

    def test_refresh_only_near_expiry(self):
        connection = self._connect()
        with mock.patch("constructpm.actions.quickbooks.requests.post") as post:
            self.assertEqual(qb_actions.refresh_access_token(self.db, connection), "access-1")
        post.assert_not_called()

        connection.token_expiry = utcnow() + timedelta(seconds=30)
        self.db.commit()
        fresh = _response({"access_token": "access-2", "expires_in": 3600})
        with mock.patch("constructpm.actions.quickbooks.requests.post", return_value=fresh):
            self.assertEqual(qb_actions.refresh_access_token(self.db, connection), "access-2")
        # Intuit may omit a new refresh token
        self.assertEqual(connection.refresh_token, "refresh-1")

    def test_full_sync_counts_enabled_entities(self):
        self._connect(sync_customers=False)

        def fake_get(url, params=None, **kwargs):
            entity = params["query"].split()[3]
            if entity == "Vendor":
                return _response({}, 500)
            return _response({"QueryResponse": {entity: [{"Id": "1"}, {"Id": "2"}]}})

        with mock.patch("constructpm.actions.quickbooks.requests.get", side_effect=fake_get) as get:
            result = qb_actions.trigger_sync(self.db, self.pm)

        self.assertTrue(result.success)
        self.assertEqual(get.call_count, 3)
        self.assertEqual((result.data["status"], result.data["items_synced"]), ("partial", 4))
        log = self.db.query(QuickBooksSyncLog).one()
        self.assertEqual((log.items_failed, log.status), (1, "partial"))
        self.assertIn("Failed to fetch vendors", log.error_message)

    def test_sync_guards(self):
        self.assertEqual(qb_actions.trigger_sync(self.db, self.pm).error, "No QuickBooks connection found")
        self._connect(sync_enabled=False)
        self.assertEqual(qb_actions.trigger_sync(self.db, self.pm).error, "Sync is disabled")
        self.assertEqual(qb_actions.trigger_sync(self.db, self.pm, "payroll").error, "Invalid sync type")

    def test_settings_and_disconnect(self):
        connection = self._connect()
        qb_actions.update_sync_settings(self.db, self.pm, sync_invoices=False, sync_vendors=None)
        self.assertFalse(connection.sync_invoices)
        self.assertTrue(connection.sync_vendors)

        self.assertTrue(qb_actions.disconnect(self.db, self.pm).success)
        self.assertEqual(self.db.query(QuickBooksConnection).count(), 0)
