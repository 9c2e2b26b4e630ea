from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import DatabaseError, OperationalError
from django.test import TestCase
from rest_framework.test import APIClient

from budgets.application import use_cases
from budgets.models import Client, CreditTransaction, DailyConsumptionLog


class BudgetsEndpointTestCase(TestCase):
    """
    Each test runs inside a transaction that is rolled back automatically,
    ensuring full isolation between test cases.
    """

    def setUp(self):
        self.client = APIClient()
        self.manager = get_user_model().objects.create_user(username="manager")
        self.account = Client.objects.create(
            manager=self.manager,
            name="Padaria Central",
            daily_budget=Decimal("30"),
            current_balance=Decimal("50"),
        )


class ProcessDailyConsumptionEndpointTest(BudgetsEndpointTestCase):
    """Tests for POST /api/budgets/process-daily-consumption/"""

    def test_successful_run(self):
        response = self.client.post("/api/budgets/process-daily-consumption/")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["results"], {"processed": 1, "skipped": 0, "errors": []})

        self.account.refresh_from_db()
        self.assertEqual(self.account.current_balance, Decimal("20.00"))

    def test_repeated_trigger_skips(self):
        self.client.post("/api/budgets/process-daily-consumption/")
        response = self.client.post("/api/budgets/process-daily-consumption/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["results"]["skipped"], 1)
        self.assertEqual(DailyConsumptionLog.objects.count(), 1)

    def test_selection_failure_reports_unsuccessful_batch(self):
        with patch.object(Client.objects, "filter", side_effect=DatabaseError("connection lost")):
            response = self.client.post("/api/budgets/process-daily-consumption/")

        self.assertEqual(response.status_code, 503)
        self.assertFalse(response.data["success"])
        self.assertIn("connection lost", response.data["error"])


class PostCreditEndpointTest(BudgetsEndpointTestCase):
    """Tests for POST /api/budgets/clients/<id>/credits/"""

    def url(self, client_id=None):
        return f"/api/budgets/clients/{client_id or self.account.id}/credits/"

    def test_successful_credit(self):
        response = self.client.post(self.url(), {"amount": "100.50", "description": "PIX"})

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["new_balance"], "150.50")

        entry = CreditTransaction.objects.get(id=response.data["transaction_id"])
        self.assertEqual(entry.description, "PIX")
        self.assertEqual(entry.balance_after, Decimal("150.50"))

    def test_backdated_credit(self):
        response = self.client.post(self.url(), {"amount": "10", "transaction_date": "2026-01-31"})

        self.assertEqual(response.status_code, 201)
        entry = CreditTransaction.objects.get(id=response.data["transaction_id"])
        self.assertEqual(entry.transaction_date.isoformat(), "2026-01-31")

    def test_missing_amount_returns_400(self):
        response = self.client.post(self.url(), {})

        self.assertEqual(response.status_code, 400)

    def test_invalid_amounts_return_400(self):
        for amount in ("-5", "0", "ten"):
            with self.subTest(amount=amount):
                response = self.client.post(self.url(), {"amount": amount})
                self.assertEqual(response.status_code, 400)

        self.account.refresh_from_db()
        self.assertEqual(self.account.current_balance, Decimal("50.00"))
        self.assertFalse(CreditTransaction.objects.exists())

    def test_invalid_date_returns_400(self):
        response = self.client.post(self.url(), {"amount": "10", "transaction_date": "31/01/2026"})

        self.assertEqual(response.status_code, 400)

    def test_client_not_found(self):
        response = self.client.post(
            self.url("00000000-0000-0000-0000-000000000000"), {"amount": "10"}
        )

        self.assertEqual(response.status_code, 404)

    def test_write_conflict_returns_409(self):
        with patch.object(use_cases, "_apply_credit", side_effect=OperationalError("database is locked")):
            response = self.client.post(self.url(), {"amount": "10"})

        self.assertEqual(response.status_code, 409)

    def test_store_failure_returns_503(self):
        with patch.object(CreditTransaction.objects, "create", side_effect=DatabaseError("disk full")):
            response = self.client.post(self.url(), {"amount": "10"})

        self.assertEqual(response.status_code, 503)
        self.account.refresh_from_db()
        self.assertEqual(self.account.current_balance, Decimal("50.00"))


class TransactionHistoryEndpointTest(BudgetsEndpointTestCase):
    """Tests for GET /api/budgets/clients/<id>/transactions/"""

    def test_lists_ledger_entries(self):
        self.client.post(f"/api/budgets/clients/{self.account.id}/credits/", {"amount": "10"})
        self.client.post("/api/budgets/process-daily-consumption/")

        response = self.client.get(f"/api/budgets/clients/{self.account.id}/transactions/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 2)
        self.assertEqual(
            {entry["transaction_type"] for entry in response.data},
            {"credit_added", "daily_consumption"},
        )

    def test_client_not_found(self):
        response = self.client.get("/api/budgets/clients/00000000-0000-0000-0000-000000000000/transactions/")

        self.assertEqual(response.status_code, 404)


class PortfolioSummaryEndpointTest(BudgetsEndpointTestCase):

    def test_summary(self):
        response = self.client.get("/api/budgets/summary/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["total"], 1)
        self.assertEqual(response.data["active"], 1)
        self.assertEqual(response.data["low_balance"], 1)
        self.assertEqual(response.data["total_balance"], "50.00")


class OversizedCreditEndpointTest(BudgetsEndpointTestCase):

    def test_amount_beyond_column_precision_returns_400(self):
        response = self.client.post(f"/api/budgets/clients/{self.account.id}/credits/", {"amount": "1e15"})

        self.assertEqual(response.status_code, 400)
        self.assertFalse(CreditTransaction.objects.exists())

    def test_overflowing_balance_returns_400(self):
        Client.objects.filter(id=self.account.id).update(current_balance=Decimal("9999999990"))

        response = self.client.post(f"/api/budgets/clients/{self.account.id}/credits/", {"amount": "20"})

        self.assertEqual(response.status_code, 400)
        self.account.refresh_from_db()
        self.assertEqual(self.account.current_balance, Decimal("9999999990.00"))


class ClientEndpointTest(BudgetsEndpointTestCase):
    """Tests for /api/budgets/clients/ and /api/budgets/clients/<id>/"""

    def test_create_client_as_authenticated_manager(self):
        self.client.force_authenticate(user=self.manager)

        response = self.client.post("/api/budgets/clients/", {
            "name": "Mercado Leste",
            "daily_budget": "20",
            "current_balance": "200",
            "payment_method": "boleto",
        }, format="json")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["manager_id"], self.manager.id)
        self.assertEqual(response.data["current_balance"], "200.00")
        self.assertEqual(response.data["days_remaining"], 10)
        self.assertTrue(Client.objects.filter(name="Mercado Leste", payment_method="boleto").exists())

    def test_create_client_with_manager_id(self):
        response = self.client.post("/api/budgets/clients/", {
            "manager_id": self.manager.id,
            "name": "Mercado Oeste",
            "daily_budget": "20",
        }, format="json")

        self.assertEqual(response.status_code, 201)

    def test_create_client_without_manager_returns_400(self):
        response = self.client.post("/api/budgets/clients/", {"name": "Orphan", "daily_budget": "20"}, format="json")

        self.assertEqual(response.status_code, 400)

    def test_create_client_with_invalid_fields_returns_400(self):
        for data in (
            {"daily_budget": "20"},
            {"name": "X", "daily_budget": "-20"},
            {"name": "X", "daily_budget": "20", "payment_method": "cash"},
        ):
            with self.subTest(data=data):
                response = self.client.post(
                    "/api/budgets/clients/", {"manager_id": self.manager.id, **data}, format="json"
                )
                self.assertEqual(response.status_code, 400)

    def test_list_with_search_and_status(self):
        Client.objects.create(
            manager=self.manager, name="Padaria Norte", daily_budget=Decimal("10"), current_balance=Decimal("900")
        )

        everyone = self.client.get("/api/budgets/clients/")
        low = self.client.get("/api/budgets/clients/", {"status": "low_balance"})
        search = self.client.get("/api/budgets/clients/", {"search": "norte"})
        invalid = self.client.get("/api/budgets/clients/", {"status": "overdrawn"})

        self.assertEqual([row["name"] for row in everyone.data], ["Padaria Central", "Padaria Norte"])
        self.assertEqual([row["name"] for row in low.data], ["Padaria Central"])
        self.assertEqual([row["name"] for row in search.data], ["Padaria Norte"])
        self.assertEqual(invalid.status_code, 400)

    def test_retrieve_client(self):
        response = self.client.get(f"/api/budgets/clients/{self.account.id}/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["name"], "Padaria Central")
        self.assertTrue(response.data["is_low_balance"])

    def test_update_client_deactivates_and_edits_balance(self):
        response = self.client.patch(
            f"/api/budgets/clients/{self.account.id}/",
            {"is_active": False, "current_balance": "80"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.account.refresh_from_db()
        self.assertFalse(self.account.is_active)
        self.assertEqual(self.account.current_balance, Decimal("80.00"))
        self.assertFalse(CreditTransaction.objects.exists())

    def test_update_with_negative_balance_returns_400(self):
        response = self.client.patch(
            f"/api/budgets/clients/{self.account.id}/", {"current_balance": "-1"}, format="json"
        )

        self.assertEqual(response.status_code, 400)
        self.account.refresh_from_db()
        self.assertEqual(self.account.current_balance, Decimal("50.00"))

    def test_update_unknown_client_returns_404(self):
        response = self.client.patch(
            "/api/budgets/clients/00000000-0000-0000-0000-000000000000/", {"name": "X"}, format="json"
        )

        self.assertEqual(response.status_code, 404)

    def test_delete_client(self):
        response = self.client.delete(f"/api/budgets/clients/{self.account.id}/")

        self.assertEqual(response.status_code, 204)
        self.assertFalse(Client.objects.filter(id=self.account.id).exists())

        again = self.client.delete(f"/api/budgets/clients/{self.account.id}/")
        self.assertEqual(again.status_code, 404)
