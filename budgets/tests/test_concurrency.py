"""
Concurrent writers against a real database.

On PostgreSQL the client row lock serializes writers; on SQLite the
IMMEDIATE transaction mode does. Either way both threads must see
committed state, so these run as TransactionTestCase against a
file-backed test database.
"""

import threading
from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import connection
from django.test import TransactionTestCase

from budgets.application.use_cases import post_credit, process_daily_consumption
from budgets.models import Client, DailyConsumptionLog

TODAY = date(2026, 3, 10)


def run_concurrently(*targets):
    barrier = threading.Barrier(len(targets))
    errors = []

    def wrapper(target):
        try:
            barrier.wait()
            target()
        except Exception as exc:
            errors.append(exc)
        finally:
            connection.close()

    threads = [threading.Thread(target=wrapper, args=(target,)) for target in targets]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return errors


class ConcurrentLedgerWritesTest(TransactionTestCase):

    def setUp(self):
        manager = get_user_model().objects.create_user(username="manager")
        self.account = Client.objects.create(
            manager=manager,
            name="Concurrent",
            daily_budget=Decimal("30"),
            current_balance=Decimal("0"),
        )

    def test_concurrent_credits_do_not_lose_updates(self):
        errors = run_concurrently(
            lambda: post_credit(self.account.id, "10"),
            lambda: post_credit(self.account.id, "20"),
        )

        self.assertEqual(errors, [])
        self.account.refresh_from_db()
        self.assertEqual(self.account.current_balance, Decimal("30.00"))
        balances = sorted(self.account.transactions.values_list("balance_after", flat=True))
        self.assertEqual(balances[-1], Decimal("30.00"))

    def test_overlapping_batches_debit_once(self):
        Client.objects.filter(id=self.account.id).update(current_balance=Decimal("100"))
        results = []

        errors = run_concurrently(
            lambda: results.append(process_daily_consumption(today=TODAY)),
            lambda: results.append(process_daily_consumption(today=TODAY)),
        )

        self.assertEqual(errors, [])
        self.assertEqual(sum(result.processed for result in results), 1)
        self.assertEqual(sum(result.skipped for result in results), 1)
        self.assertEqual(DailyConsumptionLog.objects.filter(client=self.account).count(), 1)
        self.account.refresh_from_db()
        self.assertEqual(self.account.current_balance, Decimal("70.00"))
