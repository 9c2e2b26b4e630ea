"""
Persistence Models — Prepaid Budgets Ledger (Django ORM)

Three record kinds make up the ledger store:

- Client holds the mutable balance, a cached projection of its ledger.
- CreditTransaction is the append-only audit trail. Every balance change
  made by the use cases writes exactly one row, in the same database
  transaction as the balance update.
- DailyConsumptionLog is the idempotency witness for the daily batch.
  The UNIQUE constraint on (client, consumption_date) is what makes
  repeated runs of the processor safe: the application checks first, the
  database refuses the second insert if two runs race.

CHECK constraints keep balances, budgets and recorded amounts
non-negative even if a write bypasses the use cases.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models

from budgets.domain.balance import days_remaining

MONEY = {"max_digits": 12, "decimal_places": 2}


class Client(models.Model):
    """A billing account whose balance is depleted by its daily budget."""

    class PaymentMethod(models.TextChoices):
        PIX = "pix", "PIX"
        BOLETO = "boleto", "Boleto"

    class PaymentFrequency(models.TextChoices):
        WEEKLY = "weekly", "Weekly"
        BIWEEKLY = "biweekly", "Biweekly"
        MONTHLY = "monthly", "Monthly"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    manager = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="budget_clients",
    )
    name = models.CharField(max_length=255)
    phone = models.CharField(max_length=32, blank=True, null=True)
    payment_method = models.CharField(
        max_length=16, choices=PaymentMethod.choices, default=PaymentMethod.PIX
    )
    # Informational only; the processor does not look at it.
    payment_frequency = models.CharField(
        max_length=16, choices=PaymentFrequency.choices, default=PaymentFrequency.MONTHLY
    )
    daily_budget = models.DecimalField(**MONEY)
    current_balance = models.DecimalField(**MONEY, default=Decimal("0.00"))
    alert_threshold = models.DecimalField(**MONEY, default=Decimal("100.00"))
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(current_balance__gte=0),
                name="budgets_client_balance_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(daily_budget__gte=0),
                name="budgets_client_daily_budget_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.name} - Balance: {self.current_balance}"

    @property
    def days_remaining(self):
        return days_remaining(self.current_balance, self.daily_budget)

    @property
    def is_low_balance(self):
        return self.current_balance < self.alert_threshold


class CreditTransaction(models.Model):
    """
    Immutable record of one balance-affecting event.

    ``amount`` is a magnitude; the sign comes from ``transaction_type``.
    ``balance_after`` snapshots the client's balance once this row applied.
    """

    class Type(models.TextChoices):
        CREDIT_ADDED = "credit_added", "Credit added"
        DAILY_CONSUMPTION = "daily_consumption", "Daily consumption"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    client = models.ForeignKey(
        Client,
        on_delete=models.CASCADE,
        related_name="transactions",
    )
    transaction_type = models.CharField(max_length=32, choices=Type.choices)
    amount = models.DecimalField(**MONEY)
    balance_after = models.DecimalField(**MONEY)
    description = models.TextField(blank=True, null=True)
    transaction_date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)
    # Null for entries written by the daily batch.
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="+",
        blank=True,
        null=True,
    )

    class Meta:
        ordering = ["-transaction_date", "-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name="budgets_transaction_amount_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(balance_after__gte=0),
                name="budgets_transaction_balance_after_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["client", "transaction_date"], name="budgets_tx_client_date_idx"),
        ]

    def __str__(self):
        return f"{self.get_transaction_type_display()} {self.amount} -> {self.balance_after}"

    @property
    def signed_amount(self):
        if self.transaction_type == self.Type.DAILY_CONSUMPTION:
            return -self.amount
        return self.amount


class DailyConsumptionLog(models.Model):
    """
    One row per client per processed day.

    The row's existence means that day's debit has been applied. The
    unique constraint is the database-side half of the idempotency guard.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    client = models.ForeignKey(
        Client,
        on_delete=models.CASCADE,
        related_name="consumption_logs",
    )
    consumption_date = models.DateField()
    amount = models.DecimalField(**MONEY)
    balance_before = models.DecimalField(**MONEY)
    balance_after = models.DecimalField(**MONEY)
    processed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-consumption_date"]
        constraints = [
            models.UniqueConstraint(
                fields=["client", "consumption_date"],
                name="budgets_consumption_once_per_day",
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name="budgets_consumption_amount_non_negative",
            ),
        ]

    def __str__(self):
        return f"Consumption {self.client_id} {self.consumption_date} - {self.amount}"
