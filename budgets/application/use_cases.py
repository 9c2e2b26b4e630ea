"""
Application Use Cases — Prepaid Budget Ledger

Two operations change a client's balance, and both follow the same
ledger-consistency contract: the balance update and the CreditTransaction
row that explains it are written inside one transaction.atomic() block,
so no reader ever sees one without the other.

Daily consumption (batch):

- Candidates are active clients with a positive daily budget.
- Each client is processed in its own atomic block. A failure is recorded
  against that client and the loop moves on.
- Idempotency is checked up front (DailyConsumptionLog lookup) and
  enforced by the UNIQUE (client, consumption_date) constraint. A losing
  racer gets an IntegrityError, which is a skip, not an error.
- The processing date is passed in; when omitted it is derived from the
  current instant in BUDGETS_LEDGER_TIMEZONE, one zone for every client.

Credit posting (interactive):

- Not idempotent: each call adds a new credit.
- The client row is locked with select_for_update() and the balance is
  moved with an F() expression, so concurrent credits cannot lose updates.
- A lock timeout or serialization failure is retried once.

Client management (create, edit, delete, list) backs the dashboard forms.
An edited balance is applied through override_balance and, unlike the two
operations above, leaves no ledger entry.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from zoneinfo import ZoneInfo

from django.conf import settings
from django.db import DatabaseError, IntegrityError, OperationalError, transaction
from django.db.models import Count, F, Q, Sum
from django.utils import timezone

from budgets.domain.balance import ZERO, apply_credit, apply_daily_consumption, to_money
from budgets.domain.exceptions import (
    AlreadyProcessed,
    BudgetError,
    InvalidAmount,
    InvalidClientData,
    StoreUnavailable,
    WriteConflict,
)
from budgets.models import Client, CreditTransaction, DailyConsumptionLog

logger = logging.getLogger(__name__)

DAILY_CONSUMPTION_DESCRIPTION = "Automatic daily consumption"
MANUAL_CREDIT_DESCRIPTION = "Credit added manually"
CREDIT_ATTEMPTS = 2
HISTORY_LIMIT = 50


def processing_date(now=None) -> date:
    """Maps an instant to the ledger's calendar date."""
    now = now or timezone.now()
    return now.astimezone(ZoneInfo(settings.BUDGETS_LEDGER_TIMEZONE)).date()


def has_processed(client_id, consumption_date) -> bool:
    return DailyConsumptionLog.objects.filter(
        client_id=client_id,
        consumption_date=consumption_date,
    ).exists()


@dataclass
class ConsumptionResult:
    date: date
    processed: int = 0
    skipped: int = 0
    errors: list = field(default_factory=list)

    def as_dict(self):
        return {
            "processed": self.processed,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class CreditResult:
    client_id: object
    new_balance: Decimal
    transaction: CreditTransaction


def process_daily_consumption(today=None) -> ConsumptionResult:
    """
    Debits one day of budget from every eligible client, at most once per day.

    Safe to call repeatedly: clients already logged for ``today`` are
    skipped. Only a failure to select the candidates fails the whole call
    (StoreUnavailable); every per-client failure lands in ``errors``.
    """
    today = today or processing_date()

    try:
        candidate_ids = list(
            Client.objects
            .filter(is_active=True, daily_budget__gt=0)
            .order_by("created_at")
            .values_list("id", flat=True)
        )
    except DatabaseError as exc:
        logger.exception("Daily consumption aborted: could not select clients for %s", today)
        raise StoreUnavailable("client selection", str(exc))

    result = ConsumptionResult(date=today)

    for client_id in candidate_ids:
        try:
            change = _consume_one_day(client_id, today)
        except AlreadyProcessed:
            logger.info("Daily consumption skipped: client=%s date=%s already processed", client_id, today)
            result.skipped += 1
        except Exception as exc:
            failure = _classify_failure(client_id, exc)
            logger.warning(
                "Daily consumption failed: client=%s date=%s error=%s",
                client_id, today, failure,
                exc_info=True,
            )
            result.errors.append(f"Client {client_id}: {failure}")
        else:
            if change is None:
                logger.info("Daily consumption skipped: client=%s is no longer billable", client_id)
                result.skipped += 1
            else:
                result.processed += 1

    logger.info(
        "Daily consumption finished: date=%s processed=%s skipped=%s errors=%s",
        today, result.processed, result.skipped, len(result.errors),
    )
    return result


def _classify_failure(client_id, exc):
    """Wraps a per-client batch failure in the matching ledger error so its message names the category."""
    if isinstance(exc, BudgetError):
        return exc
    if isinstance(exc, OperationalError):
        return WriteConflict(client_id, str(exc))
    if isinstance(exc, DatabaseError):
        return StoreUnavailable("daily consumption", str(exc))
    return exc


def _consume_one_day(client_id, today):
    if has_processed(client_id, today):
        raise AlreadyProcessed(client_id, today)

    with transaction.atomic():
        client = Client.objects.select_for_update().get(id=client_id)

        # Deactivated or zeroed between selection and lock
        if not client.is_active or client.daily_budget <= ZERO:
            return None

        change = apply_daily_consumption(client.current_balance, client.daily_budget)

        try:
            DailyConsumptionLog.objects.create(
                client_id=client_id,
                consumption_date=today,
                amount=change.amount,
                balance_before=change.balance_before,
                balance_after=change.balance_after,
            )
        except IntegrityError:
            # Another run logged this day between our check and our insert
            raise AlreadyProcessed(client_id, today)

        Client.objects.filter(id=client_id).update(
            current_balance=F("current_balance") - change.amount
        )

        CreditTransaction.objects.create(
            client_id=client_id,
            transaction_type=CreditTransaction.Type.DAILY_CONSUMPTION,
            amount=change.amount,
            balance_after=change.balance_after,
            description=DAILY_CONSUMPTION_DESCRIPTION,
            transaction_date=today,
        )

    logger.info(
        "Daily consumption applied: client=%s date=%s amount=%s balance=%s->%s",
        client_id, today, change.amount, change.balance_before, change.balance_after,
    )
    return change


def post_credit(client_id, amount, description=None, transaction_date=None, acting_user=None) -> CreditResult:
    """
    Adds a manual credit to a client's balance.

    Raises InvalidAmount before touching the store, Client.DoesNotExist for
    an unknown client, WriteConflict when the row stays contended after a
    retry, and StoreUnavailable for any other store failure.
    """
    amount = to_money(amount)
    if amount <= ZERO:
        raise InvalidAmount(amount, "credit amount must be greater than zero")

    transaction_date = transaction_date or processing_date()
    description = description or MANUAL_CREDIT_DESCRIPTION

    for attempt in range(1, CREDIT_ATTEMPTS + 1):
        try:
            return _apply_credit(client_id, amount, description, transaction_date, acting_user)
        except OperationalError as exc:
            if attempt == CREDIT_ATTEMPTS:
                raise WriteConflict(client_id, str(exc))
            logger.warning(
                "Credit write conflict: client=%s attempt=%s error=%s; retrying",
                client_id, attempt, exc,
            )
        except DatabaseError as exc:
            raise StoreUnavailable("post_credit", str(exc))


def _apply_credit(client_id, amount, description, transaction_date, acting_user):
    with transaction.atomic():
        client = Client.objects.select_for_update().get(id=client_id)
        change = apply_credit(client.current_balance, amount)

        # F() keeps the increment on the database value, not the cached one
        Client.objects.filter(id=client_id).update(
            current_balance=F("current_balance") + change.amount
        )
        client.refresh_from_db(fields=["current_balance"])

        entry = CreditTransaction.objects.create(
            client_id=client_id,
            transaction_type=CreditTransaction.Type.CREDIT_ADDED,
            amount=change.amount,
            balance_after=client.current_balance,
            description=description,
            transaction_date=transaction_date,
            created_by=acting_user,
        )

    logger.info(
        "Credit posted: client=%s amount=%s new_balance=%s by=%s",
        client_id, change.amount, client.current_balance,
        getattr(acting_user, "pk", None),
    )
    return CreditResult(client_id=client_id, new_balance=client.current_balance, transaction=entry)


def override_balance(client_id, new_balance, acting_user=None) -> Client:
    """
    Sets a client's balance directly, as the edit form does.

    No CreditTransaction is written, so the ledger total stops matching
    the balance by the size of the override.
    """
    new_balance = to_money(new_balance)
    if new_balance < ZERO:
        raise InvalidAmount(new_balance, "balance must not be negative")

    with transaction.atomic():
        client = Client.objects.select_for_update().get(id=client_id)
        previous = client.current_balance
        client.current_balance = new_balance
        client.save(update_fields=["current_balance", "updated_at"])

    logger.warning(
        "Balance overridden without ledger entry: client=%s balance=%s->%s by=%s",
        client_id, previous, new_balance, getattr(acting_user, "pk", None),
    )
    return client


def transaction_history(client_id, limit=HISTORY_LIMIT):
    return list(
        CreditTransaction.objects
        .filter(client_id=client_id)
        .order_by("-transaction_date", "-created_at")[:limit]
    )


def ledger_total(client_id) -> Decimal:
    """Signed sum of a client's ledger: credits minus daily consumptions."""
    totals = CreditTransaction.objects.filter(client_id=client_id).aggregate(
        credits=Sum("amount", filter=Q(transaction_type=CreditTransaction.Type.CREDIT_ADDED)),
        debits=Sum("amount", filter=Q(transaction_type=CreditTransaction.Type.DAILY_CONSUMPTION)),
    )
    return (totals["credits"] or ZERO) - (totals["debits"] or ZERO)


def portfolio_summary(manager=None):
    clients = Client.objects.all()
    if manager is not None:
        clients = clients.filter(manager=manager)

    stats = clients.aggregate(
        total=Count("id"),
        active=Count("id", filter=Q(is_active=True)),
        low_balance=Count("id", filter=Q(current_balance__lt=F("alert_threshold"))),
        total_balance=Sum("current_balance"),
    )
    stats["total_balance"] = to_money(stats["total_balance"] or ZERO)
    return stats


CLIENT_STATUS_FILTERS = ("all", "active", "low_balance")
MONEY_FIELDS = ("daily_budget", "current_balance", "alert_threshold")


def _parse_flag(field_name, value):
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"true", "1", "yes", "on"}:
        return True
    if text in {"false", "0", "no", "off"}:
        return False
    raise InvalidClientData(field_name, "must be true or false")


def _clean_client_fields(data, partial):
    """Validates form input for a client; with ``partial`` only the fields present are checked."""
    cleaned = {}

    if "name" in data or not partial:
        name = str(data.get("name") or "").strip()
        if not name:
            raise InvalidClientData("name", "is required")
        if len(name) > Client._meta.get_field("name").max_length:
            raise InvalidClientData("name", "is too long")
        cleaned["name"] = name

    if "phone" in data:
        phone = str(data.get("phone") or "").strip() or None
        if phone and len(phone) > Client._meta.get_field("phone").max_length:
            raise InvalidClientData("phone", "is too long")
        cleaned["phone"] = phone

    for field_name, choices in (
        ("payment_method", Client.PaymentMethod.values),
        ("payment_frequency", Client.PaymentFrequency.values),
    ):
        if field_name in data:
            if data[field_name] not in choices:
                raise InvalidClientData(field_name, f"must be one of {', '.join(choices)}")
            cleaned[field_name] = data[field_name]

    if not partial and "daily_budget" not in data:
        raise InvalidClientData("daily_budget", "is required")

    for field_name in MONEY_FIELDS:
        if field_name in data:
            amount = to_money(data[field_name])
            if amount < ZERO:
                raise InvalidAmount(amount, f"{field_name} must not be negative")
            cleaned[field_name] = amount

    if "is_active" in data:
        cleaned["is_active"] = _parse_flag("is_active", data["is_active"])

    return cleaned


def create_client(manager, data) -> Client:
    cleaned = _clean_client_fields(data, partial=False)
    client = Client.objects.create(manager=manager, **cleaned)
    logger.info(
        "Client created: client=%s manager=%s balance=%s daily_budget=%s",
        client.id, manager.pk, client.current_balance, client.daily_budget,
    )
    return client


def update_client(client_id, data, acting_user=None) -> Client:
    """
    Applies an edit-form submission.

    A changed ``current_balance`` goes through override_balance; every
    other field is written as submitted.
    """
    cleaned = _clean_client_fields(data, partial=True)
    new_balance = cleaned.pop("current_balance", None)

    with transaction.atomic():
        client = Client.objects.select_for_update().get(id=client_id)
        for field_name, value in cleaned.items():
            setattr(client, field_name, value)
        if cleaned:
            client.save(update_fields=[*cleaned, "updated_at"])

        if new_balance is not None and new_balance != client.current_balance:
            client = override_balance(client_id, new_balance, acting_user=acting_user)

    logger.info("Client updated: client=%s fields=%s", client_id, sorted(cleaned))
    return client


def delete_client(client_id, acting_user=None):
    """Removes a client together with its ledger and consumption logs."""
    with transaction.atomic():
        client = Client.objects.select_for_update().get(id=client_id)
        client.delete()

    logger.warning(
        "Client deleted with its ledger: client=%s by=%s",
        client_id, getattr(acting_user, "pk", None),
    )


def list_clients(manager=None, search=None, status="all"):
    """Clients ordered by name, optionally narrowed by name search and an ``active`` / ``low_balance`` filter."""
    if status not in CLIENT_STATUS_FILTERS:
        raise InvalidClientData("status", f"must be one of {', '.join(CLIENT_STATUS_FILTERS)}")

    clients = Client.objects.all()
    if manager is not None:
        clients = clients.filter(manager=manager)
    if search and search.strip():
        clients = clients.filter(name__icontains=search.strip())
    if status == "active":
        clients = clients.filter(is_active=True)
    elif status == "low_balance":
        clients = clients.filter(current_balance__lt=F("alert_threshold"))

    return list(clients.order_by("name"))
