"""
API Layer — Prepaid Budget Endpoints (Django REST Framework)

Thin controllers: parse and coerce input, delegate to the use cases in
budgets.application.use_cases, and translate domain exceptions into HTTP
responses. No balance arithmetic and no transaction handling live here.

Exception mapping:

- InvalidAmount / InvalidClientData / malformed input -> 400
- Client.DoesNotExist                                  -> 404
- WriteConflict                                        -> 409
- StoreUnavailable                                     -> 503
"""

from datetime import date

from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from budgets.application.use_cases import (
    create_client,
    delete_client,
    list_clients,
    portfolio_summary,
    post_credit,
    process_daily_consumption,
    transaction_history,
    update_client,
)
from budgets.domain.exceptions import InvalidAmount, InvalidClientData, StoreUnavailable, WriteConflict
from budgets.models import Client


def _acting_user(request):
    user = getattr(request, "user", None)
    if user is not None and getattr(user, "is_authenticated", False):
        return user
    return None


def _client_payload(client):
    return {
        "id": str(client.id),
        "manager_id": client.manager_id,
        "name": client.name,
        "phone": client.phone,
        "payment_method": client.payment_method,
        "payment_frequency": client.payment_frequency,
        "daily_budget": str(client.daily_budget),
        "current_balance": str(client.current_balance),
        "alert_threshold": str(client.alert_threshold),
        "is_active": client.is_active,
        "days_remaining": client.days_remaining,
        "is_low_balance": client.is_low_balance,
        "created_at": client.created_at.isoformat(),
        "updated_at": client.updated_at.isoformat(),
    }


class ProcessDailyConsumptionView(APIView):
    """
    POST /api/budgets/process-daily-consumption/

    Manual trigger for the daily batch. Repeating it on the same day is a no-op.
    """

    def post(self, request):
        try:
            result = process_daily_consumption()
        except StoreUnavailable as exc:
            return Response(
                {"success": False, "error": str(exc)},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        return Response(
            {
                "success": True,
                "date": result.date.isoformat(),
                "results": result.as_dict(),
            },
            status=status.HTTP_200_OK,
        )


class PostCreditView(APIView):
    """POST /api/budgets/clients/<client_id>/credits/"""

    def post(self, request, client_id):
        amount = request.data.get("amount")
        description = request.data.get("description") or None
        raw_date = request.data.get("transaction_date")

        if amount in (None, ""):
            return Response(
                {"error": "amount is required."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        transaction_date = None
        if raw_date:
            try:
                transaction_date = date.fromisoformat(str(raw_date))
            except ValueError:
                return Response(
                    {"error": "transaction_date must be an ISO date (YYYY-MM-DD)."},
                    status=status.HTTP_400_BAD_REQUEST,
                )

        try:
            result = post_credit(
                client_id,
                amount,
                description=description,
                transaction_date=transaction_date,
                acting_user=_acting_user(request),
            )
        except InvalidAmount as exc:
            return Response({"error": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except Client.DoesNotExist:
            return Response(
                {"error": "Client not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        except WriteConflict as exc:
            return Response({"error": str(exc)}, status=status.HTTP_409_CONFLICT)
        except StoreUnavailable as exc:
            return Response({"error": str(exc)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response(
            {
                "client_id": str(result.client_id),
                "new_balance": str(result.new_balance),
                "transaction_id": str(result.transaction.id),
            },
            status=status.HTTP_201_CREATED,
        )


class TransactionHistoryView(APIView):
    """GET /api/budgets/clients/<client_id>/transactions/"""

    def get(self, request, client_id):
        if not Client.objects.filter(id=client_id).exists():
            return Response(
                {"error": "Client not found."},
                status=status.HTTP_404_NOT_FOUND,
            )

        entries = [
            {
                "id": str(entry.id),
                "transaction_type": entry.transaction_type,
                "amount": str(entry.amount),
                "balance_after": str(entry.balance_after),
                "description": entry.description,
                "transaction_date": entry.transaction_date.isoformat(),
                "created_at": entry.created_at.isoformat(),
            }
            for entry in transaction_history(client_id)
        ]
        return Response(entries, status=status.HTTP_200_OK)


class PortfolioSummaryView(APIView):
    """GET /api/budgets/summary/"""

    def get(self, request):
        stats = portfolio_summary(manager=_acting_user(request))
        stats["total_balance"] = str(stats["total_balance"])
        return Response(stats, status=status.HTTP_200_OK)


class ClientListCreateView(APIView):
    """
    GET  /api/budgets/clients/?search=<name>&status=all|active|low_balance
    POST /api/budgets/clients/

    The new client belongs to the authenticated user, or to ``manager_id``
    when the request carries no user.
    """

    def get(self, request):
        try:
            clients = list_clients(
                manager=_acting_user(request),
                search=request.query_params.get("search"),
                status=request.query_params.get("status") or "all",
            )
        except InvalidClientData as exc:
            return Response({"error": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return Response([_client_payload(client) for client in clients], status=status.HTTP_200_OK)

    def post(self, request):
        manager = _acting_user(request)
        if manager is None:
            manager_id = request.data.get("manager_id")
            if not manager_id:
                return Response(
                    {"error": "manager_id is required."},
                    status=status.HTTP_400_BAD_REQUEST,
                )
            try:
                manager = get_user_model().objects.get(pk=manager_id)
            except (get_user_model().DoesNotExist, ValueError, TypeError):
                return Response(
                    {"error": "Manager not found."},
                    status=status.HTTP_400_BAD_REQUEST,
                )

        try:
            client = create_client(manager, request.data)
        except (InvalidAmount, InvalidClientData) as exc:
            return Response({"error": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(_client_payload(client), status=status.HTTP_201_CREATED)


class ClientDetailView(APIView):
    """GET / PATCH / DELETE /api/budgets/clients/<client_id>/"""

    def get(self, request, client_id):
        try:
            client = Client.objects.get(id=client_id)
        except Client.DoesNotExist:
            return Response(
                {"error": "Client not found."},
                status=status.HTTP_404_NOT_FOUND,
            )

        return Response(_client_payload(client), status=status.HTTP_200_OK)

    def patch(self, request, client_id):
        try:
            client = update_client(client_id, request.data, acting_user=_acting_user(request))
        except (InvalidAmount, InvalidClientData) as exc:
            return Response({"error": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except Client.DoesNotExist:
            return Response(
                {"error": "Client not found."},
                status=status.HTTP_404_NOT_FOUND,
            )

        return Response(_client_payload(client), status=status.HTTP_200_OK)

    def delete(self, request, client_id):
        try:
            delete_client(client_id, acting_user=_acting_user(request))
        except Client.DoesNotExist:
            return Response(
                {"error": "Client not found."},
                status=status.HTTP_404_NOT_FOUND,
            )

        return Response(status=status.HTTP_204_NO_CONTENT)
