from django.urls import path
from .views import (
    ClientDetailView,
    ClientListCreateView,
    PortfolioSummaryView,
    PostCreditView,
    ProcessDailyConsumptionView,
    TransactionHistoryView,
)

urlpatterns = [
    path("process-daily-consumption/", ProcessDailyConsumptionView.as_view(), name="process-daily-consumption"),
    path("clients/", ClientListCreateView.as_view(), name="client-list"),
    path("clients/<uuid:client_id>/", ClientDetailView.as_view(), name="client-detail"),
    path("clients/<uuid:client_id>/credits/", PostCreditView.as_view(), name="post-credit"),
    path("clients/<uuid:client_id>/transactions/", TransactionHistoryView.as_view(), name="transaction-history"),
    path("summary/", PortfolioSummaryView.as_view(), name="portfolio-summary"),
]
