from django.urls import include, path

urlpatterns = [
    path("api/budgets/", include("budgets.urls")),
]
