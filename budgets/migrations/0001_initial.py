import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Client",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("phone", models.CharField(blank=True, max_length=32, null=True)),
                ("payment_method", models.CharField(choices=[("pix", "PIX"), ("boleto", "Boleto")], default="pix", max_length=16)),
                ("payment_frequency", models.CharField(choices=[("weekly", "Weekly"), ("biweekly", "Biweekly"), ("monthly", "Monthly")], default="monthly", max_length=16)),
                ("daily_budget", models.DecimalField(decimal_places=2, max_digits=12)),
                ("current_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("alert_threshold", models.DecimalField(decimal_places=2, default=Decimal("100.00"), max_digits=12)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("manager", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="budget_clients", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(current_balance__gte=0), name="budgets_client_balance_non_negative"),
                    models.CheckConstraint(condition=models.Q(daily_budget__gte=0), name="budgets_client_daily_budget_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CreditTransaction",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("transaction_type", models.CharField(choices=[("credit_added", "Credit added"), ("daily_consumption", "Daily consumption")], max_length=32)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("balance_after", models.DecimalField(decimal_places=2, max_digits=12)),
                ("description", models.TextField(blank=True, null=True)),
                ("transaction_date", models.DateField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("client", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="transactions", to="budgets.client")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-transaction_date", "-created_at"],
                "indexes": [
                    models.Index(fields=["client", "transaction_date"], name="budgets_tx_client_date_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(amount__gte=0), name="budgets_transaction_amount_non_negative"),
                    models.CheckConstraint(condition=models.Q(balance_after__gte=0), name="budgets_transaction_balance_after_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DailyConsumptionLog",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("consumption_date", models.DateField()),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("balance_before", models.DecimalField(decimal_places=2, max_digits=12)),
                ("balance_after", models.DecimalField(decimal_places=2, max_digits=12)),
                ("processed_at", models.DateTimeField(auto_now_add=True)),
                ("client", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="consumption_logs", to="budgets.client")),
            ],
            options={
                "ordering": ["-consumption_date"],
                "constraints": [
                    models.UniqueConstraint(fields=("client", "consumption_date"), name="budgets_consumption_once_per_day"),
                    models.CheckConstraint(condition=models.Q(amount__gte=0), name="budgets_consumption_amount_non_negative"),
                ],
            },
        ),
    ]
