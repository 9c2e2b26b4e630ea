from datetime import date

from django.core.management.base import BaseCommand, CommandError

from budgets.application.use_cases import process_daily_consumption
from budgets.domain.exceptions import StoreUnavailable


class Command(BaseCommand):
    help = "Debit one day of budget from every active client. Safe to run more than once per day."

    def add_arguments(self, parser):
        parser.add_argument(
            "--date",
            dest="consumption_date",
            help="Calendar date to process (YYYY-MM-DD). Defaults to today in the ledger timezone.",
        )

    def handle(self, *args, **options):
        consumption_date = None
        if options["consumption_date"]:
            try:
                consumption_date = date.fromisoformat(options["consumption_date"])
            except ValueError:
                raise CommandError("--date must be an ISO date (YYYY-MM-DD).")

        try:
            result = process_daily_consumption(today=consumption_date)
        except StoreUnavailable as exc:
            raise CommandError(str(exc))

        self.stdout.write(
            f"{result.date.isoformat()}: processed={result.processed} "
            f"skipped={result.skipped} errors={len(result.errors)}"
        )
        for error in result.errors:
            self.stderr.write(error)
