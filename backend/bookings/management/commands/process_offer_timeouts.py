from django.core.management.base import BaseCommand

from services.matching import process_offer_timeouts


class Command(BaseCommand):
    help = "Expire job offers whose response window has closed and offer the booking to the next technician."

    def handle(self, *args, **options):
        expired_count, dispatched_count = process_offer_timeouts()

        self.stdout.write(
            self.style.SUCCESS(
                f"Expired {expired_count} offer(s); dispatched next technician for {dispatched_count} booking(s)."
            )
        )
