from django.core.management.base import BaseCommand

from matchmaking.services import get_matchmaking_service


class Command(BaseCommand):
    help = "Applies due time-driven session transitions (open → in_progress → completed)"

    def handle(self, *args, **options):
        applied = get_matchmaking_service().advance_lifecycle()

        for session_id, new_status in applied:
            self.stdout.write(f"Session {session_id} → {new_status}")

        self.stdout.write(self.style.SUCCESS(f"Advanced {len(applied)} session(s)"))
