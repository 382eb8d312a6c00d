from datetime import timedelta

from django.core.management.base import BaseCommand

from checkout import container


class Command(BaseCommand):
    help = "Clear carts whose items were last updated more than --minutes ago."

    def add_arguments(self, parser):
        parser.add_argument("--minutes", type=int, default=30, help="Age in minutes (default: 30)")
        parser.add_argument("--dry-run", action="store_true", help="List carts without clearing them")

    def handle(self, *args, **options):
        minutes = options["minutes"]
        dry_run = options["dry_run"]
        cleared = container.cart_service().clear_stale(timedelta(minutes=minutes), dry_run=dry_run)

        for owner in cleared:
            self.stdout.write(f"  {owner.key}")
        verb = "Would clear" if dry_run else "Cleared"
        self.stdout.write(self.style.SUCCESS(f"{verb} {len(cleared)} cart(s) older than {minutes} minutes"))
