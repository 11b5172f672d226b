"""
Create the initial dispatch admin account.

Run once at deploy time (it is idempotent): an existing account with the same
username is left untouched unless --reset-password is given.
"""

import logging
import os

from django.core.management.base import BaseCommand, CommandError

from accounts.models import User

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Create the initial super admin for the dispatch dashboard."

    def add_arguments(self, parser):
        parser.add_argument(
            "--username",
            default=os.getenv("DISPATCH_ADMIN_USERNAME", "admin"),
            help="Admin username (default: $DISPATCH_ADMIN_USERNAME or 'admin').",
        )
        parser.add_argument(
            "--email",
            default=os.getenv("DISPATCH_ADMIN_EMAIL", ""),
            help="Admin email (default: $DISPATCH_ADMIN_EMAIL).",
        )
        parser.add_argument(
            "--password",
            default=os.getenv("DISPATCH_ADMIN_PASSWORD"),
            help="Admin password (default: $DISPATCH_ADMIN_PASSWORD).",
        )
        parser.add_argument(
            "--reset-password",
            action="store_true",
            help="Overwrite the password of an existing admin.",
        )

    def handle(self, *args, **options):
        username = options["username"]
        password = options["password"]

        user = User.objects.filter(username=username).first()
        if user is not None:
            if options["reset_password"]:
                if not password:
                    raise CommandError("--reset-password requires a password")
                user.set_password(password)
                user.save(update_fields=["password"])
                logger.info("Reset password for admin %s", username)
                self.stdout.write(self.style.SUCCESS(f"Password reset for admin '{username}'."))
            else:
                self.stdout.write(self.style.WARNING(f"Admin '{username}' already exists; nothing to do."))
            return

        if not password:
            raise CommandError("A password is required (--password or DISPATCH_ADMIN_PASSWORD)")

        User.objects.create_superuser(
            username=username,
            email=options["email"],
            password=password,
            role="super_admin",
            display_name="Administrator",
        )
        logger.info("Bootstrapped super admin %s", username)
        self.stdout.write(self.style.SUCCESS(f"Created super admin '{username}'."))
