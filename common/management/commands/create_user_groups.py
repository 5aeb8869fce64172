from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand

from common.roles import ROLE_PERMISSIONS, UserRole


class Command(BaseCommand):
    help = "Create the back-office role groups: admin, manager"

    def handle(self, *args, **options):
        for role in UserRole:
            group, created = Group.objects.get_or_create(name=role.value)
            granted = len(ROLE_PERMISSIONS[role.value])
            if created:
                self.stdout.write(self.style.SUCCESS(f"Created group '{group.name}' ({granted} permission codes)"))
            else:
                self.stdout.write(f"Group '{group.name}' already exists ({granted} permission codes)")
        self.stdout.write(self.style.SUCCESS("User groups are ready."))
