from django.core.management.base import BaseCommand

from deadstock.reports.services import DEFAULT_TEMPLATES, seed_default_templates


class Command(BaseCommand):
    help = 'Install the default report templates (existing templates are kept)'

    def handle(self, *args, **options):
        created = seed_default_templates()
        self.stdout.write(self.style.SUCCESS(
            f"Report templates: {created} created, {len(DEFAULT_TEMPLATES) - created} already present"
        ))
