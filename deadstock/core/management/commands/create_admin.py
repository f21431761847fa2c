from django.core.management.base import BaseCommand, CommandError

from deadstock.core.models import User


class Command(BaseCommand):
    help = 'Create (or promote) an ADMIN user for the register'

    def add_arguments(self, parser):
        parser.add_argument('--email', required=True)
        parser.add_argument('--password', required=True)
        parser.add_argument('--name', default='Administrator')

    def handle(self, *args, **options):
        email = options['email'].strip().lower()
        if not email:
            raise CommandError('An email is required')

        user = User.objects.filter(email=email).first()
        created = user is None
        if created:
            user = User(email=email, username=email.split('@')[0], name=options['name'])

        user.role = User.ROLE_ADMIN
        user.department = 'ADMIN'
        user.is_staff = True
        user.is_active = True
        user.set_password(options['password'])
        user.save()

        verb = 'Created' if created else 'Updated'
        self.stdout.write(self.style.SUCCESS(f"{verb} admin user {email}"))
