"""Management command to verify stored booking totals against their lines."""

from django.core.management.base import BaseCommand

from django_freight.aggregate import compute_booking_total, recompute_booking_total
from django_freight.models import Booking


class Command(BaseCommand):
    help = 'Report bookings whose stored total differs from the sum of their lines'

    def add_arguments(self, parser):
        parser.add_argument(
            '--organization',
            default=None,
            help='Only check bookings of this organization code'
        )
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Recompute and store the total of every mismatched booking'
        )

    def handle(self, *args, **options):
        qs = Booking.objects.all()
        if options['organization']:
            qs = qs.filter(organization__code=options['organization'])

        checked = 0
        mismatched = []
        for booking in qs.iterator():
            checked += 1
            expected = compute_booking_total(booking.pk)
            if booking.total_amount != expected:
                mismatched.append((booking, expected))

        for booking, expected in mismatched:
            self.stdout.write(
                self.style.WARNING(
                    f'{booking.tracking_number}: stored {booking.total_amount}, lines sum to {expected}'
                )
            )

        if options['fix']:
            for booking, _ in mismatched:
                recompute_booking_total(booking)
            self.stdout.write(
                self.style.SUCCESS(f'Checked {checked} bookings, fixed {len(mismatched)}')
            )
        elif mismatched:
            self.stdout.write(
                self.style.ERROR(f'Checked {checked} bookings, {len(mismatched)} inconsistent')
            )
        else:
            self.stdout.write(self.style.SUCCESS(f'Checked {checked} bookings, all consistent'))
