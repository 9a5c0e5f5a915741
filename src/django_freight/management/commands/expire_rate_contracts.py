"""Management command to expire rate contracts past their validity window."""

from datetime import date

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from django_freight.contracts import expire_rate_contracts
from django_freight.models import RateContract
from django_freight.states import ContractStatus


class Command(BaseCommand):
    help = 'Mark active rate contracts whose valid_until has passed as expired'

    def add_arguments(self, parser):
        parser.add_argument(
            '--as-of',
            default=None,
            help='Expire contracts that ended before this date (YYYY-MM-DD, default: today)'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show contracts that would be expired without changing them'
        )

    def handle(self, *args, **options):
        if options['as_of']:
            try:
                as_of = date.fromisoformat(options['as_of'])
            except ValueError:
                raise CommandError(f"Invalid --as-of date: {options['as_of']}")
        else:
            as_of = timezone.localdate()

        if options['dry_run']:
            qs = RateContract.objects.filter(status=ContractStatus.ACTIVE, valid_until__lt=as_of)
            self.stdout.write(f'Would expire {qs.count()} rate contracts (ended before {as_of})')
            for contract in qs.order_by('valid_until'):
                self.stdout.write(f'  - {contract.contract_number}: valid until {contract.valid_until}')
            return

        count = expire_rate_contracts(as_of=as_of)
        self.stdout.write(self.style.SUCCESS(f'Expired {count} rate contracts'))
