# Recalculate Ratings Management Command
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from core.models import Product, User
from core.ratings import product_aggregate, seller_aggregate

TOLERANCE = 1e-9


class Command(BaseCommand):
    help = 'Recalculates product and seller ratings from the review table.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report drifted aggregates without saving changes.',
        )
        parser.add_argument(
            '--products-only',
            action='store_true',
            help='Recalculate only product ratings.',
        )
        parser.add_argument(
            '--sellers-only',
            action='store_true',
            help='Recalculate only seller ratings.',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=1000,
            help='Batch size for bulk processing.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        batch_size = options['batch_size']

        if options['products_only'] and options['sellers_only']:
            raise CommandError('--products-only and --sellers-only are mutually exclusive.')
        if batch_size < 1:
            raise CommandError('--batch-size must be at least 1.')

        drifted = 0
        if not options['sellers_only']:
            drifted += self.recalculate(Product, 'products', product_aggregate, dry_run, batch_size)
        if not options['products_only']:
            drifted += self.recalculate(User, 'sellers', seller_aggregate, dry_run, batch_size)

        if dry_run:
            self.stdout.write(self.style.SUCCESS(f'Dry run completed. {drifted} aggregates would change.'))
        else:
            self.stdout.write(self.style.SUCCESS(f'Recalculation completed successfully. {drifted} aggregates fixed.'))

    def recalculate(self, model, label, compute, dry_run, batch_size):
        self.stdout.write(f'Recalculating {label} ratings...')
        count = 0
        drifted = 0

        for batch in self.pk_batches(model, batch_size):
            for pk in batch:
                count += 1
                if self.refresh_row(model, pk, compute, dry_run):
                    drifted += 1

        self.stdout.write(f'Processed {count} {label} total, {drifted} out of date.')
        return drifted

    def pk_batches(self, model, batch_size):
        last_pk = 0
        while True:
            batch = list(
                model.objects.filter(pk__gt=last_pk).order_by('pk').values_list('pk', flat=True)[:batch_size]
            )
            if not batch:
                return
            yield batch
            last_pk = batch[-1]

    def refresh_row(self, model, pk, compute, dry_run):
        """
        Compare one row with its reviews and fix it.

        The row stays locked from the read to the write, so a review saved
        meanwhile refreshes the row after this write and not before it.
        """
        with transaction.atomic():
            obj = model.objects.select_for_update().only('id', 'rating_average', 'rating_count').filter(pk=pk).first()
            if obj is None:
                return False

            result = compute(pk)
            if abs(obj.rating_average - result.average) <= TOLERANCE and obj.rating_count == result.count:
                return False

            if dry_run:
                self.stdout.write(
                    f'  [DRY-RUN] {model.__name__} {pk}: rating {obj.rating_average} -> {result.average}, '
                    f'count {obj.rating_count} -> {result.count}'
                )
            else:
                model.objects.filter(pk=pk).update(rating_average=result.average, rating_count=result.count)
            return True
