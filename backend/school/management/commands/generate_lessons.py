"""
Генерация занятий по недельному расписанию групп.

Использование:
    python manage.py generate_lessons                  # все активные группы, 8 недель
    python manage.py generate_lessons --group 12 --weeks 4
    python manage.py generate_lessons --months 1       # до конца следующего месяца

Повторный запуск безопасен: существующие занятия пропускаются.
"""
import logging

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from school.exceptions import SchoolError
from school.services.scheduling import generate_for_all, generate_for_group

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Создаёт недостающие занятия по расписанию групп'

    def add_arguments(self, parser):
        parser.add_argument('--group', type=int, help='ID группы (по умолчанию все активные)')
        parser.add_argument('--weeks', type=int, default=settings.LESSON_GENERATION_WEEKS_AHEAD)
        parser.add_argument('--months', type=int, default=None,
                            help='Окно по месяцам: с 1-го числа текущего до конца месяца +N')

    def handle(self, *args, **options):
        weeks = options['weeks']

        if options['group']:
            try:
                result = generate_for_group(options['group'], weeks_ahead=weeks)
            except SchoolError as e:
                raise CommandError(e.message)
            self.stdout.write(self.style.SUCCESS(
                f'Группа {options["group"]}: создано {result.generated}, пропущено {result.skipped}'
            ))
            return

        try:
            results = generate_for_all(weeks_ahead=weeks, months_ahead=options['months'])
        except SchoolError as e:
            raise CommandError(e.message)

        for r in results:
            if r.ok:
                self.stdout.write(f'  OK группа {r.group_id}: +{r.generated}, пропущено {r.skipped}')
            else:
                self.stdout.write(self.style.ERROR(f'  ERR группа {r.group_id}: {r.error}'))

        self.stdout.write(self.style.SUCCESS(
            f'\nГотово:\n'
            f'  Групп: {len(results)}\n'
            f'  Создано занятий: {sum(r.generated for r in results)}\n'
            f'  Пропущено (уже были): {sum(r.skipped for r in results)}\n'
            f'  Групп с ошибками: {sum(1 for r in results if not r.ok)}'
        ))
