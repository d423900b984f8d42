"""
Команда для отправки напоминаний о сегодняшних занятиях.

Запускать утром через cron:
  0 8 * * * docker exec school-web-1 python manage.py send_lesson_reminders >> /var/log/lesson_reminders.log 2>&1

Напоминание уходит фактическому преподавателю — при замене заменяющему.
"""
import logging
from datetime import date

from django.core.management.base import BaseCommand, CommandError

from school.services.reminders import send_reminders

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Отправляет преподавателям Telegram-напоминания о занятиях на день'

    def add_arguments(self, parser):
        parser.add_argument('--date', help='Дата YYYY-MM-DD (по умолчанию сегодня)')
        parser.add_argument('--lesson', type=int, action='append', dest='lesson_ids',
                            help='ID занятия (можно несколько раз)')

    def handle(self, *args, **options):
        day = None
        if options['date']:
            try:
                day = date.fromisoformat(options['date'])
            except ValueError:
                raise CommandError(f'Некорректная дата: {options["date"]}')

        report = send_reminders(options['lesson_ids'], day=day)

        if not report.sent and not report.skipped:
            self.stdout.write('Нет занятий для напоминаний.')
            return

        for item in report.skipped:
            self.stdout.write(self.style.WARNING(f'  Пропущено занятие {item["lesson_id"]}: {item["reason"]}'))

        self.stdout.write(
            self.style.SUCCESS(
                f'Готово: отправлено {len(report.sent)}, пропущено {len(report.skipped)}.'
            )
        )
