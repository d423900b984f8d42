"""Напоминания преподавателям о занятиях. Получатель: фактический преподаватель (с учётом замены)."""
import logging
from dataclasses import dataclass, field
from datetime import date
from zoneinfo import ZoneInfo

from django.utils import timezone

from school.models import Attendance, Lesson, Student
from school.services.replacements import effective_teacher_for
from school.services.telegram import TelegramNotificationService

logger = logging.getLogger(__name__)

ATTENDANCE_MARKS = {
    Attendance.Status.PRESENT: '✅',
    Attendance.Status.ABSENT: '❌',
    Attendance.Status.MAKEUP_PLANNED: '🔁',
    Attendance.Status.MAKEUP_DONE: '☑️',
}

ATTENDANCE_PROMPT = '👥 <b>Відмітьте присутність:</b>'


@dataclass
class ReminderReport:
    sent: list = field(default_factory=list)
    skipped: list = field(default_factory=list)


def lesson_students(lesson: Lesson) -> list[Student]:
    return list(
        Student.objects.filter(
            memberships__group_id=lesson.group_id,
            memberships__is_active=True,
            is_active=True,
        ).order_by('full_name')
    )


def attendance_lines(lesson: Lesson) -> str:
    """Список учеников с отметками: «1. ✅ Іван Петренко»."""
    marks = dict(Attendance.objects.filter(lesson=lesson).values_list('student_id', 'status'))
    lines = []
    for index, student in enumerate(lesson_students(lesson), start=1):
        mark = ATTENDANCE_MARKS.get(marks.get(student.pk), '⬜')
        lines.append(f"{index}. {mark} {student.full_name}")
    return '\n'.join(lines) if lines else 'Немає активних учнів у групі'


def attendance_keyboard(lesson: Lesson) -> dict:
    """Кнопки присутній/відсутній на каждого ученика + тема и нотатки."""
    rows = []
    for student in lesson_students(lesson):
        rows.append([
            {'text': f"✅ {student.full_name}", 'callback_data': f"attendance_{lesson.pk}_{student.pk}_present"},
            {'text': '❌', 'callback_data': f"attendance_{lesson.pk}_{student.pk}_absent"},
        ])
    rows.append([
        {'text': '📝 Тема', 'callback_data': f"topic_{lesson.pk}"},
        {'text': '🗒 Нотатки', 'callback_data': f"notes_{lesson.pk}"},
    ])
    return {'inline_keyboard': rows}


def reminder_text(lesson: Lesson) -> str:
    tz = ZoneInfo(lesson.group.timezone)
    start = lesson.start_datetime.astimezone(tz)
    end = lesson.end_datetime.astimezone(tz)
    return (
        f"📚 <b>Нагадування про заняття</b>\n\n"
        f"Група: {lesson.group.title}\n"
        f"Час: {start:%H:%M} - {end:%H:%M}\n"
        f"Дата: {lesson.lesson_date:%d.%m.%Y}\n\n"
        f"{ATTENDANCE_PROMPT}\n"
        f"{attendance_lines(lesson)}"
    )


def send_reminders(lesson_ids: list[int] | None = None, *, day: date | None = None,
                   service: TelegramNotificationService | None = None) -> ReminderReport:
    """
    Рассылает напоминания по занятиям.

    Без lesson_ids: по всем незаконченным занятиям дня day (по умолчанию сегодня).
    Отменённые занятия и преподаватели без Telegram попадают в skipped.
    """
    lessons = Lesson.objects.select_related('group__teacher', 'replacement__replacement_teacher')
    if lesson_ids is not None:
        lessons = lessons.filter(pk__in=lesson_ids)
    else:
        lessons = lessons.filter(lesson_date=day or timezone.localdate())

    service = service or TelegramNotificationService()
    report = ReminderReport()
    found = set()

    for lesson in lessons.order_by('start_datetime'):
        found.add(lesson.pk)
        if lesson.status == Lesson.Status.CANCELED:
            report.skipped.append({'lesson_id': lesson.pk, 'reason': 'Заняття скасовано'})
            continue

        teacher = effective_teacher_for(lesson)
        if not teacher.telegram_id:
            report.skipped.append({
                'lesson_id': lesson.pk,
                'reason': f'Telegram ID викладача ({teacher.name}) не знайдено',
            })
            continue

        ok = service.notify_lesson_reminder(
            telegram_id=teacher.telegram_id,
            text=reminder_text(lesson),
            reply_markup=attendance_keyboard(lesson),
        )
        if ok:
            report.sent.append({'lesson_id': lesson.pk, 'teacher': teacher.name, 'group': lesson.group.title})
            logger.info(f'Напоминание отправлено: {teacher.name} → занятие {lesson.public_id}')
        else:
            report.skipped.append({
                'lesson_id': lesson.pk,
                'reason': f'Не вдалося надіслати повідомлення викладачу {teacher.name}',
            })
            logger.warning(f'Не удалось отправить напоминание: {teacher.name} (tg_id={teacher.telegram_id})')

    for lesson_id in lesson_ids or []:
        if lesson_id not in found:
            report.skipped.append({'lesson_id': lesson_id, 'reason': 'Заняття не знайдено'})

    return report
