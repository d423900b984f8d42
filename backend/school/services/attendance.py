import logging
from dataclasses import dataclass
from datetime import date

from django.db import transaction
from django.utils import timezone

from school.exceptions import NotFound, PastLessonLocked, ValidationError
from school.models import Attendance, Lesson, Student
from school.services.audit import Actor, record_change
from school.services.lifecycle import mark_done

logger = logging.getLogger(__name__)

# Внешний словарь статусов → хранимый. «sick» хранится как «absent».
EXTERNAL_STATUS_MAP = {
    'present': Attendance.Status.PRESENT,
    'absent': Attendance.Status.ABSENT,
    'sick': Attendance.Status.ABSENT,
    'makeup_planned': Attendance.Status.MAKEUP_PLANNED,
    'makeup_done': Attendance.Status.MAKEUP_DONE,
}


@dataclass(frozen=True)
class AttendanceResult:
    status: str
    lesson_status: str
    lesson_completed: bool = False


def normalize_status(raw_status: str) -> str:
    try:
        return EXTERNAL_STATUS_MAP[(raw_status or '').strip().lower()]
    except KeyError:
        raise ValidationError(f'Невірний статус відвідуваності: {raw_status}')


@transaction.atomic
def set_attendance(lesson_id: int, student_id: int, raw_status: str, actor: Actor,
                   *, today: date | None = None) -> AttendanceResult:
    """
    Отмечает ученика на занятии.

    Запись одна на пару (занятие, ученик), повторный вызов перезаписывает статус.
    Первая отметка на запланированном занятии переводит его в «проведено».
    Из Telegram прошедшие занятия менять нельзя, из админки можно.
    """
    status = normalize_status(raw_status)

    try:
        lesson = Lesson.objects.select_for_update().get(pk=lesson_id)
    except Lesson.DoesNotExist:
        raise NotFound('Заняття не знайдено')

    if not Student.objects.filter(pk=student_id).exists():
        raise NotFound('Учня не знайдено')

    today = today or timezone.localdate()
    if actor.is_telegram and lesson.lesson_date < today:
        logger.warning(f"Отметка прошедшего занятия {lesson.public_id} из Telegram отклонена ({actor.name})")
        raise PastLessonLocked()

    previous = (
        Attendance.objects
        .filter(lesson_id=lesson.pk, student_id=student_id)
        .values_list('status', flat=True)
        .first()
    )

    Attendance.objects.bulk_create(
        [Attendance(
            lesson_id=lesson.pk,
            student_id=student_id,
            status=status,
            updated_by=actor.user_id,
            updated_at=timezone.now(),
        )],
        update_conflicts=True,
        unique_fields=['lesson', 'student'],
        update_fields=['status', 'updated_by', 'updated_at'],
    )

    if previous != status:
        record_change(lesson.pk, f'attendance:{student_id}', previous, status, actor)

    completed = False
    if lesson.status == Lesson.Status.SCHEDULED:
        lesson = mark_done(lesson.pk, actor)
        completed = True
        logger.info(f"Занятие {lesson.public_id} отмечено проведённым по первой отметке посещаемости")

    logger.info(f"Посещаемость: занятие {lesson.public_id}, ученик {student_id} = {status} ({actor.via})")

    return AttendanceResult(status=status, lesson_status=lesson.status, lesson_completed=completed)
