import logging

from django.db import transaction

from school.exceptions import Forbidden, NotFound, ValidationError
from school.models import Lesson, Teacher, TeacherReplacement
from school.services.audit import Actor, record_change

logger = logging.getLogger(__name__)


def _get_lesson(lesson_id: int) -> Lesson:
    try:
        return Lesson.objects.select_related('group__teacher', 'replacement__replacement_teacher').get(pk=lesson_id)
    except Lesson.DoesNotExist:
        raise NotFound('Заняття не знайдено')


def effective_teacher_for(lesson: Lesson) -> Teacher:
    """Преподаватель занятия с учётом замены."""
    try:
        return lesson.replacement.replacement_teacher
    except TeacherReplacement.DoesNotExist:
        return lesson.group.teacher


def effective_teacher(lesson_id: int) -> Teacher:
    return effective_teacher_for(_get_lesson(lesson_id))


def effective_teacher_id(lesson_id: int) -> int:
    return effective_teacher(lesson_id).pk


def can_manage_lesson(lesson: Lesson, teacher: Teacher | None = None, is_admin: bool = False) -> bool:
    """Админ может всегда, преподаватель только если он фактический преподаватель занятия."""
    if is_admin:
        return True
    if teacher is None:
        return False
    return effective_teacher_for(lesson).pk == teacher.pk


def ensure_lesson_access(lesson_id: int, teacher: Teacher | None = None, is_admin: bool = False) -> Lesson:
    lesson = _get_lesson(lesson_id)
    if not can_manage_lesson(lesson, teacher=teacher, is_admin=is_admin):
        raise Forbidden()
    return lesson


@transaction.atomic
def replace_teacher(lesson_id: int, replacement_teacher_id: int, actor: Actor, reason: str = '') -> TeacherReplacement:
    """Назначает замену на занятие. Повторная замена перезаписывает предыдущую."""
    try:
        lesson = Lesson.objects.select_for_update().select_related('group').get(pk=lesson_id)
    except Lesson.DoesNotExist:
        raise NotFound('Заняття не знайдено')

    try:
        replacement = Teacher.objects.get(pk=replacement_teacher_id, is_active=True)
    except Teacher.DoesNotExist:
        raise ValidationError('Викладача не знайдено')

    original_id = lesson.group.teacher_id
    if replacement.pk == original_id:
        raise ValidationError('Новий викладач співпадає з викладачем групи')

    previous = TeacherReplacement.objects.filter(lesson_id=lesson.pk).values_list(
        'replacement_teacher_id', flat=True
    ).first()

    row, _ = TeacherReplacement.objects.update_or_create(
        lesson_id=lesson.pk,
        defaults={
            'original_teacher_id': original_id,
            'replacement_teacher': replacement,
            'replaced_by': actor.user_id,
            'reason': reason or '',
        },
    )

    if previous != replacement.pk:
        record_change(lesson.pk, 'teacher', previous or original_id, replacement.pk, actor)

    logger.info(f"Замена на занятии {lesson.public_id}: {replacement.name} ({actor.name})")
    return row
