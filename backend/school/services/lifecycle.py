"""
Жизненный цикл занятия.

scheduled → done | canceled. Назад в scheduled дороги нет.
done принимает правки темы и нотаток без смены статуса,
canceled конечный: правки содержимого отклоняются.
"""
import logging
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone

from school.exceptions import InvalidTransition, NotFound, ValidationError
from school.models import Lesson
from school.services.audit import Actor, record_change

logger = logging.getLogger(__name__)

UNSET = object()

AUDITED_FIELDS = ('topic', 'notes', 'status')

# Допустимые переходы: (из, в)
ALLOWED_TRANSITIONS = {
    (Lesson.Status.SCHEDULED, Lesson.Status.DONE),
    (Lesson.Status.SCHEDULED, Lesson.Status.CANCELED),
}


@dataclass
class LessonPatch:
    """Набор необязательных изменений занятия. UNSET: поле не трогаем."""

    topic: object = UNSET
    notes: object = UNSET
    status: object = UNSET

    def changes(self) -> dict:
        return {
            name: getattr(self, name)
            for name in AUDITED_FIELDS
            if getattr(self, name) is not UNSET
        }


def _check_transition(lesson: Lesson, target: str) -> bool:
    """True, если статус меняется; False при повторе того же статуса."""
    if target not in Lesson.Status.values:
        raise ValidationError(f'Невірний статус: {target}')

    if target == lesson.status:
        return False

    if (lesson.status, target) not in ALLOWED_TRANSITIONS:
        raise InvalidTransition(
            f'Заняття має статус «{lesson.status}», перехід у «{target}» неможливий'
        )
    return True


def _provenance(changes: dict, actor: Actor, now) -> dict:
    """
    Поля авторства для одного перехода.

    Тема и нотатки пишут topic_set_*/notes_set_*, завершение занятия пишет
    reported_*. Оба набора считаются здесь и только здесь.
    """
    fields = {}
    if 'topic' in changes:
        fields.update(topic_set_by=actor.user_id, topic_set_at=now)
    if 'notes' in changes:
        fields.update(notes_set_by=actor.user_id, notes_set_at=now)
    if changes.get('status') == Lesson.Status.DONE:
        fields.update(reported_by=actor.user_id, reported_at=now, reported_via=actor.via)
    return fields


def _lock_lesson(lesson_id: int) -> Lesson:
    try:
        return Lesson.objects.select_for_update().get(pk=lesson_id)
    except Lesson.DoesNotExist:
        raise NotFound('Заняття не знайдено')


@transaction.atomic
def apply_patch(lesson_id: int, patch: LessonPatch, actor: Actor) -> Lesson:
    """
    Применяет патч к занятию одним UPDATE.

    По каждому реально изменившемуся полю пишется запись в журнал.
    """
    lesson = _lock_lesson(lesson_id)
    requested = patch.changes()

    changes = {}
    if 'status' in requested and _check_transition(lesson, requested['status']):
        changes['status'] = requested['status']

    content = {k: v for k, v in requested.items() if k in ('topic', 'notes')}
    if content and lesson.status == Lesson.Status.CANCELED and changes.get('status') is None:
        raise InvalidTransition('Заняття скасовано, зміни неможливі')
    if content and changes.get('status') == Lesson.Status.CANCELED:
        raise InvalidTransition('Не можна змінювати тему чи нотатки під час скасування')

    for name, value in content.items():
        if value is not None and not isinstance(value, str):
            raise ValidationError(f'Поле {name} має бути рядком')
        if value != getattr(lesson, name):
            changes[name] = value

    if not changes:
        return lesson

    now = timezone.now()
    updates = {**changes, **_provenance(changes, actor, now), 'updated_at': now}

    for name, value in changes.items():
        record_change(lesson.pk, name, getattr(lesson, name), value, actor)

    Lesson.objects.filter(pk=lesson.pk).update(**updates)
    lesson.refresh_from_db()

    logger.info(f"Занятие {lesson.public_id} обновлено ({', '.join(changes)}), {actor.name} via {actor.via}")
    return lesson


def set_topic(lesson_id: int, text: str | None, actor: Actor) -> Lesson:
    return apply_patch(lesson_id, LessonPatch(topic=text), actor)


def set_notes(lesson_id: int, text: str | None, actor: Actor) -> Lesson:
    return apply_patch(lesson_id, LessonPatch(notes=text), actor)


def mark_done(lesson_id: int, actor: Actor) -> Lesson:
    """scheduled → done. Повторный вызов на проведённом занятии ничего не делает."""
    return apply_patch(lesson_id, LessonPatch(status=Lesson.Status.DONE), actor)


def cancel(lesson_id: int, actor: Actor) -> Lesson:
    """scheduled → canceled. Проведённое занятие отменить нельзя."""
    return apply_patch(lesson_id, LessonPatch(status=Lesson.Status.CANCELED), actor)
