import logging
from dataclasses import dataclass

from school.models import Channel, LessonChangeLog

logger = logging.getLogger(__name__)


def telegram_sentinel(telegram_id: str | int) -> int:
    """Отрицательный id для автора, известного только по Telegram."""
    return -abs(int(telegram_id))


@dataclass(frozen=True)
class Actor:
    """
    Кто меняет занятие.

    user_id — id пользователя Django, либо отрицательный telegram_id,
    если у преподавателя нет учётной записи в админке.
    """

    user_id: int | None
    name: str
    external_id: str = ''
    via: str = Channel.ADMIN

    def __post_init__(self):
        if not self.name:
            raise ValueError('Actor.name обязателен')
        if self.via not in Channel.values:
            raise ValueError(f'Неизвестный канал: {self.via}')

    @property
    def is_telegram(self) -> bool:
        return self.via == Channel.TELEGRAM

    @classmethod
    def admin(cls, user) -> 'Actor':
        name = user.get_full_name() or user.get_username()
        return cls(user_id=user.pk, name=name, via=Channel.ADMIN)

    @classmethod
    def telegram(cls, teacher, user_data: dict | None = None) -> 'Actor':
        user_data = user_data or {}
        telegram_id = str(teacher.telegram_id or user_data.get('telegram_id') or '')
        if teacher.user_id:
            user_id = teacher.user_id
        elif telegram_id:
            user_id = telegram_sentinel(telegram_id)
        else:
            user_id = None
        name = teacher.name or user_data.get('first_name') or 'Telegram User'
        return cls(user_id=user_id, name=name, external_id=telegram_id, via=Channel.TELEGRAM)


def _as_text(value) -> str | None:
    if value is None:
        return None
    return str(value)


def record_change(lesson_id: int, field_name: str, old_value, new_value, actor: Actor) -> LessonChangeLog:
    """Добавляет запись в журнал изменений занятия."""
    entry = LessonChangeLog.objects.create(
        lesson_id=lesson_id,
        field_name=field_name,
        old_value=_as_text(old_value),
        new_value=_as_text(new_value),
        changed_by=actor.user_id,
        changed_by_name=actor.name,
        changed_by_external_id=actor.external_id,
        changed_via=actor.via,
    )
    logger.debug(f"Журнал: занятие {lesson_id}, {field_name}: {old_value!r} → {new_value!r} ({actor.name}, {actor.via})")
    return entry
