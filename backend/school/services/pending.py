"""
Ожидающие ответа вопросы бота («введите тему занятия»).

Ключ: (telegram_id, поле). Значение: id занятия и время создания.
Хранится в кеше Django с TTL; для нескольких инстансов нужен Redis (REDIS_URL).
"""
import time
from dataclasses import dataclass

from django.conf import settings
from django.core.cache import cache

PENDING_FIELDS = ('topic', 'notes')


@dataclass(frozen=True)
class PendingAction:
    telegram_id: str
    field: str
    lesson_id: int
    created_at: float


class PendingActionStore:

    def __init__(self, ttl: int | None = None, backend=None):
        self.ttl = ttl if ttl is not None else settings.PENDING_ACTION_TTL
        self.cache = backend or cache

    @staticmethod
    def _key(telegram_id: str, field: str) -> str:
        return f"pending:{telegram_id}:{field}"

    @staticmethod
    def _pointer_key(telegram_id: str) -> str:
        return f"pending:{telegram_id}:current"

    def start(self, telegram_id: str | int, field: str, lesson_id: int, now: float | None = None) -> PendingAction:
        """Запоминает, что следующий текст пользователя будет field для lesson_id."""
        if field not in PENDING_FIELDS:
            raise ValueError(f'Неизвестное поле: {field}')

        telegram_id = str(telegram_id)
        created_at = now if now is not None else time.time()
        self.cache.set(
            self._key(telegram_id, field),
            {'lesson_id': lesson_id, 'created_at': created_at},
            timeout=self.ttl,
        )
        # Один открытый вопрос на пользователя, последний побеждает
        self.cache.set(self._pointer_key(telegram_id), field, timeout=self.ttl)
        return PendingAction(telegram_id, field, lesson_id, created_at)

    def peek(self, telegram_id: str | int, now: float | None = None) -> PendingAction | None:
        telegram_id = str(telegram_id)
        field = self.cache.get(self._pointer_key(telegram_id))
        if not field:
            return None

        value = self.cache.get(self._key(telegram_id, field))
        if not value:
            return None

        now = now if now is not None else time.time()
        if now - value['created_at'] > self.ttl:
            self.clear(telegram_id)
            return None

        return PendingAction(telegram_id, field, value['lesson_id'], value['created_at'])

    def pop(self, telegram_id: str | int, now: float | None = None) -> PendingAction | None:
        action = self.peek(telegram_id, now=now)
        if action:
            self.clear(telegram_id)
        return action

    def clear(self, telegram_id: str | int) -> None:
        telegram_id = str(telegram_id)
        self.cache.delete_many(
            [self._key(telegram_id, field) for field in PENDING_FIELDS] + [self._pointer_key(telegram_id)]
        )
