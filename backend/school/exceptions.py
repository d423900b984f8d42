class SchoolError(Exception):
    """Базовая ошибка ядра расписания. status_code нужен слою HTTP."""

    status_code = 400
    default_message = 'Помилка'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(SchoolError):
    """Некорректные дата/время/длительность/статус. Не ретраится."""

    status_code = 400
    default_message = 'Некоректні дані'


class NotFound(SchoolError):
    status_code = 404
    default_message = 'Не знайдено'


class Forbidden(SchoolError):
    status_code = 403
    default_message = 'Доступ заборонено'


class PastLessonLocked(Forbidden):
    """Отметки прошедшего занятия из Telegram менять нельзя."""

    default_message = 'Заняття вже минуло, змінити відвідуваність можна лише в адмінці'


class Conflict(SchoolError):
    status_code = 409
    default_message = 'Заняття на цю дату вже існує'


class InvalidTransition(SchoolError):
    status_code = 409
    default_message = 'Неможлива зміна статусу заняття'


class AuthInvalid(SchoolError):
    """Невалидный initData. Причину наружу не сообщаем."""

    status_code = 401
    default_message = 'Invalid initData'
