"""
Обработка апдейтов Telegram-бота.

- attendance_<lesson>_<student>_<status> — отметка посещаемости кнопкой
- topic_<lesson> / notes_<lesson> — бот спрашивает тему/нотатки,
  следующее текстовое сообщение преподавателя сохраняется в занятие
- /start — приветствие с кнопкой Mini App
"""
import logging

from django.conf import settings

from school.exceptions import SchoolError
from school.models import Student, Teacher
from school.services.attendance import set_attendance
from school.services.audit import Actor
from school.services.lifecycle import set_notes, set_topic
from school.services.pending import PendingActionStore
from school.services.reminders import attendance_keyboard, reminder_text
from school.services.replacements import ensure_lesson_access
from school.services.telegram import TelegramNotificationService

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    'present': '✅ Присутній',
    'absent': '❌ Відсутній',
    'sick': '🤒 Хворіє',
}

PROMPTS = {
    'topic': 'Введіть тему заняття у наступному повідомленні',
    'notes': 'Введіть нотатки у наступному повідомленні',
}

SAVED = {
    'topic': '✅ Тему заняття збережено',
    'notes': '✅ Нотатки збережено',
}

NOT_LINKED = "Ви не прив'язані до системи. Зверніться до адміністратора."


def _find_teacher(telegram_id: str) -> Teacher | None:
    if not telegram_id:
        return None
    return Teacher.objects.filter(telegram_id=telegram_id, is_active=True).first()


def _user_data(from_user: dict) -> dict:
    return {
        'telegram_id': str(from_user.get('id', '')),
        'first_name': from_user.get('first_name', ''),
        'last_name': from_user.get('last_name', ''),
        'username': from_user.get('username', ''),
    }


def _parse_int(value: str) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def handle_update(update: dict, service: TelegramNotificationService | None = None,
                  store: PendingActionStore | None = None) -> None:
    service = service or TelegramNotificationService()
    store = store or PendingActionStore()

    if update.get('callback_query'):
        handle_callback_query(update['callback_query'], service, store)
    elif update.get('message'):
        handle_message(update['message'], service, store)


def handle_callback_query(callback_query: dict, service: TelegramNotificationService,
                          store: PendingActionStore) -> None:
    data = callback_query.get('data') or ''
    from_user = callback_query.get('from') or {}
    telegram_id = str(from_user.get('id', ''))
    callback_id = callback_query.get('id', '')

    logger.info(f"Callback от {telegram_id}: {data}")

    teacher = _find_teacher(telegram_id)
    if not teacher:
        service.answer_callback_query(callback_id, NOT_LINKED)
        return

    actor = Actor.telegram(teacher, _user_data(from_user))

    if data.startswith('attendance_'):
        parts = data.split('_', 3)
        lesson_id = _parse_int(parts[1]) if len(parts) == 4 else None
        student_id = _parse_int(parts[2]) if len(parts) == 4 else None
        if lesson_id is None or student_id is None:
            service.answer_callback_query(callback_id, 'Невірні параметри')
            return
        _mark_attendance(callback_query, lesson_id, student_id, parts[3], teacher, actor, service)
        return

    for field in ('topic', 'notes'):
        if data.startswith(f'{field}_'):
            lesson_id = _parse_int(data[len(field) + 1:])
            if lesson_id is None:
                service.answer_callback_query(callback_id, 'Невірні параметри')
                return
            try:
                ensure_lesson_access(lesson_id, teacher=teacher)
            except SchoolError as e:
                service.answer_callback_query(callback_id, e.message)
                return

            store.start(telegram_id, field, lesson_id)
            service.answer_callback_query(callback_id, PROMPTS[field])
            chat_id = (callback_query.get('message') or {}).get('chat', {}).get('id') or telegram_id
            service.send_message_sync(chat_id, PROMPTS[field], reply_markup={'force_reply': True})
            return

    logger.info(f"Неизвестный callback: {data}")
    service.answer_callback_query(callback_id)


def _mark_attendance(callback_query: dict, lesson_id: int, student_id: int, status: str,
                     teacher: Teacher, actor: Actor, service: TelegramNotificationService) -> None:
    callback_id = callback_query.get('id', '')
    try:
        lesson = ensure_lesson_access(lesson_id, teacher=teacher)
        set_attendance(lesson_id, student_id, status, actor)
    except SchoolError as e:
        service.answer_callback_query(callback_id, e.message)
        return

    student = Student.objects.filter(pk=student_id).first()
    name = student.full_name if student else 'Учень'
    service.answer_callback_query(
        callback_id,
        f"{name} відзначений як {STATUS_LABELS.get(status, status)}"
    )

    message = callback_query.get('message')
    if message:
        # Старые сообщения Telegram может не дать отредактировать, это не ошибка
        service.edit_message_text(
            message['chat']['id'],
            message['message_id'],
            reminder_text(lesson),
            reply_markup=attendance_keyboard(lesson),
        )


def handle_message(message: dict, service: TelegramNotificationService, store: PendingActionStore) -> None:
    text = (message.get('text') or '').strip()
    chat_id = message.get('chat', {}).get('id')
    from_user = message.get('from') or {}
    telegram_id = str(from_user.get('id', ''))

    if not chat_id or not text:
        return

    if text.startswith('/start'):
        _send_welcome(chat_id, from_user.get('first_name', 'друже'), service)
        return

    pending = store.pop(telegram_id)
    if not pending:
        logger.debug(f"Сообщение от {telegram_id} без открытого вопроса, пропускаем")
        return

    teacher = _find_teacher(telegram_id)
    if not teacher:
        service.send_message_sync(chat_id, NOT_LINKED)
        return

    actor = Actor.telegram(teacher, _user_data(from_user))
    try:
        ensure_lesson_access(pending.lesson_id, teacher=teacher)
        if pending.field == 'topic':
            set_topic(pending.lesson_id, text, actor)
        else:
            set_notes(pending.lesson_id, text, actor)
    except SchoolError as e:
        service.send_message_sync(chat_id, e.message)
        return

    service.send_message_sync(chat_id, SAVED[pending.field])


def _send_welcome(chat_id: int, first_name: str, service: TelegramNotificationService) -> None:
    welcome = (
        f"Привіт, {first_name}! 👋🏻\n\n"
        f"Тут ви отримуватимете нагадування про заняття, "
        f"зможете відмічати присутність учнів і записувати тему заняття."
    )
    reply_markup = None
    if settings.TEACHER_APP_URL:
        reply_markup = {
            "inline_keyboard": [[{
                "text": "📚 Відкрити застосунок",
                "web_app": {"url": settings.TEACHER_APP_URL},
            }]]
        }
    service.send_message_sync(chat_id, welcome, reply_markup=reply_markup)
