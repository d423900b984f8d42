"""Общие фикстуры: преподаватели, группа по пятницам, ученики, занятие, initData."""
import hashlib
import hmac
import json
import time
from datetime import date, time as dt_time
from urllib.parse import urlencode

import pytest
from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from school.models import Group, GroupStudent, Lesson, Student, Teacher
from school.services.audit import Actor
from school.services.scheduling import lesson_bounds


TEACHER_TG_ID = 111222333
SUBSTITUTE_TG_ID = 444555666


def sign_init_data(fields: dict, bot_token: str | None = None) -> str:
    """Подписывает поля так же, как это делает клиент Telegram."""
    bot_token = bot_token if bot_token is not None else settings.TELEGRAM_BOT_TOKEN
    data_check_string = '\n'.join(f"{k}={v}" for k, v in sorted(fields.items()))
    secret_key = hmac.new(b"WebAppData", bot_token.encode(), hashlib.sha256).digest()
    signature = hmac.new(secret_key, data_check_string.encode(), hashlib.sha256).hexdigest()
    return urlencode({**fields, 'hash': signature})


def init_data_fields(telegram_id: int = TEACHER_TG_ID, auth_date: int | None = None) -> dict:
    return {
        'query_id': 'AAHdF6IQAAAAAN0XohDhrOrc',
        'user': json.dumps({'id': telegram_id, 'first_name': 'Олена', 'username': 'olena_teacher'}),
        'auth_date': str(auth_date if auth_date is not None else int(time.time())),
    }


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def make_init_data():
    def _make(telegram_id: int = TEACHER_TG_ID, auth_date: int | None = None, bot_token: str | None = None) -> str:
        return sign_init_data(init_data_fields(telegram_id, auth_date), bot_token)
    return _make


@pytest.fixture
def admin_user(django_user_model):
    return django_user_model.objects.create_user(
        username='admin', password='secret', first_name='Ірина', last_name='Адмін', is_staff=True,
    )


@pytest.fixture
def teacher(db):
    return Teacher.objects.create(name='Олена Коваль', telegram_id=str(TEACHER_TG_ID))


@pytest.fixture
def substitute(db):
    return Teacher.objects.create(name='Андрій Мельник', telegram_id=str(SUBSTITUTE_TG_ID))


@pytest.fixture
def group(teacher):
    # Пятница 11:30, 90 минут
    return Group.objects.create(
        title='Робототехніка 8-10',
        teacher=teacher,
        weekly_day=5,
        start_time=dt_time(11, 30),
        duration_minutes=90,
        timezone='Europe/Kyiv',
        start_date=date(2024, 1, 12),
    )


@pytest.fixture
def students(group):
    result = []
    for name in ('Іван Петренко', 'Марія Шевченко'):
        student = Student.objects.create(full_name=name)
        GroupStudent.objects.create(group=group, student=student)
        result.append(student)
    return result


def make_lesson(group: Group, lesson_date: date, **kwargs) -> Lesson:
    start, end = lesson_bounds(lesson_date, group.start_time, group.duration_minutes, group.timezone)
    return Lesson.objects.create(
        group=group, lesson_date=lesson_date, start_datetime=start, end_datetime=end, **kwargs
    )


@pytest.fixture
def lesson(group):
    """Сегодняшнее занятие, его можно отмечать из Telegram."""
    return make_lesson(group, timezone.localdate())


@pytest.fixture
def admin_actor(admin_user):
    return Actor.admin(admin_user)


@pytest.fixture
def telegram_actor(teacher):
    return Actor.telegram(teacher)


class FakeTelegramService:
    """Вместо Bot API: запоминает вызовы."""

    def __init__(self, ok: bool = True):
        self.ok = ok
        self.messages = []
        self.callback_answers = []
        self.edits = []
        self.reminders = []

    def send_message_sync(self, chat_id, text, parse_mode='HTML', reply_markup=None):
        self.messages.append({'chat_id': chat_id, 'text': text, 'reply_markup': reply_markup})
        return self.ok

    def answer_callback_query(self, callback_query_id, text=''):
        self.callback_answers.append({'id': callback_query_id, 'text': text})
        return self.ok

    def edit_message_text(self, chat_id, message_id, text, reply_markup=None, parse_mode='HTML'):
        self.edits.append({'chat_id': chat_id, 'message_id': message_id, 'text': text, 'reply_markup': reply_markup})
        return self.ok

    def notify_lesson_reminder(self, telegram_id, text, reply_markup=None):
        self.reminders.append({'telegram_id': telegram_id, 'text': text, 'reply_markup': reply_markup})
        return self.ok


@pytest.fixture
def fake_service():
    return FakeTelegramService()
