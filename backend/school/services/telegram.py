import hmac
import hashlib
import json
import logging
from dataclasses import dataclass, field
from urllib.parse import parse_qsl

from django.conf import settings
from django.utils import timezone
import httpx

from school.exceptions import AuthInvalid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InitDataVerification:
    valid: bool
    telegram_id: str | None = None
    user: dict = field(default_factory=dict)


INVALID = InitDataVerification(valid=False)


class TelegramAuthService:
    """
    Сервис авторизации через Telegram Mini App.

    Проверяет initData от Telegram Web App по алгоритму:
    https://core.telegram.org/bots/webapps#validating-data-received-via-the-mini-app
    """

    @staticmethod
    def verify_init_data(init_data: str, bot_token: str | None = None, now: int | None = None) -> InitDataVerification:
        """
        Валидирует initData от Telegram.

        Валиден только если совпала подпись, auth_date не старше суток
        и в user есть числовой id. Какая именно проверка не прошла,
        наружу не отдаётся, только в DEBUG-лог.
        """
        if not init_data:
            return INVALID

        bot_token = bot_token if bot_token is not None else settings.TELEGRAM_BOT_TOKEN
        if not bot_token:
            logger.warning("TELEGRAM_BOT_TOKEN не настроен")
            return INVALID

        parsed = dict(parse_qsl(init_data, keep_blank_values=True))

        received_hash = parsed.pop('hash', None)
        if not received_hash:
            logger.debug("initData без hash")
            return INVALID

        # Строка для проверки: пары key=value, отсортированные по ключу
        data_check_string = '\n'.join(
            f"{k}={v}" for k, v in sorted(parsed.items())
        )

        # secret_key = HMAC-SHA256(key="WebAppData", msg=bot_token)
        secret_key = hmac.new(
            b"WebAppData",
            bot_token.encode(),
            hashlib.sha256
        ).digest()

        calculated_hash = hmac.new(
            secret_key,
            data_check_string.encode(),
            hashlib.sha256
        ).hexdigest()

        if not hmac.compare_digest(calculated_hash.encode(), received_hash.encode()):
            logger.debug("Невалидная подпись initData")
            return INVALID

        try:
            auth_date = int(parsed.get('auth_date', '0'))
        except ValueError:
            logger.debug("auth_date не число")
            return INVALID

        now = now if now is not None else int(timezone.now().timestamp())
        if now - auth_date > settings.TELEGRAM_INIT_DATA_MAX_AGE:
            logger.debug("initData устарел")
            return INVALID

        try:
            user = json.loads(parsed.get('user', ''))
        except ValueError:
            logger.debug("user не JSON")
            return INVALID

        if not isinstance(user, dict):
            return INVALID
        user_id = user.get('id')
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            logger.debug("В user нет числового id")
            return INVALID

        return InitDataVerification(valid=True, telegram_id=str(user_id), user=user)

    @classmethod
    def authenticate(cls, init_data: str) -> InitDataVerification:
        """То же, что verify_init_data, но бросает AuthInvalid."""
        verification = cls.verify_init_data(init_data)
        if not verification.valid:
            logger.warning("Отклонён запрос с невалидным initData")
            raise AuthInvalid()
        return verification

    @staticmethod
    def extract_user_data(verification: InitDataVerification) -> dict | None:
        """Извлекает данные пользователя из валидированных данных."""
        if not verification.valid:
            return None

        user = verification.user
        return {
            'telegram_id': verification.telegram_id,
            'first_name': user.get('first_name', ''),
            'last_name': user.get('last_name', ''),
            'username': user.get('username', ''),
            'language_code': user.get('language_code', 'uk'),
        }


class TelegramNotificationService:
    """Сервис отправки сообщений через Telegram Bot API."""

    def __init__(self):
        self.bot_token = settings.TELEGRAM_BOT_TOKEN
        self.base_url = f"https://api.telegram.org/bot{self.bot_token}"

    def _call(self, method: str, payload: dict) -> bool:
        if not self.bot_token:
            logger.warning(f"TELEGRAM_BOT_TOKEN не настроен, запрос {method} не отправлен")
            return False

        try:
            with httpx.Client() as client:
                response = client.post(
                    f"{self.base_url}/{method}",
                    json=payload,
                    timeout=10.0
                )
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Ошибка запроса {method} в Telegram: {e}")
            return False

        if response.status_code != 200 or not data.get('ok'):
            description = data.get('description', '')
            if description == 'Bad Request: chat not found':
                logger.info(f"Чат Telegram не найден: {payload.get('chat_id')}")
            else:
                logger.error(f"Telegram API {method}: {description}")
            return False

        return True

    def send_message_sync(self, chat_id: int | str, text: str, parse_mode: str = "HTML",
                          reply_markup: dict | None = None) -> bool:
        """Синхронная отправка сообщения."""
        payload = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": parse_mode,
        }
        if reply_markup:
            payload["reply_markup"] = reply_markup
        return self._call('sendMessage', payload)

    def answer_callback_query(self, callback_query_id: str, text: str = '') -> bool:
        return self._call('answerCallbackQuery', {
            "callback_query_id": callback_query_id,
            "text": text,
        })

    def edit_message_text(self, chat_id: int | str, message_id: int, text: str,
                          reply_markup: dict | None = None, parse_mode: str = "HTML") -> bool:
        """Редактирует сообщение (старые сообщения Telegram редактировать не даёт, это не ошибка)."""
        payload = {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
            "parse_mode": parse_mode,
        }
        if reply_markup:
            payload["reply_markup"] = reply_markup
        return self._call('editMessageText', payload)

    def notify_lesson_reminder(self, telegram_id: str, text: str, reply_markup: dict | None = None) -> bool:
        """Отправляет преподавателю напоминание о занятии."""
        return self.send_message_sync(telegram_id, text, reply_markup=reply_markup)
