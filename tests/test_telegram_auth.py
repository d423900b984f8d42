import json
import time
from urllib.parse import parse_qsl, urlencode

import pytest

from conftest import TEACHER_TG_ID, init_data_fields, sign_init_data
from school.exceptions import AuthInvalid
from school.services.telegram import TelegramAuthService


def _flip(value: str) -> str:
    """Меняет последний символ строки на другой."""
    last = value[-1]
    replacement = '0' if last != '0' else '1'
    return value[:-1] + replacement


class TestVerifyInitData:

    def test_valid_init_data(self):
        verification = TelegramAuthService.verify_init_data(sign_init_data(init_data_fields()))

        assert verification.valid is True
        assert verification.telegram_id == str(TEACHER_TG_ID)
        assert verification.user['first_name'] == 'Олена'

    @pytest.mark.parametrize('key', ['query_id', 'user', 'auth_date', 'hash'])
    def test_single_character_tamper_invalidates(self, key):
        pairs = dict(parse_qsl(sign_init_data(init_data_fields()), keep_blank_values=True))
        pairs[key] = _flip(pairs[key])

        verification = TelegramAuthService.verify_init_data(urlencode(pairs))

        assert verification.valid is False
        assert verification.telegram_id is None

    def test_non_ascii_hash_invalidates(self):
        pairs = dict(parse_qsl(sign_init_data(init_data_fields()), keep_blank_values=True))
        pairs['hash'] = pairs['hash'][:-1] + 'é'

        verification = TelegramAuthService.verify_init_data(urlencode(pairs))

        assert verification.valid is False

    def test_tampered_user_id_invalidates(self):
        pairs = dict(parse_qsl(sign_init_data(init_data_fields()), keep_blank_values=True))
        user = json.loads(pairs['user'])
        user['id'] = user['id'] + 1
        pairs['user'] = json.dumps(user)

        assert TelegramAuthService.verify_init_data(urlencode(pairs)).valid is False

    def test_stale_auth_date(self):
        stale = int(time.time()) - 86400 - 60
        init_data = sign_init_data(init_data_fields(auth_date=stale))

        assert TelegramAuthService.verify_init_data(init_data).valid is False

    def test_auth_date_at_max_age_is_accepted(self):
        now = 1_700_000_000
        init_data = sign_init_data(init_data_fields(auth_date=now - 86400))

        assert TelegramAuthService.verify_init_data(init_data, now=now).valid is True
        assert TelegramAuthService.verify_init_data(init_data, now=now + 1).valid is False

    def test_missing_auth_date_is_stale(self):
        fields = init_data_fields()
        del fields['auth_date']

        assert TelegramAuthService.verify_init_data(sign_init_data(fields)).valid is False

    def test_missing_hash(self):
        init_data = urlencode(init_data_fields())

        assert TelegramAuthService.verify_init_data(init_data).valid is False

    def test_missing_user(self):
        fields = init_data_fields()
        del fields['user']

        assert TelegramAuthService.verify_init_data(sign_init_data(fields)).valid is False

    @pytest.mark.parametrize('user', [
        json.dumps({'id': '111222333', 'first_name': 'Олена'}),
        json.dumps({'id': True}),
        json.dumps({'first_name': 'Олена'}),
        json.dumps([111222333]),
        'not-json',
    ])
    def test_user_without_numeric_id(self, user):
        fields = {**init_data_fields(), 'user': user}

        assert TelegramAuthService.verify_init_data(sign_init_data(fields)).valid is False

    def test_signed_with_another_bot_token(self):
        init_data = sign_init_data(init_data_fields(), bot_token='654321:OTHER-token')

        assert TelegramAuthService.verify_init_data(init_data).valid is False

    def test_empty_init_data(self):
        assert TelegramAuthService.verify_init_data('').valid is False

    def test_bot_token_not_configured(self, settings):
        settings.TELEGRAM_BOT_TOKEN = ''

        assert TelegramAuthService.verify_init_data(sign_init_data(init_data_fields(), bot_token='x')).valid is False


class TestAuthenticate:

    def test_invalid_raises_without_details(self):
        with pytest.raises(AuthInvalid) as exc_info:
            TelegramAuthService.authenticate('user=%7B%7D&hash=abc')

        assert exc_info.value.message == 'Invalid initData'
        assert exc_info.value.status_code == 401

    def test_extract_user_data(self):
        verification = TelegramAuthService.authenticate(sign_init_data(init_data_fields()))

        user_data = TelegramAuthService.extract_user_data(verification)

        assert user_data['telegram_id'] == str(TEACHER_TG_ID)
        assert user_data['username'] == 'olena_teacher'
        assert user_data['language_code'] == 'uk'
