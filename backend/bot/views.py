import hmac
import json
import logging

from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from .services import handle_update

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def telegram_webhook(request):
    """
    Обработчик апдейтов Telegram-бота.

    Telegram повторяет доставку при любом ответе кроме 200,
    поэтому ошибки разбора логируем и отвечаем ok.
    """
    secret = settings.TELEGRAM_WEBHOOK_SECRET
    if secret:
        received = request.headers.get('X-Telegram-Bot-Api-Secret-Token', '')
        if not hmac.compare_digest(received, secret):
            logger.warning("Апдейт Telegram с неверным secret token")
            return JsonResponse({'ok': False}, status=403)

    try:
        update = json.loads(request.body)
    except json.JSONDecodeError:
        logger.warning("Получен невалидный JSON от Telegram")
        return JsonResponse({'ok': True})

    if not isinstance(update, dict):
        return JsonResponse({'ok': True})

    try:
        handle_update(update)
    except Exception as e:
        logger.exception(f"Ошибка обработки апдейта Telegram {update.get('update_id')}: {e}")

    return JsonResponse({'ok': True})
