from .telegram import TelegramAuthService, TelegramNotificationService
from .pending import PendingActionStore

__all__ = [
    'TelegramAuthService',
    'TelegramNotificationService',
    'PendingActionStore',
]
