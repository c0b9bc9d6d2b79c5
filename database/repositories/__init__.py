from database.repositories.base import BaseRepository
from database.repositories.subscription import SubscriptionRepository
from database.repositories.queue import QueueRepository
from database.repositories.dead_letter import DeadLetterRepository
from database.repositories.rate_limit import RateLimitRepository
from database.repositories.delivery_config import DeliveryConfigRepository

__all__ = [
    'BaseRepository',
    'SubscriptionRepository',
    'QueueRepository',
    'DeadLetterRepository',
    'RateLimitRepository',
    'DeliveryConfigRepository',
]
