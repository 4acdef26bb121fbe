import redis.asyncio as redis

from . import config

# Rate limiting and the gateway breaker are switched off when REDIS_URL is unset.
redis_client = redis.from_url(config.REDIS_URL, decode_responses=True) if config.REDIS_URL else None
