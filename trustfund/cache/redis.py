import json
from typing import Optional
from datetime import timedelta
import redis
import structlog

from trustfund.middleware.metrics import cache_operations_total

logger = structlog.get_logger(__name__)


class RedisCache:
    """Read-through cache for campaign payloads.

    Every failure degrades to a miss, so the service keeps working when
    Redis is down or not configured.
    """

    def __init__(self, redis_url: str = "", ttl: timedelta = timedelta(minutes=5)):
        self.redis_url = redis_url
        self.ttl = ttl
        self.redis_client: Optional[redis.Redis] = None

    def init_redis(self) -> Optional[redis.Redis]:
        """Initialize Redis connection"""
        if not self.redis_url:
            logger.info("Redis URL not configured, campaign cache disabled")
            return None

        client = redis.from_url(
            self.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True
        )

        try:
            client.ping()
        except redis.RedisError as e:
            logger.error("Failed to connect to Redis", error=str(e))
            raise ConnectionError(f"Failed to connect to Redis: {e}")

        self.redis_client = client
        logger.info("Redis connection established successfully", redis_url=self.redis_url)
        return client

    def close(self):
        """Close Redis connection"""
        if self.redis_client:
            self.redis_client.close()
            self.redis_client = None
            logger.info("Redis connection closed")

    def ping(self) -> bool:
        if not self.redis_client:
            return False
        return bool(self.redis_client.ping())

    def _get_campaign_key(self, campaign_id: int) -> str:
        return f"campaign:{campaign_id}"

    def get_campaign(self, campaign_id: int) -> Optional[dict]:
        """Get campaign payload from cache"""
        if not self.redis_client:
            return None

        try:
            cached_data = self.redis_client.get(self._get_campaign_key(campaign_id))
        except redis.RedisError as e:
            cache_operations_total.labels(operation="get", status="error").inc()
            logger.warning("Failed to get campaign from cache", campaign_id=campaign_id, error=str(e))
            return None

        if cached_data:
            cache_operations_total.labels(operation="get", status="hit").inc()
            logger.debug("Cache hit", campaign_id=campaign_id)
            return json.loads(cached_data)

        cache_operations_total.labels(operation="get", status="miss").inc()
        logger.debug("Cache miss", campaign_id=campaign_id)
        return None

    def set_campaign(self, campaign_id: int, campaign_data: dict) -> bool:
        """Store campaign payload in cache"""
        if not self.redis_client:
            return False

        try:
            self.redis_client.setex(
                self._get_campaign_key(campaign_id),
                int(self.ttl.total_seconds()),
                json.dumps(campaign_data, default=str)
            )
        except redis.RedisError as e:
            cache_operations_total.labels(operation="set", status="error").inc()
            logger.warning("Failed to cache campaign", campaign_id=campaign_id, error=str(e))
            return False

        cache_operations_total.labels(operation="set", status="ok").inc()
        return True

    def delete_campaign(self, campaign_id: int) -> bool:
        """Invalidate cached campaign payload"""
        if not self.redis_client:
            return False

        try:
            result = self.redis_client.delete(self._get_campaign_key(campaign_id))
        except redis.RedisError as e:
            cache_operations_total.labels(operation="delete", status="error").inc()
            logger.warning("Failed to delete campaign from cache", campaign_id=campaign_id, error=str(e))
            return False

        cache_operations_total.labels(operation="delete", status="ok").inc()
        if result:
            logger.debug("Campaign cache invalidated", campaign_id=campaign_id)
        return bool(result)
