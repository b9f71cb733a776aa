# SPDX-License-Identifier: Apache-2.0

"""
Redis cache service.

Caches read-heavy projections (donation statistics) with a TTL. Every
operation fails gracefully: when Redis is unreachable callers simply miss
the cache and compute the value themselves.
"""

import os
import json
import time
from typing import Optional, Dict, Any, Union, List
import redis
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class RedisConnectionError(Exception):
    """Raised when Redis connection fails."""
    pass


class RedisService:
    """Redis cache backed by the redis-py client."""

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None):
        """
        Initialize the Redis service.

        Args:
            redis_url: Redis connection URL (redis://host:port/db)
            client: Pre-built client, used instead of connecting to ``redis_url``
        """
        self.redis_url = redis_url or os.getenv("REDIS_URL")

        if client is not None:
            self.client = client
            return

        if not self.redis_url:
            logger.warning("No REDIS_URL configured, Redis operations will be disabled")
            self.client = None
            return

        try:
            self.client = redis.from_url(self.redis_url, decode_responses=True)
            self._test_connection()
            logger.info("Redis service initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize Redis service: {str(e)}")
            self.client = None

    def _test_connection(self) -> None:
        """Test Redis connection."""
        if not self.client:
            return

        try:
            if not self.client.ping():
                raise RedisConnectionError("Redis ping failed")
        except redis.RedisError as e:
            logger.error(f"Redis connection test failed: {str(e)}")
            raise RedisConnectionError(f"Redis connection failed: {str(e)}")

    def is_available(self) -> bool:
        """Check if Redis service is available."""
        return self.client is not None

    def _handle_redis_error(self, operation: str, error: Exception) -> None:
        """Handle Redis operation errors with logging."""
        logger.error(f"Redis {operation} failed: {str(error)}")
        # Don't raise exceptions for cache operations - fail gracefully

    def set_with_ttl(self, key: str, value: Union[str, Dict, List], ttl_seconds: int) -> bool:
        """
        Set a key-value pair with TTL.

        Args:
            key: Redis key
            value: Value to store (will be JSON serialized if not string)
            ttl_seconds: Time to live in seconds

        Returns:
            True if successful, False otherwise
        """
        if not self.is_available():
            return False

        with tracer.start_as_current_span("redis.set_with_ttl") as span:
            span.set_attributes({
                "redis.operation": "set_with_ttl",
                "redis.key": key,
                "redis.ttl": ttl_seconds
            })

            try:
                if isinstance(value, (dict, list)):
                    value = json.dumps(value, default=str)

                result = self.client.setex(key, ttl_seconds, value)

                span.set_attribute("redis.result", "success")
                logger.debug(f"Redis SET successful: {key} (TTL: {ttl_seconds}s)")

                return bool(result)

            except redis.RedisError as e:
                span.set_attribute("redis.result", "error")
                self._handle_redis_error("SET", e)
                return False

    def get(self, key: str) -> Optional[str]:
        """Get a raw string value, or None on a miss or failure."""
        if not self.is_available():
            return None

        with tracer.start_as_current_span("redis.get") as span:
            span.set_attribute("redis.key", key)

            try:
                value = self.client.get(key)
                span.set_attribute("redis.result", "hit" if value is not None else "miss")
                return value

            except redis.RedisError as e:
                span.set_attribute("redis.result", "error")
                self._handle_redis_error("GET", e)
                return None

    def get_json(self, key: str) -> Optional[Union[Dict, List]]:
        """Get a JSON value, or None on a miss, failure or malformed entry."""
        value = self.get(key)
        if value is None:
            return None

        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Discarding malformed cache entry {key}: {e}")
            return None

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if something was removed."""
        if not self.is_available():
            return False

        with tracer.start_as_current_span("redis.delete") as span:
            span.set_attribute("redis.key", key)

            try:
                return self.client.delete(key) > 0
            except redis.RedisError as e:
                self._handle_redis_error("DELETE", e)
                return False

    # Donation statistics

    def donation_stats_key(self, ngo_id: str) -> str:
        return f"ngo:donations:stats:{ngo_id}"

    def cache_donation_stats(self, ngo_id: str, stats: Dict[str, Any], ttl_seconds: int = 300) -> bool:
        """Cache donation statistics for an NGO (default: 5 minutes)."""
        return self.set_with_ttl(self.donation_stats_key(ngo_id), stats, ttl_seconds)

    def get_cached_donation_stats(self, ngo_id: str) -> Optional[Dict[str, Any]]:
        """Get cached donation statistics for an NGO."""
        return self.get_json(self.donation_stats_key(ngo_id))

    def invalidate_donation_stats(self, ngo_id: str) -> bool:
        """Drop cached donation statistics after a new donation."""
        return self.delete(self.donation_stats_key(ngo_id))

    # Health Check Methods

    def ping(self) -> bool:
        """Ping Redis server."""
        if not self.is_available():
            return False

        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            logger.error(f"Redis ping failed: {str(e)}")
            return False

    def health_check(self) -> Dict[str, Any]:
        """
        Perform Redis health check.

        Returns:
            Health check results
        """
        if not self.is_available():
            return {
                "status": "unavailable",
                "message": "Redis client not initialized",
                "timestamp": time.time()
            }

        start_time = time.time()
        healthy = self.ping()
        response_time = (time.time() - start_time) * 1000  # ms

        return {
            "status": "healthy" if healthy else "unhealthy",
            "response_time_ms": round(response_time, 2),
            "timestamp": time.time()
        }
