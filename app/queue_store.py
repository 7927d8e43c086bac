"""
Queue Store Module
Thin key-value layer over Redis used by the queue manager
"""

import logging
from typing import Optional, List

import redis

from exceptions import QueueStoreException

logger = logging.getLogger(__name__)


class QueueStore:
    """Key/value operations the queue manager needs, nothing more"""

    def __init__(self, client):
        self.client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "QueueStore":
        client = redis.from_url(redis_url, decode_responses=True)
        logger.info(f"Queue store configured at {redis_url}")
        return cls(client)

    def list_keys(self, prefix: str, limit: Optional[int] = None) -> List[str]:
        """
        List key names starting with a prefix

        Args:
            prefix: Key prefix (e.g., "pending:")
            limit: Stop after this many keys (None = all)

        Returns:
            Key names, in no particular order
        """
        keys = []
        try:
            for key in self.client.scan_iter(match=f"{prefix}*", count=500):
                keys.append(key)
                if limit is not None and len(keys) >= limit:
                    break
        except redis.RedisError as e:
            raise QueueStoreException(f"list {prefix}* failed: {e}") from e
        return keys

    def get_value(self, key: str) -> Optional[str]:
        try:
            return self.client.get(key)
        except redis.RedisError as e:
            raise QueueStoreException(f"get {key} failed: {e}") from e

    def put_value(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """
        Store a value, optionally expiring after `ttl` seconds
        """
        try:
            if ttl:
                self.client.set(key, value, ex=ttl)
            else:
                self.client.set(key, value)
            logger.debug(f"Queue SET: {key} (TTL: {ttl or 'none'})")
            return True
        except redis.RedisError as e:
            raise QueueStoreException(f"put {key} failed: {e}") from e

    def delete_value(self, key: str) -> bool:
        """Delete a key; a missing key is not an error"""
        try:
            self.client.delete(key)
            logger.debug(f"Queue DELETE: {key}")
            return True
        except redis.RedisError as e:
            raise QueueStoreException(f"delete {key} failed: {e}") from e

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except Exception as e:
            logger.error(f"Queue store ping failed: {e}")
            return False
