import json
import logging
import time
from typing import Any, Dict, Iterable, List, Optional

import redis

logger = logging.getLogger(__name__)


def _unique(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(v.strip() for v in values if v and v.strip()))


class RevalidationDispatcher:
    """
    Invalidation du cache vitrine: publie {tags, paths, now} sur un canal Redis
    quand un client est fourni, et journalise toujours. Un échec de publication
    ne fait jamais échouer l'appelant.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None, channel: str = "storefront:revalidate"):
        self._redis = redis_client
        self.channel = channel

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    def revalidate(self, tags: Iterable[str] = (), paths: Iterable[str] = ()) -> Dict[str, Any]:
        message = {"tags": _unique(tags), "paths": _unique(paths), "now": int(time.time() * 1000)}
        published = False
        if self._redis is not None and (message["tags"] or message["paths"]):
            try:
                self._redis.publish(self.channel, json.dumps(message))
                published = True
            except redis.RedisError as e:
                logger.warning("revalidation.publish_failed channel=%s err=%s", self.channel, e)
        logger.info("revalidation.dispatched tags=%s paths=%s published=%s", message["tags"], message["paths"], published)
        return {**message, "published": published}

    def close(self) -> None:
        if self._redis is not None:
            self._redis.close()
