import json
from unittest.mock import MagicMock

import fakeredis
import redis

from boutique.webhooks.revalidation import RevalidationDispatcher


def test_publishes_deduplicated_tags_on_channel():
    r = fakeredis.FakeRedis(decode_responses=True)
    pubsub = r.pubsub(ignore_subscribe_messages=True)
    pubsub.subscribe("storefront:revalidate")

    out = RevalidationDispatcher(r, channel="storefront:revalidate").revalidate(tags=["products", "products", " "], paths=["/"])

    assert out["published"] is True
    assert out["tags"] == ["products"]
    messages = [m for m in (pubsub.get_message(timeout=0.1) for _ in range(3)) if m]
    assert json.loads(messages[0]["data"])["tags"] == ["products"]


def test_without_redis_only_logs():
    out = RevalidationDispatcher(None).revalidate(tags=["collections"])
    assert out["published"] is False
    assert out["tags"] == ["collections"]


def test_publish_failure_never_raises():
    client = MagicMock()
    client.publish.side_effect = redis.ConnectionError("down")
    out = RevalidationDispatcher(client).revalidate(tags=["products"])
    assert out["published"] is False


def test_nothing_to_publish():
    client = MagicMock()
    RevalidationDispatcher(client).revalidate()
    client.publish.assert_not_called()
