"""
adslots/services/events.py

Event emitter: pushes events to a Redis queue for the mail sender.

Queue:
- events:p2p: instant delivery (waitlist confirmation, claim invites)

The mail sender is an external consumer; this side only guarantees the
event was enqueued.
"""

import json
import time
import logging
from typing import Optional

from redis import Redis
from redis.exceptions import RedisError

from ..redis_client import redis_client

logger = logging.getLogger(__name__)

P2P_QUEUE = "events:p2p"


def emit_event(event_type: str, payload: dict, redis: Optional[Redis] = None) -> bool:
    """
    Emit a p2p event (instant delivery).

    Pushed to Redis list `events:p2p` for the consumer loop.

    Returns:
        True when the event was enqueued, False otherwise
    """
    client = redis if redis is not None else redis_client
    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        client.rpush(P2P_QUEUE, json.dumps(event, default=str))
        logger.info(f"Event emitted: {event_type} → {P2P_QUEUE}")
        return True
    except RedisError as e:
        logger.error(f"Failed to emit event {event_type}: {e}")
        return False
