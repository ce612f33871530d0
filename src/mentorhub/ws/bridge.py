"""Bridges Redis pub/sub to WebSocket clients.

Solve commits publish on ``pubsub:ranklist_update``; per-user progress changes
are published on ``ws:user:<id>``. Both are fanned out to subscribed sockets.
"""

import asyncio
import json

import redis.asyncio as aioredis
import structlog

from mentorhub.ws.manager import manager

logger = structlog.get_logger()

# Redis pub/sub channel -> WebSocket channel
CHANNEL_MAP: dict[str, str] = {
    "pubsub:ranklist_update": "ranklist",
}

USER_CHANNEL_PATTERN = "ws:user:*"


async def dispatch_message(message: dict) -> int:
    """Route one pub/sub message to WebSocket clients. Returns recipients."""
    msg_type = message.get("type", "")
    redis_channel = message.get("channel", "")
    if isinstance(redis_channel, bytes):
        redis_channel = redis_channel.decode()

    try:
        data = message.get("data", b"")
        if isinstance(data, bytes):
            data = data.decode()
        payload = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError):
        logger.warning("pubsub_invalid_message", channel=redis_channel)
        return 0

    # Per-user progress events (pattern match on ws:user:*)
    if msg_type == "pmessage" and redis_channel.startswith("ws:user:"):
        try:
            user_id = int(redis_channel.split(":")[-1])
        except ValueError:
            logger.warning("pubsub_invalid_user_id", channel=redis_channel)
            return 0
        return await manager.send_to_user(user_id, "progress", {
            "type": payload.get("event", "progress_update"),
            **payload.get("data", {}),
        })

    ws_channel = CHANNEL_MAP.get(redis_channel)
    if ws_channel is None:
        return 0

    sent = await manager.broadcast_to_channel(ws_channel, {
        "type": redis_channel.split(":")[-1],
        **payload,
    })
    if sent > 0:
        logger.debug("pubsub_broadcast", channel=ws_channel, recipients=sent)
    return sent


class PubSubBridge:
    """Subscribes to Redis pub/sub and pushes messages to WebSocket clients."""

    def __init__(self, redis_client: aioredis.Redis) -> None:
        self.redis = redis_client
        self._running = False

    async def start(self) -> None:
        """Listen until stop() is called or the task is cancelled."""
        self._running = True
        pubsub = self.redis.pubsub()

        await pubsub.subscribe(*CHANNEL_MAP.keys())
        await pubsub.psubscribe(USER_CHANNEL_PATTERN)

        logger.info(
            "pubsub_bridge_started",
            channels=list(CHANNEL_MAP.keys()),
            patterns=[USER_CHANNEL_PATTERN],
        )

        try:
            while self._running:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message is None:
                    continue
                await dispatch_message(message)
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.unsubscribe()
            await pubsub.punsubscribe()
            await pubsub.aclose()
            logger.info("pubsub_bridge_stopped")

    async def stop(self) -> None:
        """Signal the bridge to stop."""
        self._running = False
