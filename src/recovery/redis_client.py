"""Redis client construction. The client lives on ``app.state.redis``."""

import redis.asyncio as redis


def create_redis(url: str) -> redis.Redis:
    """Build a pooled client. No connection is made until first use."""
    return redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis(client: redis.Redis | None) -> None:
    if client is not None:
        await client.aclose()
