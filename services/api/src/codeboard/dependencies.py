"""Shared FastAPI dependencies."""

from fastapi import Depends, Header, HTTPException, Query

from codeboard.config import get_settings
from codeboard.database import get_session_factory
from codeboard.metrics.dispatcher import AggregationDispatcher
from codeboard.metrics.signals import NullSignalSource, RedisSignalSource, SignalSource
from codeboard.metrics.store import ActivityStore, SQLActivityStore
from codeboard.redis_client import get_redis


def get_activity_store() -> ActivityStore:
    """Activity store backed by the application's session factory."""
    return SQLActivityStore(get_session_factory())


def get_signal_source() -> SignalSource:
    """Redis-backed signals; every signal reads as unavailable if Redis was never initialized."""
    try:
        return RedisSignalSource(get_redis())
    except RuntimeError:
        return NullSignalSource()


def get_dispatcher(
    store: ActivityStore = Depends(get_activity_store),
    signals: SignalSource = Depends(get_signal_source),
) -> AggregationDispatcher:
    """A fresh dispatcher per request or socket session."""
    return AggregationDispatcher(store, signals, get_settings())


async def get_viewer_id(x_viewer_id: str | None = Header(default=None)) -> str:
    """Viewer identity forwarded by the authenticating gateway."""
    if not x_viewer_id:
        raise HTTPException(status_code=401, detail="Missing X-Viewer-Id header")
    return x_viewer_id


async def get_socket_viewer_id(viewer_id: str | None = Query(default=None)) -> str | None:
    """WebSocket variant: browsers cannot set headers on the upgrade request."""
    return viewer_id or None
