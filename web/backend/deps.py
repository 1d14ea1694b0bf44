"""
Request dependencies

Stores are handles owned by the app; the cloud store is opened per request
with the caller's bearer token as the session.
"""

from typing import AsyncIterator, Optional

from fastapi import Header, Request

from price_tag.export.pipeline import ExportPipeline
from price_tag.storage.remote_store import RemoteStore
from price_tag.storage.sync import Synchronizer


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


async def get_synchronizer(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> AsyncIterator[Synchronizer]:
    state = request.app.state
    remote = RemoteStore.from_config(state.config, access_token=_bearer_token(authorization))
    try:
        yield Synchronizer(state.local, remote)
    finally:
        if remote is not None:
            await remote.aclose()


def get_pipeline(request: Request) -> ExportPipeline:
    return request.app.state.pipeline
