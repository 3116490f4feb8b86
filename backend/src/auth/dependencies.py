"""FastAPI authentication dependencies.

This module wraps the identity resolution in config.py for use as FastAPI
dependencies.
"""

from typing import Annotated

from fastapi import Depends, Request

from src.auth.config import Identity, get_identity


async def _get_identity(request: Request) -> Identity:
    """Get the verified identity, caching it on request state.

    The user id is also exposed on `request.state.user_id` so the rate
    limiter can key on it.
    """
    cached = getattr(request.state, "identity", None)
    if cached is not None:
        return cached
    identity = await get_identity(request)
    request.state.identity = identity
    request.state.user_id = identity.user_id
    return identity


# Usage: async def my_route(identity: CurrentIdentity) -> Response:
CurrentIdentity = Annotated[Identity, Depends(_get_identity)]
