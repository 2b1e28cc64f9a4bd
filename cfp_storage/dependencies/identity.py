"""
Caller identity dependency.

Authentication happens in front of this service (gateway, reverse proxy
or the main application). The authenticated user id arrives in the
``X-User-Id`` header; this service only records it and uses it for the
fail-closed visibility check on private files.
"""
from fastapi import Header


def get_user_id(
    x_user_id: str | None = Header(None, description="Authenticated user id set by the upstream auth layer"),
) -> str | None:
    """Return the authenticated user id, or None for anonymous requests."""
    if x_user_id is None:
        return None
    return x_user_id.strip() or None
