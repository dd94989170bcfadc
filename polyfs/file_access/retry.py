"""
Retry-on-unauthorized middleware.

Every authenticated backend call goes through ``with_auth_retry``: run one
attempt; if it fails with an authorization failure, refresh the token once and
run the attempt exactly once more. A second authorization failure, and every
other kind of failure, propagates unchanged.
"""
from typing import Awaitable, Callable, TypeVar

from polyfs.file_access.errors import is_auth_expired
from polyfs.monitoring.logger import log

T = TypeVar("T")


async def with_auth_retry(
    attempt: Callable[[], Awaitable[T]],
    refresh: Callable[[], Awaitable[object]],
    is_auth_failure: Callable[[BaseException], bool] = is_auth_expired,
) -> T:
    """
    Run ``attempt`` with a single refresh-and-retry on authorization failure.

    Args:
        attempt: Zero-argument coroutine function performing one network attempt.
            It must read the current token itself so the retry sees the
            refreshed one.
        refresh: Zero-argument coroutine function refreshing the token. Its own
            failure (typically ``AuthRequired``) propagates to the caller.
        is_auth_failure: Backend-specific predicate telling authorization
            failures apart from everything else.

    Returns:
        Whatever ``attempt`` returns
    """
    try:
        return await attempt()
    except Exception as exc:
        if not is_auth_failure(exc):
            raise
        log("INFO", f"Authorization failure ({exc}); refreshing token and retrying once",
            component="retry")
    await refresh()
    return await attempt()
