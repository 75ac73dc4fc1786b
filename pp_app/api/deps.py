import time
from collections import deque, defaultdict

from fastapi import HTTPException, Request, status

from pp_app.db.base import get_session  # noqa: F401  (re-exported for routers)

_buckets: dict[tuple[str, str], deque[float]] = defaultdict(deque)


def rate_limit(max_hits: int, window_sec: int):
    async def _guard(request: Request):
        key = (request.url.path, request.client.host if request.client else "unknown")
        now = time.time()
        q = _buckets[key]
        while q and now - q[0] > window_sec:
            q.popleft()
        if len(q) >= max_hits:
            raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many requests")
        q.append(now)
    return _guard
