import logging
import re
from typing import Iterable, List, Optional, Pattern

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


def compile_origin_patterns(patterns: Iterable[str]) -> List[Pattern[str]]:
    return [re.compile(p) for p in patterns]


def is_origin_allowed(origin: Optional[str], patterns: List[Pattern[str]]) -> bool:
    """Requests without an Origin header (curl, mobile clients) are always allowed."""
    if not origin:
        return True
    return any(p.fullmatch(origin) for p in patterns)


def combined_origin_regex(patterns: Iterable[str]) -> str:
    """Single alternation usable as CORSMiddleware.allow_origin_regex."""
    parts = [p.removeprefix("^").removesuffix("$") for p in patterns]
    return "^(?:" + "|".join(parts) + ")$"


class OriginGuardMiddleware(BaseHTTPMiddleware):
    """
    Rejects cross-origin requests from origins outside the allow-list
    before they reach routing. CORS headers for allowed origins are added
    by Starlette's CORSMiddleware.
    """

    def __init__(self, app, patterns: Iterable[str]):
        super().__init__(app)
        self.patterns = compile_origin_patterns(patterns)

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("origin")
        if not is_origin_allowed(origin, self.patterns):
            logger.warning(
                f"Blocked origin: {origin}",
                extra={"extra_data": {"origin": origin, "path": request.url.path}},
            )
            return JSONResponse(
                status_code=403,
                content={"error": "Not allowed by CORS", "code": "CORS_ORIGIN_DENIED"},
            )
        return await call_next(request)
