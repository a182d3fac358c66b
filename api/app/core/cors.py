from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable

from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

from api.app.core.config import Settings

logger = logging.getLogger(__name__)


def _normalize(origin: str) -> str:
    return origin.strip().rstrip("/").lower()


@dataclass(frozen=True)
class OriginPolicy:
    origins: FrozenSet[str]
    allow_all: bool = False

    @classmethod
    def build(cls, origins: Iterable[str], *, allow_all: bool = False) -> "OriginPolicy":
        return cls(frozenset(_normalize(o) for o in origins if o.strip()), allow_all=allow_all)

    @classmethod
    def from_settings(cls, s: Settings) -> "OriginPolicy":
        # dev: allow all
        return cls.build(s.allowed_origins_list, allow_all=s.is_development)

    def is_allowed(self, origin: str | None) -> bool:
        # no Origin header: server-to-server, curl, native apps
        if not origin:
            return True
        if self.allow_all:
            return True
        return _normalize(origin) in self.origins


class PolicyCORSMiddleware(CORSMiddleware):
    """CORSMiddleware whose origin check is delegated to an OriginPolicy.

    Requests from origins the policy rejects get a 403 before reaching a route.
    """

    def __init__(self, app: ASGIApp, *, policy: OriginPolicy, **kwargs) -> None:
        super().__init__(app, **kwargs)
        self.policy = policy

    def is_allowed_origin(self, origin: str) -> bool:
        return self.policy.is_allowed(origin)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            origin = Headers(scope=scope).get("origin")
            if origin is not None and not self.policy.is_allowed(origin):
                logger.info("CORS: rejected origin=%s path=%s", origin, scope.get("path"))
                response = JSONResponse({"success": False, "error": "Not allowed by CORS"}, status_code=403)
                await response(scope, receive, send)
                return
        await super().__call__(scope, receive, send)
