"""Per-user addon configuration carried in the request URL.

Stremio clients install the addon from a URL that embeds the user's
settings as base64-encoded JSON, either as the first path segment
(``/<config>/stream/series/nyaa:1:2.json``) or as the ``c`` query parameter.
The middleware decodes it once and strips the path segment so the routes
only ever see plain addon paths.
"""

import base64
import binascii
import json
import logging
import re
from urllib.parse import unquote

from fastapi import Request
from pydantic import BaseModel, ConfigDict, ValidationError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

logger = logging.getLogger(__name__)

_CONFIG_SEGMENT = re.compile(r"^/([A-Za-z0-9+\-_=%]+)(/.*)$")


class UserConfig(BaseModel):
    """Settings a user supplies when installing the addon."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    rd: str | None = None  # Debrid API token
    tmdb: str | None = None  # Personal TMDB key

    @property
    def is_empty(self) -> bool:
        return not (self.rd or self.tmdb)


def decode_config(raw: str | None) -> UserConfig | None:
    """Decode a base64 JSON config blob.

    Returns None when the blob is not a base64-encoded JSON object.
    """
    if not raw:
        return None
    value = unquote(raw)
    # Accept both the standard and the URL-safe alphabet
    value = value.replace("-", "+").replace("_", "/")
    value += "=" * (-len(value) % 4)
    try:
        data = json.loads(base64.b64decode(value, validate=True).decode("utf-8"))
        if not isinstance(data, dict):
            return None
        return UserConfig.model_validate(data)
    except (binascii.Error, ValidationError, ValueError):
        return None


def encode_config(config: UserConfig) -> str:
    """Encode a config the way the install page does."""
    payload = json.dumps(config.model_dump(exclude_none=True), separators=(",", ":"))
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


class UserConfigMiddleware(BaseHTTPMiddleware):
    """Middleware that attaches the decoded user config to ``request.state``."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        config = None

        # Match on the undecoded path so an escaped "/" stays inside the segment
        raw_path = request.scope.get("raw_path") or request.scope["path"].encode()
        match = _CONFIG_SEGMENT.match(raw_path.decode("latin-1"))
        if match:
            config = decode_config(match.group(1))
            if config is not None:
                # Route the request as if the segment were not there
                rest = match.group(2)
                request.scope["raw_path"] = rest.encode("latin-1")
                request.scope["path"] = unquote(rest)

        if config is None and "c" in request.query_params:
            config = decode_config(request.query_params["c"])
            if config is None:
                logger.warning("Ignoring undecodable config query parameter")

        request.state.user_config = config or UserConfig()
        return await call_next(request)


def get_user_config(request: Request) -> UserConfig:
    """Dependency that returns the config decoded by the middleware."""
    return getattr(request.state, "user_config", None) or UserConfig()
