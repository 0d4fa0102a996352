"""JSON response class for payment data.

Stored records keep provider strings verbatim, lone surrogates included.
Starlette's JSONResponse encodes to UTF-8 with ensure_ascii=False, which
cannot encode those, so responses are rendered as ASCII with escapes.
"""

import json
from typing import Any

from fastapi.responses import JSONResponse


class AsciiJSONResponse(JSONResponse):
    def render(self, content: Any) -> bytes:
        return json.dumps(
            content,
            ensure_ascii=True,
            allow_nan=False,
            indent=None,
            separators=(",", ":"),
        ).encode("ascii")
