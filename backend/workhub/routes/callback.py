from __future__ import annotations

import json

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from workhub.core.config import settings

router = APIRouter(tags=["auth"])

CALLBACK_PATH = "/auth/callback"

# Fragments (#access_token=...) never reach the server, so the page forwards
# them from the browser.
_REDIRECT_TEMPLATE = """<!DOCTYPE html>
<html>
  <head>
    <title>Redirecting...</title>
    <script>
      window.location.href = {target} + window.location.hash;
    </script>
  </head>
  <body>
    <p>Redirecting to frontend...</p>
    <script>
      setTimeout(function () {{
        window.location.href = {target};
      }}, 1000);
    </script>
  </body>
</html>
"""


def frontend_callback_url() -> str:
    return f"{settings.FRONTEND_BASE_URL}{CALLBACK_PATH}"


@router.get("/", response_class=HTMLResponse, include_in_schema=False)
def redirect_to_frontend_callback():
    """
    Landing page for confirmation links whose redirect URL points at the API root.
    """
    # Escape "<" so the target can never close the <script> element.
    target = json.dumps(frontend_callback_url()).replace("<", "\\u003c")
    return HTMLResponse(_REDIRECT_TEMPLATE.format(target=target))
