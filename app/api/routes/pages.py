from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse, Response

from app.core.config import get_settings

router = APIRouter(tags=["pages"], include_in_schema=False)

_PAGE_STYLE = (
    "body{font-family:system-ui,-apple-system,Segoe UI,Roboto,sans-serif;background:#0b1020;"
    "color:#e5e7eb;margin:0;display:grid;place-items:center;min-height:100vh}"
    ".card{background:#0f172a;border:1px solid #1f2a44;border-radius:16px;padding:24px;"
    "max-width:560px;width:92vw}"
    ".row{margin:12px 0}"
    ".input{width:100%;padding:12px 14px;border-radius:10px;border:1px solid #334155;"
    "background:#111827;color:#e5e7eb}"
    ".btn{display:inline-block;margin-top:8px;background:#007aff;color:#fff;border:0;"
    "padding:12px 16px;border-radius:10px;font-weight:700;text-decoration:none;cursor:pointer}"
)

_REDEEM_SCRIPT = """
document.getElementById('submit').addEventListener('click', async () => {
  const code = document.getElementById('code').value.trim();
  const email = document.getElementById('email').value.trim();
  const r = await fetch('/api/redeem', {
    method: 'POST',
    headers: {'Content-Type': 'application/json'},
    body: JSON.stringify({code, email: email || undefined}),
  });
  const data = await r.json();
  if (!r.ok) {
    document.getElementById('msg').textContent = (data.detail && data.detail.code) || 'Redeem failed';
    return;
  }
  window.location.href = '/api/pass/download?token=' + encodeURIComponent(data.token);
});
"""


def _page(title: str, body: str) -> str:
    return (
        '<!doctype html><html><head><meta charset="utf-8"/>'
        '<meta name="viewport" content="width=device-width,initial-scale=1"/>'
        f"<title>{title}</title><style>{_PAGE_STYLE}</style></head>"
        f'<body><div class="card">{body}</div></body></html>'
    )


def _public_file(filename: str) -> Path | None:
    candidate = Path(get_settings().public_dir) / filename
    return candidate if candidate.is_file() else None


@router.get("/success")
async def success_page(session_id: str | None = None) -> HTMLResponse:
    message = "Your code has been emailed." if session_id else "Thanks for your purchase."
    return HTMLResponse(
        _page(
            "Payment Complete",
            f'<h1>Payment complete</h1><p>{message}</p><a class="btn" href="/redeem">Go to redeem</a>',
        )
    )


@router.get("/redeem")
async def redeem_page() -> Response:
    static_page = _public_file("redeem.html")
    if static_page is not None:
        return FileResponse(static_page)
    return HTMLResponse(
        _page(
            "Redeem",
            "<h1>Redeem Code</h1>"
            '<div class="row"><input id="code" class="input" placeholder="Enter your code"/></div>'
            '<div class="row"><input id="email" class="input" placeholder="Email (optional)"/></div>'
            '<button class="btn" id="submit">Redeem</button>'
            '<div id="msg" style="margin-top:10px;opacity:.8"></div>'
            f"<script>{_REDEEM_SCRIPT}</script>",
        )
    )


@router.get("/")
async def index_page() -> Response:
    index = _public_file("index.html")
    if index is not None:
        return FileResponse(index)
    return PlainTextResponse("App is running. Build missing public/index.html")
