from __future__ import annotations

from types import SimpleNamespace

from fastapi.testclient import TestClient

from app.api.routes import pages as pages_routes
from app.main import app


def test_redeem_page_falls_back_to_inline_form(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(pages_routes, "get_settings", lambda: SimpleNamespace(public_dir=str(tmp_path)))

    client = TestClient(app)
    response = client.get("/redeem")

    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert "/api/redeem" in response.text


def test_redeem_page_prefers_static_file(monkeypatch, tmp_path) -> None:
    (tmp_path / "redeem.html").write_text("<p>custom redeem</p>", encoding="utf-8")
    monkeypatch.setattr(pages_routes, "get_settings", lambda: SimpleNamespace(public_dir=str(tmp_path)))

    client = TestClient(app)
    response = client.get("/redeem")

    assert response.status_code == 200
    assert response.text == "<p>custom redeem</p>"


def test_success_page_mentions_email_when_session_present() -> None:
    client = TestClient(app)
    response = client.get("/success", params={"session_id": "cs_test_1"})

    assert response.status_code == 200
    assert "emailed" in response.text


def test_index_without_build_is_plain_text(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(pages_routes, "get_settings", lambda: SimpleNamespace(public_dir=str(tmp_path)))

    client = TestClient(app)
    response = client.get("/")

    assert response.status_code == 200
    assert response.text.startswith("App is running")
