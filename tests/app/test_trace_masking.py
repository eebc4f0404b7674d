from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from upload_broker.common.config import get_settings
from upload_broker.infra.observability.middleware import MetricsMiddleware


def build_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(MetricsMiddleware)

    @app.post("/echo")
    async def echo(request: Request):
        body = await request.json()
        return JSONResponse(
            {
                "openIDToken": {"identityId": "id-1", "token": body.get("token")},
                "uploadPartURL": (
                    "https://b.s3.amazonaws.com/k?partNumber=1"
                    "&X-Amz-Credential=AKIA%2F&X-Amz-Signature=deadbeef"
                ),
            }
        )

    return app


def _last_http_record(caplog):
    records = [
        rec
        for rec in caplog.records
        if rec.name == "http" and rec.getMessage().startswith("request ")
    ]
    assert records, "should capture http logs"
    return records[-1]


def test_trace_masking_masks_tokens_and_signatures(caplog, monkeypatch):
    monkeypatch.setenv("TRACE_HTTP", "true")
    get_settings.cache_clear()  # type: ignore[attr-defined]

    client = TestClient(build_app())

    with caplog.at_level("INFO"):
        r = client.post("/echo", json={"user": "u", "token": "abc123"})
        assert r.status_code == 200
        # the client still receives the unmasked body
        assert r.json()["openIDToken"]["token"] == "abc123"

    rec = _last_http_record(caplog)
    assert isinstance(rec.extra, dict)
    request_body = rec.extra.get("request_body") or ""
    response_body = rec.extra.get("response_body") or ""
    assert "abc123" not in request_body
    assert "abc123" not in response_body
    assert "deadbeef" not in response_body
    assert "X-Amz-Signature=***" in response_body
    assert "partNumber=1" in response_body


def test_trace_disabled_omits_bodies(caplog, monkeypatch):
    monkeypatch.setenv("TRACE_HTTP", "false")
    get_settings.cache_clear()  # type: ignore[attr-defined]

    client = TestClient(build_app())
    with caplog.at_level("INFO"):
        client.post("/echo", json={"token": "abc123"})

    rec = _last_http_record(caplog)
    assert "request_body" not in rec.extra
