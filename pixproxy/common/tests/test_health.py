import subprocess
from types import SimpleNamespace

from fastapi import FastAPI
from fastapi.testclient import TestClient

from pixproxy.common import health


def test_health_route_reports_up():
    app = FastAPI()
    app.include_router(health.router)
    resp = TestClient(app).get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "UP"


def test_check_missing_binary(monkeypatch):
    monkeypatch.setattr(health.shutil, "which", lambda name: None)
    info = health.check_graphicsmagick("gm")
    assert info.available is False
    assert "not found" in info.error


def test_check_reads_first_version_line(monkeypatch):
    monkeypatch.setattr(health.shutil, "which", lambda name: "/usr/bin/gm")
    monkeypatch.setattr(
        health.subprocess,
        "run",
        lambda *a, **k: SimpleNamespace(returncode=0, stdout="\nGraphicsMagick 1.3.42\nCopyright\n"),
    )
    info = health.check_graphicsmagick("gm")
    assert info.available is True
    assert info.version == "GraphicsMagick 1.3.42"
    assert info.error is None


def test_check_timeout(monkeypatch):
    monkeypatch.setattr(health.shutil, "which", lambda name: "/usr/bin/gm")

    def slow(*a, **k):
        raise subprocess.TimeoutExpired(cmd="gm", timeout=3)

    monkeypatch.setattr(health.subprocess, "run", slow)
    info = health.check_graphicsmagick("gm")
    assert info.available is True
    assert "timed out" in info.error
