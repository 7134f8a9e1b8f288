"""
Tests for the HTTP transport and health endpoints.
"""

import http.client
import io
import json
import os
import sys
import zipfile
from unittest.mock import patch

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import EchoSigner, sha1_hex
from passkit.api import HealthChecker, HealthStatus, PassServer
from passkit.api.health import ComponentHealth
from passkit.pipeline import PassAssembler


@pytest.fixture
def server(config):
    srv = PassServer(config, assembler=PassAssembler(config, signer=EchoSigner()))
    assert srv.start(host="127.0.0.1", port=0)
    yield srv
    srv.stop()


def get(server, path):
    conn = http.client.HTTPConnection("127.0.0.1", server.port, timeout=10)
    try:
        conn.request("GET", path)
        response = conn.getresponse()
        return response.status, dict(response.getheaders()), response.read()
    finally:
        conn.close()


class TestGenerateEndpoint:
    """Tests for GET /gen/<type>."""

    def test_returns_package(self, server, make_model):
        make_model("event")
        status, headers, body = get(server, "/gen/event")

        assert status == 201
        assert headers["Content-Type"] == "application/vnd.apple.pkpass"
        assert headers["Content-Length"] == str(len(body))
        assert headers["Content-Disposition"] == 'attachment; filename="event.pkpass"'
        assert headers["Cache-Control"] == "no-cache"

        with zipfile.ZipFile(io.BytesIO(body)) as zf:
            manifest = json.loads(zf.read("manifest.json"))
        assert manifest == {
            "pass.json": sha1_hex(b'{"a":1}'),
            "icon.png": sha1_hex(b"PNGDATA"),
        }

    def test_trailing_slash(self, server, make_model):
        make_model("coupon")
        status, _, _ = get(server, "/gen/coupon/")
        assert status == 201

    def test_body_matches_published_file(self, server, make_model, config):
        make_model("event")
        _, _, body = get(server, "/gen/event")
        assert body == (config.output_dir / "event.pkpass").read_bytes()

    def test_unsupported_type(self, server):
        status, headers, body = get(server, "/gen/ticket")
        data = json.loads(body)
        assert status == 400
        assert headers["Content-Type"] == "application/json"
        assert data["status"] is False
        assert data["ecode"] == 400
        assert data["error"] == "unsupported_package_type"
        assert "ticket" in data["message"]

    def test_traversal_rejected(self, server):
        status, _, _ = get(server, "/gen/..%2Fevent")
        assert status == 400

    def test_encoded_newline_rejected(self, server, make_model):
        make_model("event")
        status, _, _ = get(server, "/gen/event%0A")
        assert status == 400

    def test_missing_model(self, server):
        status, _, body = get(server, "/gen/generic")
        assert status == 404
        assert json.loads(body)["error"] == "source_not_found"

    def test_model_without_pass_json(self, server, make_model):
        make_model("event", {"icon.png": b"I"})
        status, _, body = get(server, "/gen/event")
        assert status == 422
        assert json.loads(body)["error"] == "missing_required_entry"

    def test_pipeline_failure_is_500(self, server, make_model):
        make_model("event")
        from passkit.errors import SigningFailed

        async def failing(manifest):
            raise SigningFailed("Signer exited with status 1", b"bad key")

        with patch.object(server.assembler.signer, "_sign", failing):
            status, _, body = get(server, "/gen/event")
        data = json.loads(body)
        assert status == 500
        assert data["error"] == "signing_failed"
        assert "bad key" in data["message"]

    def test_unexpected_error_is_500(self, server, make_model):
        make_model("event")
        with patch.object(server.assembler, "assemble_sync", side_effect=RuntimeError("boom")):
            status, _, body = get(server, "/gen/event")
        assert status == 500
        assert json.loads(body)["error"] == "internal_error"


class TestOtherRoutes:

    def test_root(self, server):
        status, headers, body = get(server, "/")
        assert status == 200
        assert headers["Content-Type"].startswith("text/plain")
        assert b"/gen/" in body

    def test_models(self, server, make_model):
        make_model("event")
        make_model("store")
        status, _, body = get(server, "/models")
        assert status == 200
        assert json.loads(body) == {"status": True, "models": ["event", "store"]}

    def test_unknown_route(self, server):
        status, _, body = get(server, "/nope")
        assert status == 404
        assert json.loads(body)["status"] is False

    def test_liveness(self, server):
        status, _, body = get(server, "/health/live")
        assert status == 200
        assert json.loads(body)["status"] == "ok"

    def test_health(self, server):
        status, _, body = get(server, "/health")
        data = json.loads(body)
        names = {c["name"] for c in data["components"]}
        assert names == {"signing", "models", "disk"}
        assert status in (200, 503)

    def test_readiness_fails_without_models_dir(self, make_config, temp_dir):
        config = make_config(models={'dir': str(temp_dir / "absent")})
        srv = PassServer(config, assembler=PassAssembler(config, signer=EchoSigner()))
        assert srv.start(host="127.0.0.1", port=0)
        try:
            status, _, body = get(srv, "/health/ready")
        finally:
            srv.stop()
        assert status == 503
        assert json.loads(body)["status"] == "fail"


class TestHealthChecker:
    """Tests for HealthChecker."""

    def test_signing_and_models_healthy(self, config, make_model):
        make_model("event")
        checker = HealthChecker(config, PassAssembler(config).signer)
        result = checker.run_checks()
        components = {c.name: c for c in result.components}
        assert components["signing"].status == HealthStatus.HEALTHY
        assert components["signing"].details["backend"] == "pkcs7"
        assert components["models"].status == HealthStatus.HEALTHY

    def test_missing_key_unhealthy(self, config, identity):
        (identity.dir / "signerKey.pem").unlink()
        checker = HealthChecker(config, PassAssembler(config).signer)
        result = checker.run_checks()
        assert result.status == HealthStatus.UNHEALTHY
        ready, _ = checker.check_readiness()
        assert not ready

    def test_disk_check_uses_existing_ancestor(self, config):
        checker = HealthChecker(config, EchoSigner())
        disk = checker._check_disk()
        assert disk.status in (HealthStatus.HEALTHY, HealthStatus.DEGRADED, HealthStatus.UNHEALTHY)
        assert "percent" in disk.details

    def test_disk_usage_thresholds(self, config):
        checker = HealthChecker(config, EchoSigner())
        usage = type("usage", (), {"percent": 97.0, "free": 1024 * 1024})()
        with patch("passkit.api.health.psutil.disk_usage", return_value=usage):
            assert checker._check_disk().status == HealthStatus.UNHEALTHY

    def test_failing_check_reported(self, config):
        checker = HealthChecker(config, EchoSigner())

        def broken():
            raise RuntimeError("probe crashed")

        checker.register_check("broken", broken)
        result = checker.run_checks()
        broken_component = next(c for c in result.components if c.name == "broken")
        assert broken_component.status == HealthStatus.UNHEALTHY
        assert "probe crashed" in broken_component.message

    def test_custom_check(self, config):
        checker = HealthChecker(config, EchoSigner())
        checker.register_check("extra", lambda: ComponentHealth("extra", HealthStatus.DEGRADED))
        assert checker.run_checks().to_dict()["components"][-1]["status"] == "degraded"
