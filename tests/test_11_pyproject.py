"""Tests for pyproject.toml and package installation."""
from __future__ import annotations

import subprocess
import sys
from pathlib import Path

PYPROJECT = Path(__file__).parent.parent / "pyproject.toml"


class TestPackageInstallation:
    """Test that the package is properly installed."""

    def test_version_defined(self):
        import tts_gateway

        assert isinstance(tts_gateway.__version__, str)
        assert len(tts_gateway.__version__) > 0

    def test_core_modules_importable(self):
        from tts_gateway.api import routes, schemas
        from tts_gateway.core import config, logging, metrics
        from tts_gateway.services import dispatcher
        from tts_gateway.tts import backend, cache, credentials

        for module in (routes, schemas, config, logging, metrics, dispatcher, backend, cache, credentials):
            assert module is not None

    def test_backends_importable(self):
        from tts_gateway.tts.backends import ESpeakBackend, GCloudBackend, GTTSBackend, PollyBackend

        assert GTTSBackend.mode.value == "gTTS"
        assert ESpeakBackend.mode.value == "eSpeak"
        assert PollyBackend.mode.value == "Polly"
        assert GCloudBackend.mode.value == "gCloud"


class TestCLIEntryPoint:
    def test_cli_help_exits_zero(self):
        result = subprocess.run(
            [sys.executable, "-m", "tts_gateway.cli", "--help"],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0
        assert "tts-gateway" in result.stdout


class TestPyprojectToml:
    def _load(self):
        import tomllib

        return tomllib.loads(PYPROJECT.read_text(encoding="utf-8"))

    def test_project_name(self):
        data = self._load()
        assert data["project"]["name"] == "tts-gateway"

    def test_has_dependencies(self):
        deps = self._load()["project"]["dependencies"]
        dep_names = [d.split(">=")[0].split("[")[0].lower() for d in deps]
        for name in ("fastapi", "uvicorn", "pydantic", "pyyaml", "httpx", "redis", "cryptography", "pyjwt", "aioboto3"):
            assert name in dep_names

    def test_console_script(self):
        scripts = self._load()["project"]["scripts"]
        assert scripts["tts-gateway"] == "tts_gateway.cli:main"
