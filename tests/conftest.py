"""
Shared fixtures.
"""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from md2pdf.app import build_app
from md2pdf.config import Settings, init_settings, reset_settings
from md2pdf.modules.render import JobRegistry, RenderDriver

from .fakes import FakeEngineFactory


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Scratch directory for source files."""
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def settings(tmp_path: Path):
    """Settings pointing every path at the test's tmp dir, with short waits."""
    test_settings = Settings(
        tmp_dir=tmp_path / "tmp",
        output_dir=tmp_path / "output",
        libs_dir=tmp_path / "libs",
        render_timeout_ms=5_000,
        cli_timeout_ms=5_000,
        asset_wait_timeout_ms=50,
        math_ready_timeout_ms=50,
        math_settle_ms=0,
    )
    init_settings(test_settings)
    yield test_settings
    reset_settings()


@pytest.fixture
def engine_factory() -> FakeEngineFactory:
    return FakeEngineFactory()


@pytest.fixture
def registry() -> JobRegistry:
    return JobRegistry()


@pytest.fixture
def driver(settings: Settings, registry: JobRegistry, engine_factory: FakeEngineFactory) -> RenderDriver:
    return RenderDriver(settings, registry, engine_factory=engine_factory)


@pytest.fixture
def client(settings: Settings, engine_factory: FakeEngineFactory):
    """Test client backed by fake engines."""
    app = build_app(settings, engine_factory=engine_factory)
    with TestClient(app) as test_client:
        yield test_client


