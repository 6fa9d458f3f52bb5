"""Pytest configuration and fixtures."""

import gc
import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from idiomindex.config import Settings

SAMPLE_MANIFEST = """\
idioms:
  status.success:
    value: success
    phrases:
      - Operation completed successfully.
      - Everything worked.
  status.error:
    value: error
    phrases:
      - An error occurred during processing.
      - Something failed.
  status.pending:
    phrases:
      - The operation is still running.
"""


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    try:
        yield Path(tmpdir)
    finally:
        gc.collect()
        shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def manifest_file(temp_dir: Path) -> Path:
    """Write a small three-idiom manifest."""
    path = temp_dir / "manifest.yaml"
    path.write_text(SAMPLE_MANIFEST, encoding="utf-8")
    return path


@pytest.fixture
def override_settings(temp_dir: Path) -> Generator[Settings, None, None]:
    """Provide isolated idiomindex settings scoped to tests."""

    import idiomindex.config as config_module

    original_settings = getattr(config_module, "_settings", None)

    data_dir = temp_dir / "appdata"
    data_dir.mkdir(parents=True, exist_ok=True)

    settings = config_module.Settings(
        data_dir=data_dir,
        precache_path=temp_dir / ".idiomindex" / "precache.yaml",
    )

    config_module._settings = settings

    try:
        yield settings
    finally:
        config_module._settings = original_settings
