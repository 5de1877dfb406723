"""Pytest configuration and shared fixtures for HorizonOcclusion tests."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest


# Add project root to path so imports work
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from occlusion_engine.bodies import build_registry  # noqa: E402
from occlusion_engine.constants import load_config  # noqa: E402
from occlusion_engine.precision import NumericKernel  # noqa: E402

TEST_DIGITS = 50


def pytest_configure(config: pytest.Config) -> None:
    """Configure logging for tests."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s [%(levelname)s] %(message)s",
    )


def write_config(path: Path, **sections: dict) -> Path:
    """Write a YAML config holding only the given sections."""
    import yaml

    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(sections, f, sort_keys=False)
    return path


@pytest.fixture
def kernel() -> NumericKernel:
    """A 50-digit kernel; plenty for km-scale geometry at 1e8 km."""
    return NumericKernel(TEST_DIGITS)


@pytest.fixture
def small_config(tmp_path: Path):
    """Default bodies, coarse grid (8 cells), low precision, two workers."""
    path = write_config(
        tmp_path / "config.yaml",
        numeric={"precision_digits": TEST_DIGITS},
        sphere={"resolution": 1},
        visualization={"output": str(tmp_path / "projections.png")},
        runtime={"workers": 2, "progress_interval": 4, "report_interval": 8},
    )
    return load_config(path, write_back=False)


@pytest.fixture
def registry(small_config, kernel):
    """Earth, Moon and Sun placed co-linearly on +x."""
    return build_registry(small_config, kernel)
