from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from disc_builder import build_standard_disc


@pytest.fixture(scope="session")
def standard_disc_template(tmp_path_factory) -> Path:
    """Build the synthetic disc once; tests work on copies."""
    return build_standard_disc(tmp_path_factory.mktemp("template") / "template.iso")


@pytest.fixture
def disc_path(standard_disc_template, tmp_path) -> Path:
    target = tmp_path / "soa.iso"
    shutil.copyfile(standard_disc_template, target)
    return target
