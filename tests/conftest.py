import os

import pytest

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")

# devices in fixtures/proc/diskstats that the default pattern keeps
FIXTURE_DEVICES = ["sda", "nvme0n1", "dm-0", "mmcblk0", "mmcblk0p1", "sr0", "vda", "md0"]


@pytest.fixture
def procfs_root():
    return os.path.join(FIXTURES_DIR, "proc")


@pytest.fixture
def make_procfs(tmp_path):
    """Write the given lines as <tmp>/diskstats and return <tmp> as a procfs root."""

    def _make(*lines):
        (tmp_path / "diskstats").write_text("".join(line + "\n" for line in lines))
        return str(tmp_path)

    return _make


@pytest.fixture
def restore_settings():
    from core.config import settings

    saved = settings.model_dump()
    yield settings
    for k, v in saved.items():
        setattr(settings, k, v)
