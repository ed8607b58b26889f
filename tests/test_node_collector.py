"""Tests for the scrape wrapper around collectors"""

from prometheus_client import generate_latest

from collector.disk.diskstats_linux import DiskstatsCollector
from collector.errors import FormatError
from collector.main import NodeCollector, build_registry, default_collectors
from conftest import FIXTURE_DEVICES

SDA_LINE = "8 0 sda 100 5 2000 100 50 5 1000 50 2 300 400"


def diskstats_registry(root):
    return build_registry({"diskstats": DiskstatsCollector(procfs_root=root)})


def test_successful_scrape(procfs_root):
    registry = diskstats_registry(procfs_root)

    assert registry.get_sample_value("node_scrape_collector_success", {"collector": "diskstats"}) == 1.0
    assert registry.get_sample_value("node_scrape_collector_duration_seconds", {"collector": "diskstats"}) >= 0
    assert registry.get_sample_value("node_disk_read_bytes_total", {"device": "sda"}) == 1024000.0
    assert registry.get_sample_value("node_disk_io_now", {"device": "sda"}) == 2.0
    assert registry.get_sample_value("node_disk_reads_completed_total", {"device": "loop0"}) is None

    text = generate_latest(registry).decode("utf-8")
    for dev in FIXTURE_DEVICES:
        assert f'node_disk_written_bytes_total{{device="{dev}"}}' in text
    assert "# TYPE node_disk_io_now gauge" in text
    assert "# TYPE node_disk_read_time_seconds counter" in text


def test_missing_source_marks_failure(tmp_path, caplog):
    registry = diskstats_registry(str(tmp_path))

    assert registry.get_sample_value("node_scrape_collector_success", {"collector": "diskstats"}) == 0.0
    assert registry.get_sample_value("node_disk_io_now", {"device": "sda"}) is None
    assert "collector diskstats failed" in caplog.text


def test_partial_emission_is_exposed(make_procfs):
    root = make_procfs(SDA_LINE, "8 16 sdb 1 2 3 4 5 6 7 8 9 10 11 12 13 14 15")
    registry = diskstats_registry(root)

    assert registry.get_sample_value("node_scrape_collector_success", {"collector": "diskstats"}) == 0.0
    assert registry.get_sample_value("node_disk_io_now", {"device": "sda"}) == 2.0
    assert registry.get_sample_value("node_disk_io_now", {"device": "sdb"}) is None


class FailingCollector:
    def describe(self):
        return []

    def update(self, emit):
        raise FormatError("broken")


def test_failure_does_not_stop_other_collectors(procfs_root):
    node = NodeCollector({
        "broken": FailingCollector(),
        "diskstats": DiskstatsCollector(procfs_root=procfs_root),
    })
    families = {f.name: f for f in node.collect()}

    success = {s.labels["collector"]: s.value for s in families["node_scrape_collector_success"].samples}
    assert success == {"broken": 0, "diskstats": 1}
    assert "node_disk_io_now" in families


def test_describe_does_not_read_procfs(tmp_path):
    node = NodeCollector({"diskstats": DiskstatsCollector(procfs_root=str(tmp_path))})
    names = [f.name for f in node.describe()]
    assert names[:2] == ["node_scrape_collector_duration_seconds", "node_scrape_collector_success"]
    assert len(names) == 15


def test_default_collectors():
    assert list(default_collectors()) == ["diskstats"]


def test_undecodable_source_marks_failure(tmp_path, caplog):
    (tmp_path / "diskstats").write_bytes(
        SDA_LINE.encode() + b"\n8 1 sd\xff 1 2 3 4 5 6 7 8 9 10 11\n"
    )
    registry = diskstats_registry(str(tmp_path))

    text = generate_latest(registry).decode("utf-8")
    assert 'node_scrape_collector_success{collector="diskstats"} 0.0' in text
    assert "invalid encoding" in caplog.text
