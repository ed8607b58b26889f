"""
Disk I/O statistics from /proc/diskstats, similar to Node Exporter's
diskstats collector.

Each line of the source looks like:

       8       0 sda 100 5 2000 100 50 5 1000 50 2 300 400

i.e. major, minor, device name and the 11 counters documented in
https://www.kernel.org/doc/Documentation/iostats.txt. Two byte counters
are derived from the sector counts and appended at positions 11 and 12.
"""

import logging
import re
from typing import Callable, Dict, Iterable, List, NamedTuple

from collector.errors import FormatError
from collector.metrics import (
    COUNTER,
    GAUGE,
    MetricDescriptor,
    MetricSink,
    Sample,
    build_fq_name,
)
from core.config import settings
from core.paths import proc_file_path

logger = logging.getLogger(__name__)

NAMESPACE = "node"
DISK_SUBSYSTEM = "disk"
DISK_SECTOR_SIZE = 512
MAX_UINT64 = 2 ** 64 - 1

SECTORS_READ_INDEX = 2
SECTORS_WRITTEN_INDEX = 6
BYTES_READ_INDEX = 11
BYTES_WRITTEN_INDEX = 12

_UINT_RE = re.compile(r"[0-9]+")


def ms_to_seconds(v):
    return v / 1000.0


def as_is(v):
    return v


class DiskstatsField(NamedTuple):
    index: int
    descriptor: MetricDescriptor
    convert: Callable[[float], float]


def _desc(name: str, documentation: str, kind: str = COUNTER) -> MetricDescriptor:
    return MetricDescriptor(build_fq_name(NAMESPACE, DISK_SUBSYSTEM, name), documentation, kind)


# Position in this table is the position in a device's field list.
DISKSTATS_FIELDS = (
    DiskstatsField(0, _desc("reads_completed_total",
                            "The total number of reads completed successfully."), as_is),
    DiskstatsField(1, _desc("reads_merged_total",
                            "The total number of reads merged. See https://www.kernel.org/doc/Documentation/iostats.txt."), as_is),
    DiskstatsField(2, _desc("read_sectors_total",
                            "The total number of sectors read successfully."), as_is),
    DiskstatsField(3, _desc("read_time_seconds_total",
                            "The total number of seconds spent by all reads."), ms_to_seconds),
    DiskstatsField(4, _desc("writes_completed_total",
                            "The total number of writes completed successfully."), as_is),
    DiskstatsField(5, _desc("writes_merged_total",
                            "The number of writes merged. See https://www.kernel.org/doc/Documentation/iostats.txt."), as_is),
    DiskstatsField(6, _desc("written_sectors_total",
                            "The total number of sectors written successfully."), as_is),
    DiskstatsField(7, _desc("write_time_seconds_total",
                            "This is the total number of seconds spent by all writes."), ms_to_seconds),
    DiskstatsField(8, _desc("io_now",
                            "The number of I/Os currently in progress.", GAUGE), as_is),
    DiskstatsField(9, _desc("io_time_seconds_total",
                            "Total seconds spent doing I/Os."), ms_to_seconds),
    DiskstatsField(10, _desc("io_time_weighted_seconds_total",
                             "The weighted # of seconds spent doing I/Os. See https://www.kernel.org/doc/Documentation/iostats.txt."), ms_to_seconds),
    DiskstatsField(BYTES_READ_INDEX, _desc("read_bytes_total",
                                           "The total number of bytes read successfully."), as_is),
    DiskstatsField(BYTES_WRITTEN_INDEX, _desc("written_bytes_total",
                                              "The total number of bytes written successfully."), as_is),
)


class DeviceFilter:
    """Device filter class to exclude block devices by name"""

    def __init__(self, pattern):
        self.pattern = re.compile(pattern)

    def ignored(self, device_name):
        return self.pattern.search(device_name) is not None


def convert_sectors_to_bytes(sector_count: str) -> int:
    """Unsigned 64-bit sector count to bytes, without wrapping."""
    if not _UINT_RE.fullmatch(sector_count):
        raise FormatError(f"invalid sector count {sector_count!r}")
    sectors = int(sector_count)
    if sectors > MAX_UINT64:
        raise FormatError(f"sector count {sector_count} out of range")
    n = sectors * DISK_SECTOR_SIZE
    if n > MAX_UINT64:
        raise FormatError(f"sector count {sector_count} overflows 64-bit byte count")
    return n


def _derive_bytes(fields, path, line):
    for src, dst, what in (
        (SECTORS_READ_INDEX, BYTES_READ_INDEX, "sectors read"),
        (SECTORS_WRITTEN_INDEX, BYTES_WRITTEN_INDEX, "sectors written"),
    ):
        raw = fields[src] if src < len(fields) else ""
        try:
            n = convert_sectors_to_bytes(raw)
        except FormatError as e:
            raise FormatError(f"invalid value for {what} in {path}: {line} ({e})") from None
        if dst < len(fields):
            fields[dst] = str(n)
        else:
            fields.append(str(n))


def parse_diskstats(lines: Iterable[str], path: str) -> Dict[str, List[str]]:
    """
    Parse diskstats lines into {device: [field, ...]}.

    Fields keep their raw string form; bytes read/written are derived from
    fields 2 and 6 and stored at 11 and 12. A device seen twice keeps the
    last line.
    """
    stats = {}
    for line in lines:
        line = line.rstrip("\n")
        parts = line.split()
        # major, minor and device name are stripped
        if len(parts) < 4:
            raise FormatError(f"invalid line in {path}: {line}")

        dev = parts[2]
        fields = parts[3:]
        _derive_bytes(fields, path, line)

        if dev in stats:
            logger.debug(f"Duplicate device {dev} in {path}, keeping last line")
        stats[dev] = fields
    return stats


def read_diskstats(path):
    with open(path, "r", encoding="ascii") as f:
        try:
            return parse_diskstats(f, path)
        except UnicodeDecodeError as e:
            raise FormatError(f"invalid encoding in {path}: {e}") from None


def parse_value(raw, device, path):
    try:
        return float(raw)
    except ValueError:
        raise FormatError(f"invalid value {raw!r} for {device} in {path}") from None


class DiskstatsCollector:
    def __init__(self, procfs_root=None, ignored_devices=None):
        self.procfs_root = procfs_root
        if ignored_devices is None:
            ignored_devices = settings.DISKSTATS_IGNORED_DEVICES
        self.device_filter = DeviceFilter(ignored_devices)
        self.fields = DISKSTATS_FIELDS

    def update(self, emit):
        # first error propagates, earlier devices stay emitted
        path = proc_file_path("diskstats", self.procfs_root)
        stats = read_diskstats(path)

        for dev, values in stats.items():
            if self.device_filter.ignored(dev):
                logger.debug(f"Ignoring device: {dev}")
                continue

            if len(values) != len(self.fields):
                raise FormatError(f"invalid line for {path} for {dev}")

            # parse the whole device first so a bad value emits nothing for it
            converted = [field.convert(parse_value(values[field.index], dev, path)) for field in self.fields]
            for field, v in zip(self.fields, converted):
                emit(Sample(field.descriptor, (dev,), v))

    def describe(self):
        for field in self.fields:
            yield field.descriptor.new_family()

    def collect(self):
        sink = MetricSink()
        try:
            self.update(sink.emit)
        finally:
            yield from sink.families()
