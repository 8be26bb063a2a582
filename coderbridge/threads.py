"""
CPU thread heuristics for choosing ``thread_count``.

On big.LITTLE systems decoding runs best on the high-performance cores only.
Those are detected from each core's maximum frequency in sysfs; when that is
unavailable a core or two is left free for the host application.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

CPU_SYSFS_PATH = "/sys/devices/system/cpu"
BIG_CORE_THRESHOLD_KHZ = 2_000_000
_CPU_DIR_PATTERN = re.compile(r"^cpu\d+$")


@dataclass
class ThreadConfig:
    """
    Recommended thread setup.

    Attributes:
        threads: Threads to pass to ``Engine.init``
        total_cores: Logical CPUs available
        high_performance_cores: Cores at or above the big-core frequency threshold
        used_high_performance_only: True if ``threads`` fits on the big cores
    """

    threads: int
    total_cores: int
    high_performance_cores: int
    used_high_performance_only: bool

    def __str__(self) -> str:
        return (
            f"ThreadConfig(threads={self.threads}, cores={self.total_cores}, "
            f"big_cores={self.high_performance_cores})"
        )


def detect_high_performance_cores(total_cores: int, cpu_root: str = CPU_SYSFS_PATH) -> int:
    """Count cores whose ``cpuinfo_max_freq`` is at least ``BIG_CORE_THRESHOLD_KHZ``."""
    root = Path(cpu_root)
    if not root.is_dir():
        return 0

    count = 0
    for entry in root.iterdir():
        if not _CPU_DIR_PATTERN.match(entry.name):
            continue
        freq_file = entry / "cpufreq" / "cpuinfo_max_freq"
        try:
            freq_khz = int(freq_file.read_text().strip())
        except (OSError, ValueError):
            continue
        if freq_khz >= BIG_CORE_THRESHOLD_KHZ:
            count += 1

    return min(count, total_cores)


def recommended_thread_config(cpu_root: str = CPU_SYSFS_PATH) -> ThreadConfig:
    """
    Pick a decoding thread count for this machine.

    Example:
        >>> config = recommended_thread_config()
        >>> engine.init("./model.gguf", config.threads)
    """
    total = max(1, os.cpu_count() or 1)
    perf = max(0, min(detect_high_performance_cores(total, cpu_root), total))

    if perf >= 2:
        preferred = perf
    elif total >= 8:
        preferred = total - 2
    elif total >= 4:
        preferred = total - 1
    else:
        preferred = total
    preferred = max(1, min(preferred, total))

    config = ThreadConfig(
        threads=preferred,
        total_cores=total,
        high_performance_cores=perf,
        used_high_performance_only=perf >= 2 and preferred <= perf,
    )
    logger.debug("Recommended %s", config)
    return config
