"""
Host details stored with each benchmark run.

Latency numbers are only comparable between runs on similar hosts, so the
manifest records what the summary reports: platform, interpreter, core
count and memory, plus the versions of the measuring libraries.
"""

import platform
from datetime import datetime
from typing import Any, Dict

import pandas
import psutil


def get_timestamp() -> str:
    return datetime.now().isoformat()


def capture_system_info() -> Dict[str, Any]:
    """Snapshot of the benchmarking host."""
    memory = psutil.virtual_memory()

    return {
        "timestamp": get_timestamp(),
        "system": {"platform": platform.platform()},
        "python": {
            "version": platform.python_version(),
            "implementation": platform.python_implementation(),
        },
        "hardware": {
            "cpu": {"logical_cores": psutil.cpu_count(logical=True)},
            "memory_total_gb": round(memory.total / (1024**3), 2),
        },
        "libraries": {"psutil": psutil.__version__, "pandas": pandas.__version__},
    }
