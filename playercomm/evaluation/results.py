"""
Results handling for latency benchmarks.
"""

import json
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd

from .benchmark import LatencyBenchmarkResult
from .sysinfo import get_timestamp


def new_run_root(outdir: Path) -> Path:
    """Create a new timestamped results directory."""
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    run_root = Path(outdir) / timestamp
    run_root.mkdir(parents=True, exist_ok=True)
    return run_root


def results_frame(results: List[LatencyBenchmarkResult]) -> pd.DataFrame:
    """
    Flatten benchmark results into one row per transport.

    Memory deltas become ``memory_rss_delta`` / ``memory_vms_delta`` columns.
    """
    rows = []
    for result in results:
        row = asdict(result)
        memory = row.pop('memory_usage') or {}
        for key, value in memory.items():
            row[f"memory_{key}"] = value
        rows.append(row)
    return pd.DataFrame(rows)


def write_results(output_root: Path, results: List[LatencyBenchmarkResult],
                  sysinfo: Dict[str, Any], format: str = 'both') -> List[Path]:
    """
    Write results, a manifest and a markdown summary.

    Args:
        output_root: Directory to write files
        results: Benchmark results
        sysinfo: Output of capture_system_info()
        format: 'csv', 'json', or 'both'

    Returns:
        List of written file paths
    """
    output_root = Path(output_root)
    output_root.mkdir(parents=True, exist_ok=True)
    frame = results_frame(results)
    written_files = []

    if format in ['csv', 'both']:
        csv_path = output_root / "latency.csv"
        frame.to_csv(csv_path, index=False)
        written_files.append(csv_path)

    if format in ['json', 'both']:
        json_path = output_root / "latency.json"
        frame.to_json(json_path, orient='records', indent=2)
        written_files.append(json_path)

    manifest_path = output_root / "manifest.json"
    with open(manifest_path, 'w') as f:
        json.dump({
            "timestamp": get_timestamp(),
            "sysinfo": sysinfo,
            "files": [path.name for path in written_files],
        }, f, indent=2, default=str)
    written_files.append(manifest_path)

    written_files.append(write_summary(output_root, frame, sysinfo))
    return written_files


def write_summary(output_root: Path, frame: pd.DataFrame, sysinfo: Dict[str, Any]) -> Path:
    """Write a short markdown summary of a benchmark run."""
    summary_path = Path(output_root) / "SUMMARY.md"

    with open(summary_path, 'w') as f:
        f.write("# Player Exchange Latency\n\n")
        f.write(f"**Generated:** {get_timestamp()}\n\n")

        f.write("## System Information\n\n")
        f.write(f"- **Platform:** {sysinfo.get('system', {}).get('platform', 'Unknown')}\n")
        f.write(f"- **Python:** {sysinfo.get('python', {}).get('version', 'Unknown')}\n")
        hardware = sysinfo.get('hardware', {})
        cpu = hardware.get('cpu', {})
        f.write(f"- **CPU Cores:** {cpu.get('logical_cores', 'Unknown')}\n")
        f.write(f"- **Memory:** {hardware.get('memory_total_gb', 'Unknown')} GB\n\n")

        f.write("## Round-trip latency (microseconds)\n\n")
        f.write("| transport | rounds | mean | median | p95 | max |\n")
        f.write("|---|---|---|---|---|---|\n")
        for row in frame.itertuples(index=False):
            f.write(f"| {row.transport} | {row.rounds} | {row.mean_us:.1f} | "
                    f"{row.median_us:.1f} | {row.p95_us:.1f} | {row.max_us:.1f} |\n")

    return summary_path
