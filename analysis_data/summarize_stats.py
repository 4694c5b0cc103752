"""
Report median search effort (nodes, decisions, conflicts) and the verdict agreement
with Minisat22 from the JSON stats saved by py_backtrack.run_batch.
"""
import os
import sys
import glob
import json
import numpy as np

METRICS = ["nodes", "decisions", "conflicts", "backtracks", "max_depth"]


def read_metric(item, metric):
    """
    Read a numeric metric from one JSON record.

    Args:
    	item: One JSON record with a 'stats' block.
    	metric: Metric key, e.g., 'nodes'.

    Returns:
    	Float value or None if missing/invalid.
    """
    block = item.get("stats")
    if not isinstance(block, dict):
        return None
    v = block.get(metric)
    if isinstance(v, (int, float)) and not isinstance(v, bool) and np.isfinite(v):
        return float(v)
    return None


def analyze_file(items):
    """
    Summarize one file of records.

    Args:
    	items: List of JSON records.

    Returns:
    	Dict with per-metric medians, status counts and agreement counts.
    """
    out = {"metrics": {}, "status": {}, "agree": 0, "n_verified": 0, "bad_models": 0}
    for m in METRICS:
        values = [v for v in (read_metric(it, m) for it in items) if v is not None]
        out["metrics"][m] = {
            "median": float(np.median(np.array(values, dtype=float))) if values else None,
            "n": len(values),
        }

    for it in items:
        status = it.get("status", "UNKNOWN")
        out["status"][status] = out["status"].get(status, 0) + 1
        if "agrees" in it:
            out["n_verified"] += 1
            if it["agrees"]:
                out["agree"] += 1
        if it.get("model_ok") is False:
            out["bad_models"] += 1
    return out


def print_file_summary(filename, summary):
    """
    Pretty-print the summary of a single file.

    Args:
    	filename: Base file name.
    	summary: Output from analyze_file().
    """
    print(f"FILE: {filename}")
    counts = ", ".join(f"{k}={v}" for k, v in sorted(summary["status"].items()))
    print(f"  status: {counts}")
    for m in METRICS:
        s = summary["metrics"][m]
        med = "NA (n=0)" if s["median"] is None else f"{s['median']:.1f} (n={s['n']})"
        print(f"  {m}: median={med}")
    if summary["n_verified"]:
        rate = summary["agree"] / summary["n_verified"]
        print(f"  agreement with Minisat22: {rate:.3f} (n={summary['n_verified']})")
    if summary["bad_models"]:
        print(f"  WARNING: {summary['bad_models']} model(s) do not satisfy their formula")
    print("")


def main(folder):
    files = sorted(glob.glob(os.path.join(folder, "*.json")))
    if not files:
        print(f"No .json files in {folder}")
        return

    all_items = []
    for path in files:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            print(f"Skipping {path}: expected a list of dicts")
            continue
        print_file_summary(os.path.basename(path), analyze_file(data))
        all_items.extend(data)

    print("FINAL (across all files)")
    print_file_summary("*", analyze_file(all_items))


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else "./output/backtrack")
