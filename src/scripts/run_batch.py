#!/usr/bin/env python3
"""
Batch Deposition Runner

Runs independent trials over several substrate lengths in parallel and
estimates the roughness exponent alpha from the saturated widths.
"""

import argparse
import json
import sys
import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Dict

from surfgrowth import TrialConfig, TrialContext, analyze_trial, analysis, run_trial, utils


def run_single_trial(
    model: str, L: int, H: int, dH: int, steps: int, seed: int,
    t0: int, tx1: int, tx2: int, output_path: str,
) -> Dict[str, Any]:
    """
    Run one trial and save it.

    Module level so ProcessPoolExecutor can pickle it.
    """
    config = TrialConfig(
        params={"L": L, "H": H, "dH": dH},
        model=model,
        max_steps=steps,
        seed=seed,
    )
    context = TrialContext(remaining_trials=1)
    outcome = run_trial(config, context)
    stats = analyze_trial(outcome, context, t0, tx1, tx2)

    result = utils.result_from_engine(outcome.engine, include_window=False)
    result.ensure_meta().update(stats.to_dict())
    utils.save_run_result(output_path, result)
    outcome.engine.clear_memory()

    return {"output_path": output_path, "seed": seed, **stats.to_dict()}


def main():
    parser = argparse.ArgumentParser(
        description="Generate a batch of deposition runs and fit alpha",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--model", choices=["ballistic", "random"], default="ballistic")
    parser.add_argument("--L", type=int, nargs="+", required=True, help="Substrate lengths")
    parser.add_argument("--H", type=int, default=65_536)
    parser.add_argument("--dH", type=int, default=256)
    parser.add_argument("--steps", type=int, required=True, help="Deposits per run")
    parser.add_argument("--count", type=int, default=1, help="Runs per length")
    parser.add_argument("--t0", type=int, default=1)
    parser.add_argument("--tx1", type=int, default=0)
    parser.add_argument("--tx2", type=int, default=0)
    parser.add_argument("--jobs", type=int, default=1, help="Parallel processes (default: 1)")
    parser.add_argument("--name", type=str, default="batch")
    parser.add_argument("--base-seed", type=int, default=42)
    args = parser.parse_args()

    timestamp = utils.now_str()
    batch_dir = Path("results") / "batches" / f"{args.name}_{args.model}_{timestamp}"
    batch_dir.mkdir(parents=True, exist_ok=True)

    manifest = {
        "model": args.model,
        "lengths": args.L,
        "H": args.H,
        "dH": args.dH,
        "steps": args.steps,
        "count": args.count,
        "base_seed": args.base_seed,
        "window": {"t0": args.t0, "tx1": args.tx1, "tx2": args.tx2},
        "timestamp": timestamp,
    }
    manifest_path = batch_dir / "manifest.json"
    with open(manifest_path, "w") as f:
        json.dump(manifest, f, indent=2)

    tasks = []
    seed = args.base_seed
    for L in args.L:
        for _ in range(args.count):
            out = str(batch_dir / f"L{L}_S{seed}.npz")
            tasks.append((args.model, L, args.H, args.dH, args.steps, seed,
                          args.t0, args.tx1, args.tx2, out))
            seed += 1

    print(f"Batch started: {len(tasks)} runs over L={args.L}, jobs={args.jobs}")
    start_time = time.time()
    results = []
    failed = []

    with ProcessPoolExecutor(max_workers=args.jobs) as executor:
        future_to_task = {executor.submit(run_single_trial, *task): task for task in tasks}
        completed = 0
        for future in as_completed(future_to_task):
            completed += 1
            task = future_to_task[future]
            try:
                result = future.result()
                results.append(result)
                print(f"  [{completed}/{len(tasks)}] L={result['L']} seed={result['seed']} "
                      f"beta={result['beta']:.4f} lnw_avg={result['lnw_avg']:.4f}")
            except Exception as e:
                failed.append({"task": task[-1], "error": str(e)})
                print(f"  [{completed}/{len(tasks)}] FAILED: {task[-1]} - {e}")

    elapsed_time = time.time() - start_time

    alpha_fit = analysis.fit_alpha([r["L"] for r in results], [r["lnw_avg"] for r in results])
    manifest["results"] = {
        "total": len(tasks),
        "successful": len(results),
        "failed": len(failed),
        "elapsed_seconds": elapsed_time,
        "beta_avg": analysis.average_beta(r["beta"] for r in results),
        "alpha": alpha_fit.slope,
        "R2": alpha_fit.r_squared,
    }
    manifest["runs"] = results
    if failed:
        manifest["failures"] = failed
    with open(manifest_path, "w") as f:
        json.dump(manifest, f, indent=2)

    print()
    print("=" * 60)
    print(f"  Successful: {len(results)}/{len(tasks)}")
    print(f"  beta_avg = {manifest['results']['beta_avg']:.5f}")
    print(f"  alpha    = {alpha_fit.slope:.5f} (R² = {alpha_fit.r_squared:.5f})")
    print(f"  Total time: {elapsed_time:.2f} seconds")
    print(f"  Manifest: {manifest_path}")
    print("=" * 60)

    return 0 if not failed else 1


if __name__ == "__main__":
    sys.exit(main())
