#!/usr/bin/env python3
"""
Single Deposition Run

Runs one deposition trial, fits beta and the saturated width, and saves
heights, width series and the final lattice slot to an .npz file.
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from surfgrowth import (
    NpyPageStore,
    SqlitePageStore,
    TrialConfig,
    TrialContext,
    analyze_trial,
    run_trial,
    utils,
)


def make_store(kind: str, out_stem: Path):
    if kind == "memory":
        return None
    if kind == "npy":
        return NpyPageStore(out_stem.with_name(out_stem.name + "_pages"))
    if kind == "sqlite":
        return SqlitePageStore(out_stem.with_suffix(".sqlite"))
    raise ValueError(f"Unknown store: {kind}")


def main():
    parser = argparse.ArgumentParser(
        description="Run a single deposition simulation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=str, default=None, help="JSON/TOML parameter file")
    parser.add_argument("--model", choices=["ballistic", "random"], default=None)
    parser.add_argument("--L", type=int, default=None, help="Substrate length")
    parser.add_argument("--H", type=int, default=None, help="Maximum logical height")
    parser.add_argument("--dH", type=int, default=None, help="Physical slot height")
    parser.add_argument("--steps", type=int, default=None, help="Maximum number of deposits")
    parser.add_argument(
        "--time-scale",
        choices=["default", "height-averaged", "logarithmic"],
        default=None,
    )
    parser.add_argument("--scale-factor", type=float, default=None, help="Logarithmic bucket width")
    parser.add_argument("--t0", type=int, default=1, help="Start of the beta fit window")
    parser.add_argument("--tx1", type=int, default=0, help="End of the beta fit window (crossover)")
    parser.add_argument("--tx2", type=int, default=0, help="Start of the saturated regime")
    parser.add_argument("--store", choices=["memory", "npy", "sqlite"], default="memory")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--out", type=str, default=None, help="Output .npz path")
    parser.add_argument("--verbose", action="store_true", help="Log paging and trial events")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s: %(message)s")

    config = TrialConfig.from_mapping(utils.load_params(args.config)) if args.config else TrialConfig()
    config.seed = args.seed
    for key in ("L", "H", "dH"):
        value = getattr(args, key)
        if value is not None:
            config.params[key] = value
    if args.model:
        config.model = args.model
    if args.steps is not None:
        config.max_steps = args.steps
    if args.time_scale:
        config.time_scale = args.time_scale
    if args.scale_factor is not None:
        config.scale_factor = args.scale_factor

    if args.out is None:
        output_dir = Path("results")
        output_dir.mkdir(exist_ok=True)
        args.out = str(
            output_dir
            / f"{config.model}_L{int(config.params['L'])}_S{args.seed}_{utils.now_str()}.npz"
        )
    out = Path(args.out)

    print(f"Running {config.model} deposition: L={int(config.params['L'])}, "
          f"H={int(config.params['H'])}, dH={int(config.params['dH'])}, seed={args.seed}")
    start_time = time.time()

    context = TrialContext(remaining_trials=1)
    outcome = run_trial(config, context, store=make_store(args.store, out.with_suffix("")))
    stats = analyze_trial(outcome, context, args.t0, args.tx1, args.tx2)
    elapsed_time = time.time() - start_time

    result = utils.result_from_engine(outcome.engine)
    result.ensure_meta().update(stats.to_dict())
    utils.save_run_result(out, result)
    outcome.engine.clear_memory()

    print(f"\nRun completed ({outcome.stop_reason})")
    print(f"   Time elapsed: {elapsed_time:.2f} seconds")
    for key, value in stats.to_dict().items():
        print(f"   {key} = {value}")
    print(f"   Output saved to: {out}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
