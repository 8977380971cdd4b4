"""
Growth Analysis Script for Saved Deposition Runs.

Fits the growth exponent beta from ln w vs ln t over a chosen window and
reports the saturated width, cross-checking the moment-formula fit with
scipy's linregress (which also gives the standard error).
"""
from __future__ import annotations

import argparse
from pathlib import Path

import numpy as np
from matplotlib import pyplot as plt
from scipy.stats import linregress

from surfgrowth import analysis, utils


def log_log_widths(widths: np.ndarray, t0: int, tx: int) -> tuple[np.ndarray, np.ndarray]:
    """
    ln t and ln w over [t0, tx], dropping zero widths and t = 0.

    Raises:
        ValueError: if fewer than 10 points survive
    """
    t = np.arange(widths.size, dtype=np.float64)
    sel = (t >= max(1, t0)) & (t <= tx) & (widths > 0) & np.isfinite(widths)
    if sel.sum() < 10:
        raise ValueError(f"Too few valid points ({sel.sum()}) in window [{t0}, {tx}] for a fit.")
    return np.log(t[sel]), np.log(widths[sel])


def analyze_run(
    npz_path: str | Path,
    t0: int,
    tx1: int,
    tx2: int,
    output_path: str | Path | None = None,
    show_plot: bool = False,
) -> None:
    npz_path = Path(npz_path)
    print(f"Loading {npz_path}...")
    result = utils.load_run_result(npz_path)
    if result.widths is None:
        raise ValueError("File has no width series.")
    widths = result.widths
    meta = result.meta or {}
    if tx1 <= 0:
        tx1 = widths.size - 1
    print(f"Width samples: {widths.size:,}")

    ln_t, ln_w = log_log_widths(widths, t0, tx1)
    fit = analysis.regress_arrays(ln_t, ln_w)
    check = linregress(ln_t, ln_w)

    saturated = widths[tx2:] if tx2 > 0 else widths[-max(1, widths.size // 10):]
    lnw_avg = float(np.log(saturated.mean()))

    print("\n" + "=" * 60)
    print("GROWTH EXPONENT")
    print("=" * 60)
    print(f"beta (moments):    {fit.slope:.5f}  R² = {fit.r_squared:.6f}")
    print(f"beta (linregress): {check.slope:.5f}  ± {check.stderr:.5f}")
    print(f"Fitting range: t = {int(np.exp(ln_t[0]))} to {int(np.exp(ln_t[-1]))}")
    print(f"Saturated ln w_avg = {lnw_avg:.5f}")
    print("=" * 60)

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(14, 6))

    t_all = np.arange(1, widths.size)
    w_all = widths[1:]
    ok = w_all > 0
    ax1.scatter(np.log(t_all[ok]), np.log(w_all[ok]), color='black', alpha=0.3, s=1, label='Simulation Data')
    ax1.plot(ln_t, fit(ln_t), color='red', linestyle='--', linewidth=2,
             label=rf'Fit: $\beta = {fit.slope:.3f}$')
    ax1.axhline(lnw_avg, color='blue', linestyle=':', label=r'$\ln \bar{w}_{sat}$')
    ax1.set_xlabel(r'$\ln(t)$')
    ax1.set_ylabel(r'$\ln(w)$')
    ax1.set_title(f"L={meta.get('L', '?')}, model={meta.get('model', '?')}\n"
                  rf"$\beta = {fit.slope:.3f}$ (R² = {fit.r_squared:.4f})")
    ax1.legend()
    ax1.grid(True, which="both", linestyle='--', alpha=0.4)

    if result.height is not None:
        ax2.plot(np.arange(result.height.size), result.height, color='black', linewidth=0.8)
        ax2.set_xlabel('column')
        ax2.set_ylabel('height')
        ax2.set_title('Final surface profile')
        ax2.grid(True, linestyle='--', alpha=0.4)

    plt.tight_layout()

    if output_path is None:
        output_path = npz_path.with_name(npz_path.stem + '_analysis.png')
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    print(f"\nFigure saved to: {output_path}")

    if show_plot:
        plt.show()
    else:
        plt.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Fit beta for a saved deposition run.")
    parser.add_argument("file", help="Path to the .npz file")
    parser.add_argument("--t0", type=int, default=1, help="Start of the fit window")
    parser.add_argument("--tx1", type=int, default=0, help="End of the fit window (default: all)")
    parser.add_argument("--tx2", type=int, default=0, help="Start of the saturated regime")
    parser.add_argument("--out", type=str, help="Output path for the figure")
    parser.add_argument("--show", action="store_true", help="Display plot interactively")
    args = parser.parse_args()

    analyze_run(args.file, args.t0, args.tx1, args.tx2, output_path=args.out, show_plot=args.show)


if __name__ == "__main__":
    main()
