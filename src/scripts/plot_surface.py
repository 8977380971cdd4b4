# src/scripts/plot_surface.py
import argparse
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from surfgrowth import utils


def format_title(meta):
    """Title string with the run's key parameters."""
    if not meta:
        return None
    parts = [
        f"Model={meta.get('model', '?')}",
        f"L={int(meta['L']) if 'L' in meta else '?'}",
        f"t={meta.get('t', '?')}",
        f"seed={meta.get('seed', '?')}",
    ]
    if "h_avg" in meta:
        parts.append(f"h_avg={meta['h_avg']:.1f}")
    return ", ".join(parts)


def unroll_window(window: np.ndarray, top_row: int) -> tuple[np.ndarray, int]:
    """
    Reorder the physical slot so rows run bottom to top in logical order.

    Physical row ``y % dH`` holds logical row ``y``; the newest rows are
    those ending at ``top_row``.
    """
    dH = window.shape[0]
    base = top_row - dH + 1
    rows = [(base + k) % dH for k in range(dH)]
    return window[rows], base


def plot_surface(npz_path, out=None, show=False, dpi=150):
    npz_path = Path(npz_path)
    result = utils.load_run_result(npz_path)
    if result.window is None or result.height is None:
        raise ValueError(f"{npz_path} has no lattice window to plot")

    top = int(result.height.max())
    grid, base = unroll_window(result.window, top)

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.imshow(
        grid,
        origin="lower",
        cmap="gray_r",
        interpolation="nearest",
        aspect="auto",
        extent=(-0.5, grid.shape[1] - 0.5, base - 0.5, top + 0.5),
    )
    ax.plot(np.arange(result.height.size), result.height, color="red", linewidth=0.8)
    title = format_title(result.meta)
    if title:
        ax.set_title(title)
    ax.set_xlabel("column")
    ax.set_ylabel("row")

    if out is None:
        out = npz_path.with_name(npz_path.stem + "_surface.png")
    Path(out).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out, dpi=dpi, bbox_inches="tight")
    print(f"Surface saved to {out}")
    if show:
        plt.show()
    else:
        plt.close(fig)


def main():
    parser = argparse.ArgumentParser(description="Render the top of a saved deposition surface.")
    parser.add_argument("file", help="Path to the .npz file")
    parser.add_argument("--out", type=str, default=None)
    parser.add_argument("--dpi", type=int, default=150)
    parser.add_argument("--show", action="store_true")
    args = parser.parse_args()
    plot_surface(args.file, out=args.out, show=args.show, dpi=args.dpi)


if __name__ == "__main__":
    main()
