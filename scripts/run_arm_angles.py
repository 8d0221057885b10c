from __future__ import annotations
from pathlib import Path
import argparse
import asyncio
import json
import logging
import sys

from movesync.config.settings import settings
from movesync.pipeline.context import ViewerContext
from movesync.pipeline.errors import MoveSyncError
from movesync.pipeline.session import ImuDescriptor
from movesync.plots.charts import plot_angle_series

logger = logging.getLogger("movesync.cli")


def _node_from_name(path: Path) -> str | None:
    stem = path.stem.lower()
    for role in ("shoulder", "elbow", "wrist"):
        if role in stem:
            return role
    return None


async def run(args) -> dict:
    ctx = ViewerContext()
    imus = []
    for p in args.csv:
        path = Path(p)
        imus.append(ImuDescriptor(
            label=path.stem,
            csv_text=path.read_text(encoding="utf-8"),
            file_name=path.name,
            skeleton_node=_node_from_name(path),
        ))
    session = ctx.store.add_session(imus, name=args.name)
    ctx.store.set_active_session_by_id(session.id)

    await ctx.select_imu(args.select)
    await ctx.orchestrator.wait_background()

    selection = {}
    if args.shoulder is not None:
        selection = {"shoulder": args.shoulder, "elbow": args.elbow, "wrist": args.wrist}
    series, stats = await ctx.analyze_arm_angles(selection or None)
    if args.plot:
        plot_angle_series(series, args.plot)
        logger.info("angle plot written to %s", args.plot)
    return {
        "samples": len(series),
        "stats": {k: v.as_dict() for k, v in stats.items()},
        "cached": ctx.cache.indices(),
    }


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Elbow/wrist angles from shoulder, elbow and wrist IMU CSVs")
    ap.add_argument("csv", nargs="+", help="IMU CSV files (9-DOF: acc, gyro, mag)")
    ap.add_argument("--name", default="cli session")
    ap.add_argument("--select", type=int, default=0, help="IMU fused first")
    ap.add_argument("--shoulder", type=int, default=None)
    ap.add_argument("--elbow", type=int, default=None)
    ap.add_argument("--wrist", type=int, default=None)
    ap.add_argument("--plot", type=str, default=None, help="save angle chart to this path")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        out = asyncio.run(run(args))
    except MoveSyncError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    print(json.dumps(out, indent=2))
    return 0


if __name__ == '__main__':
    sys.exit(main())
