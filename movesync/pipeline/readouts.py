from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np

from ..math.kinematics import nearest_index
from .io_utils import ImuStream, has_axis_data, extract_axis_data

__all__ = ["ReadoutCache", "build_readout_cache"]


@dataclass
class ReadoutCache:
    """Time-sorted sensor triplets for cursor readouts; absent sensors are skipped."""
    times: np.ndarray
    sensors: Dict[str, np.ndarray] = field(default_factory=dict)

    def readout_at(self, t: float) -> Optional[Dict[str, dict]]:
        i = nearest_index(self.times, float(t))
        if i < 0:
            return None
        out: Dict[str, dict] = {"time": {"t": float(self.times[i]), "index": i}}
        for name, xyz in self.sensors.items():
            x, y, z = (float(v) for v in xyz[i])
            out[name] = {"x": x, "y": y, "z": z, "total": float(np.sqrt(x * x + y * y + z * z))}
        return out


def build_readout_cache(stream: ImuStream) -> ReadoutCache:
    t = stream.times()
    keep = np.isfinite(t)
    order = np.argsort(t[keep], kind="stable")
    sensors = {}
    for name in ("acc", "gyro", "mag"):
        if has_axis_data(stream.frame.columns, name):
            sensors[name] = extract_axis_data(stream.frame, name)[keep][order]
    return ReadoutCache(times=t[keep][order], sensors=sensors)
