from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

from ..config.constants import DEFAULT_BETA
from ..math.kinematics import nearest_index
from .fusion import FusionResult, OrientationSample, process_stream
from .io_utils import load_imu_stream
from .session import ImuDescriptor

logger = logging.getLogger(__name__)

__all__ = [
    "FusionCache",
    "FusionOrchestrator",
    "compute_fusion",
    "nearest_orientation",
]


def compute_fusion(
    csv_text: str,
    algorithm: str = "madgwick",
    beta: float = DEFAULT_BETA,
    init: str = "first_sample",
) -> FusionResult:
    """Parse, normalize and fuse one CSV. Works on its own frame, safe off-loop."""
    stream = load_imu_stream(csv_text)
    return process_stream(stream, algorithm=algorithm, beta=beta, init=init)


def nearest_orientation(result: Optional[FusionResult], t: float) -> Optional[OrientationSample]:
    if result is None or len(result) == 0:
        return None
    i = nearest_index(result.times, float(t))
    return result.orientation_at(i)


@dataclass
class _Entry:
    content_id: str
    result: Optional[FusionResult]


class FusionCache:
    """Per-slot fusion results, tagged with the identity of the CSV they came from.

    A None result marks a failed background run.
    """

    def __init__(self) -> None:
        self._entries: Dict[int, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def has(self, index: int, content_id: Optional[str] = None) -> bool:
        e = self._entries.get(index)
        if e is None:
            return False
        return content_id is None or e.content_id == content_id

    def get(self, index: int, content_id: Optional[str] = None) -> Optional[FusionResult]:
        e = self._entries.get(index)
        if e is None or (content_id is not None and e.content_id != content_id):
            return None
        return e.result

    def content_id_of(self, index: int) -> Optional[str]:
        e = self._entries.get(index)
        return None if e is None else e.content_id

    def put(self, index: int, content_id: str, result: Optional[FusionResult]) -> None:
        self._entries[index] = _Entry(content_id=content_id, result=result)

    def invalidate(self, index: int) -> None:
        self._entries.pop(index, None)

    def clear(self) -> None:
        self._entries.clear()

    def indices(self) -> list[int]:
        return sorted(self._entries)


class FusionOrchestrator:
    """Runs fusion for the selected IMU first, then the rest in the background.

    Each session switch bumps ``generation``; background results computed for an
    older generation are dropped instead of written to the cache.
    """

    def __init__(
        self,
        cache: FusionCache,
        algorithm: str = "madgwick",
        beta: float = DEFAULT_BETA,
        init: str = "first_sample",
        precompute: bool = True,
        on_ready: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.cache = cache
        self.algorithm = algorithm
        self.beta = beta
        self.init = init
        self.precompute = precompute
        self.on_ready = on_ready
        self.generation = 0
        self._background: Optional[asyncio.Task] = None

    def start_session(self) -> int:
        self.generation += 1
        self.cache.clear()
        return self.generation

    def invalidate(self, index: int) -> None:
        self.cache.invalidate(index)

    async def _run(self, imu: ImuDescriptor) -> FusionResult:
        return await asyncio.to_thread(
            compute_fusion, imu.csv_text, self.algorithm, self.beta, self.init
        )

    async def ensure(self, index: int, imu: ImuDescriptor) -> FusionResult:
        """Foreground fusion for one slot; input errors propagate, nothing is cached on failure.

        A result that finishes after a session switch is returned but not cached.
        """
        generation = self.generation
        cid = imu.content_id
        cached = self.cache.get(index, cid)
        if cached is not None:
            return cached
        result = await self._run(imu)
        if generation != self.generation:
            logger.debug("session changed while fusing IMU %d; result not cached", index)
            return result
        self.cache.put(index, cid, result)
        if self.on_ready is not None:
            self.on_ready(index)
        return result

    async def select_imu(self, imus: Sequence[ImuDescriptor], index: int) -> FusionResult:
        generation = self.generation
        result = await self.ensure(index, imus[index])
        if self.precompute and generation == self.generation:
            self._background = asyncio.create_task(
                self.precompute_all(list(imus), generation, skip=index)
            )
        return result

    async def precompute_all(
        self,
        imus: Sequence[ImuDescriptor],
        generation: int,
        skip: Optional[int] = None,
    ) -> None:
        if len(imus) < 2:
            return
        for i, imu in enumerate(imus):
            if generation != self.generation:
                return
            cid = imu.content_id
            if i == skip or self.cache.has(i, cid):
                continue
            prior = self.cache.content_id_of(i)
            try:
                result = await self._run(imu)
            except Exception as exc:
                logger.warning("Background fusion failed for IMU %d (%s): %s", i, imu.label, exc)
                result = None
            if generation != self.generation:
                logger.debug("discarding stale fusion result for IMU %d", i)
                return
            current = self.cache.content_id_of(i)
            # the slot was filled while this ran (foreground or a newer CSV)
            if current is not None and (current == cid or current != prior):
                continue
            self.cache.put(i, cid, result)
            if result is not None and self.on_ready is not None:
                self.on_ready(i)

    async def wait_background(self) -> None:
        task = self._background
        if task is not None:
            await task
