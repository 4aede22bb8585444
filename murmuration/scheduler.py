"""
Flock tick scheduler.

Runs one tick of one flock over a fixed-size worker pool.

TWO-PHASE TICK CONTRACT (Critical Invariant):

Phase 1: Steering (Read-Only)
-----------------------------
Every chunk of agents queries neighbors and computes steering against the
prior snapshot (t=N). Snapshot arrays are read-only; each chunk writes only
its own slice of a scratch acceleration array.

Phase 2: Integration (Write-Disjoint)
-------------------------------------
Every chunk integrates its own slice into freshly allocated next-tick
buffers. No two work items write the same slot.

Result: a new Snapshot for t=N+1, frozen before it is returned. The prior
snapshot is never touched, so readers (the renderer) can keep using it.

Why chunks and not agents:
- Chunk boundaries depend only on N and chunk_size, never on worker count,
  so a 1-thread pool and an 8-thread pool produce bit-identical output
- Per-chunk numpy work amortizes Python overhead and releases the GIL
"""

import os
import time
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Callable, List, Optional, Tuple

import numpy as np

from .constants import CHUNK_SIZE, DEFAULT_MAX_WORKERS, DEBUG_INVARIANTS_ENV
from .data_types import ConfigurationError, TickTimings
from .integrator import Integrator, validate_timestep
from .neighbors import NeighborQuery, AllPairsScan
from .snapshot import Snapshot
from .stats import StatsCollector
from .steering import SteeringEngine
from .vector_math import lengths


class TickError(RuntimeError):
    """Raised when a work item fails; nothing from the tick is published"""

    def __init__(self, flock_id: str, phase: str, start: int, end: int, cause: BaseException):
        self.flock_id = flock_id
        self.phase = phase
        self.agent_range = (start, end)
        super().__init__(
            f"Tick failed for flock {flock_id!r} in {phase} phase "
            f"(agents {start}..{end - 1}): {type(cause).__name__}: {cause}"
        )


class FlockScheduler:
    """
    Data-parallel tick driver.

    One scheduler (and its pool) may serve several flocks; ticks are
    synchronous, so flocks sharing it are processed one after another.
    """

    def __init__(
        self,
        max_workers: int = DEFAULT_MAX_WORKERS,
        chunk_size: int = CHUNK_SIZE,
        neighbor_query: Optional[NeighborQuery] = None,
        steering: Optional[SteeringEngine] = None,
        integrator: Optional[Integrator] = None,
        stats: Optional[StatsCollector] = None
    ):
        """
        Args:
            max_workers: pool size (1 = run chunks inline on the caller)
            chunk_size: agents per work item
            neighbor_query: neighbor backend (default AllPairsScan)
            steering: steering engine (default SteeringEngine())
            integrator: integrator (default Integrator())
            stats: optional timing collector (None = no timing at all)
        """
        if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
            raise ConfigurationError('max_workers', max_workers, "must be an integer >= 1")
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size < 1:
            raise ConfigurationError('chunk_size', chunk_size, "must be an integer >= 1")

        self.max_workers = max_workers
        self.chunk_size = chunk_size
        self.neighbor_query = neighbor_query if neighbor_query is not None else AllPairsScan()
        self.steering = steering if steering is not None else SteeringEngine()
        self.integrator = integrator if integrator is not None else Integrator()
        self.stats = stats

        self._executor: Optional[ThreadPoolExecutor] = None
        if max_workers > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="FlockWorker"
            )

    def __enter__(self) -> 'FlockScheduler':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        """Shut down the worker pool (idempotent)"""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def chunks(self, count: int) -> List[slice]:
        """Contiguous agent slices, each one work item"""
        return [slice(start, min(start + self.chunk_size, count))
                for start in range(0, count, self.chunk_size)]

    def tick(self, snapshot: Snapshot, dt: float, flock_id: str = "flock") -> Snapshot:
        """
        Advance one flock by one timestep.

        Args:
            snapshot: prior-tick state (never modified)
            dt: timestep in seconds
            flock_id: label for errors and diagnostics

        Returns:
            Next-tick Snapshot, index-aligned with the input

        Raises:
            ConfigurationError: invalid dt
            TickError: a work item failed (no partial result is returned)
        """
        dt = validate_timestep(dt)
        timing = self.stats is not None
        if timing:
            start_time = time.perf_counter()

        count = snapshot.count
        chunks = self.chunks(count)

        # ============================================================
        # PHASE 1: STEERING (Read-Only over prior snapshot)
        # ============================================================
        self.neighbor_query.build(snapshot)
        accelerations = np.zeros((count, snapshot.dimensions), dtype=np.float64)
        self._run_phase(
            'steering', flock_id, chunks,
            partial(self._steer_chunk, snapshot, accelerations)
        )

        if timing:
            phase1_end = time.perf_counter()

        # ============================================================
        # PHASE 2: INTEGRATION (Write-Disjoint into next buffers)
        # ============================================================
        next_positions = np.empty_like(snapshot.positions)
        next_velocities = np.empty_like(snapshot.velocities)
        self._run_phase(
            'integration', flock_id, chunks,
            partial(self._integrate_chunk, snapshot, accelerations, dt, next_positions, next_velocities)
        )

        # Buffers are owned by this tick: freeze in place instead of copying
        next_positions.flags.writeable = False
        next_velocities.flags.writeable = False
        next_snapshot = snapshot.successor(next_positions, next_velocities)

        if timing:
            end_time = time.perf_counter()
            self.stats.record(TickTimings(
                flock_id=flock_id,
                tick=next_snapshot.tick,
                agent_count=count,
                phase1_ms=(phase1_end - start_time) * 1000.0,
                phase2_ms=(end_time - phase1_end) * 1000.0,
                total_ms=(end_time - start_time) * 1000.0,
            ))

        # Debug invariant check (zero perf impact when env var not set)
        if os.getenv(DEBUG_INVARIANTS_ENV) == '1':
            self._check_invariants(snapshot, next_snapshot, accelerations)

        return next_snapshot

    def _steer_chunk(self, snapshot: Snapshot, accelerations: np.ndarray, chunk: slice):
        rows = np.arange(chunk.start, chunk.stop, dtype=np.int64)
        accelerations[chunk] = self.steering.compute(snapshot, rows, self.neighbor_query)

    def _integrate_chunk(
        self,
        snapshot: Snapshot,
        accelerations: np.ndarray,
        dt: float,
        next_positions: np.ndarray,
        next_velocities: np.ndarray,
        chunk: slice
    ):
        self.integrator.integrate_rows(snapshot, chunk, accelerations, dt, next_positions, next_velocities)

    def work_groups(self, chunks: List[slice]) -> List[List[slice]]:
        """
        Contiguous runs of chunks, one run per pool submission.

        Each worker gets one run of consecutive chunks instead of one
        submission per chunk. Chunks are still computed one at a time, so
        grouping never changes results.
        """
        if not chunks:
            return []
        per_group = -(-len(chunks) // self.max_workers)
        return [chunks[i:i + per_group] for i in range(0, len(chunks), per_group)]

    def _run_phase(self, phase: str, flock_id: str, chunks: List[slice], work: Callable[[slice], None]):
        """
        Run work over every chunk and wait for all of them (phase barrier).

        The first failure in chunk order is raised as TickError once every
        work item has finished, so no worker is still writing when the
        caller sees the error.
        """
        if self._executor is None:
            failures = [_run_chunks(work, chunks)]
        else:
            futures = [self._executor.submit(_run_chunks, work, group) for group in self.work_groups(chunks)]
            failures = [future.result() for future in futures]

        for failure in failures:
            if failure is not None:
                chunk, exc = failure
                raise TickError(flock_id, phase, chunk.start, chunk.stop, exc) from exc

    def _check_invariants(self, snapshot: Snapshot, next_snapshot: Snapshot, accelerations: np.ndarray):
        assert next_snapshot.count == snapshot.count, \
            f"next count ({next_snapshot.count}) != prior count ({snapshot.count})"
        assert not next_snapshot.positions.flags.writeable, "published snapshot is writeable"
        tolerance = 1e-9
        max_speed = snapshot.column('max_speed')
        max_force = snapshot.column('max_force')
        assert np.all(lengths(next_snapshot.velocities) <= max_speed * (1.0 + tolerance)), \
            "speed limit exceeded"
        assert np.all(lengths(accelerations) <= max_force * (1.0 + tolerance)), \
            "steering force limit exceeded"


def _run_chunks(work: Callable[[slice], None], chunks: List[slice]) -> Optional[Tuple[slice, Exception]]:
    """Run chunks in order; stop at and return the first (chunk, error)"""
    for chunk in chunks:
        try:
            work(chunk)
        except Exception as e:
            return chunk, e
    return None
