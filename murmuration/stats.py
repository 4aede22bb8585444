"""
Tick timing diagnostics.

StatsCollector is a sidecar: the scheduler hands it one TickTimings record
per flock tick and never reads anything back, so attaching or detaching it
cannot change simulation results. When no collector is attached the
scheduler skips timing entirely.
"""

from typing import Callable, Dict, List, Optional

from .constants import TICK_TIME_WINDOW, TICK_SUMMARY_INTERVAL
from .data_types import TickTimings

StatsSink = Callable[[TickTimings], None]


class PrintSink:
    """Sink printing one line per tick (every N ticks)"""

    def __init__(self, every: int = 1):
        self.every = max(1, int(every))

    def __call__(self, timings: TickTimings):
        if timings.tick % self.every != 0:
            return
        print(f"[{timings.flock_id}] Tick {timings.tick:5d} | "
              f"N={timings.agent_count:5d} | "
              f"steer: {timings.phase1_ms:6.3f} ms | "
              f"integrate: {timings.phase2_ms:6.3f} ms | "
              f"total: {timings.total_ms:6.3f} ms")


class StatsCollector:
    """
    Rolling per-tick timing statistics with reporting sinks.

    Keeps the last `window` records (all flocks interleaved).
    """

    def __init__(self, sinks: Optional[List[StatsSink]] = None, window: int = TICK_TIME_WINDOW):
        self.sinks: List[StatsSink] = list(sinks or [])
        self._window = window
        self._records: List[TickTimings] = []
        self._total_sum: float = 0.0
        self.tick_count: int = 0

    def add_sink(self, sink: StatsSink):
        self.sinks.append(sink)

    def record(self, timings: TickTimings):
        """
        Store one tick's timings and forward them to every sink.

        A failing sink is reported and skipped; it never reaches the tick.
        """
        self._records.append(timings)
        self._total_sum += timings.total_ms
        self.tick_count += 1

        # Maintain rolling window
        if len(self._records) > self._window:
            removed = self._records.pop(0)
            self._total_sum -= removed.total_ms

        for sink in self.sinks:
            try:
                sink(timings)
            except Exception as e:
                print(f"[WARN] Stats sink {sink!r} failed: {e}")

    @property
    def records(self) -> List[TickTimings]:
        return list(self._records)

    def get_tick_stats(self, flock_id: Optional[str] = None) -> Dict:
        """
        Get current tick timing statistics.

        Args:
            flock_id: restrict averages to one flock (None = all flocks)

        Returns:
            Dict with tick_count, avg/last total ms, avg phase ms, agent count
        """
        records = self._records
        if flock_id is not None:
            records = [r for r in records if r.flock_id == flock_id]

        if not records:
            return {
                'tick_count': self.tick_count,
                'avg_tick_time_ms': 0.0,
                'last_tick_time_ms': 0.0,
                'avg_phase1_ms': 0.0,
                'avg_phase2_ms': 0.0,
                'last_agent_count': 0,
            }

        n = len(records)
        if flock_id is None:
            avg_total = self._total_sum / n
        else:
            avg_total = sum(r.total_ms for r in records) / n

        return {
            'tick_count': self.tick_count,
            'avg_tick_time_ms': avg_total,
            'last_tick_time_ms': records[-1].total_ms,
            'avg_phase1_ms': sum(r.phase1_ms for r in records) / n,
            'avg_phase2_ms': sum(r.phase2_ms for r in records) / n,
            'last_agent_count': records[-1].agent_count,
        }

    def print_tick_summary(self):
        """Print tick summary to console (lightweight monitoring)"""
        stats = self.get_tick_stats()
        print(f"Tick {stats['tick_count']:5d} | "
              f"Avg: {stats['avg_tick_time_ms']:6.3f} ms | "
              f"Last: {stats['last_tick_time_ms']:6.3f} ms | "
              f"Agents: {stats['last_agent_count']}")

    def print_perf_breakdown(self, every: int = TICK_SUMMARY_INTERVAL):
        """
        Print per-flock performance breakdown on interval.

        Only prints every N recorded ticks to reduce overhead.

        Args:
            every: Print interval in ticks (default TICK_SUMMARY_INTERVAL)
        """
        if self.tick_count == 0 or self.tick_count % every != 0:
            return

        flock_ids = sorted({r.flock_id for r in self._records})
        print(f"\n[Perf Breakdown] {self.tick_count} ticks recorded (window={len(self._records)})")
        for flock_id in flock_ids:
            stats = self.get_tick_stats(flock_id)
            overhead = stats['avg_tick_time_ms'] - stats['avg_phase1_ms'] - stats['avg_phase2_ms']
            print(f"  {flock_id} ({stats['last_agent_count']} agents)")
            print(f"    Steering:   {stats['avg_phase1_ms']:6.3f} ms")
            print(f"    Integrate:  {stats['avg_phase2_ms']:6.3f} ms")
            print(f"    Overhead:   {overhead:6.3f} ms")
            print(f"    Total:      {stats['avg_tick_time_ms']:6.3f} ms")
