"""
Central configuration constants for the flocking core.

Defines default values, thresholds, and configuration parameters
used across multiple modules.
"""

import os


# ============================================================================
# Behavior Parameter Defaults
# ============================================================================

# Per-boid defaults (one parameter set per "type" of boid)
DEFAULT_MAX_SPEED = 4.0
DEFAULT_MAX_FORCE = 1.0
DEFAULT_ALIGNMENT_WEIGHT = 1.5
DEFAULT_COHESION_WEIGHT = 1.0
DEFAULT_SEPARATION_WEIGHT = 1.2
DEFAULT_TARGET_WEIGHT = 0.8

# Perception radii (square roots of the squared goal distances 625 / 2500 / 2500)
DEFAULT_SEPARATION_RADIUS = 25.0
DEFAULT_ALIGNMENT_RADIUS = 50.0
DEFAULT_COHESION_RADIUS = 50.0

# Neighbors closer than this (squared) are treated as coincident:
# zero separation contribution, never a NaN direction
COINCIDENT_EPSILON_SQ = 1e-12


# ============================================================================
# Scheduling Configuration
# ============================================================================

# Agents per work item. Chunk boundaries depend only on N and this value,
# never on worker count, so output is bit-identical across pool sizes.
CHUNK_SIZE = 64

# Worker threads for the tick pool (1 = run inline on the calling thread)
DEFAULT_MAX_WORKERS = min(8, os.cpu_count() or 1)

# Simulation step (seconds) when the host does not pass one
DEFAULT_TICK_DELTA_SECONDS = 1.0 / 60.0

# Run a tick every N calls to FlockSimulation.step()
DEFAULT_PROCESS_EVERY = 1


# ============================================================================
# Neighbor Query Configuration
# ============================================================================

# "all_pairs" (O(n) scan per agent) or "kdtree" (scipy.cKDTree)
NEIGHBOR_BACKEND = "all_pairs"
NEIGHBOR_BACKENDS = ("all_pairs", "kdtree")

# cKDTree build parameters
CKDTREE_LEAFSIZE = 16


# ============================================================================
# Spawning Configuration
# ============================================================================

# Initial velocity as fraction of max_speed for spawned agents
CRUISE_SPEED_FRACTION = 0.2  # 20% of max speed (used only for initial drift)


# ============================================================================
# Performance Configuration
# ============================================================================

# Tick timing window for rolling average
TICK_TIME_WINDOW = 100  # Number of ticks to average

# Default tick summary interval (print every N ticks)
TICK_SUMMARY_INTERVAL = 100

# Per-flock latency target at 2000 agents (milliseconds)
TICK_BUDGET_MS = 11.0

# Debug invariant checks (zero perf impact when env var not set)
DEBUG_INVARIANTS_ENV = "MURMURATION_DEBUG_INVARIANTS"
