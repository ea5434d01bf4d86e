"""
Run lifecycle for the reaction beaker.

A RunHandle owns one particle store plus its bounds, configuration and
lifecycle state (idle -> running <-> paused, reset from anywhere). Every
tick runs the integrator, then the collision pass, then the sampled stats
recount, all under the handle's lock so readers only ever see whole ticks.
FrameLoop is the only piece that knows about wall-clock frames.
"""
import logging
import threading
import time
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple

import numpy as np

from physics_engine import (
    InvariantViolation,
    ParticleSeed,
    ParticleStore,
    TYPE_NAMES,
    Stats,
    check_invariants,
    compute_stats,
    create_particles,
    resolve_collisions,
    step,
    store_from_layout,
)
from runtime_config import Bounds, ConfigurationError, SimulationConfig

logger = logging.getLogger(__name__)


class RunState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class StatsSampler:
    """Recompute stats on every `interval`-th tick."""

    def __init__(self, interval: int = 1):
        if interval < 1:
            raise ConfigurationError(f"stats interval must be >= 1, got {interval}")
        self.interval = interval

    def should_sample(self, tick_index: int) -> bool:
        return tick_index % self.interval == 0


class RunHandle:
    def __init__(self, bounds: Bounds, config: Optional[SimulationConfig] = None,
                 layout: Optional[Sequence[ParticleSeed]] = None):
        config = config if config is not None else SimulationConfig()
        config.validate()
        bounds.validate(config.particle_radius)
        if layout is not None:
            _validate_layout(layout, bounds, config)

        self.bounds = bounds
        self.config = config
        self.radius = float(config.particle_radius)
        self.reaction_distance = float(config.effective_reaction_distance())
        self._layout = list(layout) if layout is not None else None
        self._rng = np.random.default_rng(config.seed)
        self._lock = threading.Lock()
        self._loop: Optional["FrameLoop"] = None
        self._closed = False

        self._populate()
        logger.info(
            "[Simulation] Run initialized: %d particles in %gx%g, reaction distance %g, state=%s",
            len(self.store), bounds.width, bounds.height, self.reaction_distance, self.state.value,
        )

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def _populate(self) -> None:
        if self._layout is not None:
            self.store = store_from_layout(self._layout)
        else:
            self.store = create_particles(
                self.config.particle_count, self.bounds,
                self.config.speed_scale, self.radius, self._rng,
            )
        self.tick_count = 0
        self.sampler = StatsSampler(self.config.stats_interval)
        self._stats = compute_stats(self.store)
        self.state = RunState.RUNNING if self.config.autostart else RunState.IDLE

    def start(self) -> None:
        with self._lock:
            if self.state is RunState.RUNNING:
                return
            self.state = RunState.RUNNING
        logger.info("[Simulation] Started at tick %d", self.tick_count)

    def pause(self) -> None:
        # Taking the lock lets an in-flight tick finish first
        with self._lock:
            if self.state is not RunState.RUNNING:
                return
            self.state = RunState.PAUSED
        logger.info("[Simulation] Paused at tick %d", self.tick_count)

    def reset(self) -> None:
        with self._lock:
            self._populate()
        logger.info("[Simulation] Reset, state=%s", self.state.value)

    # ------------------------------------------------------------------
    # stepping
    # ------------------------------------------------------------------

    def tick(self) -> None:
        """Advance exactly one step regardless of lifecycle state."""
        with self._lock:
            self._tick_locked()

    def tick_if_running(self) -> bool:
        with self._lock:
            if self.state is not RunState.RUNNING:
                return False
            self._tick_locked()
            return True

    def _tick_locked(self) -> None:
        if __debug__:
            types_before = self.store.types.copy()

        step(self.store, self.bounds, self.radius)
        contacts, reactions = resolve_collisions(self.store, self.reaction_distance, self.bounds, self.radius)
        self.tick_count += 1
        if self.sampler.should_sample(self.tick_count):
            self._stats = compute_stats(self.store)

        if __debug__:
            issues = check_invariants(self.store, self.bounds, types_before)
            if issues:
                raise InvariantViolation("; ".join(issues))

        if reactions:
            logger.debug("[Simulation] tick %d: %d contacts, %d reactions", self.tick_count, contacts, reactions)

    # ------------------------------------------------------------------
    # readers
    # ------------------------------------------------------------------

    def snapshot_particles(self):
        with self._lock:
            store = self.store
            return [
                {"id": int(store.ids[i]), "x": float(store.pos[i, 0]),
                 "y": float(store.pos[i, 1]), "type": int(store.types[i])}
                for i in range(len(store))
            ]

    def snapshot_store(self) -> ParticleStore:
        with self._lock:
            return self.store.copy()

    def current_stats(self) -> Stats:
        with self._lock:
            return self._stats

    def refresh_stats(self) -> Stats:
        with self._lock:
            self._stats = compute_stats(self.store)
            return self._stats

    def get_state(self):
        """Everything but the particles, for status displays."""
        with self._lock:
            return self._state_locked()

    def frame(self) -> Tuple[dict, ParticleStore]:
        """State payload and a store copy taken from the same tick."""
        with self._lock:
            return self._state_locked(), self.store.copy()

    def _state_locked(self):
        return {
            "state": self.state.value,
            "tick": self.tick_count,
            "stats": self._stats.to_dict(),
            "labels": {"A": self.config.type_label_a, "B": self.config.type_label_b},
            "bounds": self.bounds.to_dict(),
        }

    # ------------------------------------------------------------------
    # real-time scheduling
    # ------------------------------------------------------------------

    def run_realtime(self, on_frame: Optional[Callable[["RunHandle"], None]] = None,
                     fps: Optional[int] = None) -> "FrameLoop":
        if self._closed:
            raise RuntimeError("run handle is closed")
        if self._loop is not None:
            raise RuntimeError("run handle already has a frame loop")
        self._loop = FrameLoop(self, fps or self.config.fps, on_frame)
        self._loop.start()
        return self._loop

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._loop is not None:
            self._loop.stop()
            self._loop = None
        logger.info("[Simulation] Run closed after %d ticks", self.tick_count)

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class FrameLoop:
    """
    Background frame scheduler: one tick per frame while the handle runs.

    Ticks never start after stop() or the handle's pause() has returned; a
    tick already in progress is allowed to finish.
    """

    def __init__(self, handle: RunHandle, fps: int, on_frame: Optional[Callable[[RunHandle], None]] = None):
        self.handle = handle
        self.frame_time = 1.0 / fps
        self.on_frame = on_frame
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="beaker-frame-loop", daemon=True)
        self.frames = 0

    def start(self) -> None:
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout)

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.is_set():
            start_time = time.perf_counter()

            try:
                ticked = self.handle.tick_if_running()
            except Exception:
                # Leave the run paused so hosts see it stopped
                logger.exception("[FrameLoop] Tick failed at tick %d; pausing run", self.handle.tick_count)
                self.handle.pause()
                raise
            if ticked:
                self.frames += 1
                if self.on_frame is not None:
                    try:
                        self.on_frame(self.handle)
                    except Exception:
                        logger.exception("[FrameLoop] on_frame callback failed")

            elapsed = time.perf_counter() - start_time
            sleep_time = self.frame_time - elapsed
            if sleep_time > 0:
                self._stop.wait(sleep_time)


def _validate_layout(layout, bounds: Bounds, config: SimulationConfig) -> None:
    if len(layout) != config.particle_count:
        raise ConfigurationError(
            f"layout has {len(layout)} particles but particle_count is {config.particle_count}"
        )
    r = config.particle_radius
    for idx, seed in enumerate(layout):
        if seed.type not in TYPE_NAMES:
            raise ConfigurationError(f"layout particle {idx} has unknown type {seed.type!r}")
        if not (r <= seed.x <= bounds.width - r and r <= seed.y <= bounds.height - r):
            raise ConfigurationError(f"layout particle {idx} at ({seed.x}, {seed.y}) is outside the beaker")


# ----------------------------------------------------------------------
# functional surface
# ----------------------------------------------------------------------

def initialize(bounds: Bounds, config: Optional[SimulationConfig] = None,
               layout: Optional[Sequence[ParticleSeed]] = None) -> RunHandle:
    return RunHandle(bounds, config, layout)


@contextmanager
def open_run(bounds: Bounds, config: Optional[SimulationConfig] = None,
             layout: Optional[Sequence[ParticleSeed]] = None):
    handle = initialize(bounds, config, layout)
    try:
        yield handle
    finally:
        handle.close()


def start(handle: RunHandle) -> None:
    handle.start()


def pause(handle: RunHandle) -> None:
    handle.pause()


def reset(handle: RunHandle) -> None:
    handle.reset()


def tick(handle: RunHandle) -> None:
    handle.tick()


def snapshot_particles(handle: RunHandle):
    return handle.snapshot_particles()


def current_stats(handle: RunHandle) -> Stats:
    return handle.current_stats()
