"""
诊断脚本：无界面运行反应烧杯，检查守恒、单调性并测量 tick 速率
"""
import logging
import time

from config import *
from log_setup import setup_logging
from runtime_config import Bounds, SimulationConfig
from simulation import open_run

logger = logging.getLogger(__name__)

TOTAL_TICKS = 2000
SAMPLE_INTERVAL = 100
SEED = 7


def diagnose(total_ticks=TOTAL_TICKS, sample_interval=SAMPLE_INTERVAL, seed=SEED):
    config = SimulationConfig(stats_interval=1, seed=seed)
    bounds = Bounds(BEAKER_WIDTH, BEAKER_HEIGHT)

    logger.info("=== Reaction beaker diagnostic ===")
    logger.info("Particles: %d | Beaker: %dx%d | Reaction distance: %.2f",
                config.particle_count, BEAKER_WIDTH, BEAKER_HEIGHT,
                config.effective_reaction_distance())

    rows = []
    with open_run(bounds, config) as handle:
        # 首次调用触发 JIT 编译，不计入速率
        first = handle.current_stats()
        rows.append((0,) + tuple(first))

        t0 = time.perf_counter()
        previous = first
        for tick in range(1, total_ticks + 1):
            handle.tick()
            stats = handle.current_stats()
            if stats.total != config.particle_count:
                logger.error("Tick %d: counts %s do not sum to %d", tick, stats, config.particle_count)
            if stats.count_product < previous.count_product:
                logger.error("Tick %d: product count went down (%d -> %d)",
                             tick, previous.count_product, stats.count_product)
            previous = stats
            if tick % sample_interval == 0:
                rows.append((tick,) + tuple(stats))
        elapsed = time.perf_counter() - t0

    logger.info("tick  |   A |   B | Product")
    for tick, count_a, count_b, count_p in rows:
        logger.info("%5d | %3d | %3d | %3d", tick, count_a, count_b, count_p)

    tps = total_ticks / elapsed if elapsed > 0 else float("inf")
    logger.info("Completed %d ticks in %.3fs (%.0f ticks/s)", total_ticks, elapsed, tps)
    if tps < FPS:
        logger.warning("Tick rate is below the %d FPS frame budget", FPS)
    return rows


if __name__ == "__main__":
    setup_logging('INFO')
    diagnose()
