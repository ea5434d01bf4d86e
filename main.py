import logging
import sys

import pygame

from config import *
from chart_renderer import ChartRenderer
from log_setup import setup_logging
from physics_engine import TYPE_A, TYPE_B
from runtime_config import Bounds, SimulationConfig
from simulation import RunState, initialize

logger = logging.getLogger(__name__)

# Top-left corner of the beaker on screen
BEAKER_ORIGIN = ((SCREEN_WIDTH - BEAKER_WIDTH) // 2, 60)


def map_to_screen(x, y):
    return int(BEAKER_ORIGIN[0] + x), int(BEAKER_ORIGIN[1] + y)


def color_for(p_type):
    if p_type == TYPE_A:
        return COLOR_A
    if p_type == TYPE_B:
        return COLOR_B
    return COLOR_P


def draw_hud(screen, font, handle, fps):
    stats = handle.current_stats()
    lines = [
        (f"{handle.config.type_label_a}: {stats.count_a}", COLOR_A),
        (f"{handle.config.type_label_b}: {stats.count_b}", COLOR_B),
        (f"{TYPE_LABEL_PRODUCT}: {stats.count_product}", COLOR_P),
    ]
    for row, (text, color) in enumerate(lines):
        screen.blit(font.render(text, True, color), (10, 40 + row * 20))

    status = {
        RunState.IDLE: "Press SPACE to start the reaction",
        RunState.RUNNING: "Running",
        RunState.PAUSED: "Paused",
    }[handle.state]
    info = f"FPS: {fps:.1f} | N: {len(handle.store)} | Tick: {handle.tick_count} | {status}"
    screen.blit(font.render(info, True, COLOR_TEXT), (10, 10))


def main():
    setup_logging('INFO')

    pygame.init()
    screen = pygame.display.set_mode((SCREEN_WIDTH, SCREEN_HEIGHT))
    pygame.display.set_caption("Reaction Beaker")
    clock = pygame.time.Clock()

    config = SimulationConfig(stats_interval=5)
    handle = initialize(Bounds(BEAKER_WIDTH, BEAKER_HEIGHT), config)
    chart = ChartRenderer(config.particle_count, config.type_label_a, config.type_label_b)
    chart.add_data_point(handle.tick_count, handle.current_stats())

    font = pygame.font.SysFont("Consolas", 16)
    running = True

    try:
        while running:
            # 1. Event Handling
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.KEYDOWN:
                    if event.key == pygame.K_ESCAPE:
                        running = False
                    elif event.key == pygame.K_SPACE:
                        if handle.state is RunState.RUNNING:
                            handle.pause()
                        else:
                            handle.start()
                    elif event.key == pygame.K_r:
                        handle.reset()
                        chart.clear()
                        chart.add_data_point(handle.tick_count, handle.current_stats())

            # 2. Physics Update (one tick per frame)
            if handle.tick_if_running():
                chart.add_data_point(handle.tick_count, handle.current_stats())

            # 3. Rendering
            screen.fill(COLOR_BG)

            box_x, box_y = map_to_screen(0, 0)
            pygame.draw.rect(screen, COLOR_BEAKER, (box_x, box_y, BEAKER_WIDTH, BEAKER_HEIGHT), 2)

            radius = int(config.particle_radius)
            for particle in handle.snapshot_particles():
                sx, sy = map_to_screen(particle["x"], particle["y"])
                pygame.draw.circle(screen, color_for(particle["type"]), (sx, sy), radius)

            chart.render(screen)
            draw_hud(screen, font, handle, clock.get_fps())

            pygame.display.flip()
            clock.tick(FPS)
    finally:
        handle.close()
        pygame.quit()

    sys.exit()


if __name__ == "__main__":
    main()
