import pygame
import collections
from config import *


class ChartRenderer:
    """Live plot of the three particle counts against tick number."""

    def __init__(self, particle_count, label_a=TYPE_LABEL_A, label_b=TYPE_LABEL_B):
        self.rect = pygame.Rect(CHART_RECT)
        self.surface = pygame.Surface((self.rect.width, self.rect.height), pygame.SRCALPHA)
        self.history = collections.deque(maxlen=CHART_HISTORY_LEN)
        self.particle_count = particle_count
        self.series = (
            (label_a, COLOR_A),
            (label_b, COLOR_B),
            (TYPE_LABEL_PRODUCT, COLOR_P),
        )

        # Font
        self.font = pygame.font.SysFont("Arial", 14)

    def add_data_point(self, tick, stats):
        # Skip repeated samples; stats only change on sampled ticks
        if self.history and self.history[-1][1:] == tuple(stats):
            return
        self.history.append((tick,) + tuple(stats))

    def clear(self):
        self.history.clear()

    def render(self, screen):
        # Clear Chart Surface
        self.surface.fill(CHART_BG_COLOR)

        # Draw Border
        pygame.draw.rect(self.surface, CHART_BORDER_COLOR, (0, 0, self.rect.width, self.rect.height), 2)

        if len(self.history) < 2:
            screen.blit(self.surface, self.rect.topleft)
            return

        # Determine Ranges
        t_current = self.history[-1][0]
        t_start = self.history[0][0]
        time_span = t_current - t_start
        if time_span < 1:
            time_span = 1

        # Y Axis: 0 to particle count
        y_max = max(self.particle_count, 1)

        def get_chart_pos(t, y):
            rel_t = (t - t_start) / time_span
            px = int(rel_t * (self.rect.width - 40)) + 30
            rel_y = y / y_max
            py = int((1.0 - rel_y) * (self.rect.height - 40)) + 20
            return (px, py)

        # Draw Axes
        origin = get_chart_pos(t_start, 0)
        x_end = get_chart_pos(t_current, 0)
        y_end = get_chart_pos(t_start, y_max)
        pygame.draw.line(self.surface, (100, 100, 100), origin, x_end, 1)  # X axis
        pygame.draw.line(self.surface, (100, 100, 100), origin, y_end, 1)  # Y axis

        # One curve per type
        for column, (label, color) in enumerate(self.series, start=1):
            points = [get_chart_pos(row[0], row[column]) for row in self.history]
            pygame.draw.lines(self.surface, color, False, points, 2)

        # Title
        title = self.font.render("Particles vs Tick", True, (200, 200, 200))
        self.surface.blit(title, (self.rect.width // 2 - 50, 3))

        # Legend with current counts
        latest = self.history[-1]
        for row, (label, color) in enumerate(self.series):
            y = 20 + row * 18
            pygame.draw.line(self.surface, color,
                             (self.rect.width - 150, y), (self.rect.width - 125, y), 2)
            lbl = self.font.render(f"{label}: {latest[row + 1]}", True, color)
            self.surface.blit(lbl, (self.rect.width - 120, y - 7))

        # Blit to main screen
        screen.blit(self.surface, self.rect.topleft)
