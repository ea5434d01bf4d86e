# --- Simulation Defaults ---
ATOM_COUNT = 60
ATOM_RADIUS = 5.0
SPEED = 1.5          # velocity components drawn from [-SPEED/2, +SPEED/2]
REACTION_DIST_FACTOR = 2.5
REACTION_DIST = ATOM_RADIUS * REACTION_DIST_FACTOR

# Particle ids go over the wire as uint16
MAX_PARTICLE_COUNT = 0xFFFF + 1

TYPE_LABEL_A = "Reactant A"
TYPE_LABEL_B = "Reactant B"
TYPE_LABEL_PRODUCT = "Product"

# Stats are recomputed every STATS_INTERVAL ticks (and on demand).
# Every tick by default; hosts that redraw often may sample less.
STATS_INTERVAL = 1

# --- Beaker ---
BEAKER_WIDTH = 800
BEAKER_HEIGHT = 320

# --- Rendering Constants ---
SCREEN_WIDTH = 1200
SCREEN_HEIGHT = 800
FPS = 60

# Colors (R, G, B)
COLOR_BG = (10, 10, 15)
COLOR_BEAKER = (50, 50, 60)
COLOR_A = (59, 130, 246)     # Blue
COLOR_B = (239, 68, 68)      # Red
COLOR_P = (168, 85, 247)     # Purple
COLOR_TEXT = (230, 230, 230)

# --- Chart Constants ---
CHART_RECT = (800, 500, 380, 280)  # x, y, w, h
CHART_BG_COLOR = (30, 30, 30, 200) # RGBA with alpha
CHART_BORDER_COLOR = (100, 100, 100)
CHART_HISTORY_LEN = 600 # Samples to keep

# --- Web Server ---
SERVER_PORT = 5000
SERVER_FPS = 30

