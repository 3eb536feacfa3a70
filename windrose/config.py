"""Configuration constants for the wind rose core."""

# Speed bands: boundaries are probed as "speed1" .. "speed199" in the style
# lookup and always terminated by this open-ended top band
MAX_SPEED = 200
MAX_SPEED_KEY = "speedmax"
CALM_KEY = "speed0"
DEFAULT_MAX_SPEED_COLOR = "red"

# Timestamps below this are taken to be seconds rather than milliseconds
SECONDS_THRESHOLD = 1_000_000_000_000

# Rose defaults
DEFAULT_ARC_DEGREES = 20.0
DEFAULT_LAG_MS = 4000
DEFAULT_FREQ_STEP = 5.0  # percent between scale rings
DEFAULT_FREQ_MIN = 0.0
DEFAULT_FREQ_MAX = 100.0
DEFAULT_MIN_BANDS = 3
DEFAULT_UNITS = "m/s"
DEFAULT_RADIUS = 100.0

# Bulk loading
PRELOAD_BATCH_SIZE = 500  # readings applied per event loop turn

# History log / compact protocol
HISTORY_STEP_MS = 1000
DEFAULT_HISTORY_SIZE = 86400
HISTORY_SAVE_INTERVAL_MS = 60 * 60 * 1000

# Pointer animation
DEFAULT_FRAME_INTERVAL = 1 / 60  # seconds
