"""Internal constants shared across the library."""

NOMINATIM_URL = "https://nominatim.openstreetmap.org/reverse"
USER_AGENT = "cartrack/0 (EV telemetry episode tracker)"

#: Radius (meters) within which a cached address is reused for a position.
DEFAULT_GEOCODE_RADIUS_M = 200.0

#: Grid cells are 0.1 degree wide in both axes.
GRID_CELLS_PER_DEGREE = 10

# ------------------------------------------------------------------
# Producer-side validation ranges
# ------------------------------------------------------------------

MAX_ODOMETER_KM = 100_000_000
MAX_SPEED_KMH = 300
MAX_RANGE_KM = 1000
MAX_CHARGING_POWER_W = 350_000
MIN_OUTSIDE_TEMP_C = -30.0
MAX_OUTSIDE_TEMP_C = 50.0

#: Latitude/longitude value (micro-degrees) sent when the GPS fix did not
#: reach the telemetry unit.
GPS_INVALID_MICRODEGREES = -134217726

# ------------------------------------------------------------------
# Segmentation
# ------------------------------------------------------------------

#: SoC increases of at most this many percent points are sensor noise.
SOC_NOISE_PERCENT = 1

# ------------------------------------------------------------------
# Poll backoff (minutes)
# ------------------------------------------------------------------

DC_CHARGING_BACKOFF_MINUTES = 2
DEFAULT_BACKOFF_MINUTES = 5
BACKOFF_FACTOR = 1.5

#: Upper bound of the poll backoff for each wall-clock hour (index = hour).
MAX_BACKOFF_BY_HOUR: tuple[int, ...] = (
    180, 180, 180, 180, 180, 180,  # 00-05
    60,  # 06
    15, 15, 15,  # 07-09 morning commute
    30, 30, 30, 30, 30, 30,  # 10-15
    15, 15, 15, 15,  # 16-19 evening commute
    30, 30,  # 20-21
    60,  # 22
    120,  # 23
)
