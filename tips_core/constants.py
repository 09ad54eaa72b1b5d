"""Timer constants shared across tips-core."""

# Seconds
DEFAULT_TIMER_DURATION = 900
DEFAULT_SNOOZE_DURATION = 300
MIN_SCHEDULE_DELAY = 1

TIMER_ID_PREFIX = "treatment_timer_"

# Storage keys
TIMER_STATE_FILE = "timer_state.json"
TIMER_STATE_KEY = "treatmentTimerState"

# Live activity switches to the expired look this many seconds before the end
LIVE_ACTIVITY_EXPIRY_LEAD = 3
