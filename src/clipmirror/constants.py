#!/usr/bin/env python3
"""Default tuning constants for the clipmirror agent.

All of these can be overridden from the agent configuration file. The
offline queue backoff is minute-scale while polling is second-scale; the
ratio is kept, the exact numbers are just defaults.
"""

# Retry parameters for exponential backoff push-channel reconnection.
# Initial delay between connection attempts in seconds.
INITIAL_WAIT: float = 1.0

# Maximum delay between connection attempts in seconds.
MAX_WAIT: float = 60.0

# Multiplier for exponential backoff (delay = initial * multiplier^attempt).
WAIT_MULTIPLIER: float = 2.0

# Seconds between polls for remote updates while the push channel is down.
POLL_INTERVAL: float = 5.0

# Seconds between safety polls while the push channel is connected.
CONNECTED_POLL_INTERVAL: float = 60.0

# Seconds between offline queue drain passes.
DRAIN_INTERVAL: float = 10.0

# Seconds between local clipboard reads.
MONITOR_INTERVAL: float = 0.5

# Seconds per offline queue backoff unit (attempt k waits 2**k units).
BACKOFF_UNIT: float = 60.0

# Attempts after which a queued item is dropped.
MAX_ATTEMPTS: int = 5

# Seconds after which a queued item is dropped regardless of attempts.
QUEUE_MAX_AGE: float = 24 * 60 * 60

# Seconds a self-applied content hash is remembered by the echo suppressor.
ECHO_WINDOW: float = 5 * 60

# Maximum items requested per poll.
PAGE_SIZE: int = 50

# Timeout in seconds for a single HTTP request or push handshake.
REQUEST_TIMEOUT: float = 30.0

# Maximum clipboard item size in bytes (10 MB).
MAX_ITEM_BYTES: int = 10 * 1024 * 1024

# Seconds between health statistics log lines.
STATS_INTERVAL: float = 60.0

# Maximum number of observer callbacks running at once.
MAX_CONCURRENT_CALLBACKS: int = 4

# Maximum number of async observer callbacks waiting to run; further
# callbacks are dropped with a warning.
MAX_PENDING_CALLBACKS: int = 256

# Default service URL when neither flag nor environment provides one.
DEFAULT_SERVICE_URL: str = "http://localhost:3000"
