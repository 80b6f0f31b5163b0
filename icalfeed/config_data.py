CONFIG = {
    # Feeds loaded when no source is given on the command line
    "calendar_urls": [],

    # Expansion window around the current time
    "LOOKBACK_DAYS": 14,
    "LOOKAHEAD_DAYS": 365,

    # Network
    "HTTP_TIMEOUT": 15,  # seconds

    # Output
    "MAX_EVENTS": 0,  # 0 = unlimited
    "LOG_LEVEL": "WARNING",
}
