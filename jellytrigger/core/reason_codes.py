class ReasonCode:
    MISSING_HEADERS = "missing headers"
    INVALID_TIMESTAMP = "invalid timestamp"
    EXPIRED = "expired"
    BAD_SIGNATURE = "bad signature"
