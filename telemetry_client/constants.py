class StoreKeys:
    """Keys of the persisted state file"""

    QUEUE = "cly_queue"
    TIMED_EVENTS = "cly_timed"
    DEVICE_ID = "cly_id"
