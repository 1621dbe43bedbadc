from .events import VIEW_EVENT_KEY, Event
from .payloads import Request, encode_payload
from .transport import Transport

__all__ = ["Event", "VIEW_EVENT_KEY", "Request", "Transport", "encode_payload"]
