from .app import create_app
from .events import NormalizedEvent, RawEvent, normalize_event

__all__ = ["create_app", "NormalizedEvent", "RawEvent", "normalize_event"]
