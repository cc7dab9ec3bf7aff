from .bus import EventBus, StandingUpdated, get_event_bus

__all__ = ["EventBus", "StandingUpdated", "get_event_bus"]
