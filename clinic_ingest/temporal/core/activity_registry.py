from typing import Callable, Dict, Optional


class ActivityRegistry:
    """Activities keyed ``category:name``, filled in by the register decorator."""

    _activities: Dict[str, Callable] = {}

    @classmethod
    def register(cls, category: str, name: Optional[str] = None):
        def decorator(activity_func: Callable) -> Callable:
            key = f"{category}:{name or activity_func.__name__}"
            existing = cls._activities.get(key)
            if existing is not None and existing is not activity_func:
                raise ValueError(f"Activity {key} is already registered by {existing.__module__}")
            cls._activities[key] = activity_func
            return activity_func
        return decorator

    @classmethod
    def get_all_activities(cls) -> Dict[str, Callable]:
        return dict(cls._activities)
