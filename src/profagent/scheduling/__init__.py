from .looper import BackoffState, Looper

__all__ = ["BackoffState", "Looper"]
