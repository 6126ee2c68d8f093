from .sliding_window import SlidingWindowRateLimiter

__all__ = ["SlidingWindowRateLimiter"]
