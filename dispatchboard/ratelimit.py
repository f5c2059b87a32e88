"""
Minimum-interval rate limiting for calls to policy-limited services.

The public geocoder allows roughly one request per second. The limiter
here enforces a floor between consecutive permits and is kept apart from
any business logic so the policy can be tested in isolation.
"""

import time
import functools
from typing import Callable, Optional


class MinIntervalLimiter:
    """
    Blocks callers so that consecutive permits are at least min_interval apart.

    By default the full interval is slept before each permit, including the
    first one, which is the policy the public geocoder asks for. With
    always_delay=False only the remainder of the interval is slept.
    """

    def __init__(
        self,
        min_interval: float = 1.1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        always_delay: bool = True,
    ):
        """
        Initialize the limiter.

        Args:
            min_interval: Minimum seconds between permits
            clock: Monotonic time source
            sleep: Blocking sleep function
            always_delay: Sleep the full interval before every permit instead
                of only the time left since the previous one
        """
        if min_interval < 0:
            raise ValueError("min_interval must be non-negative")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self.always_delay = always_delay
        self._last_permit: Optional[float] = None
        self.permits = 0

    def wait(self) -> float:
        """Block until the next permit is allowed. Returns seconds slept."""
        now = self._clock()
        if self.always_delay:
            delay = self.min_interval
        elif self._last_permit is None:
            delay = 0.0
        else:
            delay = max(0.0, self.min_interval - (now - self._last_permit))
        if delay > 0:
            self._sleep(delay)
        self._last_permit = self._clock()
        self.permits += 1
        return delay

    def reset(self):
        self._last_permit = None
        self.permits = 0


def rate_limited(limiter: MinIntervalLimiter):
    """
    Decorator that takes a permit from limiter before each call.

    Example:
        limiter = MinIntervalLimiter(1.1)

        @rate_limited(limiter)
        def search(query):
            return requests.get(url, params={"q": query})
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            limiter.wait()
            return func(*args, **kwargs)

        return wrapper
    return decorator
