import logging
import random

from services.errors import ConflictRetryExhausted

logger = logging.getLogger(__name__)

CODE_MIN = 100
CODE_MAX = 999

# how often the unbounded loop reports that it is still spinning
_WARN_EVERY = 100


def generate_booking_code() -> int:
    """Return a 3-digit booking code. Uniqueness is the caller's job."""
    return random.randint(CODE_MIN, CODE_MAX)


def allocate_unique_code(is_taken, max_attempts=None, generate=generate_booking_code) -> int:
    """
    Draw codes until ``is_taken(code)`` is false.

    ``max_attempts=None`` retries forever: only 900 codes exist and a
    free-list is not tracked, so a saturated code space spins here rather
    than failing. Pass a bound to raise ConflictRetryExhausted instead.
    """
    attempts = 0
    while True:
        code = generate()
        attempts += 1
        if not is_taken(code):
            if attempts > 1:
                logger.debug("Allocated booking code after %d attempts", attempts)
            return code

        if max_attempts is not None and attempts >= max_attempts:
            logger.warning("Booking code allocation gave up after %d attempts", attempts)
            raise ConflictRetryExhausted()
        if attempts % _WARN_EVERY == 0:
            logger.warning("Booking code allocation still retrying (%d attempts)", attempts)
