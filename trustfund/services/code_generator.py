import secrets
import string
from typing import Callable
import structlog

from trustfund.core.errors import CodeExhausted

logger = structlog.get_logger(__name__)

CODE_PREFIX = "TF-"
CODE_LENGTH = 6
CODE_ALPHABET = string.ascii_uppercase + string.digits


def random_code() -> str:
    """Draw one candidate code such as ``TF-7QX2LM``"""
    return CODE_PREFIX + "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


class CodeGenerator:
    """Mints public campaign codes, retrying on collision"""

    def __init__(self, max_attempts: int = 5, draw: Callable[[], str] = random_code):
        self.max_attempts = max_attempts
        self._draw = draw

    def generate(self, exists: Callable[[str], bool]) -> str:
        """Return a code for which ``exists`` is false.

        Raises CodeExhausted when every attempt collides. With 36**6
        candidates that only happens when the code space is close to full
        or the random source is broken.
        """
        for attempt in range(1, self.max_attempts + 1):
            code = self._draw()
            if not exists(code):
                return code
            logger.warning("Campaign code collision", code=code, attempt=attempt)

        logger.error("Campaign code space exhausted", attempts=self.max_attempts)
        raise CodeExhausted(f"Could not allocate a unique campaign code after {self.max_attempts} attempts")
