import logging
from typing import Callable, List

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

PostCommitHook = Callable[[Session], object]


class PostCommitHooks:
    """
    Side effects that run only after the primary write committed.
    Each hook is isolated: a failure is logged and rolled back, and neither
    stops the remaining hooks nor reaches the caller.
    """

    def __init__(self):
        self._hooks: List[PostCommitHook] = []

    def add(self, hook: PostCommitHook) -> None:
        self._hooks.append(hook)

    def run(self, db: Session) -> int:
        """Run every hook; returns how many failed."""
        failures = 0
        for hook in self._hooks:
            try:
                hook(db)
            except Exception:
                failures += 1
                db.rollback()
                logger.warning("post-commit hook %r failed", hook, exc_info=True)
        return failures
