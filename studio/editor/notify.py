import logging
from dataclasses import dataclass, field
from typing import List, Tuple

logger = logging.getLogger(__name__)


@dataclass
class Notifier:
    """
    Collects user-facing toasts. The UI shell drains `messages`;
    everything is mirrored to the log.
    """
    messages: List[Tuple[str, str]] = field(default_factory=list)

    def success(self, message: str) -> None:
        logger.info(message)
        self.messages.append(("success", message))

    def error(self, message: str) -> None:
        logger.warning(message)
        self.messages.append(("error", message))

    def errors(self) -> List[str]:
        return [m for level, m in self.messages if level == "error"]

    def last(self):
        return self.messages[-1] if self.messages else None
