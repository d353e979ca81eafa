"""
Abstract base class for pipeline stages.
"""

from abc import ABC, abstractmethod


class BaseProcessor(ABC):
    """Abstract processor interface for one pipeline stage."""

    #: Name used in logs, CLI commands and scheduler job ids
    name: str = ""
    #: Settings groups that must be configured before the stage can run
    requires: tuple[str, ...] = ()

    @abstractmethod
    def process(self) -> dict:
        """
        Run one batch of this stage.

        Returns:
            Processing statistics dict
        """
        pass
