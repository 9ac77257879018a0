""" User-facing notifications (success / error toasts). """

import logging
from abc import ABC, abstractmethod


class Notifier(ABC):
    @abstractmethod
    def success(self, message: str) -> None:
        pass

    @abstractmethod
    def error(self, message: str) -> None:
        pass


class LoggingNotifier(Notifier):
    """ Default notifier: routes notifications to the ``wizflow.notify`` logger. """

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger("wizflow.notify")

    def success(self, message: str) -> None:
        self.logger.info(message)

    def error(self, message: str) -> None:
        self.logger.error(message)
