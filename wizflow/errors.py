""" Error types raised by the workflow core. """


class WizflowError(Exception):
    """ Base class for all wizflow errors. """


class MalformedDocument(WizflowError, ValueError):
    """ Structurally invalid workflow document (import or load input). """


class CycleDetected(MalformedDocument):
    def __init__(self, remaining):
        self.remaining = list(remaining)
        super().__init__(f"Cycle detected in workflow DAG: {', '.join(self.remaining)}")


class ChannelError(WizflowError):
    """ Control channel could not be opened or failed in transport. """


class PersistenceError(WizflowError):
    """ Document store write or lookup failed. """
