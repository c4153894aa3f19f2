"""Exception types raised by pedalnav."""


class PedalNavError(Exception):
    """Base class for all pedalnav errors"""


class InvalidInputError(PedalNavError, ValueError):
    """Malformed input rejected at a boundary (bad coordinate, empty route, ...)"""


class CollaboratorUnavailableError(PedalNavError):
    """An external collaborator could not provide what was asked.

    These are recoverable: consumers keep their last good state and retry on
    the next natural trigger.
    """


class LocationUnavailableError(CollaboratorUnavailableError):
    """Location API missing or permission denied (not the same as "no fix yet")"""


class RoutingUnavailableError(CollaboratorUnavailableError):
    """Routing service could not be reached or rejected the request"""


class DataFetchError(CollaboratorUnavailableError):
    """POI / warning / street data fetch failed"""


class NavigationStateError(PedalNavError, RuntimeError):
    """Operation called in a mode that does not allow it (caller miswiring)"""
