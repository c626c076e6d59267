"""Exception hierarchy for the hand-sharing client and relay."""


class HandShareError(Exception):
    """Base exception for hand-sharing errors."""


class AcquisitionError(HandShareError):
    """Raised when the camera cannot be opened or a frame cannot be read."""


class EstimationError(HandShareError):
    """Raised when the pose estimator fails. Fatal to the frame scheduler."""


class TransportError(HandShareError):
    """Raised when the broadcast channel cannot connect to the relay."""


class MalformedMessageError(HandShareError):
    """Raised when an inbound wire message fails validation."""


class ConfigError(HandShareError):
    """Raised when a config file cannot be parsed or fails validation."""
