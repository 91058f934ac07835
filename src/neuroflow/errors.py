"""Exception hierarchy shared by the sources, the pipeline and the AI coach."""


class NeuroflowError(Exception):
    """Base class for all pipeline errors."""


class TransportError(NeuroflowError):
    """Serial port could not be opened or failed while reading."""


class DeviceSelectionCancelled(NeuroflowError):
    """The user dismissed the device picker. Not a failure."""


class AdviceError(NeuroflowError):
    """The advisory request failed (credential, network or malformed response)."""
