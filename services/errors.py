"""Error taxonomy for probing, installation, proxying and metrics"""


class HostError(Exception):
    """Base class for discovery host service errors"""


class ProbeError(HostError):
    """Network or filesystem failure while testing the serving environment"""


class InstallError(HostError):
    """An endpoint could not be installed. Other endpoints are unaffected."""

    def __init__(self, message, path=None):
        super().__init__(message)
        self.path = path


class UnsafeOverwriteError(InstallError):
    """Existing content at the target path must not be overwritten"""


class ProxyUpstreamError(HostError):
    """The /ask backend could not be reached or did not answer in time"""


class MetricsError(HostError):
    """A usage metrics event could not be delivered. Always swallowed."""
