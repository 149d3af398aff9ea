"""Exception types raised by the baseplate split pipeline."""


class BaseplateError(Exception):
    """Base exception for baseplate split errors."""
    pass


class InvalidConfiguration(BaseplateError):
    """Configuration values cannot produce a valid grid or partition."""
    pass


class MalformedProfile(BaseplateError):
    """Tooth parameters produce no usable outline."""
    pass


class GenerationFailed(BaseplateError):
    """External renderer failed, timed out, or could not be started."""

    def __init__(self, message: str, returncode=None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr
