"""Errors raised by imagickal"""

from typing import Optional


class ImagickalError(Exception):
    """Base class for every error raised by this package"""


class ExternalToolError(ImagickalError):
    """Exception raised when the external tool exits with a non-zero status"""

    def __init__(self, message: str, command: str = "", returncode: Optional[int] = None,
                 stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


class InvalidImageError(ExternalToolError):
    """The tool has no decode delegate for the input, i.e. it is not an image"""


class OutputLimitError(ExternalToolError):
    """Output of the external tool went past the configured max_buffer"""


class ParseError(ImagickalError):
    """Query output could not be parsed, keeps the raw text in ``output``"""

    def __init__(self, message: str, output: str = ""):
        self.output = output
        super().__init__(message)
