"""reqcurl exceptions - errors raised while parsing curl commands."""


class CurlParseError(ValueError):
    """Base class for curl command parse failures."""


class InvalidCommandError(CurlParseError):
    """The input is not text or does not start with the curl keyword."""


class MissingValueError(CurlParseError):
    """A flag that requires a value was the last token."""

    def __init__(self, flag: str):
        self.flag = flag
        super().__init__(f"Missing value for {flag} option")


class NoUrlError(CurlParseError):
    """No bare (non-flag) token was found to use as the URL."""

    def __init__(self):
        super().__init__("No URL found in curl command")
