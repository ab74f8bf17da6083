"""
Custom exception classes for the Prerender Service.
"""
from typing import Optional


class PrerenderServiceError(Exception):
    """
    Base class for all custom exceptions in the Prerender Service.

    Attributes:
        message (str): A human-readable description of the error.
    """
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"


# --- Configuration Related Exceptions ---
class ConfigurationError(PrerenderServiceError):
    """
    Raised for errors related to application configuration, such as a cache
    capacity or TTL that cannot be used.
    """
    def __init__(self, message: str):
        super().__init__(message)


# --- Request Related Exceptions ---
class MissingParameterError(PrerenderServiceError):
    """
    Raised when a required query parameter is absent or empty.
    Always detected before the cache or the browser is touched.

    Attributes:
        parameter (str): Name of the missing parameter.
    """
    def __init__(self, parameter: str):
        super().__init__(f'Missing "{parameter}" query parameter')
        self.parameter = parameter


class InvalidParameterError(PrerenderServiceError):
    """Raised when a query parameter is present but not usable (e.g. a malformed URL)."""
    def __init__(self, parameter: str, reason: Optional[str] = None):
        message = f'Invalid "{parameter}" query parameter'
        super().__init__(message)
        self.parameter = parameter
        self.reason = reason


# --- Component Related Exceptions ---
class ComponentError(PrerenderServiceError):
    """
    A general base class for errors originating from within a specific component
    (e.g., BrowserManager, Renderer).

    Attributes:
        component_name (str): Name of the component where the error originated.
    """
    def __init__(self, component_name: str, message: str):
        full_message = f"Error in component '{component_name}': {message}"
        super().__init__(full_message)
        self.component_name = component_name


class BrowserLaunchError(ComponentError):
    """Raised when the headless browser process fails to start. Nothing is cached; the next acquire retries."""
    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(component_name="BrowserManager", message=message)
        self.original_exception = original_exception


class RenderError(ComponentError):
    """
    Raised for errors specific to rendering a page.

    Attributes:
        url (str): The URL that was being rendered.
        original_exception (Optional[Exception]): The underlying browser/protocol error, if any.
    """
    def __init__(self, url: str, message: str, original_exception: Optional[Exception] = None):
        super().__init__(component_name="Renderer", message=f"{message} (url: {url})")
        self.url = url
        self.original_exception = original_exception


class RenderTimeoutError(RenderError):
    """Raised when navigation does not reach network calm within the time budget."""
    pass


class RenderFailureError(RenderError):
    """Raised for any other navigation or extraction failure (DNS, target site error, disconnect)."""
    pass
