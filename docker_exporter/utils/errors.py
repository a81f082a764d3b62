from enum import Enum


class ErrorCategory(str, Enum):
    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"
    PARSE = "parse"
    CONFIGURATION = "configuration"


class ExporterError(Exception):
    """Base exception for the exporter with a category."""

    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.TRANSPORT):
        super().__init__(message)
        self.message = message
        self.category = category

    def to_dict(self):
        return {"error": self.message, "category": self.category.value}


class TransportError(ExporterError):
    """Connectivity or protocol failure talking to the Docker daemon."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.TRANSPORT)


class ScrapeTimeout(ExporterError):
    """The scrape deadline elapsed before the call completed."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.TIMEOUT)


class StatsUnavailable(ExporterError):
    """The container went away (or stopped) between listing and fetching."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.UNAVAILABLE)


class ParseError(ExporterError):
    """The daemon returned a payload we could not interpret."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.PARSE)


class ConfigurationError(ExporterError):
    """Invalid exporter configuration."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.CONFIGURATION)
