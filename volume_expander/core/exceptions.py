class ExpanderError(Exception):
    """Base exception for volume expander errors."""


class ParseError(ExpanderError):
    """Raised when parsing YAML manifests fails fatally."""


class ConfigParseError(ExpanderError, ValueError):
    """Raised for an unparsable or out-of-range policy annotation.

    Never escapes the policy resolver, which degrades to the default.
    """


class ClaimNotFoundError(ExpanderError):
    """The claim no longer exists."""


class FetchError(ExpanderError):
    """Reading the claim from the control plane failed."""


class MetricsError(ExpanderError):
    """Base class for metrics polling failures."""


class MetricsUnavailableError(MetricsError):
    """Prometheus could not be reached or refused the query."""


class MetricsShapeError(MetricsError):
    """Prometheus answered with an unexpected number or type of samples."""


class UpdateError(ExpanderError):
    """Writing the new requested capacity failed."""


class ListError(ExpanderError):
    """Listing the pods in the claim's namespace failed."""


class DeleteError(ExpanderError):
    """Deleting a single pod failed."""
