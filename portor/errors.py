"""Error kinds surfaced by the registry workflow."""


class RegistryError(Exception):
    """Base class for registry lookup failures."""


class NoSessionError(RegistryError):
    """The CAPTCHA could not be solved after the full escalation sequence."""


class UpstreamUnavailableError(RegistryError):
    """The registry returned no usable response or invalidated the session."""


class RecordNotFoundError(RegistryError):
    """The requested record does not exist in the registry."""


class MalformedDocumentError(RegistryError):
    """A detail page was fetched but does not match the known layout."""


class ValidationError(RegistryError):
    """Caller-supplied identifiers fail their format constraints.

    ``errors`` holds one ``{"parameter": ..., "detail": ...}`` entry per
    offending parameter.
    """

    def __init__(self, errors: list[dict[str, str]]):
        self.errors = errors
        super().__init__("; ".join(f"{e['parameter']}: {e['detail']}" for e in errors))
