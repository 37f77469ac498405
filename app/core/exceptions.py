"""Custom exception types for the store, the supervisor and the API layer."""


class SwfError(Exception):
    """Base SWF backend exception."""

    status_code = 500


class UnsupportedFormatError(SwfError):
    """Resource identifier does not end in .sw.json, .sw.yaml or .sw.yml."""

    status_code = 400


class ParseFailureError(SwfError):
    """Text is not a valid workflow definition."""

    status_code = 422


class FetchFailureError(SwfError):
    """A remote definition or the action catalog could not be read."""

    status_code = 502


class SpecLoadFailureError(SwfError):
    """A declared spec file is missing or is not valid JSON."""

    status_code = 500


class EngineUnavailableError(SwfError):
    """The workflow engine never became ready."""

    status_code = 503
