"""Error taxonomy for the extraction pipeline."""


class PipelineError(Exception):
    """Base class for pipeline errors."""


class TransportFailure(PipelineError):
    """External service unreachable, timed out, or answered with an error status."""


class AuthFailure(PipelineError):
    """Compression service rejected the API key (401/403)."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"Compression service rejected credentials (HTTP {status_code})")


class ParseFailure(PipelineError):
    """Categorizer output could not be turned into a JSON object."""


class InvalidResponseStructure(PipelineError):
    """LLM response is missing the expected choice/message structure."""


class ExtractionInProgress(PipelineError):
    """An extraction run is already in flight for this manual."""

    def __init__(self, manual_id: str):
        self.manual_id = manual_id
        super().__init__(f"Extraction already running for manual {manual_id}")
