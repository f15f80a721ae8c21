from __future__ import annotations


class AcquisitionFailure(Exception):
    """A single transcript strategy failed (fetch, parse or transcription)."""


class ManifestUnavailable(AcquisitionFailure):
    pass


class NoTrackAvailable(AcquisitionFailure):
    pass


class FetchFailed(AcquisitionFailure):
    pass


class EmptyOrUnparsable(AcquisitionFailure):
    pass


class AudioDownloadError(AcquisitionFailure):
    pass


class TranscriptionFailed(AcquisitionFailure):
    pass


class QualityRejection(Exception):
    """Transcript judged incomplete compared to the video duration."""


class AllSourcesExhausted(Exception):
    """
    Every strategy was rejected. str(exc) is the most recent reason;
    `reasons` keeps all of them as (strategy, reason) pairs.
    """

    def __init__(self, message: str, reasons: list[tuple[str, str]] | None = None) -> None:
        super().__init__(message)
        self.reasons = list(reasons or [])


class GenerationJsonInvalid(Exception):
    pass


class CacheBackendDegraded(Exception):
    pass


class TranscriptIdentityUnresolvable(Exception):
    pass


class InvalidFeatureRequest(ValueError):
    pass


class LlmUnavailable(Exception):
    pass
