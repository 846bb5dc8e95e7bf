"""Errors raised while building a reel."""
from __future__ import annotations


class ReelError(RuntimeError):
    """Base class for render failures.

    ``str(exc)`` is a human readable cause suitable for a status line.
    """


class NoRenderableScenes(ReelError):
    def __init__(self, message: str = "Add at least one scene with an image to generate the video."):
        super().__init__(message)


class InvalidTimeline(ReelError):
    def __init__(self, total: float):
        self.total = total
        super().__init__(f"The total video duration is invalid ({total:.3f}s).")


class AudioDecodeFailure(ReelError):
    """Audio of a single scene could not be decoded.

    Scene scoped: the scene is rendered silent instead of aborting.
    """

    def __init__(self, source: str, reason: str = ""):
        self.source = source
        msg = f"Could not decode audio file {source}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class EncoderUnavailable(ReelError):
    pass


class EncoderFailure(ReelError):
    pass


class EmptyArtifact(ReelError):
    def __init__(self, message: str = "The encoder produced no data."):
        super().__init__(message)


class CaptureAborted(ReelError):
    def __init__(self, message: str = "Render was cancelled."):
        super().__init__(message)
