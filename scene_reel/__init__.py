"""Scene reel package."""

from .models import Artifact, AudioBuffer, Scene

__all__ = ["Artifact", "AudioBuffer", "Scene", "generate"]


def generate(*args, **kwargs):
    from .session import generate as _generate

    return _generate(*args, **kwargs)
