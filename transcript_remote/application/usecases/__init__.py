# Use Cases
from transcript_remote.application.usecases.resolve_transcript import (
    ResolveTranscriptConfig,
    ResolveTranscriptUseCase,
)

__all__ = [
    "ResolveTranscriptUseCase",
    "ResolveTranscriptConfig",
]
