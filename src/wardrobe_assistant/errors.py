from __future__ import annotations


class WardrobeAssistantError(Exception):
    """Base class for errors raised by the wardrobe assistant."""


class EmbeddingGenerationFailed(WardrobeAssistantError, RuntimeError):
    def __init__(self, context: str, reason: str) -> None:
        super().__init__(f"Embedding generation failed for {context}: {reason}")
        self.context = context
        self.reason = reason


class DimensionMismatch(WardrobeAssistantError, ValueError):
    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Embedding dimensions differ: {left} != {right}")
        self.left = left
        self.right = right


class OutfitGenerationFailed(WardrobeAssistantError, RuntimeError):
    pass


class ItemAnalysisFailed(WardrobeAssistantError, RuntimeError):
    pass


class PromptConflict(WardrobeAssistantError, ValueError):
    pass
