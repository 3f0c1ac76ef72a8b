"""Report generator protocol.

The generator is an opaque text-generation call. The chat service only
needs a coroutine that turns a query, prior turns and a language into text.
"""

from typing import Protocol, runtime_checkable

from toolsense_cache.entities import ChatMessage, GenerationResult


@runtime_checkable
class ReportGenerator(Protocol):
    """Protocol for security report generators.

    Example:
        ```python
        generator: ReportGenerator = GeminiReportGenerator.create()
        result = await generator.generate("gitlab", [], "en")
        print(result.model, result.text[:80])
        ```
    """

    @property
    def model_name(self) -> str:
        """Return the primary model identifier."""
        ...

    async def generate(
        self,
        message: str,
        history: list[ChatMessage],
        language: str = "en",
    ) -> GenerationResult:
        """Generate a report or a follow-up answer.

        Args:
            message: The current user message
            history: Prior turns, oldest first (empty for fresh conversations)
            language: Language the answer must be written in

        Returns:
            GenerationResult with the text and the model that produced it

        Raises:
            GenerationError: If no model produced a response
        """
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...
