"""
HostAdapter Protocol - defines the contract for model-serving backends.

This is the WHAT (interface), not the HOW (implementation).
See ollama.py for the concrete implementation.
"""

from typing import Protocol, AsyncGenerator

from clipcode.adapters.schema import ChatTask


class HostAdapter(Protocol):
    """
    Contract for model-serving backends.

    Implementations must provide:
    - Model discovery (list_models)
    - Streaming chat (stream_chat)
    """

    async def list_models(self) -> list[str]:
        """
        Return model names in the order the backend reports them.

        Raises:
            Exception if the backend cannot be reached or answers with an error
        """
        ...

    def stream_chat(self, task: ChatTask) -> AsyncGenerator[str, None]:
        """
        Stream chat fragments from the model.

        Yields:
            Text fragments in arrival order (append semantics)

        Raises:
            Exception on transport, protocol or malformed-chunk errors
        """
        ...
