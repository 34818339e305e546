"""
Model registry - discovers the backend's models once per panel activation.
"""

import logging

from clipcode.adapters.base import HostAdapter
from clipcode.config import ModelDescriptor
from clipcode.core import ModelListUnavailable, describe_error

logger = logging.getLogger(__name__)


class ModelRegistry:
    """
    Holds the model list for one panel activation.

    refresh() issues exactly one list call; there are no retries.
    """

    def __init__(self, adapter: HostAdapter):
        self.adapter = adapter
        self._models: tuple[ModelDescriptor, ...] = ()

    @property
    def models(self) -> tuple[ModelDescriptor, ...]:
        """Last successfully fetched models, in backend order."""
        return self._models

    @property
    def names(self) -> list[str]:
        return [m.name for m in self._models]

    async def refresh(self) -> tuple[ModelDescriptor, ...]:
        """
        Fetch the model list from the backend.

        Raises:
            ModelListUnavailable: the backend call failed (cause is chained)
        """
        try:
            names = await self.adapter.list_models()
        except Exception as e:
            logger.warning("Model list unavailable: %s", describe_error(e))
            raise ModelListUnavailable(describe_error(e)) from e

        self._models = tuple(ModelDescriptor(name=name) for name in names)
        logger.info("Discovered %d model(s)", len(self._models))
        return self._models
