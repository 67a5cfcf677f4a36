from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from app.services.generation_client import GenerationClient, short_model_name, supports_text_generation


logger = logging.getLogger(__name__)


@dataclass
class BackendSelector:
    """
    Owns the process-wide generation model name.

    `current` starts at the configured default and is replaced exactly once when
    background discovery completes, so readers never wait on selection.
    """

    client: GenerationClient
    default_model: str
    _current: str = field(init=False)
    _resolved: bool = field(default=False, init=False)
    _task: asyncio.Task | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self._current = self.default_model

    @property
    def current(self) -> str:
        return self._current

    @property
    def resolved(self) -> bool:
        return self._resolved

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.create_task(self._resolve_and_store())
        return self._task

    async def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def resolve_backend(self) -> str:
        if not self.client.configured:
            logger.warning("Generation API key missing; using default model %s", self.default_model)
            return self.default_model

        try:
            descriptors = await self.client.list_models()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not list generation models, using default %s: %s", self.default_model, exc)
            return self.default_model

        for descriptor in descriptors:
            name = descriptor.get("name")
            if isinstance(name, str) and name and supports_text_generation(descriptor):
                logger.info("Found available model: %s", name)
                return short_model_name(name)

        logger.warning("No text-generation model advertised, using default %s", self.default_model)
        return self.default_model

    async def _resolve_and_store(self) -> str:
        model = await self.resolve_backend()
        self._current = model
        self._resolved = True
        logger.info("Using AI model: %s", model)
        return model
