"""LLM game generation with write-through caching.

``Generator.generate`` runs one request through:

    check cache -> probe models -> generate -> extract -> persist

A cache hit short-circuits everything after the first step unless the request
asks for ``force_regenerate``. Requests for the same id are serialized, so a
second concurrent request waits for the first and is then served from cache.
"""
from __future__ import annotations

import asyncio
import hashlib
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Sequence

import structlog

from .backend import Backend, LiteLLMBackend
from .cache import ArtifactCache
from .config import Settings
from .errors import BackendFailure, NoAvailableModel, NotConfigured
from .extract import extract_html
from .prompt import build_game_prompt, design_summary
from .schema import GenerationRequest, GenerationResult, GenerationStats, ModelsInfo

log = structlog.get_logger(__name__)


def prompt_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


class Generator:
    def __init__(
        self,
        cache: ArtifactCache,
        backend: Optional[Backend],
        models: Sequence[str],
        probe_timeout_s: Optional[float] = 30.0,
        generate_timeout_s: Optional[float] = 600.0,
    ):
        self.cache = cache
        self.backend = backend
        self.models: List[str] = list(models)
        self.probe_timeout_s = probe_timeout_s
        self.generate_timeout_s = generate_timeout_s
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        cache: Optional[ArtifactCache] = None,
        backend: Optional[Backend] = None,
    ) -> "Generator":
        if cache is None:
            cache = ArtifactCache(settings.storage_dir, settings.index_filename)
        if backend is None:
            backend = LiteLLMBackend.from_settings(settings)
        return cls(
            cache,
            backend,
            settings.models,
            probe_timeout_s=settings.probe_timeout_s,
            generate_timeout_s=settings.generate_timeout_s,
        )

    def models_info(self) -> ModelsInfo:
        return ModelsInfo(
            current_model=self.models[0] if self.models else None,
            fallbacks=self.models[1:],
        )

    @asynccontextmanager
    async def _id_lock(self, game_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(game_id, asyncio.Lock())
        self._lock_users[game_id] = self._lock_users.get(game_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[game_id] -= 1
            if not self._lock_users[game_id]:
                del self._lock_users[game_id]
                del self._locks[game_id]

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Return the cached game for ``request.id`` or generate a fresh one.

        Raises:
            NotConfigured: no backend credential.
            NoAvailableModel: every candidate model failed its probe.
            BackendFailure: the selected model failed the real call.
            InvalidContentStructure: the output held no complete HTML document.
            IOFailure: the game could not be read from or written to storage.
        """
        if self.backend is None:
            raise NotConfigured("Generative backend not configured")

        async with self._id_lock(request.id):
            if not request.force_regenerate:
                # disk I/O stays off the event loop
                hit = await asyncio.to_thread(self.cache.lookup, request.id)
                if hit is not None:
                    html, entry = hit
                    log.info("cache_hit", id=request.id, produced_by=entry.produced_by)
                    return GenerationResult(
                        id=request.id,
                        html=html,
                        produced_by=entry.produced_by,
                        quality="cached",
                        cached=True,
                        stats=GenerationStats(
                            html_length=len(html.encode("utf-8")),
                            cached_at=entry.created_at,
                        ),
                    )
            return await self._generate_fresh(request)

    async def _generate_fresh(self, request: GenerationRequest) -> GenerationResult:
        summary = design_summary(request.design)
        prompt = build_game_prompt(request.design)
        log.info(
            "generating",
            id=request.id,
            prompt_hash=prompt_hash(prompt),
            force=request.force_regenerate,
        )
        start = time.time()
        model = await self.select_model()

        try:
            raw = await asyncio.wait_for(self.backend.complete(model, prompt), self.generate_timeout_s)
        except asyncio.TimeoutError:
            raise BackendFailure(model, f"timed out after {self.generate_timeout_s}s") from None
        except Exception as e:
            raise BackendFailure(model, str(e) or type(e).__name__) from e

        html = extract_html(raw)
        await asyncio.to_thread(
            self.cache.save,
            request.id,
            html,
            produced_by=model,
            label=summary["project_name"],
        )
        elapsed = time.time() - start
        log.info("generated", id=request.id, model=model, latency_s=round(elapsed, 2))
        return GenerationResult(
            id=request.id,
            html=html,
            produced_by=model,
            quality="fresh",
            cached=False,
            latency_s=elapsed,
            stats=GenerationStats(
                html_length=len(html.encode("utf-8")),
                factions=summary["faction_count"],
                units=summary["unit_count"],
            ),
        )

    async def select_model(self) -> str:
        """Probe candidates in priority order and return the first that answers."""
        attempted = []
        for model in self.models:
            attempted.append(model)
            try:
                await asyncio.wait_for(self.backend.probe(model), self.probe_timeout_s)
            except asyncio.TimeoutError:
                log.warning("model_unavailable", model=model, error="probe timed out")
                continue
            except Exception as e:
                log.warning("model_unavailable", model=model, error=str(e) or type(e).__name__)
                continue
            log.info("model_selected", model=model)
            return model
        raise NoAvailableModel(attempted)


__all__ = ["Generator", "prompt_hash"]
