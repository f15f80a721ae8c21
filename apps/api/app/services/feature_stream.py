"""
Feature generation with NDJSON streaming.

Each stream yields any number of `token` events followed by exactly one
terminal event (`done` or `error`). Three paths:

- replay: a cached completion is re-sent in 60-char tokens
- live: model chunks are relayed as they arrive, then parsed and cached
- stub: no LLM configured; deterministic insights are sent as tokens

Persistence runs through the post-generation hook before `done`. If the
consumer goes away mid-stream the upstream LLM stream is closed and nothing
is persisted or cached.
"""
from __future__ import annotations

import asyncio
import json
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, Union

from app.core.exceptions import GenerationJsonInvalid
from app.services.features import (
    FeatureRequest,
    FeatureSpec,
    build_payload,
    build_prompt_input,
    get_feature,
    parse_completion,
    resolve_quiz_count,
    validate_result,
)
from app.services.llm.base import LlmBackend
from app.services.llm_cache import CacheLookup, CompletionCache, CompletionEntry
from app.services.stub_insights import STUB_MODEL_ID, build_stub_insights

logger = logging.getLogger(__name__)

CHUNK_SIZE = 60

PostGenerationHook = Callable[[FeatureRequest, str, dict[str, Any], str], Awaitable[Union[int, None]]]


# ----------------------------
# Events
# ----------------------------

@dataclass(frozen=True)
class TokenEvent:
    token: str
    terminal = False

    def to_dict(self) -> dict[str, Any]:
        return {"type": "token", "token": self.token}


@dataclass(frozen=True)
class DoneEvent:
    feature: str
    payload: dict[str, Any]
    terminal = True

    def to_dict(self) -> dict[str, Any]:
        return {"type": "done", "feature": self.feature, "payload": self.payload}


@dataclass(frozen=True)
class ErrorEvent:
    message: str
    terminal = True

    def to_dict(self) -> dict[str, Any]:
        return {"type": "error", "message": self.message}


StreamEvent = Union[TokenEvent, DoneEvent, ErrorEvent]


@dataclass(frozen=True)
class _Completion:
    spec: FeatureSpec
    result: dict[str, Any]
    model: str
    # set only for fresh LLM output that still has to be cached
    cache_key: str | None = None
    raw_content: str | None = None


def encode_event(event: StreamEvent) -> str:
    return json.dumps(event.to_dict(), ensure_ascii=False) + "\n"


def chunk_text(text: str, size: int = CHUNK_SIZE) -> list[str]:
    if not text:
        return [text]
    return [text[i:i + size] for i in range(0, len(text), size)]


async def encode_ndjson(events: AsyncIterator[StreamEvent]) -> AsyncIterator[bytes]:
    async with aclosing(events) as evs:
        async for ev in evs:
            yield encode_event(ev).encode("utf-8")
            if ev.terminal:
                break


def _error_message(err: Exception, fallback: str) -> str:
    return str(err) or fallback


# ----------------------------
# Streamer
# ----------------------------

class FeatureStreamer:
    def __init__(
        self,
        cache: CompletionCache,
        llm: LlmBackend | None,
        on_complete: PostGenerationHook | None = None,
    ) -> None:
        self.cache = cache
        self.llm = llm
        self.on_complete = on_complete

    async def _persist(self, req: FeatureRequest, spec: FeatureSpec, result: dict[str, Any], model: str) -> int | None:
        if self.on_complete is None:
            return req.transcript_id
        return await self.on_complete(req, spec.key, result, model)

    async def _finish(self, req: FeatureRequest, spec: FeatureSpec, result: dict[str, Any], model: str) -> DoneEvent:
        tid = await self._persist(req, spec, result, model)
        payload = build_payload(
            spec,
            result,
            duration_seconds=req.duration_seconds,
            model=model,
            transcript_id=tid,
        )
        return DoneEvent(feature=spec.key, payload=payload)

    # -----------------------------
    # Paths
    # -----------------------------
    async def _stream_stub(self, req: FeatureRequest, spec: FeatureSpec) -> AsyncIterator[StreamEvent]:
        try:
            stub = build_stub_insights(
                req.transcript,
                req.prompt,
                quiz_count=resolve_quiz_count(req),
                duration_seconds=req.duration_seconds,
            )
            result = validate_result(spec, spec.extract_result(stub))
            for token in chunk_text(json.dumps(result, ensure_ascii=False)):
                yield TokenEvent(token)
            yield await self._finish(req, spec, result, stub.get("model") or STUB_MODEL_ID)
        except Exception as e:
            logger.exception("stub feature %s failed", spec.key)
            yield ErrorEvent(_error_message(e, "Stub gagal dikirim."))

    async def _replay(
        self, req: FeatureRequest, spec: FeatureSpec, entry: CompletionEntry, result: dict[str, Any]
    ) -> AsyncIterator[StreamEvent]:
        try:
            for token in chunk_text(entry.raw_content):
                yield TokenEvent(token)
            yield await self._finish(req, spec, result, entry.model_id or "openai-cache")
        except Exception as e:
            logger.exception("cache replay for feature %s failed", spec.key)
            yield ErrorEvent(_error_message(e, "Streaming cache gagal."))

    async def _live(
        self,
        req: FeatureRequest,
        spec: FeatureSpec,
        llm: LlmBackend,
        key: str,
        system_prompt: str,
        user_content: str,
    ) -> AsyncIterator[StreamEvent]:
        buffer: list[str] = []
        try:
            async with aclosing(llm.stream(system_prompt, user_content)) as upstream:
                async for piece in upstream:
                    if not piece:
                        continue
                    buffer.append(piece)
                    yield TokenEvent(piece)

            raw = "".join(buffer)
            result = parse_completion(spec, raw)
            done = await self._finish(req, spec, result, llm.model)
            await self.cache.put(key, CompletionEntry.fresh(raw, llm.model))
            yield done
        except GenerationJsonInvalid as e:
            logger.warning("feature %s produced invalid JSON: %s", spec.key, e)
            yield ErrorEvent(str(e))
        except Exception as e:
            logger.exception("live generation for feature %s failed", spec.key)
            yield ErrorEvent(_error_message(e, "Streaming gagal."))

    # -----------------------------
    # Public API
    # -----------------------------
    def _cached_result(self, spec: FeatureSpec, lookup: CacheLookup) -> dict[str, Any] | None:
        if lookup.entry is None:
            return None
        try:
            return parse_completion(spec, lookup.entry.raw_content)
        except GenerationJsonInvalid as e:
            logger.info("ignoring unparsable cached completion key=%s: %s", lookup.key[:12], e)
            return None

    async def stream(self, req: FeatureRequest) -> AsyncIterator[StreamEvent]:
        spec = get_feature(req.feature)

        if self.llm is None:
            events = self._stream_stub(req, spec)
        else:
            built = spec.build_prompt(build_prompt_input(req))
            lookup = await self.cache.get(built.system_prompt, built.user_content)
            cached_result = self._cached_result(spec, lookup)

            if lookup.entry is not None and cached_result is not None:
                events = self._replay(req, spec, lookup.entry, cached_result)
            else:
                events = self._live(req, spec, self.llm, lookup.key, built.system_prompt, built.user_content)

        async with aclosing(events) as evs:
            async for ev in evs:
                yield ev
                if ev.terminal:
                    return

    async def _complete(self, req: FeatureRequest) -> _Completion:
        spec = get_feature(req.feature)

        if self.llm is None:
            stub = build_stub_insights(
                req.transcript,
                req.prompt,
                quiz_count=resolve_quiz_count(req),
                duration_seconds=req.duration_seconds,
            )
            return _Completion(spec, validate_result(spec, spec.extract_result(stub)), STUB_MODEL_ID)

        built = spec.build_prompt(build_prompt_input(req))
        lookup = await self.cache.get(built.system_prompt, built.user_content)
        cached_result = self._cached_result(spec, lookup)
        if lookup.entry is not None and cached_result is not None:
            return _Completion(spec, cached_result, lookup.entry.model_id)

        raw = await self.llm.complete(built.system_prompt, built.user_content)
        result = parse_completion(spec, raw)
        return _Completion(spec, result, self.llm.model, cache_key=lookup.key, raw_content=raw)

    async def _commit(self, req: FeatureRequest, completion: _Completion) -> dict[str, Any]:
        done = await self._finish(req, completion.spec, completion.result, completion.model)
        if completion.raw_content is not None and completion.cache_key is not None:
            await self.cache.put(completion.cache_key, CompletionEntry.fresh(completion.raw_content, completion.model))
        return done.payload

    async def generate(self, req: FeatureRequest) -> dict[str, Any]:
        """
        Non-streaming variant: returns the `done` payload, raises on failure.
        """
        return await self._commit(req, await self._complete(req))

    async def generate_batch(self, kinds: Iterable[str], req: FeatureRequest) -> dict[str, dict[str, Any]]:
        """
        All-or-nothing: features are generated concurrently, and nothing is
        persisted or cached unless every one of them produced a valid result.
        The first failure cancels the features still running.
        """
        kinds = list(dict.fromkeys(kinds))
        reqs = [req.model_copy(update={"feature": kind}) for kind in kinds]

        completions = await _gather_or_cancel([self._complete(r) for r in reqs])

        payloads = [await self._commit(r, c) for r, c in zip(reqs, completions)]
        return dict(zip(kinds, payloads))


async def _gather_or_cancel(aws: list[Awaitable[_Completion]]) -> list[_Completion]:
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for t in tasks:
            t.cancel()
        # settle the cancelled siblings so their exceptions are retrieved
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
