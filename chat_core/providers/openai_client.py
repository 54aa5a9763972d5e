"""OpenAI chat completions 适配器。

- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>
- 请求体: model/temperature/stream/messages

重试策略：仅在传输层错误（连接失败、超时等）时重试一次；
其它请求错误、HTTP 错误状态码与响应解析失败都直接抛出，不重试。
"""

import json
import logging
import random
import threading
from typing import Any, Callable, Dict, Iterable, Iterator, Optional

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
)

from chat_core.config.settings import Settings
from chat_core.domain.exceptions import ApiError, NetworkError, NoApiKeyError, ParseError, RateLimitError
from chat_core.domain.models import (
    ChatChoice,
    ChatRequest,
    ChatResult,
    ChatStreamChoice,
    ChatStreamChunk,
    ChatUsage,
    KNOWN_ROLES,
    Message,
)
from chat_core.infrastructure.logging.logger import logger, mask_key


MAX_ATTEMPTS = 2


def pick_api_key(cfg: Settings, rng: random.Random, lock: Optional[threading.Lock] = None) -> Optional[str]:
    """选择本次请求使用的 API 密钥。

    api_key 非空时直接使用；否则从 api_keys 中均匀随机选取一个。
    rng 可能被多个线程共享，传入 lock 时在锁内抽取。
    """

    if cfg.api_key:
        return cfg.api_key
    pool = [k for k in (cfg.api_keys or []) if k]
    if not pool:
        return None
    if lock is None:
        return rng.choice(pool)
    with lock:
        return rng.choice(pool)


def _retrying(can_retry: Callable[[], bool] = lambda: True) -> Retrying:
    return Retrying(
        stop=stop_after_attempt(MAX_ATTEMPTS),
        retry=retry_if_exception_type(httpx.TransportError) & retry_if_exception(lambda _: can_retry()),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


class OpenAIClient:
    """OpenAI Provider 客户端实现。"""

    name = "openai"

    def __init__(self, cfg: Settings, rng: Optional[random.Random] = None):
        self._settings = cfg
        self._rng = rng or random.Random()
        self._rng_lock = threading.Lock()

    @property
    def endpoint(self) -> str:
        return f"{self._settings.base_url}/chat/completions"

    # ---- 非流式 ----

    def chat(self, req: ChatRequest) -> ChatResult:
        headers = self._headers()
        payload = req.to_payload()
        with httpx.Client(timeout=self._settings.http_timeout) as client:
            try:
                for attempt in _retrying():
                    with attempt:
                        resp = client.post(self.endpoint, json=payload, headers=headers)
            except httpx.RequestError as e:
                raise NetworkError(code="NETWORK_ERROR", message=f"request error: {e}")
        self._check_status(resp.status_code, lambda: resp.text)
        try:
            data = resp.json()
        except ValueError as e:
            raise ParseError(code="PARSE_ERROR", message=f"invalid response body: {e}")
        return self._parse_response(data)

    # ---- 流式 ----

    def chat_stream(self, req: ChatRequest) -> Iterable[ChatStreamChunk]:
        headers = self._headers()
        payload = {**req.to_payload(), "stream": True}
        return self._stream(payload, headers)

    def _stream(self, payload: Dict[str, Any], headers: Dict[str, str]) -> Iterator[ChatStreamChunk]:
        produced = False
        with httpx.Client(timeout=self._settings.http_timeout) as client:
            try:
                # 已经向调用方产出过增量时不能重放
                for attempt in _retrying(can_retry=lambda: not produced):
                    with attempt:
                        with client.stream("POST", self.endpoint, json=payload, headers=headers) as resp:
                            if resp.status_code >= 400:
                                resp.read()
                            self._check_status(resp.status_code, lambda: resp.text)
                            for line in resp.iter_lines():
                                chunk = self._parse_sse_line(line)
                                if chunk is None:
                                    continue
                                produced = True
                                yield chunk
            except httpx.RequestError as e:
                raise NetworkError(code="NETWORK_ERROR", message=f"request error: {e}")

    # ---- 辅助方法 ----

    def _headers(self) -> Dict[str, str]:
        api_key = pick_api_key(self._settings, self._rng, self._rng_lock)
        if not api_key:
            raise NoApiKeyError(code="MISSING_API_KEY", message="api key is not set")
        logger.info("completion.request", extra={"extra": {"api_key": mask_key(api_key), "model": self._settings.model}})
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _check_status(status_code: int, body) -> None:
        if status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="OpenAI rate limit", http_status=429)
        if status_code >= 400:
            raise ApiError(code="API_ERROR", message=body(), http_status=status_code)

    def _parse_response(self, data: Any) -> ChatResult:
        if not isinstance(data, dict):
            raise ParseError(code="PARSE_ERROR", message="response body is not a JSON object")
        raw_choices = data.get("choices")
        if not isinstance(raw_choices, list) or not raw_choices:
            raise ParseError(code="PARSE_ERROR", message="missing field `choices`")
        choices: list[ChatChoice] = []
        for i, ch in enumerate(raw_choices):
            try:
                msg = Message.from_dict(ch.get("message"))
            except (AttributeError, ValueError) as e:
                raise ParseError(code="PARSE_ERROR", message=f"invalid choice {i}: {e}")
            choices.append(ChatChoice(index=ch.get("index", i), message=msg, finish_reason=ch.get("finish_reason")))
        return ChatResult(
            id=data.get("id") or "",
            object=data.get("object") or "",
            choices=choices,
            usage=self._parse_usage(data.get("usage")) or ChatUsage(),
            raw=data,
        )

    def _parse_sse_line(self, line: str) -> Optional[ChatStreamChunk]:
        # 注释行（": keep-alive"）与 event:/id:/retry: 等字段都不携带数据
        if not line or not line.startswith("data:"):
            return None
        data_str = line[5:].strip()
        if not data_str or data_str == "[DONE]":
            return None
        try:
            data = json.loads(data_str)
        except json.JSONDecodeError as e:
            raise ParseError(code="PARSE_ERROR", message=f"invalid stream event: {e}")
        if not isinstance(data, dict):
            raise ParseError(code="PARSE_ERROR", message="stream event is not a JSON object")
        choices: list[ChatStreamChoice] = []
        for i, ch in enumerate(data.get("choices") or []):
            delta = ch.get("delta") or {}
            role = delta.get("role")
            choices.append(
                ChatStreamChoice(
                    index=ch.get("index", i),
                    delta=delta.get("content") or "",
                    role=role if role in KNOWN_ROLES else None,
                    finish_reason=ch.get("finish_reason"),
                )
            )
        return ChatStreamChunk(
            id=data.get("id") or "",
            choices=choices,
            usage=self._parse_usage(data.get("usage")),
            raw=data,
        )

    @staticmethod
    def _parse_usage(usage_raw: Any) -> Optional[ChatUsage]:
        if not isinstance(usage_raw, dict) or not usage_raw:
            return None
        return ChatUsage(
            prompt_tokens=usage_raw.get("prompt_tokens", 0),
            completion_tokens=usage_raw.get("completion_tokens", 0),
            total_tokens=usage_raw.get("total_tokens", 0),
        )
