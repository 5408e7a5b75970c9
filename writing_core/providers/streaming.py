"""三种 Provider 共用的逐行流式读取与解码工具。

解码纪律（三种协议一致）：

1. 读取一行；空行跳过。
2. SSE 协议先去掉 ``data:`` 前缀，非 data 行跳过。
3. 若本行是该 Provider 的终止信号（仅 OpenAI 的 ``[DONE]``），停止读取。
4. 解析 JSON 并按 Provider 各自的路径取出文本，非空则产出一个文本块。
5. 解析失败或字段缺失时静默跳过本行，继续读取。

发起请求前以及每次读取网络数据前都会检查取消信号。
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional

import httpx

from writing_core.domain.exceptions import ApiError, DecodeError, NetworkError
from writing_core.infrastructure.logging.logger import logger
from writing_core.providers.base import CancellationToken


class Framing(str, Enum):
    SSE = "sse"
    NDJSON = "ndjson"


SSE_DATA_PREFIX = "data:"

Extractor = Callable[[Any], Optional[str]]
TerminalPredicate = Callable[[str], bool]


@dataclass
class StreamStats:
    """单次流式调用的计数，用于结束日志。"""

    lines: int = 0
    chunks: int = 0
    skipped: int = 0
    cancelled: bool = False


def never_terminal(data: str) -> bool:
    """没有终止哨兵的协议：直到响应体关闭才结束。"""

    return False


def sse_data(line: str) -> Optional[str]:
    """取出 SSE 行中 ``data:`` 之后的内容，非 data 行返回 None。"""

    if not line.startswith(SSE_DATA_PREFIX):
        return None
    return line[len(SSE_DATA_PREFIX):].strip()


def dig(payload: Any, *path: Any) -> Any:
    """沿 key/下标路径取值，任一环节缺失返回 None。"""

    current = payload
    for key in path:
        try:
            current = current[key]
        except (KeyError, IndexError, TypeError):
            return None
    return current


def parse_line(data: str, extract: Extractor) -> str:
    """解析一行 JSON 并取出文本；失败抛 DecodeError。"""

    try:
        payload = json.loads(data)
    except ValueError as e:
        raise DecodeError(code="DECODE_ERROR", message=f"invalid json: {e}")
    text = extract(payload)
    if not isinstance(text, str):
        raise DecodeError(code="DECODE_ERROR", message="expected text field missing")
    return text


def iter_lines(
    lines: Iterable[str],
    cancel: Optional[CancellationToken] = None,
    stats: Optional[StreamStats] = None,
) -> Iterator[str]:
    """逐行拉取，每次读取前检查取消信号。"""

    iterator = iter(lines)
    while True:
        if cancel is not None and cancel.cancelled:
            if stats is not None:
                stats.cancelled = True
            return
        try:
            line = next(iterator)
        except StopIteration:
            return
        if stats is not None:
            stats.lines += 1
        yield line


def decode_lines(
    lines: Iterable[str],
    *,
    framing: Framing,
    extract: Extractor,
    is_terminal: TerminalPredicate = never_terminal,
    stats: Optional[StreamStats] = None,
) -> Iterator[str]:
    """把行序列解码为非空文本块序列。"""

    stats = stats if stats is not None else StreamStats()
    for raw in lines:
        line = raw.strip()
        if not line:
            continue
        if framing is Framing.SSE:
            data = sse_data(line)
            if data is None:
                continue
        else:
            data = line
        if is_terminal(data):
            return
        try:
            text = parse_line(data, extract)
        except DecodeError as e:
            stats.skipped += 1
            logger.debug("stream.skip_line", extra={"extra": {"reason": e.message}})
            continue
        if text:
            stats.chunks += 1
            yield text


def stream_lines(
    client: httpx.Client,
    url: str,
    *,
    provider: str,
    model: str,
    framing: Framing,
    extract: Extractor,
    is_terminal: TerminalPredicate = never_terminal,
    json_body: Optional[Dict[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
    params: Optional[Mapping[str, str]] = None,
    cancel: Optional[CancellationToken] = None,
    where: str = "",
    hint: str = "",
) -> Iterator[str]:
    """发起一次流式 POST 请求并产出解码后的文本块。

    - 网络错误（DNS、连接、超时、读中断）抛 NetworkError。
    - 非 2xx 状态码读取完整响应体后抛 ApiError。
    - 响应在任何退出路径（含取消、调用方提前停止迭代）都会被关闭。

    params 中可能带有 API Key，只用于请求，不写入日志。
    """

    stats = StreamStats()
    log_ctx = {"provider": provider, "model": model, "url": url}
    if cancel is not None and cancel.cancelled:
        logger.info("stream.cancelled", extra={"extra": {**log_ctx, "chunks": 0}})
        return
    logger.info("stream.start", extra={"extra": log_ctx})
    try:
        with client.stream("POST", url, json=json_body, headers=headers, params=params) as resp:
            if resp.status_code < 200 or resp.status_code >= 300:
                resp.read()
                body = resp.text
                logger.warning(
                    "stream.http_error",
                    extra={"extra": {**log_ctx, "status": resp.status_code}},
                )
                raise ApiError(
                    code="API_ERROR",
                    message=f"{provider} API error: {resp.status_code} {resp.reason_phrase} - {body}",
                    http_status=resp.status_code,
                    provider=provider,
                )
            lines = iter_lines(resp.iter_lines(), cancel=cancel, stats=stats)
            yield from decode_lines(
                lines,
                framing=framing,
                extract=extract,
                is_terminal=is_terminal,
                stats=stats,
            )
    except (httpx.RequestError, httpx.InvalidURL) as e:
        detail = str(e) or type(e).__name__
        logger.warning(
            "stream.transport_error",
            extra={"extra": {**log_ctx, "error": type(e).__name__}},
        )
        raise NetworkError(
            code="NETWORK_ERROR",
            message=f"Error connecting to {provider}{where}: {detail}{hint}",
            provider=provider,
        )
    if stats.cancelled:
        logger.info("stream.cancelled", extra={"extra": {**log_ctx, "chunks": stats.chunks}})
    logger.info(
        "stream.finished",
        extra={"extra": {**log_ctx, "chunks": stats.chunks, "skipped": stats.skipped, "lines": stats.lines}},
    )
