"""git clone 输出分类。

git-clone-mcp parsers v0.1.0

将 git 输出的原始文本块归为四类之一：
- ErrorChunk: 含有独立单词 "Error"（区分大小写）
- ProgressChunk: 含有百分比记号，取块内最后一个
- DetailChunk: 含有 "Cloning into"
- UnclassifiedChunk: 其余，仅记日志

文本块不保证按行对齐，这里不做任何缓冲或拼接，按收到的原始内容匹配。
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict

__all__ = [
    "ChunkKind",
    "ErrorChunk",
    "ProgressChunk",
    "DetailChunk",
    "UnclassifiedChunk",
    "ChunkClassification",
    "ProgressUpdate",
    "classify",
    "to_progress_update",
]

ERROR_PATTERN = re.compile(r"\b(Error)\b")
PERCENT_PATTERN = re.compile(r"(\d+)(\.\d+)?%")
DETAIL_MARKER = "Cloning into"


class ChunkKind(str, Enum):
    """文本块分类。"""

    ERROR = "error"
    PROGRESS = "progress"
    DETAIL = "detail"
    UNCLASSIFIED = "unclassified"


class _ChunkBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str


class ErrorChunk(_ChunkBase):
    kind: Literal[ChunkKind.ERROR] = ChunkKind.ERROR


class ProgressChunk(_ChunkBase):
    """percent 保留原始记号（如 "42%" 或 "12.5%"），不做数值解析。"""

    kind: Literal[ChunkKind.PROGRESS] = ChunkKind.PROGRESS
    percent: str


class DetailChunk(_ChunkBase):
    kind: Literal[ChunkKind.DETAIL] = ChunkKind.DETAIL


class UnclassifiedChunk(_ChunkBase):
    kind: Literal[ChunkKind.UNCLASSIFIED] = ChunkKind.UNCLASSIFIED


ChunkClassification = ErrorChunk | ProgressChunk | DetailChunk | UnclassifiedChunk


class ProgressUpdate(BaseModel):
    """发给 ProgressSink 的一次进度更新，不持久化。

    Attributes:
        message: 人类可读的进度文本
        detail: 百分比记号，或以一个空格开头的详情文本
    """

    model_config = ConfigDict(frozen=True)

    message: str
    detail: str | None = None


def classify(raw_text: str) -> ChunkClassification:
    """对单个原始文本块分类。

    优先级：Error > 百分比 > "Cloning into" > 未分类。
    """
    if ERROR_PATTERN.search(raw_text):
        return ErrorChunk(text=raw_text)

    matches = [m.group(0) for m in PERCENT_PATTERN.finditer(raw_text)]
    if matches:
        return ProgressChunk(text=raw_text, percent=matches[-1])

    if DETAIL_MARKER in raw_text:
        return DetailChunk(text=raw_text)

    return UnclassifiedChunk(text=raw_text)


def to_progress_update(chunk: ChunkClassification) -> ProgressUpdate | None:
    """把分类结果转换为进度更新；错误和未分类块返回 None。"""
    if isinstance(chunk, ProgressChunk):
        return ProgressUpdate(
            message=f"Downloading {chunk.percent}",
            detail=chunk.percent,
        )
    if isinstance(chunk, DetailChunk):
        return ProgressUpdate(message=chunk.text, detail=" " + chunk.text)
    return None
