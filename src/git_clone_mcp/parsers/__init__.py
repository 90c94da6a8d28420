"""git 输出解析模块。"""

from .clone_output import (
    ChunkClassification,
    ChunkKind,
    DetailChunk,
    ErrorChunk,
    ProgressChunk,
    ProgressUpdate,
    UnclassifiedChunk,
    classify,
    to_progress_update,
)

__all__ = [
    "ChunkClassification",
    "ChunkKind",
    "DetailChunk",
    "ErrorChunk",
    "ProgressChunk",
    "ProgressUpdate",
    "UnclassifiedChunk",
    "classify",
    "to_progress_update",
]
