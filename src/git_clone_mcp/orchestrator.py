"""活动请求登记。

server.call_tool 在执行期间把当前 asyncio Task 登记到 RequestRegistry，
SignalManager 通过它批量取消进行中的克隆。git 进程树由被取消的
RepositoryInstaller 自己清理，注册表只负责 Task。

由注册表发起的取消会在 RequestInfo.cancel_requested 上留下标记，
call_tool 据此把这次取消转换为 "cancelled" 响应，而客户端发起的取消照常传播。
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterator

__all__ = ["RequestRegistry", "RequestInfo"]

logger = logging.getLogger(__name__)


@dataclass
class RequestInfo:
    """一个进行中的工具调用。

    Attributes:
        request_id: 注册表内唯一的标识
        tool_name: clone_repository 或 get_setting
        task: 执行该调用的 Task
        label: 可读说明（克隆的仓库名）
        created_at: 登记时间
        cancel_requested: 注册表是否已取消该 Task
    """

    request_id: str
    tool_name: str
    task: asyncio.Task
    label: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    cancel_requested: bool = False

    @property
    def is_active(self) -> bool:
        return not self.task.done()

    def __repr__(self) -> str:
        age = (datetime.now() - self.created_at).total_seconds()
        parts = [f"id={self.request_id[:8]}...", f"tool={self.tool_name}"]
        if self.label:
            parts.append(f"label={self.label}")
        parts.append(f"status={'running' if self.is_active else 'done'}")
        parts.append(f"elapsed={age:.1f}s")
        return f"RequestInfo({', '.join(parts)})"


class RequestRegistry:
    """进行中工具调用的注册表。

    只在事件循环线程内使用（信号处理器经由 loop 回调进入）。

    Example:
        ```python
        request_id = registry.generate_request_id()
        registry.register(request_id, "clone_repository", asyncio.current_task(), "ESP-IDF")
        try:
            ...
        finally:
            registry.unregister(request_id)
        ```
    """

    def __init__(self) -> None:
        self._requests: dict[str, RequestInfo] = {}
        self._on_empty: list[Callable[[], None]] = []

    @staticmethod
    def generate_request_id() -> str:
        return str(uuid.uuid4())

    def register(
        self,
        request_id: str,
        tool_name: str,
        task: asyncio.Task,
        label: str = "",
    ) -> RequestInfo:
        """登记一个调用。

        Raises:
            ValueError: request_id 已被登记
        """
        if request_id in self._requests:
            raise ValueError(f"Request {request_id} already registered")
        info = RequestInfo(request_id=request_id, tool_name=tool_name, task=task, label=label)
        self._requests[request_id] = info
        logger.debug(f"Registered {info}")
        return info

    def unregister(self, request_id: str) -> bool:
        """移除登记；最后一个调用移除后触发 on_empty 回调。"""
        info = self._requests.pop(request_id, None)
        if info is None:
            return False
        logger.debug(f"Unregistered {info}")
        if not self._requests:
            self._fire_on_empty()
        return True

    def get(self, request_id: str) -> RequestInfo | None:
        return self._requests.get(request_id)

    def cancel(self, request_id: str) -> bool:
        """取消一个仍在运行的调用。"""
        info = self._requests.get(request_id)
        if info is None or not info.is_active:
            return False
        self._cancel(info)
        return True

    def cancel_all(self) -> int:
        """取消所有仍在运行的调用，返回数量。"""
        active = list(self._iter_active())
        for info in active:
            self._cancel(info)
        if active:
            logger.info(f"Cancelled {len(active)} active request(s)")
        return len(active)

    def has_active_requests(self) -> bool:
        return any(True for _ in self._iter_active())

    @property
    def active_count(self) -> int:
        return sum(1 for _ in self._iter_active())

    def list_active(self) -> list[RequestInfo]:
        return sorted(self._iter_active(), key=lambda info: info.created_at)

    def add_on_empty_callback(self, callback: Callable[[], None]) -> None:
        self._on_empty.append(callback)

    def remove_on_empty_callback(self, callback: Callable[[], None]) -> None:
        if callback in self._on_empty:
            self._on_empty.remove(callback)

    def _iter_active(self) -> Iterator[RequestInfo]:
        return (info for info in self._requests.values() if info.is_active)

    def _cancel(self, info: RequestInfo) -> None:
        info.cancel_requested = True
        info.task.cancel()
        logger.info(f"Cancelled {info}")

    def _fire_on_empty(self) -> None:
        for callback in list(self._on_empty):
            try:
                callback()
            except Exception as e:
                logger.warning(f"on_empty callback failed: {e}")

    def __len__(self) -> int:
        return len(self._requests)

    def __contains__(self, request_id: str) -> bool:
        return request_id in self._requests
