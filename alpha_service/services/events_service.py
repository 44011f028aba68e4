"""宏观事件日历服务：读取随包发布的 JSON 日历并按日期过滤"""

import json
import logging
from typing import List, Optional

from pydantic import TypeAdapter

from alpha_service.models.market import MacroEvent

logger = logging.getLogger(__name__)

_EVENTS_ADAPTER = TypeAdapter(List[MacroEvent])


class EventsService:

    def __init__(self, events_path: str):
        self._path = events_path
        self._events: Optional[List[MacroEvent]] = None

    def _load(self) -> List[MacroEvent]:
        # 日历文件随进程只读取一次；格式错误直接抛出（ValidationError / JSONDecodeError），由路由返回 500
        if self._events is None:
            with open(self._path, "r", encoding="utf-8") as fh:
                raw = json.load(fh)
            self._events = _EVENTS_ADAPTER.validate_python(raw)
            logger.info(f"宏观事件日历已加载: {len(self._events)} 条")
        return self._events

    def get_events(self, start_date: str, end_date: str) -> List[MacroEvent]:
        events = self._load()
        return [e for e in events if start_date <= e.date <= end_date]
