"""
Item Cache
可见列表与全量集合, 计数每次读取时重新统计
"""
from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, List, Optional

from core import SurveyItem


class ItemCache:
    """
    客户端已知条目的唯一来源
    visible 为当前展示视图 (加载或搜索结果), all 为计数与相似查找所用全量集合
    """

    def __init__(self) -> None:
        self._visible: List[SurveyItem] = []
        self._all: Dict[str, SurveyItem] = {}

    @property
    def visible(self) -> List[SurveyItem]:
        return list(self._visible)

    @property
    def all_items(self) -> List[SurveyItem]:
        return list(self._all.values())

    def replace_visible(self, items: Iterable[SurveyItem]) -> None:
        """设置当前展示列表"""
        self._visible = list(items)

    def set_all(self, items: Iterable[SurveyItem]) -> None:
        """设置全量集合"""
        self._all = {item.id: item for item in items}

    def upsert(self, item: SurveyItem, *, add_to_visible: bool = False) -> None:
        """
        按 id 合并单个条目

        Args:
            item: 服务端返回的完整条目
            add_to_visible: 可见列表中不存在时是否插入到列表头部
        """
        replaced = False
        for idx, existing in enumerate(self._visible):
            if existing.id == item.id:
                self._visible[idx] = item
                replaced = True
        if not replaced and add_to_visible:
            self._visible.insert(0, item)

        if item.id in self._all:
            self._all[item.id] = item
        else:
            # newest first, matching the service ordering
            self._all = {item.id: item, **self._all}

    def remove(self, item_id: str) -> None:
        self._visible = [item for item in self._visible if item.id != item_id]
        self._all.pop(item_id, None)

    def get(self, item_id: Optional[str]) -> Optional[SurveyItem]:
        """优先返回可见列表中的副本 (字段更完整), 其次查全量集合"""
        if not item_id:
            return None
        for item in self._visible:
            if item.id == item_id:
                return item
        return self._all.get(item_id)

    def counts_by_key(self) -> Dict[str, int]:
        counts: Counter = Counter()
        for item in self._all.values():
            if item.category_id:
                counts[item.category_id] += 1
            if item.component_key:
                counts[item.component_key] += 1
        return dict(counts)
