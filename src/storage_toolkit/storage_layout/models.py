"""
存储布局输出模型

Storage: 一个打包容器 (合约顶层存储、嵌套结构体或嵌套数组)
Variable: 容器中的一个存储变量, 记录槽位范围、字节偏移和大小
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

SLOT_SIZE = 32  # 每个槽位 32 字节


class StorageKind(Enum):
    """存储容器类型"""
    CONTRACT = "Contract"
    STRUCT = "Struct"
    ARRAY = "Array"


@dataclass
class Variable:
    """一个已打包的存储变量"""
    id: int
    from_slot: int
    to_slot: int  # 包含
    byte_size: int
    byte_offset: int  # from_slot 内的字节偏移
    type: str
    dynamic: bool  # 内容位于哈希派生的位置
    variable_name: str
    contract_name: Optional[str] = None
    no_inline_value: bool = False  # mapping 或定长数组, 无法作为单个值读取
    reference_storage_id: Optional[int] = None
    slot_key: Optional[str] = None


@dataclass
class Storage:
    """一个打包容器"""
    id: int
    name: str
    kind: StorageKind
    variables: List[Variable] = field(default_factory=list)
    array_length: Optional[int] = None
    array_dynamic: Optional[bool] = None
    slot_key: Optional[str] = None

    @property
    def slot_count(self) -> int:
        """占用的槽位数量"""
        if not self.variables:
            return 0
        first = min(v.from_slot for v in self.variables)
        last = max(v.to_slot for v in self.variables)
        return last - first + 1


class IdAllocator:
    """
    Storage / Variable 的编号分配器

    每次布局计算使用独立实例, 编号从1开始, 结果可复现。
    多个计算共享同一实例时, 编号仍然唯一。
    """

    def __init__(self, start: int = 1):
        self._lock = threading.Lock()
        self._storage_id = start
        self._variable_id = start

    def next_storage_id(self) -> int:
        with self._lock:
            value = self._storage_id
            self._storage_id += 1
            return value

    def next_variable_id(self) -> int:
        with self._lock:
            value = self._variable_id
            self._variable_id += 1
            return value


def find_storage(storage_id: Optional[int], storages: List[Storage]) -> Optional[Storage]:
    if storage_id is None:
        return None
    for storage in storages:
        if storage.id == storage_id:
            return storage
    return None
