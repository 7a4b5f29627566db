"""
存储布局分析模块

提供Solidity合约存储槽位计算能力:
- 计算类型的存储字节数
- 按声明顺序打包状态变量
- 展开结构体、数组和mapping值的嵌套布局
- 计算动态数组的槽位键
"""

from .models import IdAllocator, Storage, StorageKind, Variable
from .type_size import TypeSizeCalculator, calc_storage_byte_size, elementary_byte_size
from .slot_key import calc_slot_key, dynamic_slot_key
from .layout_calculator import (
    StorageLayoutCalculator,
    convert_classes_to_storages,
    parse_reference_storage,
    parse_variables,
    shift_storage_slots,
)
from .report import format_table, storages_to_dicts, write_json

__all__ = [
    "IdAllocator",
    "Storage",
    "StorageKind",
    "Variable",
    "TypeSizeCalculator",
    "calc_storage_byte_size",
    "elementary_byte_size",
    "calc_slot_key",
    "dynamic_slot_key",
    "StorageLayoutCalculator",
    "convert_classes_to_storages",
    "parse_reference_storage",
    "parse_variables",
    "shift_storage_slots",
    "format_table",
    "storages_to_dicts",
    "write_json",
]
