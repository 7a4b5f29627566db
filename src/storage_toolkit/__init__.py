"""
Storage Toolkit

根据合约的UML类模型计算EVM存储布局:
槽位号、字节大小、字节偏移以及动态/引用标记。
"""

from .config import LayoutConfig, load_config
from .errors import (
    ContractNotFound,
    CyclicTypeDetected,
    InvalidElementaryType,
    InvalidTypeClassification,
    ParentNotFound,
    StorageLayoutError,
    UnresolvedArrayDimension,
    UnresolvedUserType,
)

__version__ = "1.0.0"

__all__ = [
    "LayoutConfig",
    "load_config",
    "ContractNotFound",
    "CyclicTypeDetected",
    "InvalidElementaryType",
    "InvalidTypeClassification",
    "ParentNotFound",
    "StorageLayoutError",
    "UnresolvedArrayDimension",
    "UnresolvedUserType",
]
