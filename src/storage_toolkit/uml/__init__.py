"""
UML类模型

提供存储布局计算的输入:
- 合约/结构体/枚举的类模型
- Solidity类型字符串解析
- 从JSON加载类模型
"""

from .uml_class import (
    Attribute,
    AttributeType,
    Association,
    ClassStereotype,
    Constant,
    UmlClass,
    find_class,
)
from .type_parser import (
    ArrayType,
    ElementaryType,
    FunctionType,
    MappingType,
    UserDefinedType,
    format_type,
    is_elementary,
    parse_type,
)
from .class_loader import ClassModelLoader, classify_type, load_classes

__all__ = [
    "Attribute",
    "AttributeType",
    "Association",
    "ClassStereotype",
    "Constant",
    "UmlClass",
    "find_class",
    "ArrayType",
    "ElementaryType",
    "FunctionType",
    "MappingType",
    "UserDefinedType",
    "format_type",
    "is_elementary",
    "parse_type",
    "ClassModelLoader",
    "classify_type",
    "load_classes",
]
