"""
UML类模型

由AST转换阶段生成的合约/结构体/枚举描述。
存储布局计算只读取这些对象, 从不修改。
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .type_parser import TypeNode, parse_type

logger = logging.getLogger(__name__)


class AttributeType(Enum):
    """属性类型分类"""
    ELEMENTARY = "elementary"
    USER_DEFINED = "user_defined"
    ARRAY = "array"
    MAPPING = "mapping"
    FUNCTION = "function"


class ClassStereotype(Enum):
    """类的构造型"""
    CONTRACT = "contract"
    ABSTRACT = "abstract"
    INTERFACE = "interface"
    LIBRARY = "library"
    STRUCT = "struct"
    ENUM = "enum"


# 作为存储变量类型时按地址(20字节)保存
ADDRESS_LIKE_STEREOTYPES = (
    ClassStereotype.CONTRACT,
    ClassStereotype.ABSTRACT,
    ClassStereotype.INTERFACE,
    ClassStereotype.LIBRARY,
)


@dataclass
class Attribute:
    """合约状态变量或结构体成员"""
    name: str
    type: str
    attribute_type: AttributeType
    compiled: bool = False  # constant 和 immutable 不占用存储槽位
    _type_node: Optional[TypeNode] = field(default=None, init=False, repr=False, compare=False)

    @property
    def type_node(self) -> TypeNode:
        """解析后的类型树 (缓存)"""
        if self._type_node is None:
            self._type_node = parse_type(self.type)
        return self._type_node


@dataclass
class Constant:
    """命名数值常量 (用于解析数组维度, 如 address[N_COINS])"""
    name: str
    value: int


@dataclass
class Association:
    """类之间的关联, realization=True 表示继承"""
    target_name: str
    realization: bool = False


@dataclass
class UmlClass:
    """合约、抽象合约、接口、库、结构体或枚举"""
    name: str
    stereotype: ClassStereotype = ClassStereotype.CONTRACT
    attributes: List[Attribute] = field(default_factory=list)
    constants: List[Constant] = field(default_factory=list)
    associations: List[Association] = field(default_factory=list)

    def get_parent_contracts(self) -> List[Association]:
        """
        直接父合约 (按声明顺序)

        不包含祖父合约, 需要递归获取。
        """
        parents: List[Association] = []
        seen = set()
        for association in self.associations:
            if association.realization and association.target_name not in seen:
                seen.add(association.target_name)
                parents.append(association)
        return parents

    def find_constant(self, name: str) -> Optional[Constant]:
        for constant in self.constants:
            if constant.name == name:
                return constant
        return None


def find_class(type_name: str, classes: List[UmlClass]) -> Optional[UmlClass]:
    """
    按名称查找类

    同时匹配 Library.Type 形式中 "." 之后的部分。
    """
    short_name = type_name.split(".")[-1]
    for uml_class in classes:
        if uml_class.name == type_name or uml_class.name == short_name:
            return uml_class
    return None

