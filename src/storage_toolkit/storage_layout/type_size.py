"""
存储类型大小计算器

根据Solidity存储规则计算一个类型在存储中占用的字节数,
以及它是否为动态类型 (内容位于哈希派生的位置)。

规则:
- mapping 和函数类型: 32字节, 动态
- 基础类型: bool 1, address 20, intN/uintN N/8, bytesN N, 无长度类型 32
- 枚举 1, 合约/接口/库 20 (按地址保存)
- 结构体: 成员打包后向上取整到32的倍数, 数组和结构体成员从新槽位开始
- 数组: 从最外层(最右侧)维度读起, 遇到动态维度即停止
"""

import logging
import math
import re
from typing import List, Optional, Sequence, Tuple

from ..errors import (
    CyclicTypeDetected,
    InvalidElementaryType,
    InvalidTypeClassification,
    UnresolvedArrayDimension,
    UnresolvedUserType,
)
from ..uml.type_parser import (
    ArrayType,
    ElementaryType,
    FunctionType,
    MappingType,
    TypeNode,
    UserDefinedType,
    array_dimensions,
    format_type,
)
from ..uml.uml_class import (
    ADDRESS_LIKE_STEREOTYPES,
    Attribute,
    AttributeType,
    ClassStereotype,
    UmlClass,
    find_class,
)
from .models import SLOT_SIZE

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32

UNSIZED_32_BYTES = ("string", "bytes", "uint", "int", "ufixed", "fixed")

# 属性分类 -> 对应的类型树节点
CLASSIFICATION_NODES = {
    AttributeType.ELEMENTARY: ElementaryType,
    AttributeType.USER_DEFINED: UserDefinedType,
    AttributeType.ARRAY: ArrayType,
    AttributeType.MAPPING: MappingType,
    AttributeType.FUNCTION: FunctionType,
}


def round_up_to_slot(byte_size: int) -> int:
    return math.ceil(byte_size / SLOT_SIZE) * SLOT_SIZE


def elementary_byte_size(type_name: str) -> int:
    """基础类型的字节数"""
    name = type_name.strip()
    if name == "bool":
        return 1
    if name in ("address", "address payable"):
        return 20
    if name in UNSIZED_32_BYTES:
        return SLOT_SIZE

    match = re.fullmatch(r"u?int(\d+)", name)
    if match and int(match.group(1)) > 0:
        return math.ceil(int(match.group(1)) / 8)

    match = re.fullmatch(r"bytes(\d+)", name)
    if match and int(match.group(1)) > 0:
        return int(match.group(1))

    # fixedMxN 占 M 位
    match = re.fullmatch(r"u?fixed(\d+)x(\d+)", name)
    if match and int(match.group(1)) > 0:
        return math.ceil(int(match.group(1)) / 8)

    raise InvalidElementaryType(type_name)


def check_classification(attribute: Attribute) -> TypeNode:
    """校验上游给出的属性分类与类型字符串一致, 返回类型树"""
    expected = CLASSIFICATION_NODES.get(attribute.attribute_type)
    if expected is None:
        raise InvalidTypeClassification(
            f"属性 \"{attribute.name}\" 的分类 {attribute.attribute_type} 无法处理"
        )
    node = attribute.type_node
    if not isinstance(node, expected):
        raise InvalidTypeClassification(
            f"属性 \"{attribute.name}\" 分类为 {attribute.attribute_type.value}, "
            f"但类型是 \"{attribute.type}\""
        )
    return node


class TypeSizeCalculator:
    """
    存储类型大小计算器

    scopes 是用来解析数组维度常量的类列表, 按顺序查找,
    第一个是声明该属性的类。
    """

    def __init__(self, classes: Sequence[UmlClass], max_depth: int = DEFAULT_MAX_DEPTH):
        self.classes = list(classes)
        self.max_depth = max_depth
        self.logger = logging.getLogger(__name__ + '.TypeSizeCalculator')

    def calc_storage_byte_size(
        self,
        attribute: Attribute,
        scopes: Sequence[UmlClass]
    ) -> Tuple[int, bool]:
        """
        计算属性的存储大小

        Returns:
            (字节数, 是否动态)
        """
        node = check_classification(attribute)
        size, dynamic = self.calc_type_size(node, scopes)
        self.logger.debug(f"{attribute.name}: {attribute.type} -> {size} 字节, dynamic={dynamic}")
        return size, dynamic

    def calc_type_size(
        self,
        node: TypeNode,
        scopes: Sequence[UmlClass],
        depth: int = 0
    ) -> Tuple[int, bool]:
        if depth > self.max_depth:
            raise CyclicTypeDetected(format_type(node), self.max_depth)

        if isinstance(node, (MappingType, FunctionType)):
            return SLOT_SIZE, True
        if isinstance(node, ArrayType):
            return self._array_size(node, scopes, depth)
        if isinstance(node, UserDefinedType):
            return self._user_defined_size(node, scopes, depth), False
        if isinstance(node, ElementaryType):
            return elementary_byte_size(node.name), False

        raise InvalidTypeClassification(f"无法计算类型 {node!r} 的大小")

    def resolve_user_type(self, type_name: str) -> UmlClass:
        uml_class = find_class(type_name, self.classes)
        if uml_class is None:
            raise UnresolvedUserType(type_name)
        return uml_class

    def is_struct(self, node: TypeNode) -> bool:
        if not isinstance(node, UserDefinedType):
            return False
        return self.resolve_user_type(node.name).stereotype == ClassStereotype.STRUCT

    def resolve_dimension(self, dimension: str, scopes: Sequence[UmlClass]) -> int:
        """数组维度: 整数字面量或命名常量"""
        if re.fullmatch(r"\d+", dimension):
            return int(dimension)
        if re.fullmatch(r"0[xX][0-9a-fA-F]+", dimension):
            return int(dimension, 16)

        for scope in scopes:
            constant = scope.find_constant(dimension)
            if constant is not None:
                return int(constant.value)

        class_name = scopes[0].name if scopes else "<none>"
        raise UnresolvedArrayDimension(dimension, class_name)

    def fixed_dimensions(
        self,
        node: ArrayType,
        scopes: Sequence[UmlClass]
    ) -> Tuple[TypeNode, List[int], int]:
        """
        由外到内读取定长维度, 遇到第一个动态维度停止

        Returns:
            (最内层元素类型, 定长维度列表, 总维度数)
        """
        element, dimensions = array_dimensions(node)
        fixed: List[int] = []
        for dimension in dimensions:
            if dimension is None:
                break
            fixed.append(self.resolve_dimension(dimension, scopes))
        return element, fixed, len(dimensions)

    def _array_size(
        self,
        node: ArrayType,
        scopes: Sequence[UmlClass],
        depth: int
    ) -> Tuple[int, bool]:
        element, fixed, total_dimensions = self.fixed_dimensions(node, scopes)

        # 最外层是动态维度: 槽位只保存长度, 元素从 keccak256(slot) 开始
        if not fixed:
            return SLOT_SIZE, True

        # 外层定长, 内层动态: 每个内层数组占一个槽位
        if len(fixed) < total_dimensions:
            return SLOT_SIZE * math.prod(fixed), False

        element_size, _ = self.calc_type_size(element, scopes, depth + 1)
        # 大于16字节的元素 (如 address) 独占一个槽位
        if 16 < element_size < SLOT_SIZE:
            element_size = SLOT_SIZE

        innermost = fixed[-1]
        return packed_array_bytes(element_size, innermost) * math.prod(fixed[:-1]), False

    def _user_defined_size(
        self,
        node: UserDefinedType,
        scopes: Sequence[UmlClass],
        depth: int
    ) -> int:
        uml_class = self.resolve_user_type(node.name)

        if uml_class.stereotype == ClassStereotype.ENUM:
            return 1
        if uml_class.stereotype in ADDRESS_LIKE_STEREOTYPES:
            return 20
        if uml_class.stereotype == ClassStereotype.STRUCT:
            return self._struct_size(uml_class, scopes, depth)

        raise InvalidTypeClassification(
            f"类型 \"{node.name}\" 的构造型 {uml_class.stereotype} 无法计算大小"
        )

    def _struct_size(
        self,
        struct_class: UmlClass,
        scopes: Sequence[UmlClass],
        depth: int
    ) -> int:
        member_scopes = [struct_class] + list(scopes)
        byte_size = 0
        for member in struct_class.attributes:
            node = check_classification(member)
            # 数组和结构体成员从新槽位开始
            if isinstance(node, ArrayType) or self.is_struct(node):
                byte_size = round_up_to_slot(byte_size)

            member_size, _ = self.calc_type_size(node, member_scopes, depth + 1)

            end_current_slot = round_up_to_slot(byte_size)
            if member_size <= end_current_slot - byte_size:
                byte_size += member_size
            else:
                byte_size = end_current_slot + member_size

        return round_up_to_slot(byte_size)


def packed_array_bytes(element_size: int, length: int) -> int:
    """
    一维定长数组占用的字节数 (整槽位)

    元素不会跨槽位: 每个槽位放 32 // element_size 个元素。
    """
    if length <= 0:
        return 0
    if element_size <= 16:
        per_slot = SLOT_SIZE // element_size
        return math.ceil(length / per_slot) * SLOT_SIZE
    return round_up_to_slot(element_size) * length


def calc_storage_byte_size(
    attribute: Attribute,
    owning_class: UmlClass,
    classes: Sequence[UmlClass],
    max_depth: Optional[int] = None
) -> Tuple[int, bool]:
    """计算属性的存储字节数和是否动态"""
    calculator = TypeSizeCalculator(classes, max_depth or DEFAULT_MAX_DEPTH)
    return calculator.calc_storage_byte_size(attribute, [owning_class])
