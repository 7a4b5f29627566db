"""
Solidity类型字符串解析器

把AST转换阶段给出的类型字符串解析成小型类型树, 例如:

    address[2][]               -> ArrayType(ArrayType(address, "2"), None)
    mapping(address=>uint256)  -> MappingType(address, uint256)
    Lib.Position[N_COINS]      -> ArrayType(UserDefinedType("Lib.Position"), "N_COINS")

数组维度从左到右由内向外嵌套, 最右侧的维度是最外层。
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from ..errors import InvalidTypeClassification

ELEMENTARY_NAMES = frozenset([
    "bool", "address", "string", "bytes", "uint", "int", "ufixed", "fixed",
])

SIZED_ELEMENTARY_PATTERN = re.compile(r"u?int\d+|bytes\d+|u?fixed\d+x\d+")

# AST阶段为了生成DOT会把 => 转义成 =\>
MAPPING_ARROWS = ("=\\>", "=>")


@dataclass(frozen=True)
class ElementaryType:
    name: str


@dataclass(frozen=True)
class UserDefinedType:
    name: str


@dataclass(frozen=True)
class ArrayType:
    base: "TypeNode"
    length: Optional[str] = None  # None 表示动态数组 []

    @property
    def dynamic(self) -> bool:
        return self.length is None


@dataclass(frozen=True)
class MappingType:
    key: "TypeNode"
    value: "TypeNode"


@dataclass(frozen=True)
class FunctionType:
    signature: str


TypeNode = Union[ElementaryType, UserDefinedType, ArrayType, MappingType, FunctionType]


def is_elementary(type_name: str) -> bool:
    """是否为基础类型名称 (不含数组维度)"""
    name = type_name.strip()
    if name == "address payable":
        return True
    return name in ELEMENTARY_NAMES or SIZED_ELEMENTARY_PATTERN.fullmatch(name) is not None


def parse_type(type_string: str) -> TypeNode:
    """解析完整的类型字符串"""
    if type_string is None or not type_string.strip():
        raise InvalidTypeClassification("类型字符串为空")

    text = type_string.strip()
    if re.match(r"function\s*\(", text):
        # 函数类型可以带返回值列表, 不再细分
        return FunctionType(text)

    if re.match(r"mapping\s*\(", text):
        close = _matching_paren(text, text.index("("))
        key_text, value_text = _split_mapping(text[text.index("(") + 1:close], text)
        node: TypeNode = MappingType(parse_type(key_text), parse_type(value_text))
        suffix = text[close + 1:]
    else:
        bracket = text.find("[")
        base_name = text if bracket < 0 else text[:bracket].strip()
        if not re.fullmatch(r"[A-Za-z_$][\w$.]*( payable)?", base_name):
            raise InvalidTypeClassification(f"无法解析类型 \"{type_string}\"")
        if is_elementary(base_name):
            node = ElementaryType(base_name)
        else:
            node = UserDefinedType(base_name)
        suffix = "" if bracket < 0 else text[bracket:]

    for dimension in _parse_dimensions(suffix, type_string):
        node = ArrayType(node, dimension)
    return node


def array_dimensions(node: TypeNode) -> Tuple[TypeNode, List[Optional[str]]]:
    """
    展开多维数组

    Returns:
        (最内层元素类型, 由外到内的维度列表)
    """
    dimensions: List[Optional[str]] = []
    while isinstance(node, ArrayType):
        dimensions.append(node.length)
        node = node.base
    return node, dimensions


def mapping_value(node: MappingType) -> TypeNode:
    """去掉嵌套mapping后的最终值类型"""
    value = node.value
    while isinstance(value, MappingType):
        value = value.value
    return value


def _parse_dimensions(suffix: str, type_string: str) -> List[Optional[str]]:
    dimensions: List[Optional[str]] = []
    rest = suffix.strip()
    while rest:
        match = re.match(r"\[\s*([^\[\]]*?)\s*\]", rest)
        if not match:
            raise InvalidTypeClassification(f"无法解析数组维度 \"{type_string}\"")
        dimensions.append(match.group(1) or None)
        rest = rest[match.end():].strip()
    return dimensions


def _matching_paren(text: str, start: int) -> int:
    depth = 0
    for i in range(start, len(text)):
        if text[i] == "(":
            depth += 1
        elif text[i] == ")":
            depth -= 1
            if depth == 0:
                return i
    raise InvalidTypeClassification(f"mapping 括号不匹配 \"{text}\"")


def _split_mapping(inner: str, type_string: str) -> Tuple[str, str]:
    # key 不可能是 mapping, 第一个箭头就是分隔符
    positions = [(inner.find(arrow), arrow) for arrow in MAPPING_ARROWS if inner.find(arrow) > 0]
    if not positions:
        raise InvalidTypeClassification(f"mapping 缺少 => \"{type_string}\"")
    position, arrow = min(positions)
    key = _strip_parameter_name(inner[:position])
    value = _strip_parameter_name(inner[position + len(arrow):])
    return key, value


def _strip_parameter_name(text: str) -> str:
    # 0.8.18 起允许 mapping(address user => uint256 balance)
    text = text.strip()
    if text.endswith(" payable"):
        return text
    return re.sub(r"\s+[A-Za-z_$][\w$]*$", "", text)


def format_type(node: TypeNode) -> str:
    """类型树 -> 类型字符串"""
    if isinstance(node, ArrayType):
        return f"{format_type(node.base)}[{node.length or ''}]"
    if isinstance(node, MappingType):
        return f"mapping({format_type(node.key)}=>{format_type(node.value)})"
    if isinstance(node, FunctionType):
        return node.signature
    return node.name
