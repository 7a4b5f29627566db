"""
存储布局计算器

根据Solidity存储规则计算合约状态变量的槽位布局。

支持:
- 基础类型的连续分配和packed storage
- 继承链中的槽位继承 (父合约变量优先分配)
- Struct成员、定长/动态数组元素的嵌套布局
- Mapping值为Struct时的嵌套布局
- 动态数组数据位置 keccak256(slot) 的槽位键
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

from ..errors import ContractNotFound, CyclicTypeDetected, ParentNotFound
from ..uml.type_parser import (
    ArrayType,
    MappingType,
    TypeNode,
    UserDefinedType,
    format_type,
    mapping_value,
)
from ..uml.uml_class import Attribute, AttributeType, ClassStereotype, UmlClass, find_class
from .models import SLOT_SIZE, IdAllocator, Storage, StorageKind, Variable, find_storage
from .slot_key import calc_slot_key, dynamic_slot_key
from .type_size import DEFAULT_MAX_DEPTH, TypeSizeCalculator, check_classification

logger = logging.getLogger(__name__)

# 定长数组只输出首尾各 N 个元素
DEFAULT_ARRAY_ITEMS = 2


class StorageLayoutCalculator:
    """
    存储布局计算器

    实现Solidity存储布局规则:
    1. 状态变量按声明顺序分配槽位, 不重新排序
    2. 能放进当前槽位剩余空间的变量与前一个变量打包
    3. Mapping和动态数组占用一个完整槽位, 内容位于哈希派生的位置
    4. Struct和数组的内部布局单独生成 Storage, 槽位偏移到所在位置
    5. 继承的父合约变量优先分配, 同一个父合约只分配一次
    """

    def __init__(
        self,
        classes: Sequence[UmlClass],
        allocator: Optional[IdAllocator] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        array_items: int = DEFAULT_ARRAY_ITEMS
    ):
        self.classes = list(classes)
        self.allocator = allocator or IdAllocator()
        self.max_depth = max_depth
        self.array_items = array_items
        self.sizes = TypeSizeCalculator(self.classes, max_depth)
        self.logger = logging.getLogger(__name__ + '.StorageLayoutCalculator')
        # 正在展开的结构体, 用于截断经由动态数组/mapping的自引用
        self._expanding: List[str] = []

    def convert_classes_to_storages(self, contract_name: str) -> List[Storage]:
        """
        计算合约的存储布局

        Args:
            contract_name: 合约名称

        Returns:
            Storage 列表, 第0个是合约本身, 之后是嵌套的结构体和数组
        """
        uml_class = next((c for c in self.classes if c.name == contract_name), None)
        if uml_class is None:
            raise ContractNotFound(contract_name)

        root_id = self.allocator.next_storage_id()
        storages: List[Storage] = []
        variables = self.parse_variables(uml_class, [], storages, [])

        storages.insert(0, Storage(
            id=root_id,
            name=contract_name,
            kind=StorageKind.CONTRACT,
            variables=variables,
        ))
        assign_slot_keys(storages[0], 0, storages)

        last_slot = variables[-1].to_slot if variables else 0
        self.logger.info(
            f"{contract_name} 计算完成: {len(variables)} 个变量, 使用槽位 0-{last_slot}, "
            f"{len(storages) - 1} 个嵌套存储"
        )
        return storages

    def parse_variables(
        self,
        uml_class: UmlClass,
        variables: List[Variable],
        storages: List[Storage],
        inherited_names: List[str],
        scopes: Sequence[UmlClass] = (),
        depth: int = 0
    ) -> List[Variable]:
        """
        递归解析一个合约或结构体的存储变量

        Args:
            uml_class: 合约或结构体
            variables: 追加结果的变量列表
            storages: 追加嵌套结构体/数组存储的列表
            inherited_names: 已经分配过的父合约名称
            scopes: 外层的类, 用于解析数组维度常量
            depth: 嵌套深度

        Returns:
            variables
        """
        if depth > self.max_depth:
            raise CyclicTypeDetected(uml_class.name, self.max_depth)

        scopes = [uml_class] + list(scopes)

        # 先分配父合约的变量
        new_parents = []
        for parent in uml_class.get_parent_contracts():
            if parent.target_name in inherited_names:
                self.logger.debug(f"{uml_class.name} 的父合约 {parent.target_name} 已经分配过, 跳过")
                continue
            new_parents.append(parent)
        inherited_names.extend(p.target_name for p in new_parents)

        for parent in new_parents:
            parent_class = find_class(parent.target_name, self.classes)
            if parent_class is None:
                raise ParentNotFound(parent.target_name, uml_class.name)
            self.parse_variables(parent_class, variables, storages, inherited_names, scopes, depth)

        for attribute in uml_class.attributes:
            # constant 和 immutable 不占用存储槽位
            if attribute.compiled:
                continue

            byte_size, dynamic = self.sizes.calc_storage_byte_size(attribute, scopes)
            no_inline_value = (
                attribute.attribute_type == AttributeType.MAPPING
                or (attribute.attribute_type == AttributeType.ARRAY and not dynamic)
            )
            reference_storage = self.parse_reference_storage(attribute, scopes, storages, depth)

            from_slot, to_slot, byte_offset = next_position(variables, byte_size)
            variable = Variable(
                id=self.allocator.next_variable_id(),
                from_slot=from_slot,
                to_slot=to_slot,
                byte_size=byte_size,
                byte_offset=byte_offset,
                type=attribute.type,
                dynamic=dynamic,
                variable_name=attribute.name,
                contract_name=uml_class.name,
                no_inline_value=no_inline_value,
                reference_storage_id=reference_storage.id if reference_storage else None,
            )

            if reference_storage is not None:
                if not dynamic:
                    # 嵌套布局按从槽位0开始生成, 移动到变量所在位置
                    shift_storage_slots(reference_storage, variable.from_slot, storages)
                elif attribute.attribute_type == AttributeType.ARRAY:
                    variable.slot_key = calc_slot_key(variable)
                    reference_storage.slot_key = variable.slot_key

            self.logger.debug(
                f"{uml_class.name}.{attribute.name}: slot {from_slot}-{to_slot}, "
                f"offset {byte_offset}, size {byte_size}"
            )
            variables.append(variable)

        return variables

    def parse_reference_storage(
        self,
        attribute: Attribute,
        scopes: Sequence[UmlClass],
        storages: List[Storage],
        depth: int = 0
    ) -> Optional[Storage]:
        """
        解析属性引用的嵌套存储 (结构体或数组)

        枚举、合约和基础类型没有嵌套存储, 返回 None。
        新建的 Storage 会追加到 storages。
        """
        node = check_classification(attribute)
        return self._parse_node_reference(node, attribute.name, scopes, storages, depth)

    def _parse_node_reference(
        self,
        node: TypeNode,
        name: str,
        scopes: Sequence[UmlClass],
        storages: List[Storage],
        depth: int
    ) -> Optional[Storage]:
        if isinstance(node, ArrayType):
            return self._parse_array_storage(node, name, scopes, storages, depth)
        if isinstance(node, UserDefinedType):
            return self._parse_struct_storage(node.name, scopes, storages, depth)
        if isinstance(node, MappingType):
            value = mapping_value(node)
            if isinstance(value, UserDefinedType):
                return self._parse_struct_storage(value.name, scopes, storages, depth)
        return None

    def _parse_struct_storage(
        self,
        type_name: str,
        scopes: Sequence[UmlClass],
        storages: List[Storage],
        depth: int
    ) -> Optional[Storage]:
        struct_class = self.sizes.resolve_user_type(type_name)
        if struct_class.stereotype != ClassStereotype.STRUCT:
            return None

        # 经由动态数组或mapping的自引用是合法的, 不再继续展开
        if struct_class.name in self._expanding:
            self.logger.debug(f"结构体 {struct_class.name} 自引用, 停止展开")
            return None

        self._expanding.append(struct_class.name)
        try:
            variables = self.parse_variables(struct_class, [], storages, [], scopes, depth + 1)
        finally:
            self._expanding.pop()

        storage = Storage(
            id=self.allocator.next_storage_id(),
            name=type_name,
            kind=StorageKind.STRUCT,
            variables=variables,
        )
        storages.append(storage)
        return storage

    def _parse_array_storage(
        self,
        node: ArrayType,
        name: str,
        scopes: Sequence[UmlClass],
        storages: List[Storage],
        depth: int
    ) -> Storage:
        """
        数组元素布局

        只看最外层维度: 定长数组输出首尾各 array_items 个元素, 动态数组只给出第一个元素。
        元素类型本身是数组或结构体时, 第一个元素链接到它的嵌套存储。
        array_length 始终是完整长度。
        """
        if depth > self.max_depth:
            raise CyclicTypeDetected(format_type(node), self.max_depth)

        array_length = None if node.dynamic else self.sizes.resolve_dimension(node.length, scopes)
        base = node.base
        base_type = format_type(base)
        item_size, base_dynamic = self.sizes.calc_type_size(base, scopes, depth + 1)
        base_no_inline_value = isinstance(base, MappingType) or (
            isinstance(base, ArrayType) and not base_dynamic
        )
        contract_name = scopes[0].name if scopes else None

        count = array_length if array_length is not None else 1
        variables: List[Variable] = []
        for index in displayed_indices(count, self.array_items):
            from_slot, to_slot, byte_offset = element_position(index, item_size)
            variables.append(Variable(
                id=self.allocator.next_variable_id(),
                from_slot=from_slot,
                to_slot=to_slot,
                byte_size=item_size,
                byte_offset=byte_offset,
                type=base_type,
                dynamic=base_dynamic,
                variable_name=f"[{index}]",
                contract_name=contract_name,
                no_inline_value=base_no_inline_value,
            ))

        if variables and isinstance(base, (ArrayType, UserDefinedType)):
            first = variables[0]
            reference_storage = self._parse_node_reference(
                base, f"{name}[0]", scopes, storages, depth + 1
            )
            if reference_storage is not None:
                first.reference_storage_id = reference_storage.id

        storage = Storage(
            id=self.allocator.next_storage_id(),
            name=f"{format_type(node)}: {name}",
            kind=StorageKind.ARRAY,
            variables=variables,
            array_length=array_length,
            array_dynamic=node.dynamic,
        )
        storages.append(storage)
        return storage


def displayed_indices(count: int, array_items: int) -> List[int]:
    """定长数组要输出的元素下标: 不超过 2 * array_items 时全部输出, 否则取首尾各 array_items 个"""
    if count <= 2 * array_items:
        return list(range(count))
    return list(range(array_items)) + list(range(count - array_items, count))


def next_position(variables: List[Variable], byte_size: int) -> Tuple[int, int, int]:
    """
    下一个变量的位置

    放不进前一个变量所在槽位的剩余空间时, 从下一个槽位开始。

    Returns:
        (from_slot, to_slot, byte_offset)
    """
    last_to_slot = 0
    next_offset = 0
    if variables:
        last = variables[-1]
        last_to_slot = last.to_slot
        next_offset = last.byte_offset + last.byte_size

    if next_offset + byte_size > SLOT_SIZE:
        from_slot = last_to_slot + 1 if variables else 0
        to_slot = from_slot + (max(byte_size, 1) - 1) // SLOT_SIZE
        return from_slot, to_slot, 0
    return last_to_slot, last_to_slot, next_offset


def element_position(index: int, item_size: int) -> Tuple[int, int, int]:
    """
    数组第 index 个元素的位置 (相对数组起始槽位)

    不超过16字节的元素打包, 不跨槽位; 更大的元素占整数个槽位。
    """
    if 0 < item_size <= 16:
        per_slot = SLOT_SIZE // item_size
        slot = index // per_slot
        return slot, slot, (index % per_slot) * item_size
    slots = max(math.ceil(item_size / SLOT_SIZE), 1)
    from_slot = index * slots
    return from_slot, from_slot + slots - 1, 0


def shift_storage_slots(storage: Storage, slots: int, storages: List[Storage]):
    """
    把嵌套存储的槽位整体后移

    非动态变量引用的嵌套存储一起移动, 动态变量引用的存储位于哈希位置, 不移动。
    """
    for variable in storage.variables:
        variable.from_slot += slots
        variable.to_slot += slots

        reference_storage = find_storage(variable.reference_storage_id, storages)
        if reference_storage is not None and not variable.dynamic:
            shift_storage_slots(reference_storage, slots, storages)


def assign_slot_keys(storage: Storage, base_slot: int, storages: List[Storage]):
    """
    为动态数组引用的存储计算槽位键

    storage 中变量的槽位相对于 base_slot。动态数组的元素从 keccak256(slot) 开始,
    其下的嵌套存储以该位置为起点继续计算。
    mapping 值的位置取决于 key, 其下的动态数组没有槽位键。
    """
    for variable in storage.variables:
        reference_storage = find_storage(variable.reference_storage_id, storages)
        if reference_storage is None:
            continue
        if not variable.dynamic:
            assign_slot_keys(reference_storage, base_slot, storages)
        elif reference_storage.kind == StorageKind.ARRAY:
            variable.slot_key = dynamic_slot_key(base_slot + variable.from_slot)
            reference_storage.slot_key = variable.slot_key
            assign_slot_keys(reference_storage, int(variable.slot_key, 16), storages)
        else:
            clear_slot_keys(reference_storage, storages)


def clear_slot_keys(storage: Storage, storages: List[Storage]):
    """清除嵌套存储中的槽位键"""
    storage.slot_key = None
    for variable in storage.variables:
        variable.slot_key = None
        reference_storage = find_storage(variable.reference_storage_id, storages)
        if reference_storage is not None:
            clear_slot_keys(reference_storage, storages)


def convert_classes_to_storages(
    contract_name: str,
    classes: Sequence[UmlClass],
    allocator: Optional[IdAllocator] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
    array_items: int = DEFAULT_ARRAY_ITEMS
) -> List[Storage]:
    """计算合约的存储布局, 第0个 Storage 是合约本身"""
    calculator = StorageLayoutCalculator(classes, allocator, max_depth, array_items)
    return calculator.convert_classes_to_storages(contract_name)


def parse_variables(
    uml_class: UmlClass,
    classes: Sequence[UmlClass],
    variables: List[Variable],
    storages: List[Storage],
    inherited_names: List[str],
    allocator: Optional[IdAllocator] = None
) -> List[Variable]:
    calculator = StorageLayoutCalculator(classes, allocator)
    return calculator.parse_variables(uml_class, variables, storages, inherited_names)


def parse_reference_storage(
    attribute: Attribute,
    owning_class: UmlClass,
    classes: Sequence[UmlClass],
    storages: List[Storage],
    allocator: Optional[IdAllocator] = None
) -> Optional[Storage]:
    calculator = StorageLayoutCalculator(classes, allocator)
    return calculator.parse_reference_storage(attribute, [owning_class], storages)
