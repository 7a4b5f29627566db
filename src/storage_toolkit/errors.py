"""
存储布局计算的错误类型

所有错误都是致命的: 一旦抛出, 整个合约的布局计算中止,
由调用方 (命令行) 负责记录日志并以非零状态退出。
"""


class StorageLayoutError(Exception):
    """存储布局计算错误基类"""


class ContractNotFound(StorageLayoutError):
    """在类集合中找不到请求的合约"""

    def __init__(self, contract_name: str):
        super().__init__(f"找不到合约 \"{contract_name}\"")
        self.contract_name = contract_name


class ParentNotFound(StorageLayoutError):
    """继承关系指向的父合约无法解析"""

    def __init__(self, parent_name: str, child_name: str):
        super().__init__(f"找不到 {child_name} 的父合约 {parent_name}")
        self.parent_name = parent_name
        self.child_name = child_name


class UnresolvedUserType(StorageLayoutError):
    """属性引用的 struct/enum/contract 名称无法匹配"""

    def __init__(self, type_name: str, context: str = ""):
        message = f"找不到用户自定义类型 \"{type_name}\""
        if context:
            message += f" ({context})"
        super().__init__(message)
        self.type_name = type_name


class UnresolvedArrayDimension(StorageLayoutError):
    """数组维度标识符没有对应的数值常量"""

    def __init__(self, dimension: str, class_name: str):
        super().__init__(f"无法确定定长数组维度 \"{dimension}\" ({class_name} 中没有同名常量)")
        self.dimension = dimension


class InvalidElementaryType(StorageLayoutError):
    """基础类型字符串不符合任何已知模式"""

    def __init__(self, type_name: str):
        super().__init__(f"无法计算基础类型 \"{type_name}\" 的大小")
        self.type_name = type_name


class InvalidTypeClassification(StorageLayoutError):
    """属性类型分类无法处理"""


class CyclicTypeDetected(StorageLayoutError):
    """类型嵌套超过深度上限 (通常是递归 struct)"""

    def __init__(self, type_name: str, depth: int):
        super().__init__(f"类型 \"{type_name}\" 嵌套深度超过 {depth}, 疑似循环引用")
        self.type_name = type_name
        self.depth = depth
