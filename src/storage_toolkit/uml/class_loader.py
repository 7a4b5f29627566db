"""
类模型加载

从AST转换阶段导出的JSON文件读取UML类模型。

格式:
    {
      "classes": [
        {
          "name": "Vault",
          "stereotype": "contract",
          "parents": ["Ownable"],
          "constants": [{"name": "N_COINS", "value": 2}],
          "attributes": [
            {"name": "owner", "type": "address"},
            {"name": "coins", "type": "address[N_COINS]", "attribute_type": "array"},
            {"name": "FEE", "type": "uint256", "compiled": true}
          ]
        }
      ]
    }

attribute_type 省略时根据类型字符串推断。
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from .type_parser import ArrayType, ElementaryType, FunctionType, MappingType, TypeNode, parse_type
from .uml_class import Association, Attribute, AttributeType, ClassStereotype, Constant, UmlClass

logger = logging.getLogger(__name__)


def classify_type(node: TypeNode) -> AttributeType:
    """类型树 -> 属性分类"""
    if isinstance(node, ArrayType):
        return AttributeType.ARRAY
    if isinstance(node, MappingType):
        return AttributeType.MAPPING
    if isinstance(node, FunctionType):
        return AttributeType.FUNCTION
    if isinstance(node, ElementaryType):
        return AttributeType.ELEMENTARY
    return AttributeType.USER_DEFINED


class ClassModelLoader:
    """UML类模型加载器"""

    def __init__(self):
        self.logger = logging.getLogger(__name__ + '.ClassModelLoader')

    def load_file(self, model_file: Path) -> List[UmlClass]:
        model_file = Path(model_file)
        if not model_file.exists():
            raise FileNotFoundError(f"类模型文件不存在: {model_file}")

        with open(model_file, 'r', encoding='utf-8') as f:
            data = json.load(f)

        classes = self.load_dict(data)
        self.logger.info(f"从 {model_file} 加载 {len(classes)} 个类")
        return classes

    def load_dict(self, data: Union[Dict[str, Any], List[Dict[str, Any]]]) -> List[UmlClass]:
        entries = data.get("classes") if isinstance(data, dict) else data
        if not isinstance(entries, list):
            raise ValueError("类模型缺少 classes 列表")
        return [self._parse_class(entry) for entry in entries]

    def _parse_class(self, entry: Dict[str, Any]) -> UmlClass:
        name = entry.get("name")
        if not name:
            raise ValueError(f"类定义缺少 name: {entry}")

        stereotype_value = str(entry.get("stereotype", "contract")).lower()
        try:
            stereotype = ClassStereotype(stereotype_value)
        except ValueError:
            raise ValueError(f"类 {name} 的构造型无效: {stereotype_value}") from None

        associations = [Association(target_name=p, realization=True) for p in entry.get("parents", [])]
        for association in entry.get("associations", []):
            associations.append(Association(
                target_name=association["target_name"],
                realization=bool(association.get("realization", False)),
            ))

        constants = [
            Constant(name=c["name"], value=int(c["value"]))
            for c in entry.get("constants", [])
        ]

        attributes = []
        # 枚举成员没有类型, 不参与存储布局
        if stereotype != ClassStereotype.ENUM:
            attributes = [self._parse_attribute(a, name) for a in entry.get("attributes", [])]

        return UmlClass(
            name=name,
            stereotype=stereotype,
            attributes=attributes,
            constants=constants,
            associations=associations,
        )

    def _parse_attribute(self, entry: Dict[str, Any], class_name: str) -> Attribute:
        if "name" not in entry or "type" not in entry:
            raise ValueError(f"{class_name} 的属性定义缺少 name 或 type: {entry}")

        attribute_type_value = entry.get("attribute_type")
        if attribute_type_value:
            attribute_type = AttributeType(str(attribute_type_value).lower())
        else:
            attribute_type = classify_type(parse_type(entry["type"]))
            self.logger.debug(f"{class_name}.{entry['name']}: 推断类型分类 {attribute_type.value}")

        return Attribute(
            name=entry["name"],
            type=entry["type"],
            attribute_type=attribute_type,
            compiled=bool(entry.get("compiled", False)),
        )


def load_classes(source: Union[Path, str, Dict[str, Any], List[Dict[str, Any]]]) -> List[UmlClass]:
    """从JSON文件路径或已解析的字典加载类模型"""
    loader = ClassModelLoader()
    if isinstance(source, (dict, list)):
        return loader.load_dict(source)
    return loader.load_file(Path(source))
