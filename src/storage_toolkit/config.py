"""
存储布局配置

优先级: 环境变量 STORAGE_LAYOUT_* > 配置文件 [storage_layout] > 默认值

配置文件示例 (storage_layout.toml):

    [storage_layout]
    max_depth = 32
    log_level = "INFO"
    output_format = "json"
    array_items = 2
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import toml

logger = logging.getLogger(__name__)

CONFIG_SECTION = "storage_layout"
ENV_PREFIX = "STORAGE_LAYOUT_"
DEFAULT_CONFIG_FILE = Path("storage_layout.toml")
OUTPUT_FORMATS = ("json", "table")


@dataclass
class LayoutConfig:
    """布局计算和命令行输出的配置"""
    max_depth: int = 32  # 类型嵌套深度上限, 超过视为循环引用
    log_level: str = "INFO"
    output_format: str = "json"
    array_items: int = 2  # 定长数组首尾各输出的元素个数

    def __post_init__(self):
        self.max_depth = int(self.max_depth)
        if self.max_depth < 1:
            raise ValueError(f"max_depth 必须大于0: {self.max_depth}")
        self.array_items = int(self.array_items)
        if self.array_items < 1:
            raise ValueError(f"array_items 必须大于0: {self.array_items}")
        self.log_level = str(self.log_level).upper()
        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(f"不支持的输出格式: {self.output_format}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LayoutConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"忽略未知配置项: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})


def load_config(config_path: Optional[Path] = None) -> LayoutConfig:
    """
    加载配置

    Args:
        config_path: toml配置文件, 为空时尝试当前目录下的 storage_layout.toml

    Returns:
        LayoutConfig
    """
    values: Dict[str, Any] = {}

    path = Path(config_path) if config_path else DEFAULT_CONFIG_FILE
    if path.exists():
        data = toml.load(path)
        values.update(data.get(CONFIG_SECTION, {}))
        logger.debug(f"从 {path} 加载配置: {values}")
    elif config_path:
        raise FileNotFoundError(f"未找到配置文件 ({path})")

    for f in fields(LayoutConfig):
        env_value = os.environ.get(ENV_PREFIX + f.name.upper())
        if env_value:
            values[f.name] = env_value

    return LayoutConfig.from_dict(values)
