"""
存储布局导出

- JSON格式: 供下游图形渲染和链上取值使用
- 文本表格: 命令行查看
"""

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import Storage

logger = logging.getLogger(__name__)


def storage_to_dict(storage: Storage) -> Dict[str, Any]:
    data = asdict(storage)
    data["kind"] = storage.kind.value
    data["slot_count"] = storage.slot_count
    return data


def storages_to_dicts(storages: List[Storage]) -> List[Dict[str, Any]]:
    return [storage_to_dict(s) for s in storages]


def write_json(storages: List[Storage], output_file: Optional[Path] = None) -> str:
    """导出JSON, 指定 output_file 时同时写入文件"""
    text = json.dumps(storages_to_dicts(storages), indent=2, ensure_ascii=False)
    if output_file:
        output_file = Path(output_file)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        with open(output_file, 'w', encoding='utf-8') as f:
            f.write(text)
        logger.info(f"存储布局已保存: {output_file}")
    return text


def format_table(storages: List[Storage]) -> str:
    """每个 Storage 一张表: 槽位、偏移、大小、类型、变量名"""
    lines: List[str] = []
    for storage in storages:
        title = f"{storage.kind.value} {storage.name} (id {storage.id})"
        if storage.array_length is not None:
            title += f" length {storage.array_length}"
        if storage.slot_key:
            title += f" key {storage.slot_key}"
        lines.append(title)
        lines.append("-" * len(title))
        lines.append(f"{'slot':>9}  {'offset':>6}  {'bytes':>6}  {'type':<32}  name")

        for v in storage.variables:
            slots = str(v.from_slot) if v.from_slot == v.to_slot else f"{v.from_slot}-{v.to_slot}"
            flags = []
            if v.dynamic:
                flags.append("dynamic")
            if v.reference_storage_id is not None:
                flags.append(f"-> {v.reference_storage_id}")
            suffix = f"  [{', '.join(flags)}]" if flags else ""
            name = f"{v.contract_name}.{v.variable_name}" if v.contract_name else v.variable_name
            lines.append(f"{slots:>9}  {v.byte_offset:>6}  {v.byte_size:>6}  {v.type:<32}  {name}{suffix}")
        lines.append("")
    return "\n".join(lines)
