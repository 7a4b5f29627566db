#!/usr/bin/env python3
"""
存储布局生成脚本

读取AST转换阶段导出的类模型JSON, 计算指定合约的存储布局,
输出JSON (供图形渲染/链上取值使用) 或文本表格。

运行方式:
    python generate_storage_layout.py --classes model.json --contract Vault
    python generate_storage_layout.py --classes model.json --contract Vault --format table
"""

import sys
import argparse
import logging
from pathlib import Path

# 添加src到路径
sys.path.insert(0, str(Path(__file__).parent / "src"))

from storage_toolkit import StorageLayoutError, load_config
from storage_toolkit.uml import load_classes
from storage_toolkit.storage_layout import (
    StorageLayoutCalculator,
    format_table,
    write_json,
)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='计算Solidity合约的存储槽位布局',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例:
  # 输出JSON到标准输出
  python generate_storage_layout.py --classes build/classes.json --contract Vault

  # 保存JSON文件
  python generate_storage_layout.py --classes build/classes.json --contract Vault \\
    --output build/Vault_storage.json

  # 文本表格
  python generate_storage_layout.py --classes build/classes.json --contract Vault --format table

配置:
  默认读取当前目录下的 storage_layout.toml 的 [storage_layout] 段,
  环境变量 STORAGE_LAYOUT_MAX_DEPTH / STORAGE_LAYOUT_LOG_LEVEL /
  STORAGE_LAYOUT_OUTPUT_FORMAT / STORAGE_LAYOUT_ARRAY_ITEMS 优先。
        """
    )
    parser.add_argument(
        '--classes',
        type=Path,
        required=True,
        help='类模型JSON文件'
    )
    parser.add_argument(
        '--contract',
        required=True,
        help='要计算布局的合约名称'
    )
    parser.add_argument(
        '--config',
        type=Path,
        help='toml配置文件 (默认: storage_layout.toml)'
    )
    parser.add_argument(
        '--format',
        choices=['json', 'table'],
        help='输出格式 (默认取配置)'
    )
    parser.add_argument(
        '--output',
        type=Path,
        help='JSON输出文件'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='输出调试日志'
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logger.error(f"加载配置失败: {e}")
        return 1

    level = logging.DEBUG if args.verbose else getattr(logging, config.log_level, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    output_format = args.format or config.output_format

    try:
        classes = load_classes(args.classes)
        calculator = StorageLayoutCalculator(
            classes, max_depth=config.max_depth, array_items=config.array_items
        )
        storages = calculator.convert_classes_to_storages(args.contract)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"读取类模型失败: {e}")
        return 1
    except StorageLayoutError as e:
        logger.error(f"计算 {args.contract} 的存储布局失败: {e}")
        return 1

    if output_format == 'table':
        print(format_table(storages))
        if args.output:
            write_json(storages, args.output)
    else:
        text = write_json(storages, args.output)
        if not args.output:
            print(text)

    return 0


if __name__ == "__main__":
    sys.exit(main())
