"""
槽位键计算

定长数据的键就是槽位号本身;
动态数组的数据从 keccak256(slot) 开始, slot 按32字节大端编码。
"""

from web3 import Web3

from .models import SLOT_SIZE, Variable


def slot_hex(slot: int) -> str:
    """槽位号的 0x 十六进制表示"""
    return Web3.to_hex(slot)


def dynamic_slot_key(slot: int) -> str:
    """动态数据起始位置 keccak256(slot) 的 0x 十六进制表示"""
    return Web3.to_hex(Web3.keccak(slot.to_bytes(SLOT_SIZE, byteorder='big')))


def calc_slot_key(variable: Variable) -> str:
    """
    变量的槽位键

    dynamic=True 时返回 keccak256(from_slot), 否则返回 from_slot 本身。
    """
    if variable.dynamic:
        return dynamic_slot_key(variable.from_slot)
    return slot_hex(variable.from_slot)
