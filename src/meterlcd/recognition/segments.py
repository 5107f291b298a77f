"""
七段数码管段码表

段的顺序（位 0 起，低位在前）：
    TL 左上竖, TM 上横, TR 右上竖, BR 右下竖, BM 下横, BL 左下竖, MM 中横

     --TM--
    |      |
    TL     TR
    |      |
     --MM--
    |      |
    BL     BR
    |      |
     --BM--

该顺序同时被校准缓存文件使用，不可更改。
"""

from typing import Dict, List, Optional

from meterlcd.errors import CalibrationError

# 段索引
S_TL, S_TM, S_TR, S_BR, S_BM, S_BL, S_MM = range(7)
SEGMENTS = 7
DP_SLOT = 7          # 小数点在校准数组中的位置
SLOTS = 8

SEGMENT_NAMES = ("TL", "TM", "TR", "BR", "BM", "BL", "MM")

# 段掩码
M_TL = 1 << S_TL
M_TM = 1 << S_TM
M_TR = 1 << S_TR
M_BR = 1 << S_BR
M_BM = 1 << S_BM
M_BL = 1 << S_BL
M_MM = 1 << S_MM

BLANK = " "
PLACEHOLDER = "?"
DECIMAL_POINT = "."

# 掩码 -> 字符
_RESULT_TABLE: Dict[int, str] = {
    0: BLANK,
    M_MM: "-",
    M_TL | M_TM | M_TR | M_BR | M_BM | M_BL: "0",
    M_TR | M_BR: "1",
    M_TM | M_TR | M_BM | M_BL | M_MM: "2",
    M_TM | M_TR | M_BR | M_BM | M_MM: "3",
    M_TL | M_TR | M_BR | M_MM: "4",
    M_TL | M_TM | M_BR | M_BM | M_MM: "5",
    M_TL | M_TM | M_BR | M_BM | M_BL | M_MM: "6",
    M_TM | M_TR | M_BR: "7",
    M_TL | M_TM | M_TR | M_BR: "7",   # 部分表头的 7 带左上竖
    M_TL | M_TM | M_TR | M_BR | M_BM | M_BL | M_MM: "8",
    M_TL | M_TM | M_TR | M_BR | M_BM | M_MM: "9",
    M_TL | M_TM | M_TR | M_BR | M_BL | M_MM: "A",
    M_TL | M_BR | M_BM | M_BL | M_MM: "b",
    M_TL | M_TM | M_BM | M_BL: "C",
    M_TR | M_BR | M_BM | M_BL | M_MM: "d",
    M_TL | M_TM | M_BM | M_BL | M_MM: "E",
    M_TL | M_TM | M_BL | M_MM: "F",
    M_TL | M_BR | M_BL | M_MM: "h",
    M_TL | M_TR | M_BR | M_BL | M_MM: "H",
    M_TL | M_BM | M_BL: "L",
    M_TL | M_TM | M_TR | M_BR | M_BL: "N",
    M_BR | M_BL | M_MM: "n",
    M_BR | M_BM | M_BL | M_MM: "o",
    M_TL | M_TM | M_TR | M_BL | M_MM: "P",
    M_BL | M_MM: "r",
    M_TL | M_BM | M_BL | M_MM: "t",
}


def _build_reverse_table() -> Dict[str, int]:
    """字符 -> 掩码；同一字符有多种写法时取点亮段最少的一种"""
    reverse: Dict[str, int] = {}
    for mask, char in _RESULT_TABLE.items():
        current = reverse.get(char)
        if current is None or bin(mask).count("1") < bin(current).count("1"):
            reverse[char] = mask
    return reverse


_REVERSE_TABLE: Dict[str, int] = _build_reverse_table()

# 解码器可能输出的全部字符
CHAR_SET = frozenset(_RESULT_TABLE.values())

DIGITS = "0123456789"


def mask_to_char(mask: int) -> Optional[str]:
    """段掩码转字符，无法识别时返回 None"""
    return _RESULT_TABLE.get(mask)


def char_to_mask(char: str) -> Optional[int]:
    """字符转段掩码（字符集内任意字符）"""
    return _REVERSE_TABLE.get(char)


def digit_to_mask(char: str) -> Optional[int]:
    """十进制数字转段掩码，非数字返回 None"""
    if len(char) != 1 or char not in DIGITS:
        return None
    return _REVERSE_TABLE[char]


def segments_on(mask: int) -> List[int]:
    """掩码中点亮的段索引"""
    return [i for i in range(SEGMENTS) if mask & (1 << i)]


def digits_to_masks(text: str) -> List[int]:
    """
    将字符串逐字符转为段掩码

    Raises:
        CalibrationError: 含有字符集外的字符
    """
    masks = []
    for i, char in enumerate(text):
        mask = char_to_mask(char)
        if mask is None:
            raise CalibrationError(f"未知字符 (第 {i} 位 - {char!r})")
        masks.append(mask)
    return masks
