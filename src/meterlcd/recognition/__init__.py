"""
识别模块

七段数码管解码:
- Segments: 段码表
- Template: 数字采样几何
- Calibration: 逐段亮度上下限
- LCD: 解码器
- Persistence: 校准缓存
"""

from meterlcd.recognition.segments import (
    CHAR_SET,
    SEGMENT_NAMES,
    mask_to_char,
    char_to_mask,
    digit_to_mask,
    digits_to_masks,
)

from meterlcd.recognition.template import (
    DigitTemplate,
    DigitScan,
)

from meterlcd.recognition.calibration import (
    SegmentLevels,
    DigitLevels,
    CalibrationReport,
)

from meterlcd.recognition.lcd import (
    LcdDecoder,
    DecodeResult,
    DigitResult,
    Annotation,
)

from meterlcd.recognition.persistence import (
    dump_calibration,
    parse_calibration,
)

__all__ = [
    # segments
    "CHAR_SET",
    "SEGMENT_NAMES",
    "mask_to_char",
    "char_to_mask",
    "digit_to_mask",
    "digits_to_masks",
    # template
    "DigitTemplate",
    "DigitScan",
    # calibration
    "SegmentLevels",
    "DigitLevels",
    "CalibrationReport",
    # lcd
    "LcdDecoder",
    "DecodeResult",
    "DigitResult",
    "Annotation",
    # persistence
    "dump_calibration",
    "parse_calibration",
]
