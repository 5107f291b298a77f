"""
集成测试共享 Fixtures

提供测试图像、配置文件等共享资源
"""

import json

import pytest
import numpy as np


@pytest.fixture
def digit8_image(draw_digits) -> np.ndarray:
    """100x60 黑底白色 "8"（全部段点亮）"""
    return draw_digits(100, 60, [((0, 0, 100, 60), "8")], channels=3)


@pytest.fixture
def meter_config_file(tmp_path, six_bboxes) -> str:
    """六位数码管表计配置文件（前两位为标签）"""
    data = {
        "decoder": {
            "threshold": 0.5,
            "calibration_file": str(tmp_path / "calibration.csv"),
            "digits": [
                {"bbox": list(bbox), "dp": i == 3} for i, bbox in enumerate(six_bboxes)
            ],
        },
        "label_digits": 2,
        "measures": {
            "EH": {"kind": "accum", "scale": 1, "max": 50},
            "CA": {"kind": "calibrate"},
            "--": {"kind": "ignore"},
        },
        "recalibrate": True,
    }
    path = tmp_path / "meter.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)
