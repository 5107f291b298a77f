"""
端到端集成测试

测试完整流程:
- 合成图像 → 采样 → 解码
- 校准 → 保存 → 新解码器加载
- 配置文件 → 表计读取器 → 读数
"""

import os

import pytest
import numpy as np

from meterlcd import LcdDecoder, MeterReader, load_config
from meterlcd.config import DecoderConfig, DigitConfig
from meterlcd.errors import ReadError
from meterlcd.preprocessing.transform import rotate_image


class TestSingleDigit:
    """单个数字解码"""

    def test_all_segments_on(self, digit8_image):
        """S1: 全部段点亮解码为 8"""
        config = DecoderConfig(digits=[DigitConfig(bbox=(0, 0, 100, 60), preset=(0, 255))])
        result = LcdDecoder(config).decode(digit8_image)

        assert result.strings == ["8"]
        assert result[0].valid
        assert result[0].mask == 0x7F

    def test_masked_segment(self, digit8_image):
        """S2: 擦除右上竖得到 6"""
        img = digit8_image.copy()
        img[0:27, 90:100] = 0

        config = DecoderConfig(digits=[DigitConfig(bbox=(0, 0, 100, 60), preset=(0, 255))])
        result = LcdDecoder(config).decode(img)

        assert result.strings == ["6"]
        assert result[0].valid
        assert result[0].mask == 0x7B

    def test_nonsense_mask(self, draw_digits):
        """S6: 无对应字符的段组合"""
        img = draw_digits(100, 60, [((0, 0, 100, 60), 0x49)])
        config = DecoderConfig(digits=[DigitConfig(bbox=(0, 0, 100, 60))])
        d = LcdDecoder(config).decode(img)[0]

        assert not d.valid
        assert d.text == "?"
        assert d.mask == 0x49


class TestSixDigits:
    """六位数码管解码与校准"""

    def test_decode(self, six_config, six_image):
        """S3: 六位数字逐位解码"""
        result = LcdDecoder(six_config).decode(six_image("012345"))

        assert result.strings == ["0", "1", "2", "3", "4", "5"]
        assert result.valid
        assert result.masks == [0x3F, 0x0C, 0x76, 0x5E, 0x4D, 0x5B]

    def test_calibrate_then_decode(self, six_config, six_image):
        """S4: 全 8 画面校准后解码"""
        decoder = LcdDecoder(six_config)
        decoder.calibrate(six_image("888888", on=110, off=30), "888888")

        for lv in decoder.levels:
            assert lv.max[:7] == [110] * 7

        result = decoder.decode(six_image("012345", on=110, off=30))
        assert result.strings == ["0", "1", "2", "3", "4", "5"]
        assert result.valid

    def test_persisted_calibration(self, six_config, six_image, tmp_path):
        """S5: 保存校准后由新解码器加载，结果一致"""
        path = str(tmp_path / "calibration.csv")
        decoder = LcdDecoder(six_config)
        decoder.calibrate(six_image("888888", on=110, off=30), "888888")
        decoder.save_calibration(path)

        six_config.calibration_file = path
        fresh = LcdDecoder(six_config)

        for a, b in zip(decoder.levels, fresh.levels):
            assert a.min == b.min
            assert a.max == b.max

        img = six_image("012345", on=110, off=30)
        assert fresh.decode(img) == decoder.decode(img)

    def test_small_rotation(self, six_bboxes, six_image):
        """旋转小于 1 度不改变解码结果"""
        img = six_image("012345")
        rotated = rotate_image(img, 0.5)

        # 旋转后原图位于画布中央
        size = rotated.shape[0]
        offset = ((size - img.shape[1]) // 2, (size - img.shape[0]) // 2)
        config = DecoderConfig(
            digits=[DigitConfig(bbox=bbox) for bbox in six_bboxes],
            offset=offset,
        )
        result = LcdDecoder(config).decode(rotated)

        assert result.strings == ["0", "1", "2", "3", "4", "5"]

    def test_overlay(self, six_config, six_image):
        """诊断叠加图"""
        img = six_image("012345")
        out = LcdDecoder(six_config).mark_samples(img, fill=True)

        assert out.shape == img.shape
        assert not np.array_equal(out, img)


class TestMeterPipeline:
    """配置文件到表计读数完整流程"""

    def test_read_sequence(self, meter_config_file, six_image):
        """测试自检画面校准、累计读数与忽略类读数"""
        config = load_config(meter_config_file)
        reader = MeterReader(config)

        # 表头自检画面：全 8，触发校准并保存
        assert reader.read(six_image("CA8888"), timestamp=0) is None
        assert os.path.exists(config.decoder.calibration_file)

        reading = reader.read(six_image("EH0200"), timestamp=10)
        assert reading.label == "EH"
        assert reading.value == 200.0

        assert reader.read(six_image("--0000"), timestamp=20) is None

        with pytest.raises(ReadError):
            reader.read(six_image("EH0190"), timestamp=30)

    def test_restart_loads_calibration(self, meter_config_file, six_image):
        """测试重启后加载已保存的校准"""
        config = load_config(meter_config_file)
        first = MeterReader(config)
        first.read(six_image("CA8888", on=140, off=10), timestamp=0)

        second = MeterReader(load_config(meter_config_file))
        for a, b in zip(first.decoder.levels, second.decoder.levels):
            assert a.min == b.min
            assert a.max == b.max
