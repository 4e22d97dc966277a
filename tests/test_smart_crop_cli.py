import io
import json
import os

import pytest
from PIL import Image

import smart_crop
from conftest import gradient_image
from crop_analyzers import CropRect
from crop_config import CropConfig, clamp_quality
from crop_errors import InputError, OutputError
from jpeg_io import load_jpeg, save_jpeg


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("SMART_CROP_"):
            monkeypatch.delenv(key)


def test_scenario_a_exact_output_size(make_jpeg, tmp_path, capsys):
    src = make_jpeg(800, 600)
    out = tmp_path / "out.jpg"
    code = smart_crop.main(["-i", src, "-o", str(out), "-w", "300", "-h", "300", "--json"])
    assert code == 0
    with Image.open(out) as img:
        assert img.format == "JPEG"
        assert img.size == (300, 300)
    report = json.loads(capsys.readouterr().out)
    assert report["size"] == [300, 300]
    assert report["analyzer"] == "smartcrop"
    assert len(report["crop"]) == 4


@pytest.mark.parametrize("analyzer", ["edge", "center"])
def test_alternative_analyzers(make_jpeg, tmp_path, analyzer):
    out = tmp_path / "out.jpg"
    code = smart_crop.main(
        ["-i", make_jpeg(400, 300), "-o", str(out), "-w", "120", "-h", "200", "--analyzer", analyzer]
    )
    assert code == 0
    with Image.open(out) as img:
        assert img.size == (120, 200)


def test_scenario_b_no_target_keeps_size(make_jpeg, tmp_path):
    out = tmp_path / "out.jpg"
    assert smart_crop.main(["-i", make_jpeg(100, 100), "-o", str(out)]) == 0
    with Image.open(out) as img:
        assert img.size == (100, 100)


def test_scenario_c_analysis_error_writes_nothing(make_jpeg, tmp_path):
    out = tmp_path / "out.jpg"
    code = smart_crop.main(["-i", make_jpeg(100, 100), "-o", str(out), "-w", "300", "-h", "300"])
    assert code == 3
    assert not out.exists()
    assert os.listdir(tmp_path) == ["input.jpg"]


def test_scenario_d_non_jpeg_input(tmp_path, monkeypatch):
    src = tmp_path / "input.png"
    gradient_image(100, 100).save(src, format="PNG")
    out = tmp_path / "out.jpg"

    def fail_build(*args, **kwargs):
        raise AssertionError("analyzer must not be built for invalid input")

    monkeypatch.setattr(smart_crop, "build_analyzer", fail_build)
    assert smart_crop.main(["-i", str(src), "-o", str(out), "-w", "50", "-h", "50"]) == 2
    assert not out.exists()


def test_missing_input(tmp_path):
    out = tmp_path / "out.jpg"
    assert smart_crop.main(["-i", str(tmp_path / "nope.jpg"), "-o", str(out)]) == 2


def test_corrupt_input(tmp_path):
    src = tmp_path / "broken.jpg"
    src.write_bytes(b"not an image at all")
    with pytest.raises(InputError):
        load_jpeg(str(src))


def test_output_dir_missing(make_jpeg, tmp_path):
    out = tmp_path / "missing" / "out.jpg"
    assert smart_crop.main(["-i", make_jpeg(100, 100), "-o", str(out), "-w", "50", "-h", "50"]) == 4


class HalfWrittenImage:
    def convert(self, mode):
        return self

    def save(self, fh, **kwargs):
        fh.write(b"\xff\xd8partial")
        raise OSError("disk full")


def test_failed_save_leaves_no_file(tmp_path):
    out = tmp_path / "out.jpg"
    with pytest.raises(OutputError, match="disk full"):
        save_jpeg(HalfWrittenImage(), str(out), quality=85)
    assert os.listdir(tmp_path) == []


def test_save_replaces_existing_output(tmp_path):
    out = tmp_path / "out.jpg"
    out.write_bytes(b"old")
    assert save_jpeg(gradient_image(20, 10), str(out), quality=85) == str(out)
    with Image.open(out) as img:
        assert img.size == (20, 10)


def test_fill_mode(make_jpeg, tmp_path, capsys):
    out = tmp_path / "out.jpg"
    code = smart_crop.main(["-i", make_jpeg(400, 200), "-o", str(out), "-w", "100", "--mode", "fill", "--json"])
    assert code == 0
    report = json.loads(capsys.readouterr().out)
    assert report["size"] == [100, 50]
    assert report["analyzer"] is None


def test_negative_size_rejected(make_jpeg, tmp_path):
    with pytest.raises(SystemExit):
        smart_crop.main(["-i", make_jpeg(100, 100), "-o", str(tmp_path / "o.jpg"), "-w", "-5"])


def test_unknown_analyzer_from_env(make_jpeg, tmp_path, monkeypatch):
    monkeypatch.setenv("SMART_CROP_ANALYZER", "yolo")
    out = tmp_path / "out.jpg"
    assert smart_crop.main(["-i", make_jpeg(100, 100), "-o", str(out), "-w", "50", "-h", "50"]) == 1
    assert not out.exists()


def test_config_from_env():
    config = CropConfig.from_env(
        {
            "SMART_CROP_QUALITY": "120",
            "SMART_CROP_ANALYZER": " Edge ",
            "SMART_CROP_LEGACY_AUTO_HEIGHT": "yes",
            "SMART_CROP_MAX_ANALYSIS_SIZE": "abc",
        }
    )
    assert config.quality == 100
    assert config.analyzer == "edge"
    assert config.legacy_auto_height is True
    assert config.max_analysis_size == 512
    assert CropConfig.from_env({}) == CropConfig()


def test_config_overrides_skip_none():
    config = CropConfig().with_overrides(quality=-3, analyzer=None, legacy_auto_height=None)
    assert config.quality == 0
    assert config.analyzer == "smartcrop"
    assert clamp_quality(85) == 85


def test_mpo_camera_jpeg_is_accepted(tmp_path):
    src = tmp_path / "camera.jpg"
    primary = Image.new("RGB", (64, 48), (200, 30, 30))
    preview = Image.new("RGB", (64, 48), (30, 30, 200))
    primary.save(src, format="MPO", save_all=True, append_images=[preview])
    with Image.open(src) as img:
        assert img.format == "MPO"

    image = load_jpeg(str(src))
    assert image.size == (64, 48)
    red, green, blue = image.getpixel((32, 24))
    assert red > 150 and blue < 80


def test_mpo_input_runs_through_cli(tmp_path):
    src = tmp_path / "camera.jpg"
    gradient_image(200, 100).save(src, format="MPO", save_all=True, append_images=[gradient_image(200, 100)])
    out = tmp_path / "out.jpg"
    assert smart_crop.main(["-i", str(src), "-o", str(out), "-w", "50", "-h", "50", "--analyzer", "center"]) == 0
    with Image.open(out) as img:
        assert img.size == (50, 50)


def test_decompression_bomb_is_input_error(make_jpeg, monkeypatch):
    src = make_jpeg(100, 100)
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    with pytest.raises(InputError, match="too large"):
        load_jpeg(src)


def reference_quantization(quality):
    buffer = io.BytesIO()
    gradient_image(40, 40).save(buffer, format="JPEG", quality=quality)
    buffer.seek(0)
    with Image.open(buffer) as img:
        return img.quantization


def output_quantization(path):
    with Image.open(path) as img:
        return img.quantization


def test_default_output_quality_is_85(make_jpeg, tmp_path):
    out = tmp_path / "out.jpg"
    assert smart_crop.main(["-i", make_jpeg(200, 100), "-o", str(out), "-w", "50", "-h", "50"]) == 0
    assert output_quantization(out) == reference_quantization(85)
    assert output_quantization(out) != reference_quantization(40)


def test_quality_flag_reaches_encoder(make_jpeg, tmp_path):
    out = tmp_path / "out.jpg"
    src = make_jpeg(200, 100)
    assert smart_crop.main(["-i", src, "-o", str(out), "-w", "50", "-h", "50", "--quality", "40"]) == 0
    assert output_quantization(out) == reference_quantization(40)


def test_quality_env_reaches_encoder(make_jpeg, tmp_path, monkeypatch):
    monkeypatch.setenv("SMART_CROP_QUALITY", "60")
    out = tmp_path / "out.jpg"
    assert smart_crop.main(["-i", make_jpeg(200, 100), "-o", str(out), "-w", "50", "-h", "50"]) == 0
    assert output_quantization(out) == reference_quantization(60)


def test_save_jpeg_uses_given_quality(tmp_path):
    out = tmp_path / "out.jpg"
    save_jpeg(gradient_image(40, 40), str(out), quality=85)
    assert output_quantization(out) == reference_quantization(85)


class InterruptedImage:
    def __init__(self, exc):
        self.exc = exc

    def convert(self, mode):
        return self

    def save(self, fh, **kwargs):
        fh.write(b"\xff\xd8partial")
        raise self.exc


@pytest.mark.parametrize("exc", [KeyboardInterrupt(), RuntimeError("encoder crashed")])
def test_unexpected_save_failure_leaves_no_file(tmp_path, exc):
    out = tmp_path / "out.jpg"
    with pytest.raises(type(exc)):
        save_jpeg(InterruptedImage(exc), str(out), quality=85)
    assert os.listdir(tmp_path) == []


def test_saved_file_respects_umask(tmp_path):
    out = tmp_path / "out.jpg"
    previous = os.umask(0o027)
    try:
        save_jpeg(gradient_image(10, 10), str(out), quality=85)
    finally:
        os.umask(previous)
    assert os.stat(out).st_mode & 0o777 == 0o640


def test_inverted_analyzer_rect_exits_with_analysis_code(make_jpeg, tmp_path, monkeypatch):
    class InvertedAnalyzer:
        def find_best_crop(self, image, width, height):
            return CropRect(300, 300, 100, 100)

    monkeypatch.setattr(smart_crop, "build_analyzer", lambda *args, **kwargs: InvertedAnalyzer())
    out = tmp_path / "out.jpg"
    assert smart_crop.main(["-i", make_jpeg(400, 400), "-o", str(out), "-w", "50", "-h", "50"]) == 3
    assert not out.exists()


def test_blank_env_values_use_defaults():
    config = CropConfig.from_env({"SMART_CROP_QUALITY": "  ", "SMART_CROP_MAX_ANALYSIS_SIZE": ""})
    assert config.quality == 85
    assert config.max_analysis_size == 512
