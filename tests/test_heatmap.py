from __future__ import annotations

import numpy as np
import pytest

from pyanomcam.errors import RenderError
from pyanomcam.result import DetectionResult
from pyanomcam.visualization.heatmap import (
    draw_label,
    format_label,
    grid_side,
    heatmap_color,
    heatmap_colors,
    render_heatmap_overlay,
    render_result,
    save_overlay_image,
)


def _result(anomaly_map, *, image=None, label: str = "Anomalous", score: float = 0.9) -> DetectionResult:
    return DetectionResult(
        label=label,
        score=score,
        raw_score=60.0,
        anomaly_map=np.asarray(anomaly_map, dtype=np.float32),
        pixel_threshold=0.5,
        anomalous_pixel_fraction=0.25,
        image=image,
    )


@pytest.mark.parametrize(
    "value, expected",
    [
        (0.0, (0, 0, 255)),
        (0.125, (0, 127, 255)),
        (0.25, (0, 255, 255)),
        (0.5, (0, 255, 0)),
        (0.75, (255, 255, 0)),
        (1.0, (255, 0, 0)),
    ],
)
def test_color_ramp_anchor_points(value: float, expected: tuple[int, int, int]) -> None:
    assert heatmap_color(value) == expected


def test_color_ramp_clamps_out_of_range_values() -> None:
    colors = heatmap_colors(np.array([-1.0, 2.0, np.nan]))
    assert colors.dtype == np.uint8
    assert colors.tolist() == [[0, 0, 255], [255, 0, 0], [0, 0, 255]]


def test_grid_side_requires_square_map() -> None:
    assert grid_side(16) == 4
    with pytest.raises(RenderError):
        grid_side(15)
    with pytest.raises(RenderError):
        grid_side(0)


def test_overlay_blends_hot_cell_only() -> None:
    base = np.zeros((8, 8, 3), dtype=np.uint8)
    # Row-major: the last entry is the bottom-right cell.
    out = render_heatmap_overlay(base, np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float32))

    assert out.shape == base.shape
    assert out.dtype == np.uint8
    assert out[6, 6].tolist() == [128, 0, 0]
    assert out[4, 4].tolist() == [128, 0, 0]
    assert out[0, 0].tolist() == [0, 0, 0]
    assert out[0, 6].tolist() == [0, 0, 0]
    assert np.all(base == 0)


def test_overlay_cells_cover_uneven_image_sizes() -> None:
    base = np.full((5, 7, 3), 200, dtype=np.uint8)
    out = render_heatmap_overlay(base, np.array([1.0, 0.0, 0.0, 0.0]), max_alpha=1.0)

    # Cell (0, 0) covers rows [0, 2.5) and columns [0, 3.5).
    assert out[2, 3].tolist() == [255, 0, 0]
    assert out[3, 3].tolist() == [200, 200, 200]
    assert out[2, 4].tolist() == [200, 200, 200]


def test_overlay_rejects_bad_inputs() -> None:
    with pytest.raises(RenderError):
        render_heatmap_overlay(np.zeros((4, 4), dtype=np.uint8), np.zeros(4))
    with pytest.raises(RenderError):
        render_heatmap_overlay(np.zeros((4, 4, 3), dtype=np.uint8), np.zeros(5))


def test_format_label_shows_confidence_in_label() -> None:
    assert format_label("Anomalous", 0.873) == "Anomalous (87.3%)"
    assert format_label("Normal", 0.25) == "Normal (75.0%)"


def test_draw_label_darkens_plate_and_keeps_input() -> None:
    image = np.full((200, 200, 3), 255, dtype=np.uint8)

    out = draw_label(image, "Normal (75.0%)")

    assert out.shape == image.shape
    assert out is not image
    assert int(out[0, 0, 0]) < 255
    assert int(out[199, 199, 0]) == 255
    assert np.all(image == 255)


def test_render_result_falls_back_to_base_image() -> None:
    image = np.full((6, 6, 3), 10, dtype=np.uint8)
    result = _result([0.1, 0.2, 0.3], image=image)

    out = render_result(result)

    assert np.array_equal(out, image)
    assert out is not image


def test_visualize_is_cached_until_released() -> None:
    result = _result([0.0, 0.5, 0.5, 1.0], image=np.zeros((16, 16, 3), dtype=np.uint8))

    first = result.visualize()
    assert result.has_overlay
    assert result.visualize() is first

    result.release()
    assert not result.has_overlay
    again = result.visualize()
    assert again is not first
    assert np.array_equal(again, first)


def test_visualize_without_image_raises() -> None:
    with pytest.raises(ValueError):
        _result([0.0, 1.0, 0.0, 1.0]).visualize()


def test_result_to_jsonable() -> None:
    payload = _result([0.0, 1.0, 0.0, 1.0]).to_jsonable(include_map_values=True)

    assert payload["label"] == "Anomalous"
    assert payload["is_anomaly"] is True
    assert payload["anomaly_map"] == {"size": 4, "dtype": "float32"}
    assert payload["anomaly_map_values"] == [0.0, 1.0, 0.0, 1.0]
    assert "anomaly_map_values" not in _result([0.0]).to_jsonable()


def test_save_overlay_image(tmp_path) -> None:
    from PIL import Image

    result = _result([0.0, 0.5, 0.5, 1.0], image=np.zeros((20, 30, 3), dtype=np.uint8))

    out = save_overlay_image(result, tmp_path / "nested" / "overlay.png")

    assert out.exists()
    with Image.open(out) as im:
        assert im.size == (30, 20)


@pytest.mark.parametrize("boundary", [0.25, 0.5, 0.75])
def test_color_ramp_is_continuous_at_segment_boundaries(boundary: float) -> None:
    below = np.array(heatmap_color(boundary - 1e-9), dtype=np.int32)
    at = np.array(heatmap_color(boundary), dtype=np.int32)
    assert np.max(np.abs(below - at)) <= 1
