import io
import subprocess
from unittest.mock import MagicMock, patch
import pytest
from PIL import Image

from mdchunk.config.settings import FormulaConfig, StyleConfig
from mdchunk.core.formula.errors import ConverterError, FastRenderError, FormulaTooLargeError, RasterizeError
from mdchunk.core.formula.fallback_renderer import (
    SvgFormulaRenderer,
    SvgRasterizer,
    TexToSvgConverter,
    parse_length,
    svg_size,
)
from mdchunk.core.formula.fast_renderer import MathTextRenderer
from mdchunk.core.formula.selector import FormulaRenderer
from mdchunk.core.formula.strategy import select_strategy, trim_delimiters
from mdchunk.models.render import RenderResult, RenderStrategy, Size
from mdchunk.storage.lru_cache import LRURenderCache

SVG = '<svg xmlns="http://www.w3.org/2000/svg" width="10ex" height="2ex" viewBox="0 -500 4000 800"></svg>'

def ok(strategy, width=40, height=20):
    return RenderResult(artifact=Image.new("RGBA", (width, height)), size=Size(width=width, height=height), success=True, strategy=strategy)

def make_renderer(fast_result=None, fallback_result=None):
    fast = MagicMock()
    fallback = MagicMock()
    if isinstance(fast_result, Exception):
        fast.render.side_effect = fast_result
    else:
        fast.render.return_value = fast_result or ok(RenderStrategy.fast)
    if isinstance(fallback_result, Exception):
        fallback.render.side_effect = fallback_result
    else:
        fallback.render.return_value = fallback_result or ok(RenderStrategy.fallback)
    return FormulaRenderer(fast=fast, fallback=fallback, cache=LRURenderCache(count_limit=30)), fast, fallback

@pytest.mark.parametrize("raw, expected", [
    ("$$x$$", "x"),
    ("$x$", "x"),
    ("[x]", "x"),
    ("\\[x\\]", "x"),
    ("\\(x\\)", "x"),
    ("  $ a + b $  ", "a + b"),
    ("x", "x"),
])
def test_trim_delimiters(raw, expected):
    assert trim_delimiters(raw) == expected

def test_simple_formula_is_fast():
    assert select_strategy("x^2 + y^2") == RenderStrategy.fast
    assert select_strategy("a+b" * 40) == RenderStrategy.fast

def test_complex_markers_select_fallback():
    assert select_strategy("\\begin{pmatrix} a \\\\ b \\end{pmatrix}") == RenderStrategy.fallback
    assert select_strategy("\\underbrace{a+b}_{n}") == RenderStrategy.fallback

def test_long_dense_formula_selects_fallback():
    dense = "{a}^{b}_{c}" * 10
    assert len(dense) > 100
    assert select_strategy(dense) == RenderStrategy.fallback
    # the same density below the length threshold stays fast
    assert select_strategy("{a}^{b}_{c}") == RenderStrategy.fast

def test_fast_success_is_cached():
    print("Testing strategy selection and cache...")
    renderer, fast, fallback = make_renderer()
    first = renderer.render("$x^2$")
    assert first.success and first.strategy == RenderStrategy.fast

    second = renderer.render("$$x^2$$")
    assert second.success and second.strategy == RenderStrategy.cache
    assert second.artifact is first.artifact
    fast.render.assert_called_once()
    fallback.render.assert_not_called()

def test_fast_failure_falls_through_to_fallback():
    renderer, fast, fallback = make_renderer(fast_result=FastRenderError("bad parse"))
    result = renderer.render("x^2")
    assert result.success and result.strategy == RenderStrategy.fallback
    fast.render.assert_called_once()
    fallback.render.assert_called_once()
    assert "x^2" in renderer.cache

def test_complex_formula_skips_fast():
    renderer, fast, fallback = make_renderer()
    result = renderer.render("\\begin{cases} a \\end{cases}")
    assert result.strategy == RenderStrategy.fallback
    fast.render.assert_not_called()

def test_fallback_failure_is_reported_not_raised():
    renderer, _, _ = make_renderer(
        fast_result=FastRenderError("bad parse"),
        fallback_result=ConverterError("Converter exited with status 1")
    )
    result = renderer.render("x^2")
    assert not result.success
    assert "status 1" in result.error
    assert result.size == Size.zero()
    assert "x^2" not in renderer.cache

def test_empty_formula_fails():
    renderer, fast, _ = make_renderer()
    assert not renderer.render("$$").success
    fast.render.assert_not_called()

def test_mathtext_renderer_produces_image():
    result = MathTextRenderer(FormulaConfig(dpi=72)).render("x^2", StyleConfig())
    assert result.success
    assert result.strategy == RenderStrategy.fast
    assert result.size.width > 0 and result.size.height > 0
    assert result.artifact.size[0] > 0

def test_mathtext_renderer_rejects_bad_input():
    with pytest.raises(FastRenderError):
        MathTextRenderer().render("\\frac{", StyleConfig())

def test_parse_length_units():
    assert parse_length("10ex") == 80
    assert parse_length("12pt") == pytest.approx(16)
    assert parse_length("5px") == 5
    assert parse_length("7") == 7
    assert parse_length("3furlongs") is None
    assert parse_length(None) is None

def test_svg_size_from_attributes_and_viewbox():
    assert svg_size(SVG) == Size(width=80, height=16)
    assert svg_size('<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 30 12"></svg>') == Size(width=30, height=12)
    with pytest.raises(ConverterError):
        svg_size("<svg")

def svg_renderer(image):
    converter = MagicMock()
    converter.convert.return_value = SVG
    rasterizer = MagicMock()
    rasterizer.rasterize.return_value = image
    return SvgFormulaRenderer(FormulaConfig(), converter, rasterizer), converter, rasterizer

def test_svg_renderer_scales_declared_size():
    renderer, _, rasterizer = svg_renderer(Image.new("RGBA", (160, 32)))
    result = renderer.render("\\begin{matrix}a\\end{matrix}", StyleConfig(font_size=16))

    assert result.success and result.strategy == RenderStrategy.fallback
    assert result.size == Size(width=160, height=32)
    target = rasterizer.rasterize.call_args[0][1]
    # 16 / 12 * 1.5 = 2x the declared size
    assert target.width == pytest.approx(160)
    assert target.height == pytest.approx(32)

def test_svg_renderer_rejects_large_declared_size():
    renderer, converter, rasterizer = svg_renderer(Image.new("RGBA", (10, 10)))
    converter.convert.return_value = SVG.replace('width="10ex"', 'width="600ex"')
    with pytest.raises(FormulaTooLargeError):
        renderer.render("x", StyleConfig())
    rasterizer.rasterize.assert_not_called()

def test_svg_renderer_rejects_large_raster():
    renderer, _, _ = svg_renderer(Image.new("RGBA", (1200, 10)))
    with pytest.raises(FormulaTooLargeError):
        renderer.render("x", StyleConfig())

@patch("mdchunk.core.formula.fallback_renderer.subprocess.run")
def test_converter_runs_command(mock_run):
    mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=0, stdout=SVG + "\n", stderr="")
    svg = TexToSvgConverter(FormulaConfig(converter_command=["tex2svg"])).convert("x^2")
    assert svg == SVG
    assert mock_run.call_args[0][0] == ["tex2svg", "x^2"]

@patch("mdchunk.core.formula.fallback_renderer.subprocess.run")
def test_converter_errors(mock_run):
    converter = TexToSvgConverter()

    mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="TeX parse error")
    with pytest.raises(ConverterError) as exc:
        converter.convert("x^")
    assert "TeX parse error" in str(exc.value)

    mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=0, stdout="not svg", stderr="")
    with pytest.raises(ConverterError):
        converter.convert("x")

    mock_run.side_effect = FileNotFoundError("tex2svg")
    with pytest.raises(ConverterError):
        converter.convert("x")

    mock_run.side_effect = subprocess.TimeoutExpired(cmd="tex2svg", timeout=20)
    with pytest.raises(ConverterError):
        converter.convert("x")

@patch("mdchunk.core.formula.fallback_renderer.subprocess.run")
def test_rasterizer_decodes_png(mock_run):
    png = io.BytesIO()
    Image.new("RGBA", (20, 8)).save(png, format="PNG")
    mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=0, stdout=png.getvalue(), stderr=b"")

    image = SvgRasterizer().rasterize(SVG, Size(width=20, height=8))
    assert image.size == (20, 8)
    command = mock_run.call_args[0][0]
    assert command[-4:] == ["--width", "20", "--height", "8"]

@patch("mdchunk.core.formula.fallback_renderer.subprocess.run")
def test_rasterizer_errors(mock_run):
    mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=0, stdout=b"garbage", stderr=b"")
    with pytest.raises(RasterizeError):
        SvgRasterizer().rasterize(SVG, Size(width=20, height=8))

    mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=1, stdout=b"", stderr=b"bad svg")
    with pytest.raises(RasterizeError):
        SvgRasterizer().rasterize(SVG, Size(width=20, height=8))

if __name__ == "__main__":
    test_fast_success_is_cached()
    test_fast_failure_falls_through_to_fallback()
    print("Done.")
