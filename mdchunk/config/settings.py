from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel
from typing import Literal
import yaml
import os

class EdgeInsets(BaseModel):
    top: float = 0
    left: float = 0
    bottom: float = 0
    right: float = 0

class PreprocessConfig(BaseModel):
    max_formula_length: int = 3000
    formula_open_marker: str = "<Formula>"
    formula_close_marker: str = "</Formula>"

class SegmenterConfig(BaseModel):
    soft_cap: int = 2000
    split_block_quotes: bool = False
    split_formulas: bool = False
    split_images: bool = False
    split_raw_html: bool = False
    render_inline_formulas: bool = True
    identity_mode: Literal["structural", "session", "random"] = "structural"

class TableStyle(BaseModel):
    padding: EdgeInsets = EdgeInsets(top=12, left=16, bottom=12, right=16)
    cell_padding: EdgeInsets = EdgeInsets(top=6, left=16, bottom=6, right=16)
    cell_height: float = 44
    cell_max_width: float = 330
    max_lines: int = 2

class StyleConfig(BaseModel):
    max_container_width: float = 720
    cell_width: float = 9
    line_height: float = 22
    font_size: float = 16
    text_color: str = "#000000"
    code_theme: str = "default"
    code_padding: EdgeInsets = EdgeInsets(top=12, left=16, bottom=12, right=16)
    code_header_height: float = 32
    code_inner_spacing: float = 8
    formula_padding: EdgeInsets = EdgeInsets(top=12, left=16, bottom=12, right=16)
    thematic_height: float = 30
    image_height: float = 100
    image_base_url: str = ""
    table: TableStyle = TableStyle()

class FormulaConfig(BaseModel):
    max_dimension: float = 1000
    long_formula_length: int = 100
    special_chars: str = "{}\\^_"
    special_char_density: float = 0.3
    complex_markers: list[str] = [
        "\\begin{", "\\end{",
        "\\matrix", "\\pmatrix",
        "\\cases",
        "\\align", "\\eqnarray",
        "\\stackrel", "\\overset",
        "\\underset", "\\underbrace", "\\overbrace",
        "\\xymatrix",
        "\\tikz",
    ]
    dpi: int = 144
    base_font_size: float = 12
    scale_factor: float = 1.5
    converter_command: list[str] = ["tex2svg"]
    rasterizer_command: list[str] = ["rsvg-convert", "--format", "png"]
    command_timeout: float = 20.0

class StreamingConfig(BaseModel):
    max_workers: int = 2
    max_sessions: int = 64

class CacheConfig(BaseModel):
    formula_count_limit: int = 30
    formula_cost_limit: int = 0              # 0 disables the cost bound
    styled_text_count_limit: int = 50
    styled_text_cost_limit: int = 0

class AppSettings(BaseSettings):
    preprocess: PreprocessConfig = PreprocessConfig()
    segmenter: SegmenterConfig = SegmenterConfig()
    style: StyleConfig = StyleConfig()
    formula: FormulaConfig = FormulaConfig()
    cache: CacheConfig = CacheConfig()
    streaming: StreamingConfig = StreamingConfig()
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MDCHUNK_",
        extra="ignore"
    )

def load_settings(config_path: str = "mdchunk/config/config.yaml") -> AppSettings:
    """Loads settings from config.yaml and applies env overrides."""

    # Try multiple paths for convenience during testing vs running
    paths_to_try = [
        config_path,
        "config.yaml",
        "config/config.yaml",
        os.path.join(os.path.dirname(__file__), "config.yaml")
    ]

    yaml_data = {}
    for path in paths_to_try:
        if os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f) or {}
            break

    # Manually map yaml sections to our sub-models
    return AppSettings(
        preprocess=PreprocessConfig(**yaml_data.get("preprocess", {})),
        segmenter=SegmenterConfig(**yaml_data.get("segmenter", {})),
        style=StyleConfig(**yaml_data.get("style", {})),
        formula=FormulaConfig(**yaml_data.get("formula", {})),
        cache=CacheConfig(**yaml_data.get("cache", {})),
        streaming=StreamingConfig(**yaml_data.get("streaming", {}))
    )

# Global settings instance
settings = load_settings()
