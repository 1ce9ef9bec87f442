"""Configuration management with Pydantic models."""

from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

DEFAULT_RESULT_EXPRESSION = (
    "window.__vueState__ && window.__vueState__.vueResult"
    " && window.__vueState__.vueResult.value"
)


class BuildMode(str, Enum):
    """Which catalog targets a build renders."""

    SMOKE = "smoke"
    ALL = "all"
    SITE = "site"


class CatalogConfig(BaseModel):
    """Configuration for the target catalog."""

    source: str = "test-result/statistic.tsv"  # local path or http(s) URL
    url_prefixes: list[str] = Field(default_factory=lambda: ["http://", "https://"])


class HostConfig(BaseModel):
    """Configuration for the local render host."""

    host: str = "127.0.0.1"
    port: int = Field(default=3000, ge=0, le=65535)  # 0 = ephemeral
    template: Path = Path("index.html")
    asset_root: Path = Path(".")
    data_root: Path = Path("test-result")


class RendererConfig(BaseModel):
    """Configuration for headless page rendering."""

    workers: int = Field(default=8, ge=1, le=32)
    navigation_timeout_ms: int = Field(default=30000, ge=1000, le=120000)
    result_timeout_ms: int = Field(default=10000, ge=0, le=120000)
    settle_ms: int = Field(default=1000, ge=0, le=10000)
    viewport_width: int = Field(default=1200, ge=320)
    viewport_height: int = Field(default=800, ge=240)
    wait_until: Literal["commit", "domcontentloaded", "load", "networkidle"] = "networkidle"
    query_param: str = "url"
    result_expression: str = DEFAULT_RESULT_EXPRESSION
    user_agent: str | None = None


class MarkerConfig(BaseModel):
    """Marker elements delimiting the statically rendered region."""

    attribute: str = "data-static"
    begin: str = "begin"
    end: str = "end"
    static_flag: str = "__IS_STATIC_PAGE__"


class OutputConfig(BaseModel):
    """Configuration for output."""

    path: Path = Path("./web")
    max_key_length: int = Field(default=100, ge=8, le=255)
    assets: list[str] = Field(
        default_factory=lambda: ["styles.css", "app.js", "*.svg", "*.png"]
    )
    write_404: bool = True


class SitemapConfig(BaseModel):
    """Configuration for sitemap generation."""

    base_url: str = "https://resilience.ocf.tw/web/"


class AppConfig(BaseModel):
    """Main application configuration."""

    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    host: HostConfig = Field(default_factory=HostConfig)
    renderer: RendererConfig = Field(default_factory=RendererConfig)
    markers: MarkerConfig = Field(default_factory=MarkerConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    sitemap: SitemapConfig = Field(default_factory=SitemapConfig)
    verbose: bool = False

    @classmethod
    def from_toml(cls, path: Path) -> "AppConfig":
        """Load config from a TOML file."""
        try:
            import tomllib  # type: ignore[import-not-found]
        except ModuleNotFoundError:
            import tomli as tomllib  # type: ignore[import-not-found]
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return cls.model_validate(data)

    def to_toml(self) -> str:
        """Serialize config to TOML format."""
        data = self.model_dump(mode="json")
        return _dict_to_toml(data)


def _toml_value(v: object) -> str:
    """Format a Python value as a TOML literal."""
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, int):
        return str(v)
    if isinstance(v, float):
        return f"{v}"
    if isinstance(v, str):
        escaped = v.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(v, list):
        items = ", ".join(_toml_value(i) for i in v)
        return f"[{items}]"
    return f'"{v}"'


def _dict_to_toml(data: dict) -> str:
    """Convert a dict of scalars and one level of tables to TOML."""
    lines: list[str] = []
    for k, v in data.items():
        if v is None or isinstance(v, dict):
            continue
        lines.append(f"{k} = {_toml_value(v)}")
    for k, v in data.items():
        if isinstance(v, dict):
            lines.append(f"\n[{k}]")
            for sk, sv in v.items():
                # TOML has no null; omitted keys fall back to model defaults
                if sv is None:
                    continue
                lines.append(f"{sk} = {_toml_value(sv)}")
    return "\n".join(lines) + "\n"
