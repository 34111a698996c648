"""
配置加载器 - 支持YAML格式配置文件与 pyproject.toml 的 [tool.depclinic]
"""

from __future__ import annotations

import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from .config_schema import validate_config_data
from .errors import ConfigError

CONFIG_CANDIDATES = [
    "depclinic.yaml",
    "depclinic.yml",
    ".depclinic.yaml",
    ".depclinic.yml",
    "pyproject.toml",  # 检查 [tool.depclinic]
]


@dataclass
class DepClinicConfig:
    """依赖分析配置"""
    # 构建工具导出的依赖图
    build_model: str = "build/depclinic/model.yaml"
    # 编译输出（目录/jar/单个 class 文件）
    classes: str = "build/classes/java/main"
    # 可选：jdeps 风格 DOT 引用图目录（设置后优先于 classes）
    dot_dir: Optional[str] = None
    # 用于建立 class 索引的 classpath 配置（应为被分析配置的超集）
    classpath_configuration: str = "compileClasspath"
    # 被分析的配置（直接声明的依赖才会被报告为 unused）
    configurations: List[str] = field(default_factory=lambda: ["implementation"])
    # 仅源码可见的配置：其依赖不会被报告为 implicit / unused
    source_only_configurations: List[str] = field(
        default_factory=lambda: ["compileOnly", "annotationProcessor"]
    )
    # 忽略清单 group:artifact，同时作用于 implicit 与 unused
    ignore: List[str] = field(default_factory=list)
    # this is liberally applied to ease the Java8 -> 11 transition
    ignore_unused: List[str] = field(default_factory=lambda: ["javax.annotation:javax.annotation-api"])
    ignore_implicit: List[str] = field(default_factory=lambda: ["org.slf4j:slf4j-api"])
    output: str = "build/reports"
    report_name: str = "analyzeDeps"
    workers: Optional[int] = None
    render: Optional[str] = None  # svg|png|pdf
    source: Optional[str] = None  # 配置来源（文件路径），None 表示默认配置

    @property
    def report_path(self) -> Path:
        return Path(self.output) / f"{self.report_name}-report.yaml"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("source", None)
        return data


def load_config(config_path: Optional[Path] = None) -> DepClinicConfig:
    """
    加载配置文件

    Args:
        config_path: 指定配置文件路径，如果为None则自动查找

    Returns:
        DepClinicConfig: 加载的配置（未找到时为默认配置）
    """
    if config_path:
        return _load_config_file(Path(config_path))

    found_config = find_config_file()
    if found_config:
        return _load_config_file(found_config)
    return DepClinicConfig()


def find_config_file(cwd: Optional[Path] = None) -> Optional[Path]:
    """按优先级查找配置文件"""
    base = Path(cwd) if cwd else Path(".")
    for name in CONFIG_CANDIDATES:
        candidate = base / name
        if candidate.exists():
            # 对于pyproject.toml，检查是否有[tool.depclinic]配置
            if candidate.name == "pyproject.toml":
                if _has_depclinic_config(candidate):
                    return candidate
                continue
            return candidate
    return None


def _load_config_file(config_path: Path) -> DepClinicConfig:
    """加载指定的配置文件"""
    if not config_path.exists():
        raise ConfigError(config_path, "配置文件不存在")

    suffix = config_path.suffix.lower()
    if suffix in [".yaml", ".yml"]:
        data = _read_yaml(config_path)
    elif suffix == ".toml":
        data = _read_toml(config_path)
    else:
        raise ConfigError(config_path, f"不支持的配置文件格式: {suffix}")

    config = _parse_config_data(data, config_path)
    config.source = str(config_path)
    return config


def _read_yaml(config_path: Path) -> Dict[str, Any]:
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(config_path, str(e)) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(config_path, "顶层必须是映射 (mapping)")
    return data


def _read_toml(config_path: Path) -> Dict[str, Any]:
    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(config_path, str(e)) from e
    # 检查是否是pyproject.toml格式
    if "tool" in data and "depclinic" in data["tool"]:
        return data["tool"]["depclinic"]
    return data


def _has_depclinic_config(pyproject_path: Path) -> bool:
    """检查pyproject.toml是否包含depclinic配置"""
    try:
        with pyproject_path.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return False
    return "tool" in data and "depclinic" in data["tool"]


def _parse_config_data(data: Dict[str, Any], config_path: Path) -> DepClinicConfig:
    """解析配置数据（先经 pydantic 校验，再合并默认值）"""
    try:
        model = validate_config_data(data)
    except ValidationError as e:
        raise ConfigError(config_path, str(e)) from e

    config = DepClinicConfig()
    for key, value in model.model_dump(exclude_none=True).items():
        if key == "version":
            continue
        setattr(config, key, value)
    return config


def create_example_config() -> str:
    """创建示例配置文件内容"""
    template = Path(__file__).parent / "templates" / "depclinic.yaml"
    return template.read_text(encoding="utf-8")


def save_example_config(output_path: Optional[Path] = None, force: bool = False) -> Path:
    """保存示例配置文件；已存在且未指定 force 时写到 depclinic.example.yaml"""
    if output_path is None:
        output_path = Path("depclinic.yaml")
    if output_path.exists() and not force:
        output_path = output_path.with_name(output_path.stem + ".example.yaml")
    output_path.write_text(create_example_config(), encoding="utf-8")
    return output_path
