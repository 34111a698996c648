from pathlib import Path

import pytest
import yaml

from depclinic.config_loader import (
    DepClinicConfig,
    create_example_config,
    find_config_file,
    load_config,
    save_example_config,
)
from depclinic.config_schema import validate_config_data
from depclinic.errors import ConfigError


def test_defaults():
    cfg = DepClinicConfig()
    assert cfg.configurations == ["implementation"]
    assert cfg.ignore_implicit == ["org.slf4j:slf4j-api"]
    assert cfg.ignore_unused == ["javax.annotation:javax.annotation-api"]
    assert cfg.report_path == Path("build/reports/analyzeDeps-report.yaml")


def test_yaml_overrides_defaults(tmp_path: Path):
    path = tmp_path / "depclinic.yaml"
    path.write_text(
        "build_model: out/model.yaml\nconfigurations: [testImplementation]\nignore: ['org.immutables:*']\nworkers: 2\n",
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.build_model == "out/model.yaml"
    assert cfg.configurations == ["testImplementation"]
    assert cfg.ignore == ["org.immutables:*"]
    assert cfg.workers == 2
    # untouched keys keep their defaults
    assert cfg.classpath_configuration == "compileClasspath"
    assert cfg.source == str(path)


def test_pyproject_tool_table(tmp_path: Path):
    (tmp_path / "pyproject.toml").write_text(
        '[project]\nname = "x"\n\n[tool.depclinic]\nreport_name = "deps"\noutput = "out"\n', encoding="utf-8"
    )
    found = find_config_file(tmp_path)
    assert found == tmp_path / "pyproject.toml"
    cfg = load_config(found)
    assert cfg.report_path == Path("out/deps-report.yaml")


def test_pyproject_without_table_is_skipped(tmp_path: Path):
    (tmp_path / "pyproject.toml").write_text('[project]\nname = "x"\n', encoding="utf-8")
    assert find_config_file(tmp_path) is None


def test_yaml_wins_over_pyproject(tmp_path: Path):
    (tmp_path / "pyproject.toml").write_text("[tool.depclinic]\nworkers = 3\n", encoding="utf-8")
    (tmp_path / "depclinic.yaml").write_text("workers: 1\n", encoding="utf-8")
    assert find_config_file(tmp_path) == tmp_path / "depclinic.yaml"


def test_no_config_means_defaults(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = load_config()
    assert cfg.source is None
    assert cfg == DepClinicConfig()


@pytest.mark.parametrize(
    "text, fragment",
    [
        ("ignroe: []\n", "ignroe"),
        ("ignore: ['slf4j']\n", "group:artifact"),
        ("configurations: []\n", "configurations"),
        ("workers: 0\n", "workers"),
        ("render: gif\n", "render"),
        ("- a\n- b\n", "映射"),
    ],
)
def test_invalid_configs(tmp_path: Path, text, fragment):
    path = tmp_path / "depclinic.yaml"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError, match=fragment):
        load_config(path)


def test_missing_and_unsupported_files(tmp_path: Path):
    with pytest.raises(ConfigError, match="配置文件不存在"):
        load_config(tmp_path / "depclinic.yaml")
    ini = tmp_path / "depclinic.ini"
    ini.write_text("[x]\n")
    with pytest.raises(ConfigError, match="不支持"):
        load_config(ini)


def test_example_config_is_valid():
    data = yaml.safe_load(create_example_config())
    model = validate_config_data(data)
    assert model.configurations == ["implementation"]


def test_save_example_config_keeps_existing(tmp_path: Path):
    target = tmp_path / "depclinic.yaml"
    assert save_example_config(target) == target
    target.write_text("workers: 4\n", encoding="utf-8")

    example = save_example_config(target)
    assert example.name == "depclinic.example.yaml"
    assert target.read_text(encoding="utf-8") == "workers: 4\n"

    assert save_example_config(target, force=True) == target
    assert "classpath_configuration" in target.read_text(encoding="utf-8")
