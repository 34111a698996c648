from pathlib import Path

import pytest

from depclinic.build_model import load_build_model, normalize_dependency_name, parse_build_model
from depclinic.errors import BuildModelError


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("project(':core')", "project :core"),
        ('project(":core")', "project :core"),
        ("project :core", "project :core"),
        (":core", "project :core"),
        ("com.google.guava:guava:28.0-jre", "com.google.guava:guava"),
        ("com.google.guava:guava", "com.google.guava:guava"),
    ],
)
def test_normalize_dependency_name(raw, expected):
    assert normalize_dependency_name(raw) == expected


def test_load_sample_model(sample_project: Path):
    model = load_build_model(sample_project / "model.yaml")
    assert model.project == "app"
    assert model.is_self("project :app")

    classpath = model.configuration("compileClasspath")
    assert [d.dependency_name for d in classpath.resolved] == [
        "com.google.guava:guava",
        "org.apache.commons:commons-lang3",
        "project :app",
    ]
    names = [a.dependency_name for a in classpath.resolved_artifacts()]
    assert names == [
        "com.google.guava:guava",
        "com.google.guava:failureaccess",
        "org.slf4j:slf4j-api",
        "org.apache.commons:commons-lang3",
        "project :app",
    ]
    guava = classpath.resolved_artifacts()[0]
    assert guava.file == sample_project / "libs" / "guava-28.0-jre.jar"
    assert guava.extension == "jar"
    assert guava.coordinates == "com.google.guava:guava:28.0-jre"


def test_parent_and_direct_names(sample_project: Path):
    model = load_build_model(sample_project / "model.yaml")
    assert model.direct_dependency_names("compileClasspath") == set()
    assert model.dependency_names("compileClasspath") == {
        "com.google.guava:guava",
        "org.apache.commons:commons-lang3",
    }
    assert [c.name for c in model.hierarchy("compileClasspath")] == ["compileClasspath", "implementation"]


def test_unknown_configuration_lookup(sample_project: Path):
    model = load_build_model(sample_project / "model.yaml")
    with pytest.raises(BuildModelError, match="known: compileClasspath, implementation"):
        model.configuration("runtimeClasspath")


def test_json_is_accepted(tmp_path: Path):
    path = tmp_path / "model.json"
    path.write_text('{"project": "svc", "configurations": {"implementation": {"dependencies": ["a:b"]}}}')
    model = load_build_model(path)
    assert model.direct_dependency_names("implementation") == {"a:b"}


def test_classified_files_need_distinct_identities(tmp_path: Path):
    data = {
        "project": "svc",
        "configurations": {
            "compileClasspath": {
                "resolved": [
                    {
                        "module": "com.example:lib:1.0",
                        "files": ["lib-1.0.jar", {"path": "lib-1.0-tests.jar", "classifier": "tests"}],
                    }
                ]
            }
        },
    }
    model = parse_build_model(data, base_dir=tmp_path)
    artifacts = model.configuration("compileClasspath").resolved_artifacts()
    assert [a.coordinates for a in artifacts] == ["com.example:lib:1.0", "com.example:lib:1.0:tests"]

    data["configurations"]["compileClasspath"]["resolved"][0]["files"] = ["lib-1.0.jar", "lib-copy.jar"]
    with pytest.raises(BuildModelError, match="classifier"):
        parse_build_model(data, base_dir=tmp_path)


@pytest.mark.parametrize(
    "data, message",
    [
        ({"configurations": {}}, "project"),
        ({"project": "x", "configurations": ["a"]}, "mapping"),
        ({"project": "x", "configurations": {"a": {"extendsFrom": ["nope"]}}}, "unknown 'nope'"),
        ({"project": "x", "configurations": {"a": {"resolved": [{"files": ["x.jar"]}]}}}, "module"),
        ({"project": "x", "configurations": {"a": {"resolved": [{"module": "justname"}]}}}, "group:name"),
        ({"project": "x", "configurations": {"a": {"dependencies": "a:b"}}}, "lists"),
    ],
)
def test_invalid_models(data, message):
    with pytest.raises(BuildModelError, match=message):
        parse_build_model(data)


def test_unreadable_model_file(tmp_path: Path):
    with pytest.raises(BuildModelError):
        load_build_model(tmp_path / "missing.yaml")
    bad = tmp_path / "bad.yaml"
    bad.write_text("- not\n- a mapping\n")
    with pytest.raises(BuildModelError, match="mapping"):
        load_build_model(bad)
