import sys
from pathlib import Path

import pytest

# Ensure repo_root/src is available on sys.path before any tests import project modules
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from jvm_builders import ACC_PRIVATE, ACC_PUBLIC, ClassBuilder, make_jar, write_classes  # noqa: E402

MODEL_YAML = """\
project: app
configurations:
  implementation:
    dependencies:
      - com.google.guava:guava:28.0-jre
      - org.apache.commons:commons-lang3
  compileClasspath:
    extendsFrom: [implementation]
    resolved:
      - module: com.google.guava:guava:28.0-jre
        files: [libs/guava-28.0-jre.jar]
        dependencies:
          - module: com.google.guava:failureaccess:1.0.1
            files: [libs/failureaccess-1.0.1.jar]
          - module: org.slf4j:slf4j-api:1.7.30
            files: [libs/slf4j-api-1.7.30.jar]
      - module: org.apache.commons:commons-lang3:3.9
        files: [libs/commons-lang3-3.9.jar]
      - project: app
        files: [classes]
"""


def _app_with_calls() -> bytes:
    # guava in code and API, slf4j only in a private field, Util is the module's own class
    builder = ClassBuilder("com/example/App")
    builder.method_ref("com/google/common/base/Strings", "isNullOrEmpty", "(Ljava/lang/String;)Z")
    builder.method_ref("com/example/Util", "help", "()V")
    builder.field(ACC_PRIVATE, "log", "Lorg/slf4j/Logger;")
    builder.method(ACC_PUBLIC, "items", "()Lcom/google/common/collect/ImmutableList;")
    return builder.build()


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """A build module with four jars, compiled classes and an exported build model.

    Expected classification of 'implementation':
      required  guava, slf4j-api
      api       guava
      implicit  slf4j-api
      unused    commons-lang3
    """
    libs = tmp_path / "libs"
    make_jar(
        libs / "guava-28.0-jre.jar",
        ["com/google/common/base/Strings.class", "com/google/common/collect/ImmutableList.class"],
    )
    make_jar(
        libs / "failureaccess-1.0.1.jar",
        ["com/google/common/util/concurrent/internal/InternalFutureFailureAccess.class"],
    )
    make_jar(libs / "slf4j-api-1.7.30.jar", ["org/slf4j/Logger.class", "org/slf4j/LoggerFactory.class"])
    make_jar(libs / "commons-lang3-3.9.jar", ["org/apache/commons/lang3/StringUtils.class"])

    write_classes(
        tmp_path / "classes",
        {
            "com/example/App": _app_with_calls(),
            "com/example/Util": ClassBuilder("com/example/Util").build(),
        },
    )
    (tmp_path / "model.yaml").write_text(MODEL_YAML, encoding="utf-8")
    return tmp_path
