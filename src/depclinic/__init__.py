"""
DepClinic - find unused and implicit dependencies of a JVM build module

Simple API:

    from depclinic import load_build_model, classify

    model = load_build_model("build/depclinic/model.yaml")
    sets = classify(model, ["implementation"], "compileClasspath",
                    source_classes="build/classes/java/main")
    print(sorted(sets.implicit), sorted(sets.unused))
"""


def load_build_model(*args, **kwargs):
    """Lazy import wrapper for load_build_model to avoid heavy imports at package import time."""
    from .build_model import load_build_model as _load_build_model

    return _load_build_model(*args, **kwargs)


def classify(*args, **kwargs):
    """Lazy import wrapper for classify."""
    from .classifier import classify as _classify

    return _classify(*args, **kwargs)


from .errors import DepClinicError

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("depclinic")
except PackageNotFoundError:
    # Fallback for development/uninstalled package
    __version__ = "unknown"

__all__ = ["load_build_model", "classify", "DepClinicError", "__version__"]
