#!/usr/bin/env python3
"""
depclinic CLI entrypoint

Subcommands:
  - find:            write jdeps-style reference graphs for compiled classes
  - analyze:         classify dependencies and write the YAML report
  - check-unused:    fail when declared dependencies are not used
  - check-implicit:  fail when used dependencies are not declared
  - init:            generate depclinic.yaml
  - show-config:     print the effective configuration
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

EXIT_ERROR = 1
EXIT_CONFIG = 2
EXIT_CHECK_FAILED = 3


def _add_model_args(p: argparse.ArgumentParser, with_classes: bool = True) -> None:
    p.add_argument("--model", default=None, help="Build model file (YAML/JSON) exported by the build tool")
    if with_classes:
        p.add_argument("--classes", default=None, help="Compiled classes: directory, jar or .class file")
    p.add_argument("--classpath", default=None, help="Configuration used to build the class index")
    p.add_argument(
        "--configuration",
        action="append",
        default=None,
        help="Configuration to analyze (repeatable; default from config)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="depclinic", description="Unused and implicit JVM dependency analysis")
    parser.add_argument("--config", default=None, help="Path to depclinic.yaml / pyproject.toml")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="cmd")

    p_find = sub.add_parser("find", help="Write reference graphs (DOT) for compiled classes")
    p_find.add_argument("--classes", default=None, help="Compiled classes: directory, jar or .class file")
    p_find.add_argument("--output-dir", default="build/depclinic/main", help="Where to write the .dot files")
    p_find.add_argument(
        "--model",
        default=None,
        help="Build model used to decorate targets with jar names (default: build_model from config, if present)",
    )
    p_find.add_argument("--classpath", default=None, help="Configuration used to build the class index")

    p_an = sub.add_parser("analyze", help="Classify dependencies and write the YAML report")
    _add_model_args(p_an)
    p_an.add_argument("--dot-dir", default=None, help="Read reference graphs instead of class files")
    p_an.add_argument("--report", default=None, help="Report path (default <output>/<name>-report.yaml)")
    p_an.add_argument("--render", choices=["svg", "png", "pdf"], default=None, help="Also render the report")

    p_cu = sub.add_parser("check-unused", help="Fail when declared dependencies are unused")
    _add_model_args(p_cu)
    p_ci = sub.add_parser("check-implicit", help="Fail when used dependencies are not declared")
    _add_model_args(p_ci)

    p_init = sub.add_parser("init", help="Generate depclinic.yaml")
    p_init.add_argument("--force", action="store_true", help="Overwrite existing depclinic.yaml if present")

    sub.add_parser("show-config", help="Print the effective configuration")
    return parser


def _apply_overrides(cfg, args: argparse.Namespace) -> None:
    for attr, key in (
        ("model", "build_model"),
        ("classes", "classes"),
        ("classpath", "classpath_configuration"),
        ("dot_dir", "dot_dir"),
        ("render", "render"),
    ):
        value = getattr(args, attr, None)
        if value:
            setattr(cfg, key, value)
    if getattr(args, "configuration", None):
        cfg.configurations = list(args.configuration)


def _classifier(cfg):
    from .build_model import load_build_model
    from .classifier import DependencyClassifier

    model = load_build_model(cfg.build_model)
    return DependencyClassifier(
        model,
        cfg.configurations,
        cfg.classpath_configuration,
        ignore=cfg.ignore,
        ignore_implicit=cfg.ignore_implicit,
        ignore_unused=cfg.ignore_unused,
        source_only_configurations=cfg.source_only_configurations,
        workers=cfg.workers,
    )


def _cmd_find(cfg, args: argparse.Namespace) -> int:
    from .finder import write_reference_graph

    index = None
    # --model 或配置中的 build_model 存在时，用 jar 名标注引用目标
    if args.model or Path(cfg.build_model).is_file():
        from .artifact_index import index_configuration
        from .build_model import load_build_model

        model = load_build_model(cfg.build_model)
        index = index_configuration(model, cfg.classpath_configuration, workers=cfg.workers)
    out = Path(args.output_dir)
    try:
        main_dot = write_reference_graph(cfg.classes, out, index=index)
        api_dot = write_reference_graph(cfg.classes, out / "api", api_only=True, index=index)
    finally:
        if index is not None:
            index.reset()
    print(f"✅ 引用图已生成: {main_dot}")
    print(f"✅ API 引用图已生成: {api_dot}")
    return 0


def _cmd_analyze(cfg, args: argparse.Namespace) -> int:
    from .report import ReportContent, write_report

    classifier = _classifier(cfg)
    if cfg.dot_dir:
        sets = classifier.classify_reference_graphs(cfg.dot_dir)
    else:
        sets = classifier.classify_classes(cfg.classes)
    content = ReportContent.from_sets(sets)

    report_path = Path(args.report) if args.report else cfg.report_path
    if not args.report:
        # default location lives under the build dir, which may not exist yet
        report_path.parent.mkdir(parents=True, exist_ok=True)
    write_report(report_path, content)
    print(f"✅ 依赖报告已生成: {report_path}")
    print(
        f"   required {len(content.all_dependencies)} | api {len(content.api_dependencies)}"
        f" | implicit {len(content.implicit_dependencies)} | unused {len(content.unused_dependencies)}"
    )

    if cfg.render:
        from .render import render_report

        base = str(report_path.with_suffix(""))
        dot_path, out_path = render_report(content, classifier.model.project, base, fmt=cfg.render)
        if out_path:
            print(f"🖼  依赖图: {out_path}")
        else:
            print(f"⚠️  未找到 Graphviz 可执行文件，仅生成 DOT: {dot_path}")
    return 0


def _cmd_check_unused(cfg, args: argparse.Namespace) -> int:
    from .classifier import format_unused_failure

    classifier = _classifier(cfg)
    unused = classifier.find_unused(cfg.classes)
    if unused:
        print(format_unused_failure(unused, ", ".join(cfg.configurations)), file=sys.stderr)
        return EXIT_CHECK_FAILED
    print("✅ 未发现未使用的依赖")
    return 0


def _cmd_check_implicit(cfg, args: argparse.Namespace) -> int:
    from .classifier import format_implicit_failure

    classifier = _classifier(cfg)
    implicit = classifier.find_implicit(cfg.classes)
    if implicit:
        print(format_implicit_failure(implicit, ", ".join(cfg.configurations)), file=sys.stderr)
        return EXIT_CHECK_FAILED
    print("✅ 未发现隐式依赖")
    return 0


def _cmd_init(args: argparse.Namespace) -> int:
    from .config_loader import save_example_config

    target = save_example_config(force=args.force)
    if target.name.endswith(".example.yaml"):
        print(f"⚠ 检测到已有 depclinic.yaml，示例已生成: {target}")
    else:
        print(f"✅ 配置文件已生成: {target}")
    return 0


def _cmd_show_config(cfg) -> int:
    import yaml

    print(f"📋 当前生效配置: {cfg.source or '默认配置'}")
    print("━" * 60)
    print(yaml.safe_dump(cfg.to_dict(), sort_keys=False, allow_unicode=True).rstrip())
    print("━" * 60)
    return 0


def run(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "init":
        return _cmd_init(args)

    # Lazy import to keep CLI start-up minimal
    from .config_loader import load_config
    from .errors import ConfigError, DepClinicError

    try:
        cfg = load_config(Path(args.config) if args.config else None)
    except ConfigError as e:
        print(f"❌ {e}", file=sys.stderr)
        return EXIT_CONFIG
    _apply_overrides(cfg, args)

    if args.cmd == "show-config":
        return _cmd_show_config(cfg)

    handlers = {
        "find": _cmd_find,
        "analyze": _cmd_analyze,
        "check-unused": _cmd_check_unused,
        "check-implicit": _cmd_check_implicit,
    }
    try:
        return handlers[args.cmd](cfg, args)
    except DepClinicError as e:
        print(f"❌ {e}", file=sys.stderr)
        return EXIT_ERROR


def main(argv: Optional[List[str]] = None) -> None:
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
