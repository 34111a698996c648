from pathlib import Path

import pytest

from depclinic.classfile import (
    BytecodeAnalyzer,
    class_name_from_entry,
    iter_class_files,
    read_class,
    types_in_class_signature,
    types_in_descriptor,
    types_in_field_descriptor,
    types_in_method_descriptor,
)
from depclinic.errors import ClassFileError
from jvm_builders import ACC_PRIVATE, ACC_PROTECTED, ACC_PUBLIC, ACC_SUPER, ACC_SYNTHETIC, ClassBuilder, make_jar


def test_field_descriptors():
    assert types_in_field_descriptor("I") == []
    assert types_in_field_descriptor("Ljava/lang/String;") == ["java/lang/String"]
    assert types_in_field_descriptor("[[Lcom/foo/Bar;") == ["com/foo/Bar"]


def test_method_descriptor_params_and_return():
    names = types_in_method_descriptor("(ILcom/a/A;[Lcom/b/B;)Lcom/c/C;")
    assert names == ["com/a/A", "com/b/B", "com/c/C"]
    assert types_in_method_descriptor("()V") == []


def test_generic_signatures():
    sig = "<T:Ljava/lang/Object;>(Ljava/util/List<+Lcom/a/A;>;TT;)Ljava/util/Map<Lcom/k/K;*>;^Lcom/e/E;"
    names = types_in_method_descriptor(sig)
    assert set(names) == {"java/lang/Object", "java/util/List", "com/a/A", "java/util/Map", "com/k/K", "com/e/E"}

    cls_sig = "<K::Ljava/lang/Comparable<TK;>;>Lcom/base/Base<TK;>;Ljava/io/Serializable;"
    assert set(types_in_class_signature(cls_sig)) == {"java/lang/Comparable", "com/base/Base", "java/io/Serializable"}


def test_inner_class_of_parameterized_outer():
    assert types_in_field_descriptor("Lcom/foo/Outer<TT;>.Inner;") == ["com/foo/Outer$Inner"]


def test_descriptor_dispatch():
    assert types_in_descriptor("(Lcom/a/A;)V") == ["com/a/A"]
    assert types_in_descriptor("Lcom/a/A;") == ["com/a/A"]


@pytest.mark.parametrize("bad", ["Lcom/foo", "(I", "Q", "Ljava/lang/String;X"])
def test_malformed_descriptor_raises(bad):
    with pytest.raises(ValueError):
        types_in_descriptor(bad)


def test_read_class_references():
    data = (
        ClassBuilder("com/example/Service")
        .implements("com/api/Handler")
        .field(ACC_PRIVATE, "cache", "Lcom/cache/Cache;")
        .method(ACC_PUBLIC, "run", "(Lcom/io/Input;)V", exceptions=["com/io/IOFailure"])
        .annotate("Lcom/ann/Component;")
        .build()
    )
    info = read_class(data, "Service.class")
    assert info.name == "com.example.Service"
    assert info.super_name == "java.lang.Object"
    assert info.interfaces == ["com.api.Handler"]
    assert {
        "java.lang.Object",
        "com.api.Handler",
        "com.cache.Cache",
        "com.io.Input",
        "com.io.IOFailure",
        "com.ann.Component",
    } <= info.references
    # never reports itself
    assert "com.example.Service" not in info.references


def test_api_references_only_public_members():
    data = (
        ClassBuilder("com/example/Api", super_name="com/base/Base")
        .field(ACC_PRIVATE, "hidden", "Lcom/priv/Hidden;")
        .field(ACC_PROTECTED, "shared", "Lcom/prot/Shared;")
        .method(ACC_PUBLIC, "get", "()Lcom/pub/Result;")
        .method(ACC_PRIVATE, "helper", "(Lcom/priv/Helper;)V")
        .method(ACC_PUBLIC | ACC_SYNTHETIC, "bridge", "()Lcom/synthetic/Bridge;")
        .build()
    )
    info = read_class(data)
    assert info.api_references == {"com.base.Base", "com.prot.Shared", "com.pub.Result"}
    assert {"com.priv.Hidden", "com.priv.Helper", "com.synthetic.Bridge"} <= info.references


def test_non_public_class_has_no_api():
    data = ClassBuilder("com/example/Internal", access=ACC_SUPER).method(ACC_PUBLIC, "x", "()Lcom/a/A;").build()
    info = read_class(data)
    assert not info.is_public
    assert info.api_references == set()
    assert "com.a.A" in info.references


def test_generic_signature_attribute_counts_as_reference():
    data = (
        ClassBuilder("com/example/Holder")
        .field(ACC_PUBLIC, "items", "Ljava/util/List;", signature="Ljava/util/List<Lcom/item/Item;>;")
        .build()
    )
    info = read_class(data)
    assert "com.item.Item" in info.references
    assert "com.item.Item" in info.api_references


def test_array_class_entries():
    builder = ClassBuilder("com/example/Arr")
    builder.class_ref("[Lcom/elem/Element;")
    info = read_class(builder.build())
    assert "com.elem.Element" in info.references
    assert not any(r.startswith("[") for r in info.references)


def test_bad_magic_and_truncation():
    with pytest.raises(ClassFileError, match="magic"):
        read_class(b"\x00\x00\x00\x00" + b"\x00" * 20, "x.class")
    data = ClassBuilder("com/example/T").build()
    with pytest.raises(ClassFileError):
        read_class(data[:-3], "t.class")


def test_class_name_from_entry():
    assert class_name_from_entry("com/foo/Bar$Baz.class") == "com.foo.Bar$Baz"
    assert class_name_from_entry("META-INF/versions/11/com/foo/Bar.class") == "com.foo.Bar"
    assert class_name_from_entry("module-info.class") is None
    assert class_name_from_entry("META-INF/versions/9/module-info.class") is None
    assert class_name_from_entry("META-INF/MANIFEST.MF") is None
    assert class_name_from_entry("com/foo/resource.properties") is None


def test_contained_classes_jar_and_directory(tmp_path: Path):
    jar = make_jar(
        tmp_path / "lib.jar",
        ["com/a/A.class", "com/a/A$1.class", "META-INF/versions/11/com/a/B.class", "module-info.class", "x.txt"],
    )
    analyzer = BytecodeAnalyzer()
    assert analyzer.contained_classes(jar) == {"com.a.A", "com.a.A$1", "com.a.B"}

    d = tmp_path / "classes" / "com" / "d"
    d.mkdir(parents=True)
    (d / "D.class").write_bytes(b"")
    assert analyzer.contained_classes(tmp_path / "classes") == {"com.d.D"}


def test_contained_classes_errors(tmp_path: Path):
    analyzer = BytecodeAnalyzer()
    with pytest.raises(ClassFileError):
        analyzer.contained_classes(tmp_path / "missing.jar")
    broken = tmp_path / "broken.jar"
    broken.write_bytes(b"not a zip")
    with pytest.raises(ClassFileError):
        analyzer.contained_classes(broken)


def test_referenced_classes_single_file_and_jar(tmp_path: Path):
    data = ClassBuilder("com/example/Main").method(ACC_PUBLIC, "go", "(Lcom/dep/Dep;)V").build()
    single = tmp_path / "Main.class"
    single.write_bytes(data)
    jar = make_jar(tmp_path / "app.jar", classes={"com/example/Main": data})

    analyzer = BytecodeAnalyzer()
    assert "com.dep.Dep" in analyzer.referenced_classes(single)
    assert analyzer.referenced_classes(jar) == analyzer.referenced_classes(single)
    assert analyzer.api_referenced_classes(jar) == {"java.lang.Object", "com.dep.Dep"}


def test_iter_class_files_rejects_unknown_inputs(tmp_path: Path):
    other = tmp_path / "notes.txt"
    other.write_text("hi")
    with pytest.raises(ClassFileError):
        list(iter_class_files(other))
    with pytest.raises(ClassFileError):
        list(iter_class_files(tmp_path / "nope"))


def test_class_signature_attribute():
    data = (
        ClassBuilder("com/example/Repo", super_name="com/base/Base")
        .class_signature("<T:Ljava/lang/Object;>Lcom/base/Base<Lcom/model/Entity;>;")
        .build()
    )
    info = read_class(data)
    assert info.signature.startswith("<T:")
    assert {"com.model.Entity", "com.base.Base"} <= info.api_references
