"""
JVM class-file reader used as the byte-code analyzer.

Three questions are answered for a class file, a classes directory or a jar:

 - which classes does it contain (by entry path, without parsing)
 - which classes do its classes reference: constant-pool class entries,
   member/call-site descriptors, generic signatures, annotation types
 - which classes appear in its API surface: superclass, interfaces and the
   types of public/protected members of public classes (the jdeps
   ``-apionly`` notion of API)

Class names are returned dotted (``com.foo.Outer$Inner``). Primitive types and
the class itself are never reported as references.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

import struct
import zipfile

from .errors import ClassFileError

MAGIC = 0xCAFEBABE

ACC_PUBLIC = 0x0001
ACC_PRIVATE = 0x0002
ACC_PROTECTED = 0x0004
ACC_SYNTHETIC = 0x1000

# constant pool tags
CONSTANT_Utf8 = 1
CONSTANT_Integer = 3
CONSTANT_Float = 4
CONSTANT_Long = 5
CONSTANT_Double = 6
CONSTANT_Class = 7
CONSTANT_String = 8
CONSTANT_Fieldref = 9
CONSTANT_Methodref = 10
CONSTANT_InterfaceMethodref = 11
CONSTANT_NameAndType = 12
CONSTANT_MethodHandle = 15
CONSTANT_MethodType = 16
CONSTANT_Dynamic = 17
CONSTANT_InvokeDynamic = 18
CONSTANT_Module = 19
CONSTANT_Package = 20

# payload sizes of the entries we skip over
_FIXED_SIZES = {
    CONSTANT_Integer: 4,
    CONSTANT_Float: 4,
    CONSTANT_Long: 8,
    CONSTANT_Double: 8,
    CONSTANT_String: 2,
    CONSTANT_Fieldref: 4,
    CONSTANT_Methodref: 4,
    CONSTANT_InterfaceMethodref: 4,
    CONSTANT_MethodHandle: 3,
    CONSTANT_Dynamic: 4,
    CONSTANT_InvokeDynamic: 4,
    CONSTANT_Module: 2,
    CONSTANT_Package: 2,
}

_ANNOTATION_ATTRS = {"RuntimeVisibleAnnotations", "RuntimeInvisibleAnnotations"}
_PARAM_ANNOTATION_ATTRS = {"RuntimeVisibleParameterAnnotations", "RuntimeInvisibleParameterAnnotations"}

_BASE_TYPES = "BCDFIJSZ"


def internal_to_dotted(name: str) -> str:
    return name.replace("/", ".")


# ---------------------------------------------------------------------------
# descriptors & generic signatures
# ---------------------------------------------------------------------------


class _SignatureReader:
    """Recursive-descent reader for descriptors and generic signatures (JVMS 4.7.9.1).

    Collects every class type it encounters into ``names`` (internal form).
    """

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.names: List[str] = []

    def _peek(self) -> str:
        if self.pos >= len(self.text):
            raise ValueError(f"truncated signature '{self.text}'")
        return self.text[self.pos]

    def _expect(self, ch: str) -> None:
        if self._peek() != ch:
            raise ValueError(f"expected '{ch}' at {self.pos} in '{self.text}'")
        self.pos += 1

    def _identifier(self, stops: str) -> str:
        start = self.pos
        while self._peek() not in stops:
            self.pos += 1
        return self.text[start:self.pos]

    def type_parameters(self) -> None:
        if self.pos >= len(self.text) or self.text[self.pos] != "<":
            return
        self.pos += 1
        while self._peek() != ">":
            self._identifier(":")
            self._expect(":")
            if self._peek() != ":":
                self.reference_type()
            while self._peek() == ":":
                self.pos += 1
                self.reference_type()
        self.pos += 1

    def java_type(self) -> None:
        if self._peek() in _BASE_TYPES:
            self.pos += 1
        else:
            self.reference_type()

    def reference_type(self) -> None:
        c = self._peek()
        if c == "L":
            self.class_type()
        elif c == "T":
            self._identifier(";")
            self.pos += 1
        elif c == "[":
            self.pos += 1
            self.java_type()
        else:
            raise ValueError(f"unexpected '{c}' at {self.pos} in '{self.text}'")

    def class_type(self) -> None:
        self._expect("L")
        name = self._identifier(";<.")
        while True:
            c = self._peek()
            if c == "<":
                self.type_arguments()
            elif c == ".":
                # inner class of a parameterized outer: Outer<TT;>.Inner
                self.pos += 1
                name = f"{name}${self._identifier(';<.')}"
            else:
                self._expect(";")
                break
        self.names.append(name)

    def type_arguments(self) -> None:
        self._expect("<")
        while self._peek() != ">":
            c = self._peek()
            if c == "*":
                self.pos += 1
                continue
            if c in "+-":
                self.pos += 1
            self.reference_type()
        self.pos += 1

    def class_signature(self) -> None:
        self.type_parameters()
        while self.pos < len(self.text):
            self.class_type()

    def method_signature(self) -> None:
        self.type_parameters()
        self._expect("(")
        while self._peek() != ")":
            self.java_type()
        self.pos += 1
        if self._peek() == "V":
            self.pos += 1
        else:
            self.java_type()
        while self.pos < len(self.text) and self.text[self.pos] == "^":
            self.pos += 1
            self.reference_type()


def _collect(text: str, parse: Callable[[_SignatureReader], None]) -> List[str]:
    reader = _SignatureReader(text)
    parse(reader)
    if reader.pos != len(text):
        raise ValueError(f"trailing characters in '{text}'")
    return reader.names


def types_in_field_descriptor(text: str) -> List[str]:
    """Class types (internal form) mentioned by a field descriptor or field signature."""
    return _collect(text, _SignatureReader.java_type)


def types_in_method_descriptor(text: str) -> List[str]:
    """Class types mentioned by a method descriptor or method signature."""
    return _collect(text, _SignatureReader.method_signature)


def types_in_class_signature(text: str) -> List[str]:
    return _collect(text, _SignatureReader.class_signature)


def types_in_descriptor(text: str) -> List[str]:
    """Method descriptors start with '(' or '<', everything else is a field type."""
    if text.startswith("(") or text.startswith("<"):
        return types_in_method_descriptor(text)
    return types_in_field_descriptor(text)


# ---------------------------------------------------------------------------
# class file structure
# ---------------------------------------------------------------------------


class _ByteReader:
    def __init__(self, data: bytes, source: str):
        self.data = data
        self.pos = 0
        self.source = source

    def _take(self, fmt: str, size: int):
        if self.pos + size > len(self.data):
            raise ClassFileError(self.source, f"unexpected end of data at offset {self.pos}")
        value = struct.unpack_from(fmt, self.data, self.pos)[0]
        self.pos += size
        return value

    def u1(self) -> int:
        return self._take(">B", 1)

    def u2(self) -> int:
        return self._take(">H", 2)

    def u4(self) -> int:
        return self._take(">I", 4)

    def skip(self, n: int) -> None:
        if self.pos + n > len(self.data):
            raise ClassFileError(self.source, f"unexpected end of data at offset {self.pos}")
        self.pos += n

    def raw(self, n: int) -> bytes:
        start = self.pos
        self.skip(n)
        return self.data[start:self.pos]


@dataclass
class MemberInfo:
    access_flags: int
    name: str
    descriptor: str
    signature: Optional[str] = None
    exceptions: List[str] = field(default_factory=list)  # internal names

    @property
    def in_api(self) -> bool:
        if self.access_flags & ACC_SYNTHETIC:
            return False
        return bool(self.access_flags & (ACC_PUBLIC | ACC_PROTECTED))


@dataclass
class ClassFileInfo:
    name: str  # dotted
    access_flags: int
    super_name: Optional[str] = None
    interfaces: List[str] = field(default_factory=list)
    signature: Optional[str] = None
    fields: List[MemberInfo] = field(default_factory=list)
    methods: List[MemberInfo] = field(default_factory=list)
    references: Set[str] = field(default_factory=set)
    api_references: Set[str] = field(default_factory=set)

    @property
    def is_public(self) -> bool:
        return bool(self.access_flags & ACC_PUBLIC)


class _ConstantPool:
    def __init__(self, reader: _ByteReader):
        self.source = reader.source
        count = reader.u2()
        self.utf8: Dict[int, str] = {}
        self.classes: Dict[int, int] = {}  # index -> utf8 index
        self.descriptors: List[int] = []  # utf8 indexes used as descriptors
        i = 1
        while i < count:
            tag = reader.u1()
            if tag == CONSTANT_Utf8:
                length = reader.u2()
                self.utf8[i] = reader.raw(length).decode("utf-8", errors="replace")
            elif tag == CONSTANT_Class:
                self.classes[i] = reader.u2()
            elif tag == CONSTANT_NameAndType:
                reader.u2()
                self.descriptors.append(reader.u2())
            elif tag == CONSTANT_MethodType:
                self.descriptors.append(reader.u2())
            elif tag in _FIXED_SIZES:
                reader.skip(_FIXED_SIZES[tag])
            else:
                raise ClassFileError(self.source, f"unknown constant pool tag {tag} at index {i}")
            # long and double take two slots
            i += 2 if tag in (CONSTANT_Long, CONSTANT_Double) else 1

    def text(self, index: int) -> str:
        try:
            return self.utf8[index]
        except KeyError:
            raise ClassFileError(self.source, f"constant #{index} is not a UTF8 entry") from None

    def class_name(self, index: int) -> str:
        try:
            return self.text(self.classes[index])
        except KeyError:
            raise ClassFileError(self.source, f"constant #{index} is not a class entry") from None


def _class_entry_types(internal: str) -> List[str]:
    # array classes appear in the pool as descriptors: [Ljava/lang/String;
    if internal.startswith("["):
        return types_in_field_descriptor(internal)
    return [internal]


def _field_types(reader: _ByteReader, text: str) -> List[str]:
    try:
        return types_in_field_descriptor(text)
    except ValueError as e:
        raise ClassFileError(reader.source, str(e)) from e


def _read_annotation(reader: _ByteReader, pool: _ConstantPool, out: List[str]) -> None:
    out.extend(_field_types(reader, pool.text(reader.u2())))
    for _ in range(reader.u2()):
        reader.u2()
        _read_element_value(reader, pool, out)


def _read_element_value(reader: _ByteReader, pool: _ConstantPool, out: List[str]) -> None:
    tag = chr(reader.u1())
    if tag in "BCDFIJSZs":
        reader.u2()
    elif tag == "e":
        out.extend(_field_types(reader, pool.text(reader.u2())))
        reader.u2()
    elif tag == "c":
        desc = pool.text(reader.u2())
        if desc != "V":
            out.extend(_field_types(reader, desc))
    elif tag == "@":
        _read_annotation(reader, pool, out)
    elif tag == "[":
        for _ in range(reader.u2()):
            _read_element_value(reader, pool, out)
    else:
        raise ClassFileError(reader.source, f"unknown annotation element tag '{tag}'")


def _read_attributes(
    reader: _ByteReader, pool: _ConstantPool, annotation_types: List[str]
) -> Tuple[Optional[str], List[str]]:
    """Return (Signature, Exceptions) and collect annotation types; skip the rest."""
    signature: Optional[str] = None
    exceptions: List[str] = []
    for _ in range(reader.u2()):
        attr_name = pool.text(reader.u2())
        length = reader.u4()
        end = reader.pos + length
        if end > len(reader.data):
            raise ClassFileError(reader.source, f"attribute {attr_name} runs past end of data")
        if attr_name == "Signature":
            signature = pool.text(reader.u2())
        elif attr_name == "Exceptions":
            exceptions = [pool.class_name(reader.u2()) for _ in range(reader.u2())]
        elif attr_name in _ANNOTATION_ATTRS:
            for _ in range(reader.u2()):
                _read_annotation(reader, pool, annotation_types)
        elif attr_name in _PARAM_ANNOTATION_ATTRS:
            for _ in range(reader.u1()):
                for _ in range(reader.u2()):
                    _read_annotation(reader, pool, annotation_types)
        if reader.pos > end:
            raise ClassFileError(reader.source, f"attribute {attr_name} overruns its length")
        reader.pos = end
    return signature, exceptions


def _read_members(reader: _ByteReader, pool: _ConstantPool, annotation_types: List[str]) -> List[MemberInfo]:
    members: List[MemberInfo] = []
    for _ in range(reader.u2()):
        access = reader.u2()
        name = pool.text(reader.u2())
        descriptor = pool.text(reader.u2())
        signature, exceptions = _read_attributes(reader, pool, annotation_types)
        members.append(MemberInfo(access, name, descriptor, signature, exceptions))
    return members


def read_class(data: bytes, source: str = "<bytes>") -> ClassFileInfo:
    """Parse one class file and compute its references and API references."""
    reader = _ByteReader(data, source)
    if reader.u4() != MAGIC:
        raise ClassFileError(source, "bad magic number")
    reader.u2()  # minor
    reader.u2()  # major
    pool = _ConstantPool(reader)

    access = reader.u2()
    this_internal = pool.class_name(reader.u2())
    super_index = reader.u2()
    super_internal = pool.class_name(super_index) if super_index else None
    interfaces = [pool.class_name(reader.u2()) for _ in range(reader.u2())]

    annotation_types: List[str] = []
    fields = _read_members(reader, pool, annotation_types)
    methods = _read_members(reader, pool, annotation_types)
    class_signature, _ = _read_attributes(reader, pool, annotation_types)

    try:
        refs: List[str] = []
        for utf8_index in pool.classes.values():
            refs.extend(_class_entry_types(pool.text(utf8_index)))
        for desc_index in pool.descriptors:
            refs.extend(types_in_descriptor(pool.text(desc_index)))
        for f in fields:
            refs.extend(types_in_field_descriptor(f.descriptor))
            if f.signature:
                refs.extend(types_in_field_descriptor(f.signature))
        for m in methods:
            refs.extend(types_in_method_descriptor(m.descriptor))
            if m.signature:
                refs.extend(types_in_method_descriptor(m.signature))
            refs.extend(m.exceptions)
        if class_signature:
            refs.extend(types_in_class_signature(class_signature))
        refs.extend(annotation_types)

        api: List[str] = []
        if access & ACC_PUBLIC:
            if super_internal:
                api.append(super_internal)
            api.extend(interfaces)
            if class_signature:
                api.extend(types_in_class_signature(class_signature))
            for f in fields:
                if f.in_api:
                    api.extend(types_in_field_descriptor(f.signature or f.descriptor))
            for m in methods:
                if m.in_api:
                    api.extend(types_in_method_descriptor(m.descriptor))
                    if m.signature:
                        api.extend(types_in_method_descriptor(m.signature))
                    api.extend(m.exceptions)
    except ValueError as e:
        raise ClassFileError(source, str(e)) from e

    this_name = internal_to_dotted(this_internal)
    references = {internal_to_dotted(r) for r in refs} - {this_name}
    api_references = {internal_to_dotted(r) for r in api} - {this_name}
    return ClassFileInfo(
        name=this_name,
        access_flags=access,
        super_name=internal_to_dotted(super_internal) if super_internal else None,
        interfaces=[internal_to_dotted(i) for i in interfaces],
        signature=class_signature,
        fields=fields,
        methods=methods,
        references=references,
        api_references=api_references,
    )


# ---------------------------------------------------------------------------
# containers: single class file, classes directory, jar
# ---------------------------------------------------------------------------


def class_name_from_entry(entry: str) -> Optional[str]:
    """``com/foo/Bar$Baz.class`` -> ``com.foo.Bar$Baz``; None for non-class entries.

    Multi-release entries (``META-INF/versions/11/...``) map to their plain
    class name; ``module-info`` and other ``META-INF`` content is skipped.
    """
    entry = entry.replace("\\", "/").lstrip("/")
    if not entry.endswith(".class"):
        return None
    if entry.startswith("META-INF/"):
        parts = entry.split("/")
        if len(parts) > 3 and parts[1] == "versions" and parts[2].isdigit():
            entry = "/".join(parts[3:])
        else:
            return None
    stem = entry[: -len(".class")]
    if stem.rsplit("/", 1)[-1] == "module-info":
        return None
    return internal_to_dotted(stem)


def _is_jar(path: Path) -> bool:
    return path.is_file() and path.suffix.lower() in {".jar", ".zip"}


def iter_class_files(path: str | Path) -> Iterator[Tuple[str, bytes]]:
    """Yield (source label, bytes) for every class in a .class file, directory or jar."""
    p = Path(path)
    try:
        if p.is_dir():
            for f in sorted(p.rglob("*.class")):
                if class_name_from_entry(f.relative_to(p).as_posix()) is None:
                    continue
                yield str(f), f.read_bytes()
        elif _is_jar(p):
            with zipfile.ZipFile(p) as jar:
                for entry in sorted(jar.namelist()):
                    if class_name_from_entry(entry) is None:
                        continue
                    yield f"{p}!/{entry}", jar.read(entry)
        elif p.is_file() and p.suffix == ".class":
            yield str(p), p.read_bytes()
        elif not p.exists():
            raise ClassFileError(str(p), "no such file or directory")
        else:
            raise ClassFileError(str(p), "not a class file, classes directory or jar")
    except (OSError, zipfile.BadZipFile) as e:
        raise ClassFileError(str(p), str(e)) from e


class BytecodeAnalyzer:
    """Default byte-code analyzer.

    Anything with the same three methods can be handed to the indexer and the
    reference extractor instead.
    """

    def contained_classes(self, path: str | Path) -> Set[str]:
        """Classes a jar or classes directory declares, derived from entry paths."""
        p = Path(path)
        try:
            if p.is_dir():
                names = (class_name_from_entry(f.relative_to(p).as_posix()) for f in p.rglob("*.class"))
            elif p.is_file():
                with zipfile.ZipFile(p) as jar:
                    names = [class_name_from_entry(e) for e in jar.namelist()]
            else:
                raise ClassFileError(str(p), "no such file or directory")
            return {n for n in names if n}
        except (OSError, zipfile.BadZipFile) as e:
            raise ClassFileError(str(p), str(e)) from e

    def referenced_classes(self, path: str | Path) -> Set[str]:
        out: Set[str] = set()
        for source, data in iter_class_files(path):
            out |= read_class(data, source).references
        return out

    def api_referenced_classes(self, path: str | Path) -> Set[str]:
        out: Set[str] = set()
        for source, data in iter_class_files(path):
            out |= read_class(data, source).api_references
        return out

    def class_infos(self, path: str | Path) -> Iterator[ClassFileInfo]:
        for source, data in iter_class_files(path):
            yield read_class(data, source)
