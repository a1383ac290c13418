# SPDX-License-Identifier: MIT
"""Generating ctypes bindings from C headers with libclang.

BindingGenerator parses a wrapper header with libclang and writes a Python
module of ctypes declarations for every allow-listed identifier, plus the
records, enums and typedefs those declarations depend on.

Example:
    bindings = (
        BindingGenerator()
        .header("wrapper.h")
        .clang_arg("-I/usr/lib/llvm-18/include")
        .clang_arg("-DMLIR_SYS_MAJOR_VERSION=18")
        .allowlist_item("[Mm]lir.*")
        .parse_callbacks(CargoCallbacks(sink))
        .generate()
    )
    bindings.write_to_file(out_dir / "bindings.py")

The generated module exposes a `load_library(path)` function that loads
the shared library and binds every declared function by name.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from mlirsys.core.directives import RerunIfChanged
from mlirsys.core.errors import GeneratorError

if TYPE_CHECKING:
    from mlirsys.core.directives import DirectiveSink

logger = logging.getLogger(__name__)

# ctypes spelling of clang builtin type kinds, keyed by TypeKind name.
_PRIMITIVES = {
    "VOID": "None",
    "BOOL": "c_bool",
    "CHAR_S": "c_char",
    "SCHAR": "c_byte",
    "CHAR_U": "c_ubyte",
    "UCHAR": "c_ubyte",
    "SHORT": "c_short",
    "USHORT": "c_ushort",
    "INT": "c_int",
    "UINT": "c_uint",
    "LONG": "c_long",
    "ULONG": "c_ulong",
    "LONGLONG": "c_longlong",
    "ULONGLONG": "c_ulonglong",
    "FLOAT": "c_float",
    "DOUBLE": "c_double",
    "LONGDOUBLE": "c_longdouble",
    "WCHAR": "c_wchar",
}

# Standard typedefs with a direct ctypes equivalent.
_STANDARD_TYPEDEFS = {
    "size_t": "c_size_t",
    "ssize_t": "c_ssize_t",
    "intptr_t": "c_ssize_t",
    "uintptr_t": "c_size_t",
    "ptrdiff_t": "c_ssize_t",
    "int8_t": "c_int8",
    "int16_t": "c_int16",
    "int32_t": "c_int32",
    "int64_t": "c_int64",
    "uint8_t": "c_uint8",
    "uint16_t": "c_uint16",
    "uint32_t": "c_uint32",
    "uint64_t": "c_uint64",
    "wchar_t": "c_wchar",
}

_INT_LITERAL = re.compile(r"^(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)[uUlL]*$")

_RUNTIME = '''

def load_library(path):
    """Load a shared library and bind every declared function.

    Functions the library does not export are skipped. Bound functions
    are published as module attributes.
    """
    lib = CDLL(str(path))
    namespace = globals()
    for name, (restype, argtypes) in _FUNCTIONS.items():
        try:
            func = getattr(lib, name)
        except AttributeError:
            continue
        func.restype = restype
        if argtypes is not None:
            func.argtypes = argtypes
        namespace[name] = func
    return lib
'''


class ParseCallbacks(Protocol):
    """Hooks invoked while the header is processed."""

    def include_file(self, path: str) -> None: ...


class CargoCallbacks:
    """Emits a rebuild trigger for every file the header depends on."""

    def __init__(self, sink: DirectiveSink) -> None:
        self.sink = sink

    def include_file(self, path: str) -> None:
        self.sink.emit(RerunIfChanged(path))


class Bindings:
    """Generated binding source."""

    def __init__(self, source: str, functions: list[str]) -> None:
        self.source = source
        self.functions = functions

    def write_to_file(self, path: Path | str) -> None:
        """Write the bindings, creating parent directories as needed.

        Raises:
            GeneratorError: If the file cannot be written.
        """
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self.source, encoding="utf-8")
        except OSError as e:
            raise GeneratorError(f"cannot write bindings to {path}: {e}") from e
        logger.info("Wrote %d function bindings to %s", len(self.functions), path)

    def __str__(self) -> str:
        return self.source


class BindingGenerator:
    """Builder for a binding generation run."""

    def __init__(self) -> None:
        self._header: Path | None = None
        self._clang_args: list[str] = []
        self._allowlist: list[str] = []
        self._callbacks: list[ParseCallbacks] = []

    def header(self, path: Path | str) -> BindingGenerator:
        self._header = Path(path)
        return self

    def clang_arg(self, arg: str) -> BindingGenerator:
        self._clang_args.append(arg)
        return self

    def allowlist_item(self, pattern: str) -> BindingGenerator:
        """Allow identifiers that fully match a regular expression."""
        self._allowlist.append(pattern)
        return self

    def parse_callbacks(self, callbacks: ParseCallbacks) -> BindingGenerator:
        self._callbacks.append(callbacks)
        return self

    @property
    def clang_args(self) -> list[str]:
        return list(self._clang_args)

    def generate(self) -> Bindings:
        """Parse the header and produce bindings.

        Raises:
            GeneratorError: If libclang is unavailable, the header is
                missing, or parsing reports errors.
        """
        if self._header is None:
            raise GeneratorError("no header configured")
        if not self._header.is_file():
            raise GeneratorError(f"header not found: {self._header}")

        tu = self._parse()
        for path in _dependencies(tu, self._header):
            for callbacks in self._callbacks:
                callbacks.include_file(path)

        allow = (
            re.compile("|".join(f"(?:{p})" for p in self._allowlist))
            if self._allowlist
            else None
        )
        emitter = _Emitter(allow)
        emitter.visit(tu.cursor)
        header = f"Generated from {self._header.name} by mlirsys. Do not edit."
        return Bindings(emitter.render(header), emitter.function_names())

    def _parse(self) -> Any:
        from clang.cindex import (
            Diagnostic,
            Index,
            LibclangError,
            TranslationUnit,
            TranslationUnitLoadError,
        )

        logger.debug("Parsing %s with %s", self._header, " ".join(self._clang_args))
        try:
            index = Index.create()
            tu = index.parse(
                str(self._header),
                args=self._clang_args,
                options=TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD,
            )
        except (LibclangError, TranslationUnitLoadError) as e:
            raise GeneratorError(f"failed to parse {self._header}: {e}") from e

        errors = [d for d in tu.diagnostics if d.severity >= Diagnostic.Error]
        if errors:
            first = errors[0]
            location = first.location
            if location.file:
                where = f"{location.file}:{location.line}:{location.column}"
            else:
                where = str(self._header)
            message = f"failed to parse {self._header}: {where}: {first.spelling}"
            if len(errors) > 1:
                message += f" (and {len(errors) - 1} more errors)"
            raise GeneratorError(message)
        return tu


def _dependencies(tu: Any, header: Path) -> list[str]:
    """The header and every file it transitively includes."""
    paths = [str(header)]
    for inclusion in tu.get_includes():
        name = str(inclusion.include.name)
        if name not in paths:
            paths.append(name)
    return paths


class _Emitter:
    """Walks a translation unit and renders ctypes declarations.

    Sections are rendered in an order that lets every name be defined
    before it is used: record classes, constants, record layouts (by-value
    members first), type aliases, then the function table. Typedefs are
    expanded wherever they are used, so layouts never refer to aliases.
    """

    def __init__(self, allow: re.Pattern[str] | None) -> None:
        self.allow = allow
        self._names: dict[str, str] = {}
        self._records: dict[str, Any] = {}
        self._record_kinds: dict[str, str] = {}
        self._laid_out: set[str] = set()
        self._constants: dict[str, int] = {}
        self._aliases: dict[str, str] = {}
        self._enums: set[str] = set()
        self._layouts: list[str] = []
        self._functions: dict[str, str] = {}

    def _allowed(self, name: str) -> bool:
        return self.allow is None or self.allow.fullmatch(name) is not None

    def visit(self, root: Any) -> None:
        from clang.cindex import CursorKind

        for cursor in root.get_children():
            kind = cursor.kind
            name = cursor.spelling
            if kind == CursorKind.FUNCTION_DECL:
                if self._allowed(name):
                    self._function(cursor)
            elif kind == CursorKind.TYPEDEF_DECL:
                if self._allowed(name):
                    self._typedef(cursor)
            elif kind in (CursorKind.STRUCT_DECL, CursorKind.UNION_DECL):
                if name.isidentifier() and self._allowed(name):
                    self._record(cursor)
            elif kind == CursorKind.ENUM_DECL:
                constants = [c.spelling for c in cursor.get_children()]
                if (name.isidentifier() and self._allowed(name)) or any(
                    self._allowed(c) for c in constants
                ):
                    self._enum(cursor)
            elif kind == CursorKind.MACRO_DEFINITION:
                if self._allowed(name):
                    self._macro(cursor)

        # Laying out records can pull in further records.
        while len(self._laid_out) < len(self._records):
            for usr in list(self._records):
                self._layout(usr)

    def function_names(self) -> list[str]:
        return list(self._functions)

    # Declarations

    def _function(self, cursor: Any) -> None:
        from clang.cindex import TypeKind

        name = cursor.spelling
        if name in self._functions:
            return
        ftype = cursor.type
        restype = self._type(ftype.get_result())
        if ftype.kind == TypeKind.FUNCTIONPROTO:
            args = "[" + ", ".join(self._type(t) for t in ftype.argument_types()) + "]"
        else:
            args = "None"
        self._functions[name] = f"({restype}, {args})"

    def _typedef(self, cursor: Any) -> str:
        name = cursor.spelling
        if name in self._aliases:
            return self._aliases[name]
        # Reserve the name so self-referential typedefs terminate.
        self._aliases[name] = name
        underlying = _strip_elaborated(cursor.underlying_typedef_type)
        decl = underlying.get_declaration()
        if _is_record_cursor(decl) and not decl.spelling.isidentifier():
            self._names.setdefault(decl.get_usr(), name)
        expr = self._type(underlying)
        del self._aliases[name]
        if expr != name:
            self._aliases[name] = expr
        return expr

    def _record(self, cursor: Any) -> str:
        from clang.cindex import CursorKind

        usr = cursor.get_usr()
        name = self._record_name(cursor)
        if usr not in self._records:
            definition = cursor.get_definition()
            self._records[usr] = definition
            self._record_kinds[usr] = (
                "Union" if cursor.kind == CursorKind.UNION_DECL else "Structure"
            )
        elif self._records[usr] is None:
            self._records[usr] = cursor.get_definition()
        return name

    def _record_name(self, cursor: Any) -> str:
        usr = cursor.get_usr()
        if usr not in self._names:
            spelling = cursor.spelling
            if spelling.isidentifier():
                self._names[usr] = spelling
            else:
                self._names[usr] = f"_anon_{len(self._names)}"
        return self._names[usr]

    def _enum(self, cursor: Any) -> str:
        usr = cursor.get_usr()
        base = self._type(cursor.enum_type)
        if usr not in self._enums:
            self._enums.add(usr)
            for constant in cursor.get_children():
                self._constants.setdefault(constant.spelling, constant.enum_value)
            if cursor.spelling.isidentifier():
                self._aliases.setdefault(cursor.spelling, base)
        return base

    def _macro(self, cursor: Any) -> None:
        tokens = [t.spelling for t in cursor.get_tokens()]
        if len(tokens) != 2:
            return
        match = _INT_LITERAL.match(tokens[1])
        if match is None:
            return
        literal = match.group(1)
        if len(literal) > 1 and literal.startswith("0") and literal[1] not in "xX":
            value = int(literal, 8)
        else:
            value = int(literal, 0)
        self._constants.setdefault(tokens[0], value)

    def _layout(self, usr: str) -> None:
        from clang.cindex import CursorKind

        if usr in self._laid_out:
            return
        self._laid_out.add(usr)
        definition = self._records[usr]
        if definition is None:
            return

        name = self._names[usr]
        children = list(definition.get_children())
        # Nested records that a named field uses are not members themselves.
        referenced: set[str] = set()
        for child in children:
            if child.kind == CursorKind.FIELD_DECL:
                decl = _strip_elaborated(child.type).get_declaration()
                if decl is not None:
                    referenced.add(decl.get_usr())
        fields: list[str] = []
        anonymous: list[str] = []
        for child in children:
            if _is_record_cursor(child):
                if child.is_anonymous() and child.get_usr() not in referenced:
                    member = self._record(child)
                    self._layout(child.get_usr())
                    field_name = f"_{len(fields)}"
                    anonymous.append(field_name)
                    fields.append(f"({field_name!r}, {member})")
                continue
            if child.kind != CursorKind.FIELD_DECL:
                continue
            self._layout_by_value(child.type)
            field_name = child.spelling
            if not field_name:
                field_name = f"_{len(fields)}"
                anonymous.append(field_name)
            entry = f"({field_name!r}, {self._type(child.type)}"
            if child.is_bitfield():
                entry += f", {child.get_bitfield_width()}"
            fields.append(entry + ")")
        if anonymous:
            self._layouts.append(f"{name}._anonymous_ = {tuple(anonymous)!r}")
        self._layouts.append(f"{name}._fields_ = [" + ", ".join(fields) + "]")

    def _layout_by_value(self, ctype: Any) -> None:
        """Lay out records used by value before anything embeds them.

        ctypes freezes a record's layout once another type uses it by
        value, including as a callback argument or result.
        """
        from clang.cindex import TypeKind

        canonical = ctype.get_canonical()
        kind = canonical.kind
        if kind == TypeKind.CONSTANTARRAY:
            self._layout_by_value(canonical.element_type)
        elif kind == TypeKind.RECORD:
            decl = canonical.get_declaration()
            self._record(decl)
            self._layout(decl.get_usr())
        elif kind == TypeKind.POINTER:
            pointee = canonical.get_pointee()
            if pointee.kind == TypeKind.FUNCTIONPROTO:
                self._layout_by_value(pointee)
        elif kind == TypeKind.FUNCTIONPROTO:
            self._layout_by_value(canonical.get_result())
            for arg in canonical.argument_types():
                self._layout_by_value(arg)

    # Types

    def _type(self, ctype: Any) -> str:
        from clang.cindex import TypeKind

        ctype = _strip_elaborated(ctype)
        kind = ctype.kind

        if kind.name in _PRIMITIVES:
            return _PRIMITIVES[kind.name]
        if kind == TypeKind.TYPEDEF:
            decl = ctype.get_declaration()
            name = decl.spelling
            if name in _STANDARD_TYPEDEFS:
                return _STANDARD_TYPEDEFS[name]
            return self._typedef(decl)
        if kind == TypeKind.RECORD:
            return self._record(ctype.get_declaration())
        if kind == TypeKind.ENUM:
            return self._enum(ctype.get_declaration())
        if kind == TypeKind.POINTER:
            return self._pointer(ctype.get_pointee())
        if kind == TypeKind.CONSTANTARRAY:
            return f"({self._type(ctype.element_type)} * {ctype.element_count})"
        if kind == TypeKind.INCOMPLETEARRAY:
            return self._pointer(ctype.element_type)
        if kind in (TypeKind.FUNCTIONPROTO, TypeKind.FUNCTIONNOPROTO):
            return self._function_type(ctype)

        logger.debug("Lowering unsupported type %s to c_void_p", ctype.spelling)
        return "c_void_p"

    def _pointer(self, pointee: Any) -> str:
        from clang.cindex import TypeKind

        canonical = pointee.get_canonical()
        if canonical.kind == TypeKind.VOID:
            return "c_void_p"
        if canonical.kind in (TypeKind.CHAR_S, TypeKind.CHAR_U):
            return "c_char_p"
        if canonical.kind in (TypeKind.FUNCTIONPROTO, TypeKind.FUNCTIONNOPROTO):
            return self._function_type(pointee)
        return f"POINTER({self._type(pointee)})"

    def _function_type(self, ftype: Any) -> str:
        from clang.cindex import TypeKind

        ftype = _strip_elaborated(ftype)
        if ftype.kind == TypeKind.TYPEDEF:
            ftype = ftype.get_canonical()
        parts = [self._type(ftype.get_result())]
        if ftype.kind == TypeKind.FUNCTIONPROTO:
            parts.extend(self._type(t) for t in ftype.argument_types())
        return "CFUNCTYPE(" + ", ".join(parts) + ")"

    # Output

    def render(self, banner: str) -> str:
        lines = [
            f"# {banner}",
            '"""ctypes declarations generated from C headers."""',
            "",
            "from ctypes import *  # noqa: F403",
            "",
        ]
        for usr in self._records:
            lines.append("")
            lines.append(f"class {self._names[usr]}({self._record_kinds[usr]}):")
            lines.append("    pass")
        if self._records:
            lines.append("")
        if self._constants:
            lines.append("")
            lines.extend(f"{name} = {value}" for name, value in self._constants.items())
        if self._layouts:
            lines.append("")
            lines.extend(self._layouts)
        if self._aliases:
            lines.append("")
            lines.extend(f"{name} = {expr}" for name, expr in self._aliases.items())
        lines.append("")
        lines.append("_FUNCTIONS = {")
        lines.extend(f"    {name!r}: {sig}," for name, sig in self._functions.items())
        lines.append("}")
        return "\n".join(lines) + "\n" + _RUNTIME


def _strip_elaborated(ctype: Any) -> Any:
    from clang.cindex import TypeKind

    while ctype.kind == TypeKind.ELABORATED:
        ctype = ctype.get_named_type()
    return ctype


def _is_record_cursor(cursor: Any) -> bool:
    from clang.cindex import CursorKind

    return cursor is not None and cursor.kind in (
        CursorKind.STRUCT_DECL,
        CursorKind.UNION_DECL,
    )
