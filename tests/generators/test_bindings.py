# SPDX-License-Identifier: MIT
"""Tests for mlirsys.generators.bindings."""

from __future__ import annotations

import ctypes
from pathlib import Path

import pytest

from mlirsys.core.directives import DirectiveLog, RerunIfChanged
from mlirsys.core.errors import GeneratorError
from mlirsys.generators.bindings import BindingGenerator, Bindings, CargoCallbacks
from mlirsys.toolchains.llvm_config import clang_builtin_include

TYPES_H = """\
typedef struct MlirContext { void *ptr; } MlirContext;
typedef struct MlirStringRef {
  const char *data;
  unsigned long length;
} MlirStringRef;
"""

WRAPPER_H = """\
#include "types.h"

#define MLIR_CAPI_VERSION 18
#define MLIR_CAPI_MASK 0x1f
#define OTHER_MACRO 3

enum MlirDiagnosticSeverity {
  MlirDiagnosticError,
  MlirDiagnosticWarning = 4,
};
typedef enum MlirDiagnosticSeverity MlirDiagnosticSeverity;

typedef void (*MlirStringCallback)(MlirStringRef, void *);

typedef struct {
  MlirContext context;
  MlirStringCallback callback;
  int flags[4];
} MlirBundle;

struct MlirOpaque;
typedef struct MlirOpaque *MlirOpaqueRef;

MlirContext mlirContextCreate(void);
void mlirContextDestroy(MlirContext context);
MlirStringRef mlirStringRefCreateFromCString(const char *str);
void mlirContextPrint(MlirContext context, MlirStringCallback callback,
                      void *userData);
MlirOpaqueRef mlirOpaqueGet(MlirBundle *bundle, unsigned long long n);
int helperNotExported(int x);

#if MLIR_SYS_MAJOR_VERSION >= 18
int mlirOnlyInNewReleases(void);
#endif
"""


def _libclang_available() -> bool:
    try:
        from clang.cindex import Index

        Index.create()
    except Exception:
        return False
    return True


requires_libclang = pytest.mark.skipif(
    not _libclang_available(), reason="libclang not available"
)


@pytest.fixture
def header(tmp_path: Path) -> Path:
    (tmp_path / "types.h").write_text(TYPES_H)
    wrapper = tmp_path / "wrapper.h"
    wrapper.write_text(WRAPPER_H)
    return wrapper


def generate(header: Path, *args: str) -> Bindings:
    generator = BindingGenerator().header(header).allowlist_item("[Mm]lir.*")
    for arg in args:
        generator.clang_arg(arg)
    return generator.generate()


def load(bindings: Bindings) -> dict:
    namespace: dict = {}
    exec(compile(bindings.source, "bindings.py", "exec"), namespace)
    return namespace


class TestBindingGeneratorConfiguration:
    def test_builder_methods_chain(self, tmp_path):
        generator = BindingGenerator()
        assert generator.header(tmp_path / "a.h") is generator
        assert generator.clang_arg("-I/x") is generator
        assert generator.allowlist_item("x.*") is generator
        assert generator.parse_callbacks(CargoCallbacks(DirectiveLog())) is generator
        assert generator.clang_args == ["-I/x"]

    def test_no_header(self):
        with pytest.raises(GeneratorError, match="no header"):
            BindingGenerator().generate()

    def test_missing_header(self, tmp_path):
        with pytest.raises(GeneratorError, match="header not found"):
            BindingGenerator().header(tmp_path / "missing.h").generate()


class TestBindingsOutput:
    def test_write_to_file(self, tmp_path):
        bindings = Bindings("X = 1\n", [])
        target = tmp_path / "out" / "bindings.py"
        bindings.write_to_file(target)
        assert target.read_text() == "X = 1\n"

    def test_write_failure(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises(GeneratorError, match="cannot write bindings"):
            Bindings("X = 1\n", []).write_to_file(blocker / "bindings.py")

    def test_str(self):
        assert str(Bindings("X = 1\n", [])) == "X = 1\n"


class TestCargoCallbacks:
    def test_emits_rerun_directive(self):
        log = DirectiveLog()
        CargoCallbacks(log).include_file("/usr/include/mlir-c/IR.h")
        assert log.directives == [RerunIfChanged("/usr/include/mlir-c/IR.h")]


@requires_libclang
class TestGenerate:
    def test_allowlist_filters_functions(self, header):
        bindings = generate(header)
        assert "mlirContextCreate" in bindings.functions
        assert "mlirContextPrint" in bindings.functions
        assert "helperNotExported" not in bindings.source

    def test_version_define_enables_declarations(self, header):
        without = generate(header)
        assert "mlirOnlyInNewReleases" not in without.functions

        with_define = generate(header, "-DMLIR_SYS_MAJOR_VERSION=18")
        assert "mlirOnlyInNewReleases" in with_define.functions

    def test_generated_module_executes(self, header):
        ns = load(generate(header))

        assert ns["MlirContext"]._fields_ == [("ptr", ctypes.c_void_p)]
        assert [f[0] for f in ns["MlirStringRef"]._fields_] == ["data", "length"]
        assert ns["MlirStringRef"]._fields_[0][1] is ctypes.c_char_p
        assert callable(ns["load_library"])

    def test_enum_constants(self, header):
        ns = load(generate(header))
        assert ns["MlirDiagnosticError"] == 0
        assert ns["MlirDiagnosticWarning"] == 4
        assert ns["MlirDiagnosticSeverity"] in (ctypes.c_int, ctypes.c_uint)

    def test_integer_macros(self, header):
        bindings = (
            BindingGenerator()
            .header(header)
            .allowlist_item("[Mm]lir.*")
            .allowlist_item("MLIR_.*")
            .generate()
        )
        ns = load(bindings)
        assert ns["MLIR_CAPI_VERSION"] == 18
        assert ns["MLIR_CAPI_MASK"] == 0x1F
        assert "OTHER_MACRO" not in ns

    def test_callback_typedef(self, header):
        ns = load(generate(header))
        callback = ns["MlirStringCallback"]
        assert callback._restype_ is None
        assert callback._argtypes_ == (ns["MlirStringRef"], ctypes.c_void_p)

    def test_anonymous_struct_named_by_typedef(self, header):
        ns = load(generate(header))
        bundle = ns["MlirBundle"]
        assert [f[0] for f in bundle._fields_] == ["context", "callback", "flags"]
        assert bundle._fields_[0][1] is ns["MlirContext"]
        assert ctypes.sizeof(bundle._fields_[2][1]) == 4 * ctypes.sizeof(ctypes.c_int)

    def test_opaque_pointer(self, header):
        ns = load(generate(header))
        restype, argtypes = ns["_FUNCTIONS"]["mlirOpaqueGet"]
        assert restype is ns["MlirOpaqueRef"]
        assert argtypes[0]._type_ is ns["MlirBundle"]
        assert argtypes[1] is ctypes.c_ulonglong

    def test_function_signatures(self, header):
        ns = load(generate(header))
        functions = ns["_FUNCTIONS"]
        assert functions["mlirContextCreate"] == (ns["MlirContext"], [])
        assert functions["mlirContextDestroy"] == (None, [ns["MlirContext"]])
        restype, argtypes = functions["mlirStringRefCreateFromCString"]
        assert restype is ns["MlirStringRef"]
        assert argtypes == [ctypes.c_char_p]

    def test_callbacks_see_every_header(self, header):
        log = DirectiveLog()
        (
            BindingGenerator()
            .header(header)
            .allowlist_item("[Mm]lir.*")
            .parse_callbacks(CargoCallbacks(log))
            .generate()
        )
        paths = [d.path for d in log]
        assert paths[0] == str(header)
        assert any(Path(p).name == "types.h" for p in paths)
        assert len(paths) == len(set(paths))

    def test_parse_error(self, tmp_path):
        broken = tmp_path / "broken.h"
        broken.write_text("int mlirBroken(;\n")
        with pytest.raises(GeneratorError, match="failed to parse"):
            BindingGenerator().header(broken).generate()

    def test_missing_include(self, tmp_path):
        broken = tmp_path / "wrapper.h"
        broken.write_text('#include "does_not_exist.h"\n')
        with pytest.raises(GeneratorError, match="does_not_exist.h"):
            BindingGenerator().header(broken).generate()

    def test_include_directory(self, tmp_path):
        include = tmp_path / "include" / "mlir-c"
        include.mkdir(parents=True)
        (include / "IR.h").write_text("int mlirFromIncludeDir(void);\n")
        wrapper = tmp_path / "wrapper.h"
        wrapper.write_text("#include <mlir-c/IR.h>\n")

        bindings = generate(wrapper, f"-I{tmp_path / 'include'}")
        assert bindings.functions == ["mlirFromIncludeDir"]

    def test_anonymous_members(self, tmp_path):
        header = tmp_path / "anon.h"
        header.write_text(
            "typedef struct { int k; union { int i; float f; }; } MlirUnionHolder;\n"
            "typedef struct { union { int a; } named; int b; } MlirNamedUnion;\n"
            "MlirUnionHolder mlirHolderGet(MlirNamedUnion u);\n"
        )
        ns = load(generate(header))

        holder = ns["MlirUnionHolder"]
        assert ctypes.sizeof(holder) == 2 * ctypes.sizeof(ctypes.c_int)
        value = holder(k=1)
        value.f = 1.5
        assert value.f == 1.5

        named = ns["MlirNamedUnion"]
        assert [f[0] for f in named._fields_] == ["named", "b"]
        assert ctypes.sizeof(named) == 2 * ctypes.sizeof(ctypes.c_int)

    def test_standard_headers(self, tmp_path):
        builtin = clang_builtin_include()
        if builtin is None:
            pytest.skip("clang builtin headers not available")
        header = tmp_path / "std.h"
        header.write_text(
            "#include <stdbool.h>\n"
            "#include <stddef.h>\n"
            "#include <stdint.h>\n"
            "bool mlirFlag(size_t n, int64_t v);\n"
        )

        ns = load(generate(header, f"-isystem{builtin}"))
        restype, argtypes = ns["_FUNCTIONS"]["mlirFlag"]
        assert restype is ctypes.c_bool
        assert argtypes == [ctypes.c_size_t, ctypes.c_int64]
