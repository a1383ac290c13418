# SPDX-License-Identifier: MIT
"""Command-line interface for mlirsys.

Run from a build script to discover MLIR, print link directives on stdout
and write ctypes bindings into the build output directory:

    OUT_DIR=build/gen python -m mlirsys
    python -m mlirsys --format flags --out-dir build/gen
"""

from __future__ import annotations

import argparse
import logging
import shlex
import sys
from typing import TYPE_CHECKING

from mlirsys.configure.config import OUTPUT_FORMATS, Config
from mlirsys.core.directives import (
    CargoWriter,
    DirectiveLog,
    Metadata,
    RerunIfChanged,
)
from mlirsys.core.errors import MlirSysError
from mlirsys.generators.bindings import BindingGenerator, Bindings, CargoCallbacks
from mlirsys.generators.link_flags import render_link_flags
from mlirsys.toolchains.linkline import LinkLineSynthesizer
from mlirsys.toolchains.llvm_config import (
    LlvmConfig,
    check_version,
    clang_builtin_include,
)

if TYPE_CHECKING:
    from mlirsys.core.directives import DirectiveSink
    from mlirsys.toolchains.llvm_config import Prober

# Set up logging
logger = logging.getLogger("mlirsys")


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure logging based on verbosity level."""
    if debug:
        level = logging.DEBUG
        fmt = "%(levelname)s: %(name)s: %(message)s"
    elif verbose:
        level = logging.INFO
        fmt = "%(levelname)s: %(message)s"
    else:
        level = logging.WARNING
        fmt = "%(levelname)s: %(message)s"

    logging.basicConfig(level=level, format=fmt, stream=sys.stderr)


def allowlist_pattern(library: str) -> str:
    """Identifier pattern for a library's C API.

    Examples:
        >>> allowlist_pattern("MLIR")
        '[Mm]lir.*'
    """
    first = library[0]
    return f"[{first.upper()}{first.lower()}]{library[1:].lower()}.*"


def generate_bindings(
    config: Config,
    prober: Prober,
    sink: DirectiveSink,
    prefix: str | None = None,
) -> Bindings:
    """Generate ctypes bindings for the wrapper header.

    Args:
        config: Run configuration.
        prober: llvm-config to query for the include directory.
        sink: Receives a rebuild trigger for every parsed header.
        prefix: Installation prefix, searched first for clang's builtin
            headers before falling back to a clang on PATH.

    Returns:
        The generated bindings, already written to config.bindings_path().
    """
    output = config.bindings_path()
    generator = (
        BindingGenerator()
        .header(config.header)
        .clang_arg(f"-I{prober.includedir()}")
        .clang_arg(f"-DMLIR_SYS_MAJOR_VERSION={config.major}")
        .parse_callbacks(CargoCallbacks(sink))
        .allowlist_item(allowlist_pattern(config.library))
    )
    builtin = clang_builtin_include(config.major, prefix)
    if builtin is not None:
        generator.clang_arg(f"-isystem{builtin}")

    bindings = generator.generate()
    bindings.write_to_file(output)
    return bindings


def run(
    config: Config,
    prober: Prober | None = None,
    sink: DirectiveSink | None = None,
) -> None:
    """Discover MLIR, emit link directives and generate bindings.

    Raises:
        MlirSysError: On any failure; directives emitted before the
            failure are not retracted.
    """
    if prober is None:
        prober = LlvmConfig(config.prefix)
    if sink is None:
        sink = CargoWriter()

    check_version(prober, config.major)

    prefix = prober.prefix_dir()
    sink.emit(Metadata("PREFIX", prefix))
    sink.emit(Metadata("CMAKE_DIR", prober.cmake_dir()))
    sink.emit(RerunIfChanged(str(config.header)))

    LinkLineSynthesizer(sink, config.library).synthesize(prober, config.platform)
    generate_bindings(config, prober, sink, prefix=prefix)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the mlirsys CLI."""
    parser = argparse.ArgumentParser(
        prog="mlirsys",
        description="Link against an installed MLIR and generate ctypes bindings.",
    )
    from mlirsys import __version__

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--debug", action="store_true", help="Debug output")
    parser.add_argument(
        "-o",
        "--out-dir",
        help="Directory for generated bindings (default: $OUT_DIR)",
    )
    parser.add_argument(
        "--prefix",
        help="MLIR installation prefix (default: $MLIR_SYS_<MAJOR>0_PREFIX or PATH)",
    )
    parser.add_argument("--header", help="Wrapper header to generate bindings for")
    parser.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        help="Print build-script directives (cargo) or a linker command line (flags)",
    )

    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose, debug=args.debug)

    try:
        config = Config.from_env(
            out_dir=args.out_dir,
            prefix=args.prefix,
            header=args.header,
            output_format=args.format,
        )
        logger.debug("%r", config)

        if config.output_format == "flags":
            log = DirectiveLog()
            run(config, sink=log)
            print(shlex.join(render_link_flags(log, config.platform)))
        else:
            run(config)
    except MlirSysError as e:
        print(e, file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
