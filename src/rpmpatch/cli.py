# -----------------------------------------------------------------------------
# BSD 3-Clause License
#
# Copyright (c) 2024-2025, Cisco Systems, Inc. and its affiliates
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice, this
#    list of conditions and the following disclaimer.
#
# 2. Redistributions in binary form must reproduce the above copyright notice,
#    this list of conditions and the following disclaimer in the documentation
#    and/or other materials provided with the distribution.
#
# 3. Neither the name of the [organization] nor the names of its contributors
#    may be used to endorse or promote products derived from this software
#    without specific prior written permission.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE
# DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE LIABLE
# FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
# DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS OR
# SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER
# CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY,
# OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE
# OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
# -----------------------------------------------------------------------------

"""Utility to rebuild RPMs with patches applied."""

import sys

try:
    assert sys.version_info >= (3, 8)
except AssertionError:
    print("This tool requires python version 3.8 or higher")
    sys.exit(-1)
import argparse
import logging
import os
import pathlib
from typing import Any, Dict, List, Optional, Tuple

from . import __version__
from .utils import buildutils, rpmglobals
from .utils.config import BuildRequest
from .validate import ValidateError

MODULE_NAME = "rpmpatch"
_HOST_LOGFILE = "rpmpatch.log"
_BUILDER_LOGFILE = "rpmpatch-builder.log"
logger = logging.getLogger(MODULE_NAME)

# Parsed options which are not fields of a build request.
_NON_REQUEST_ARGS = {"command", "cli_yaml", "tag"}


class InvalidArgsError(Exception):
    """General error for invalid CLI args."""


def _add_ubi_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--ubi-version",
        "--ubi",
        dest="ubi_version",
        choices=rpmglobals.SUPPORTED_UBI_VERSIONS,
        default=None,
        help="UBI version to build for (default: {})".format(
            rpmglobals.DEFAULT_UBI_VERSION
        ),
    )


def _add_build_options(parser: argparse.ArgumentParser) -> None:
    """Add the options shared by the build and export commands."""
    parser.add_argument(
        "package", nargs="?", default=None, help="Name of the package"
    )
    parser.add_argument(
        "tag",
        nargs="?",
        default=None,
        help="Container image tag (default depends on the UBI version)",
    )
    _add_ubi_option(parser)
    parser.add_argument(
        "--version",
        "-v",
        dest="version",
        default=None,
        help="Package version-release to download from the repos, e.g. "
        "2.5.0-1.el9 (default: latest)",
    )
    parser.add_argument(
        "--url",
        "-u",
        dest="url",
        default=None,
        help="URL to download the SRPM from (e.g. Koji, CentOS Vault)",
    )
    parser.add_argument(
        "--srpm",
        "-s",
        dest="srpm",
        default=None,
        help="Path to a local SRPM file",
    )
    parser.add_argument(
        "--export-only",
        "--source-only",
        dest="export_only",
        action="store_true",
        default=False,
        help="Extract the source for patch development instead of building",
    )
    parser.add_argument(
        "--out-directory",
        dest="out_directory",
        default=None,
        help="Directory to put the artifacts in (default: out/<ubi-version>)",
    )
    parser.add_argument(
        "--patches-directory",
        dest="patches_directory",
        default=None,
        help="Directory holding the *.patch files "
        "(default: patches/<ubi-version>/<package>)",
    )
    parser.add_argument(
        "--topdir",
        dest="topdir",
        default=None,
        help="rpmbuild top directory used by local builds "
        "(default: {})".format(rpmglobals.DEFAULT_TOPDIR),
    )
    parser.add_argument(
        "--local",
        dest="local",
        action="store_true",
        default=False,
        help="Build in this environment instead of in a container",
    )
    parser.add_argument(
        "--yamlfile",
        dest="cli_yaml",
        default=None,
        help="Build options via yaml",
    )
    parser.add_argument(
        "--debug",
        dest="debug",
        action="store_true",
        default=False,
        help="Output debug logs to console",
    )


def parsecli(
    argv: Optional[List[str]] = None,
) -> Tuple[argparse.Namespace, argparse.ArgumentParser]:
    """Parse CLI options."""
    parser = argparse.ArgumentParser(
        prog="rpmpatch",
        description="Rebuild RPMs from source RPMs with your patches applied.",
    )
    version_string = "%%(prog)s (version %s)" % (__version__)
    parser.add_argument(
        "--version",
        action="version",
        help="Print version of this script and exit",
        version=version_string,
    )
    subparsers = parser.add_subparsers(dest="command", metavar="command")
    subparsers.required = True

    image = subparsers.add_parser(
        "image", help="Build the container image for a UBI version"
    )
    _add_ubi_option(image)
    image.add_argument(
        "tag",
        nargs="?",
        default=None,
        help="Image tag (default depends on the UBI version)",
    )

    build = subparsers.add_parser(
        "build", help="Rebuild a package with the patches applied"
    )
    _add_build_options(build)

    export = subparsers.add_parser(
        "export", help="Extract a package's source for patch development"
    )
    _add_build_options(export)

    inject = subparsers.add_parser(
        "inject", help="Add the patches in a directory to a spec file"
    )
    inject.add_argument(
        "--spec", dest="spec", required=True, help="Spec file to edit"
    )
    inject.add_argument(
        "--patches",
        dest="patches",
        required=True,
        help="Directory holding the *.patch files",
    )
    inject.add_argument(
        "--output",
        dest="output",
        default=None,
        help="Write the edited spec here instead of in place",
    )

    pargs = parser.parse_args(argv)
    return pargs, parser


def _merge_yaml_args(cli_args: argparse.Namespace) -> Dict[str, Any]:
    """
    Build the request options from the YAML file, if given, and the CLI.

    Options given on the CLI override the YAML file.

    """
    if cli_args.cli_yaml:
        options = buildutils.load_yaml_arguments(cli_args.cli_yaml)
    else:
        options = {}
    options.update(
        {
            key: value
            for key, value in cli_args.__dict__.items()
            if key not in _NON_REQUEST_ARGS
            and value is not None
            and value is not False
        }
    )
    if cli_args.tag is not None:
        options["image_tag"] = cli_args.tag
    if cli_args.command == "export":
        options["export_only"] = True
    return options


def validate_and_setup_args(request: BuildRequest) -> BuildRequest:
    """Check the SRPM source exists and drop the sources it overrides."""
    if request.srpm:
        if not os.path.isfile(request.srpm):
            raise InvalidArgsError(f"SRPM file not found: {request.srpm}")
        if request.url:
            logger.warning(
                "Warning: Both --srpm and --url given; using --srpm and "
                "ignoring --url"
            )
            request.url = None
        if request.version:
            logger.warning(
                "Warning: --version is ignored when --srpm is given"
            )
            request.version = None
    elif request.url and request.version:
        logger.warning("Warning: --version is ignored when --url is given")
        request.version = None

    return request


def _setup_logging(request: BuildRequest) -> None:
    """Log to the console and to a file under the output directory."""
    assert request.out_directory is not None
    buildutils.init_logging(
        os.path.join(request.out_directory, rpmglobals.LOG_DIR),
        _BUILDER_LOGFILE if request.local else _HOST_LOGFILE,
        debug=request.debug,
    )
    buildutils.initialize_console_logging()


def _run_inject(cli_args: argparse.Namespace) -> int:
    """Run the spec injector on a spec file."""
    from . import builder

    spec = pathlib.Path(cli_args.spec)
    if not spec.is_file():
        print(f"Error: Spec file not found: {spec}", file=sys.stderr)
        return 1
    try:
        patches = builder.find_patches(pathlib.Path(cli_args.patches))
        text = builder.inject(
            spec.read_text(encoding="utf-8"), [p.name for p in patches]
        )
    except builder.EmptyPatchSetError as error:
        print(f"Error: {error}", file=sys.stderr)
        return rpmglobals.EXIT_EMPTY_PATCH_SET
    except builder.SpecPatchError as error:
        print(f"Error: {spec}: {error}", file=sys.stderr)
        return 1

    output = pathlib.Path(cli_args.output) if cli_args.output else spec
    output.write_text(text, encoding="utf-8")
    print(f"Injected {len(patches)} patch(es) into {output}")
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Parse CLI options and run the requested command."""
    cli_args, parser = parsecli(argv)

    if cli_args.command == "inject":
        sys.exit(_run_inject(cli_args))

    if cli_args.command == "image":
        from .launcher import build_image

        build_image(
            cli_args.ubi_version or rpmglobals.DEFAULT_UBI_VERSION,
            cli_args.tag,
        )
        return

    try:
        options = _merge_yaml_args(cli_args)
    except (AssertionError, OSError) as error:
        parser.error(str(error))
    if not options.get("package"):
        parser.error("Package name is required")

    try:
        request = BuildRequest.from_dict(options)
    except ValidateError as error:
        parser.error(str(error))
    request.resolve_paths(os.getcwd())
    try:
        request = validate_and_setup_args(request)
    except InvalidArgsError as error:
        print(f"Error: {error}", file=sys.stderr)
        sys.exit(1)

    _setup_logging(request)

    if request.local:
        from . import builder

        builder.run(request)
    else:
        from . import launcher

        launcher.execute_build(request)


if __name__ == "__main__":
    main()
