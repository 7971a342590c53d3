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

"""Tool to co-ordinate rebuilding a package with patches."""

__all__ = ("run",)


import logging
import os
import pathlib
import shutil
import sys
import tempfile
import textwrap
from typing import List

from ..utils import buildutils, rpmglobals
from ..utils.config import BuildRequest
from . import _export, _rundnf, _runrpm, _specpatch, _srpm, _workarounds

###############################################################################
#                               Global variables                              #
###############################################################################

_log = logging.getLogger(__name__)


###############################################################################
#                               Custom exceptions                             #
###############################################################################


class SpecNotFoundError(Exception):
    """The installed SRPM didn't provide a spec for the package"""

    def __init__(self, specs_dir: pathlib.Path, package: str) -> None:
        """Initialise a SpecNotFoundError"""
        super().__init__(
            "No spec file matching {}*.spec found in {}".format(
                package, specs_dir
            )
        )


###############################################################################
#                                  Helpers                                    #
###############################################################################


def _topdir(request: BuildRequest) -> pathlib.Path:
    """The rpmbuild tree to use."""
    return pathlib.Path(
        os.path.expanduser(request.topdir or rpmglobals.DEFAULT_TOPDIR)
    )


def _find_spec(topdir: pathlib.Path, package: str) -> pathlib.Path:
    """Find the spec file the SRPM installed."""
    specs_dir = topdir / "SPECS"
    specs = sorted(specs_dir.glob(f"{package}*.spec"))
    if not specs:
        raise SpecNotFoundError(specs_dir, package)
    return specs[0]


def _copy_patches(
    patches: List[pathlib.Path], sources_dir: pathlib.Path
) -> None:
    """Copy the patch set to where rpmbuild looks for sources."""
    _log.info("==> Copying patches into SOURCES...")
    for patch in patches:
        shutil.copy2(patch, sources_dir / patch.name)
        _log.info("    %s -> %s", patch, sources_dir / patch.name)


def _install_build_deps(spec: pathlib.Path) -> None:
    """
    Install the spec's build dependencies.

    If dnf builddep fails as a whole, try each BuildRequires in turn and
    skip the ones that aren't available.

    """
    _log.info("==> Installing build dependencies...")
    try:
        _rundnf.builddep(spec)
        return
    except _rundnf.BuildDepError as error:
        _log.warning(
            "WARNING: Some build dependencies could not be installed: %s",
            error,
        )
        _log.warning(
            "Attempting to install available dependencies and skip "
            "unavailable ones..."
        )

    for dep in _rundnf.parse_build_requires(spec.read_text(encoding="utf-8")):
        try:
            _rundnf.install_package(dep)
        except _rundnf.InstallPackageError:
            _log.warning("    Skipping unavailable: %s", dep)


def _copy_artifacts(topdir: pathlib.Path, out_dir: pathlib.Path) -> None:
    """Copy the built RPMs and SRPMs to the output directory."""
    _log.info("==> Copying artifacts to %s...", out_dir)
    for subdir in rpmglobals.ARTIFACT_DIRS:
        src = topdir / subdir
        if src.is_dir():
            buildutils.copy_tree_contents(src, out_dir / subdir)
        else:
            _log.warning("    No %s directory in %s", subdir, topdir)


def _print_export_workflow(dest: pathlib.Path, package: str) -> None:
    """Tell the user how to turn source changes into patches."""
    print(
        textwrap.dedent(
            f"""
            =========================================
            ==> Source exported successfully!
            =========================================

            Source location: {dest}/
            Spec file: {dest / rpmglobals.RPM_METADATA_DIR}/SPECS/
            Original tarballs: {dest / rpmglobals.RPM_METADATA_DIR}/SOURCES/

            WORKFLOW TO CREATE PATCHES:
            ---------------------------
            1. cd out/<ubi-version>/source/<package-dir>
            2. git init
            3. git add .
            4. git commit -m 'Original source'
            5. Make your changes to the code
            6. git add .
            7. git commit -m 'Description of your changes'
            8. git format-patch -1 HEAD
            9. mv *.patch ../../../patches/<ubi-version>/{package}/
            10. cd ../../..
            11. rpmpatch build --ubi-version <ubi-version> {package}
            """
        )
    )


###############################################################################
#                                    Main                                     #
###############################################################################


def _run(request: BuildRequest, work_dir: pathlib.Path) -> None:
    """Run the export or build described by the request."""
    assert request.out_directory is not None
    assert request.patches_directory is not None
    out_dir = pathlib.Path(request.out_directory)
    mode = "Exporting source" if request.export_only else "Building RPM"
    _log.info(
        "==> %s for package: %s (%s)",
        mode,
        request.package,
        request.srpm_source,
    )

    patches: List[pathlib.Path] = []
    if not request.export_only:
        patches = _specpatch.find_patches(
            pathlib.Path(request.patches_directory)
        )
        buildutils.log_files(patches, "patch set")

    topdir = _runrpm.setup_tree(_topdir(request))
    srpm = _srpm.acquire_srpm(request, work_dir)

    _log.info("==> Installing SRPM into rpmbuild tree...")
    _log.info("    Found: %s", srpm)
    _runrpm.install_srpm(srpm, topdir)

    spec = _find_spec(topdir, request.package)
    _log.info("==> Using spec: %s", spec)

    if request.export_only:
        dest = _export.export_source(topdir, request.package, out_dir)
        _print_export_workflow(dest, request.package)
        return

    _copy_patches(patches, topdir / "SOURCES")
    _log.info("==> Injecting Patch tags into spec...")
    _specpatch.inject_file(spec, [p.name for p in patches])

    # The release is not bumped: the patched RPM keeps the
    # original NVR.
    build_opts = _workarounds.apply_xmlto_workaround(spec, topdir)
    _install_build_deps(spec)

    _log.info("==> Building RPMs...")
    _runrpm.rpmbuild(spec, topdir, build_opts)

    _copy_artifacts(topdir, out_dir)
    _log.info(
        "==> Done. Artifacts are in %s (mount a volume to collect them).",
        out_dir,
    )


def run(request: BuildRequest) -> int:
    """
    Export or rebuild a package.

    :param request:
        The build request, with resolved paths.

    :returns:
        Exit code for the process.

    """
    try:
        with tempfile.TemporaryDirectory(prefix="rpmpatch-") as work_dir:
            _run(request, pathlib.Path(work_dir))
    except _specpatch.EmptyPatchSetError as error:
        _log.error("ERROR: %s", error)
        print(
            "       Put patch files under "
            "./patches/<ubi-version>/<package-name>/ before running.",
            file=sys.stderr,
        )
        return rpmglobals.EXIT_EMPTY_PATCH_SET
    except (
        _specpatch.SpecPatchError,
        _srpm.SrpmError,
        _runrpm.ToolError,
        _export.ExportError,
        SpecNotFoundError,
        OSError,
    ) as error:
        _log.error("ERROR: %s", error)
        return 1
    return 0
