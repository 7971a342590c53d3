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

"""Module to build patched RPMs using a container."""

__all__ = (
    "build_image",
    "execute_build",
    "execute_export",
    "system_resource_prep",
)


import itertools
import logging
import os
import pathlib
import shutil
import sys
import tempfile
import textwrap
from typing import List, NoReturn, Optional

from ..builder import _specpatch
from ..utils import buildutils, rpmglobals, subprocs
from ..utils.config import BuildRequest, default_image_tag

logger = logging.getLogger(__name__)
_containertool = "docker"


###############################################################################
#                                Error handling                               #
###############################################################################


def _print_error(line: str) -> None:
    """Print a line of error output."""
    print(line, file=sys.stderr)


def _fatal_error(*msgs: str, prefix: str = "Error: ") -> NoReturn:
    """Exit with an error message."""
    logger.critical("Fatal error: %s", "\n".join(msgs))
    for msg in msgs:
        _print_error(f"{prefix}{msg}")
    sys.exit(1)


def _fatal_error_from_subprocess(
    description: str, error: subprocs.CalledProcessError
) -> NoReturn:
    """
    Exit with an error message derived from a failed subprocess.

    :param description:
        Description of the failed subprocess' purpose, e.g. 'Container build'.
    :param error:
        Error from subprocess.

    """
    cmd = " ".join(error.cmd)
    msgs = [f"{description} '{cmd}' failed with exit code {error.returncode}"]
    # Streamed commands don't capture their output.
    if error.stderr:
        msgs.extend(error.stderr.splitlines())
    _fatal_error(*msgs)


###############################################################################
#                               Container tool                                #
###############################################################################


def _system_resource_check() -> None:
    """
    Checks that the docker tool is available, printing an error if it is not

    """
    global _containertool

    try:
        subprocs.execute([_containertool, "info"], verbose_logging=False)
    except (subprocs.CalledProcessError, FileNotFoundError):
        try:
            # If docker isn't available, try podman
            _containertool = "podman"
            subprocs.execute([_containertool, "info"], verbose_logging=False)
        except (subprocs.CalledProcessError, FileNotFoundError):
            _fatal_error(
                "Enable docker or podman service to allow container build "
                "and run."
            )

    logger.debug("Found working container tool: %s", _containertool)


def _repo_root() -> pathlib.Path:
    """Return the directory holding the Dockerfiles."""
    return pathlib.Path(os.path.abspath(__file__)).parents[3]


def _src_dir() -> pathlib.Path:
    """Return the directory holding the rpmpatch package."""
    return pathlib.Path(os.path.abspath(__file__)).parents[2]


def _find_dockerfile(ubi_version: str) -> pathlib.Path:
    """Return the path to the Dockerfile for a UBI version."""
    path = _repo_root() / rpmglobals.DOCKERFILE_FMT.format(
        ubi_version=ubi_version
    )
    if not path.exists():
        raise RuntimeError(
            "Can't find Dockerfile to build a container image, "
            f"looked here: '{path}'"
        )
    return path


def _image_exists(tag: str) -> bool:
    """Return whether an image with the given tag exists locally."""
    try:
        subprocs.execute(
            [_containertool, "image", "inspect", tag], verbose_logging=False
        )
    except subprocs.CalledProcessError:
        return False
    return True


def _build_image(tag: str, ubi_version: str) -> None:
    """Build the container image for a UBI version with the given tag."""
    dockerfile = _find_dockerfile(ubi_version)
    logger.info(
        "==> Building image '%s' from %s...", tag, dockerfile.name
    )
    try:
        subprocs.execute_streamed(
            [
                _containertool,
                "build",
                "--build-arg",
                "HTTP_PROXY",
                "--build-arg",
                "HTTPS_PROXY",
                "-f",
                str(dockerfile),
                "-t",
                tag,
                str(dockerfile.parent),
            ]
        )
    except subprocs.CalledProcessError as error:
        _fatal_error_from_subprocess("Container build", error)


def _ensure_image(request: BuildRequest) -> str:
    """
    Ensure that there's a container image for the build.

    If there's already an image with the requested tag, use that; otherwise
    build one.

    Returns the tag that can be used to refer to the image in e.g. a `run`
    command.

    """
    image = request.image
    if _image_exists(image):
        logger.info("Reuse existing image, %s", image)
    else:
        logger.info("No image '%s' found, building it", image)
        _build_image(image, request.ubi_version)
    return image


def build_image(
    ubi_version: str, tag: Optional[str] = None, base_dir: str = "."
) -> None:
    """
    Build the container image, and create the patches layout.

    :param ubi_version:
        UBI version to build the image for.
    :param tag:
        Image tag; defaults to the tag for the UBI version.
    :param base_dir:
        Directory the patches layout is created under.

    """
    _system_resource_check()
    for version in rpmglobals.SUPPORTED_UBI_VERSIONS:
        pathlib.Path(base_dir, rpmglobals.PATCHES_ROOT, version).mkdir(
            parents=True, exist_ok=True
        )
    image = tag or default_image_tag(ubi_version)
    try:
        _build_image(image, ubi_version)
    except RuntimeError as error:
        _fatal_error(str(error))
    print(f"==> Built image '{image}' (UBI {ubi_version})")


###############################################################################
#                               Build preparation                             #
###############################################################################


def _ctr_srpm_path(srpm: str) -> str:
    """Location of a local SRPM inside the container."""
    return f"{rpmglobals.CTR_SRPM_DIR}/{os.path.basename(srpm)}"


def system_resource_prep(request: BuildRequest) -> str:
    """
    Convert the request into a yaml file for the build in the container.

    :param request:
        The request with resolved host paths.

    :returns str:
        Path to the yaml file containing the request, in a new temporary
        directory.

    """
    tempdir = tempfile.mkdtemp(prefix="rpmpatch-")
    config_file = os.path.join(tempdir, rpmglobals.CTR_CONFIG_FILE)

    args_dict = request.to_dict()
    args_dict["local"] = True
    args_dict["image_tag"] = None
    args_dict["topdir"] = None
    # Set the locations the host directories are mounted at inside the
    # container
    args_dict["out_directory"] = rpmglobals.CTR_OUT_DIR
    args_dict["patches_directory"] = rpmglobals.CTR_PATCHES_DIR
    if request.srpm:
        args_dict["srpm"] = _ctr_srpm_path(request.srpm)

    buildutils.dump_yaml_arguments(config_file, args_dict)
    return config_file


def _get_volumes_to_mount(request: BuildRequest, infile: str) -> List[str]:
    """
    Container CLI arguments for the volumes the build needs.

    :param request:
        The request with resolved host paths.

    :param infile:
        Path to the yamlfile containing the request

    """
    assert request.out_directory is not None
    assert request.patches_directory is not None
    volumes = [
        f"{_src_dir()}:{rpmglobals.CTR_SRC_DIR}:ro",
        f"{request.out_directory}:{rpmglobals.CTR_OUT_DIR}",
        f"{request.patches_directory}:{rpmglobals.CTR_PATCHES_DIR}:ro",
        f"{os.path.dirname(infile)}:{rpmglobals.CTR_CONFIG_DIR}:ro",
    ]
    if request.srpm:
        volumes.append(f"{request.srpm}:{_ctr_srpm_path(request.srpm)}:ro")
    return list(
        itertools.chain.from_iterable(["-v", vol] for vol in volumes)
    )


def _container_cmd(request: BuildRequest, infile: str, image: str) -> List[str]:
    """The command to run the build in the container."""
    cmd = [_containertool, "run", "--rm"]
    cmd.extend(_get_volumes_to_mount(request, infile))
    cmd.extend(
        [
            image,
            "python3",
            "-m",
            "rpmpatch",
            "build",
            "--local",
            "--yamlfile",
            f"{rpmglobals.CTR_CONFIG_DIR}/{rpmglobals.CTR_CONFIG_FILE}",
        ]
    )
    return cmd


def _check_patches(request: BuildRequest) -> int:
    """Check the patch set on the host and return its size."""
    assert request.patches_directory is not None
    patches_dir = pathlib.Path(request.patches_directory)
    if not patches_dir.is_dir():
        _fatal_error(
            f"Patches directory not found: {patches_dir}",
            "Create it and put your *.patch files there, or use "
            "'rpmpatch export' to get the source to patch.",
        )
    try:
        patches = _specpatch.find_patches(patches_dir)
    except _specpatch.EmptyPatchSetError as error:
        logger.critical("Fatal error: %s", error)
        _print_error(f"Error: {error}")
        sys.exit(rpmglobals.EXIT_EMPTY_PATCH_SET)
    logger.info("==> Found %d patch(es) in %s", len(patches), patches_dir)
    return len(patches)


def _clean_source_export(request: BuildRequest, image: str) -> None:
    """
    Remove a previous source export.

    Files written by the container are owned by root, so remove them through
    the container, falling back to a local remove.

    """
    assert request.out_directory is not None
    source_dir = pathlib.Path(
        request.out_directory, rpmglobals.SOURCE_EXPORT_DIR
    )
    if not source_dir.exists():
        return
    logger.info("==> Removing previous source export %s", source_dir)
    try:
        subprocs.execute(
            [
                _containertool,
                "run",
                "--rm",
                "-v",
                f"{request.out_directory}:{rpmglobals.CTR_OUT_DIR}",
                image,
                "rm",
                "-rf",
                f"{rpmglobals.CTR_OUT_DIR}/{rpmglobals.SOURCE_EXPORT_DIR}",
            ],
            verbose_logging=False,
        )
    except subprocs.CalledProcessError:
        logger.debug("Container remove failed, removing locally")
        shutil.rmtree(source_dir, ignore_errors=True)


###############################################################################
#                                   Summary                                   #
###############################################################################


def _print_build_summary(out_dir: pathlib.Path) -> None:
    """Print where the built artifacts are."""
    print("\n==> Build complete!")
    for subdir in rpmglobals.ARTIFACT_DIRS:
        artifact_dir = out_dir / subdir
        print(f"{subdir}: {artifact_dir}/")
        if artifact_dir.is_dir():
            for rpm in sorted(artifact_dir.rglob("*.rpm")):
                print(f"  {rpm.relative_to(artifact_dir)}")


def _print_export_summary(request: BuildRequest, out_dir: pathlib.Path) -> None:
    """Print the extracted source directories and what to do next."""
    source_dir = out_dir / rpmglobals.SOURCE_EXPORT_DIR
    print("\n==> Source exported!")
    print(f"Source location: {source_dir}/")
    if source_dir.is_dir():
        for entry in sorted(source_dir.iterdir()):
            if entry.is_dir() and entry.name != rpmglobals.RPM_METADATA_DIR:
                print(f"  {entry.name}/")
    print(
        textwrap.dedent(
            f"""
            Next steps:
              1. Make your changes under {source_dir}/<package-dir>
              2. Create patches with 'git format-patch'
              3. Put them in {request.patches_directory}/
              4. rpmpatch build --ubi-version {request.ubi_version} {request.package}"""
        )
    )


###############################################################################
#                                    Main                                     #
###############################################################################


def _execute(request: BuildRequest) -> None:
    """
    Set up the volumes and request file, then run the build or export in the
    container.

    """
    assert request.out_directory is not None
    assert request.patches_directory is not None
    logger.debug("Running with: %s", request)

    _system_resource_check()
    if request.srpm and not os.path.isfile(request.srpm):
        _fatal_error(f"SRPM file not found: {request.srpm}")

    if request.export_only:
        pathlib.Path(request.patches_directory).mkdir(
            parents=True, exist_ok=True
        )
    else:
        _check_patches(request)

    out_dir = pathlib.Path(request.out_directory)
    out_dir.mkdir(parents=True, exist_ok=True)

    logger.info("Setting up container environment...")
    image = _ensure_image(request)
    logger.info("Container Image: %s", image)
    if request.export_only:
        _clean_source_export(request, image)

    infile = system_resource_prep(request)
    try:
        mode = "source export" if request.export_only else "RPM build"
        logger.info(
            "\nRunning %s for %s (UBI %s, %s)...",
            mode,
            request.package,
            request.ubi_version,
            request.srpm_source,
        )
        try:
            subprocs.execute_streamed(_container_cmd(request, infile, image))
        except subprocs.CalledProcessError as error:
            _fatal_error_from_subprocess(
                "Source export" if request.export_only else "RPM build", error
            )
    finally:
        shutil.rmtree(os.path.dirname(infile), ignore_errors=True)

    if request.export_only:
        _print_export_summary(request, out_dir)
    else:
        _print_build_summary(out_dir)


def execute_build(request: BuildRequest) -> None:
    """Execute build and handle exceptions."""
    try:
        _execute(request)
    except Exception as exc:
        logger.exception("Exiting with an unhandled error:")
        _fatal_error(f"rpmpatch failed: {str(exc)}", prefix="")


def execute_export(request: BuildRequest) -> None:
    """Execute a source export and handle exceptions."""
    request.export_only = True
    execute_build(request)
