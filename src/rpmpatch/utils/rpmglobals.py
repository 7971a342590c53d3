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

"""rpmpatch globals."""

from typing import Literal, Tuple, get_args

UbiVersion = Literal["8", "9", "10"]
SUPPORTED_UBI_VERSIONS: Tuple[str, ...] = get_args(UbiVersion)
DEFAULT_UBI_VERSION = "10"

# Container globals.
# The UBI 10 image keeps the bare name; other versions get a suffix.
IMAGE_NAME = "rpm-builder"
DOCKERFILE_FMT = "Dockerfile.ubi{ubi_version}"

# Mount points inside the container.
CTR_OUT_DIR = "/out"
CTR_PATCHES_DIR = "/patches"
CTR_SRPM_DIR = "/srpm"
CTR_SRC_DIR = "/app/src"
CTR_CONFIG_DIR = "/rpmpatch-config"
CTR_CONFIG_FILE = "request.yaml"

# Host-side directory layout, relative to the working directory.
OUT_ROOT = "out"
PATCHES_ROOT = "patches"

# Layout of the output directory.
LOG_DIR = "logs"
SOURCE_EXPORT_DIR = "source"
RPM_METADATA_DIR = "_rpm_metadata"
ARTIFACT_DIRS = ("RPMS", "SRPMS")

# rpmbuild tree.
DEFAULT_TOPDIR = "~/rpmbuild"
RPMBUILD_SUBDIRS = ("BUILD", "RPMS", "SOURCES", "SPECS", "SRPMS")
STUB_BIN_DIR = ".rpmpatch-bin"

# Patch injection.
PATCH_GLOB = "*.patch"
PATCH_TAG_BASE = 900
PATCH_STRIP_FLAG = "-p1"

# Options passed to rpmbuild when documentation tooling is stubbed out.
NO_DOCS_BUILD_OPTS = (
    "--without",
    "doc",
    "--without",
    "docs",
    "--without",
    "xmlto",
)

EXIT_EMPTY_PATCH_SET = 2
