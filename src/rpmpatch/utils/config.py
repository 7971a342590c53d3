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

"""Build request handling, from the command line or a YAML file."""

__all__ = ("BuildRequest", "default_image_tag")


import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..validate import validate
from . import rpmglobals

# Options whose YAML spelling may use hyphens instead of underscores.
_HYPHENATED_KEYS = {
    "ubi-version": "ubi_version",
    "export-only": "export_only",
    "source-only": "export_only",
    "image-tag": "image_tag",
    "out-directory": "out_directory",
    "patches-directory": "patches_directory",
}


@dataclass
class BuildRequest:
    """
    Representation of one package build or source export.

    Directory fields left as None are resolved to the default layout under
    the current working directory by :meth:`resolve_paths`.
    """

    package: str
    ubi_version: rpmglobals.UbiVersion = rpmglobals.DEFAULT_UBI_VERSION
    version: Optional[str] = None
    url: Optional[str] = None
    srpm: Optional[str] = None
    export_only: bool = False
    image_tag: Optional[str] = None
    out_directory: Optional[str] = None
    patches_directory: Optional[str] = None
    topdir: Optional[str] = None
    local: bool = False
    debug: bool = False

    @classmethod
    def from_dict(cls, ydict: Dict[str, Any]) -> "BuildRequest":
        """Create a BuildRequest class from a dictionary."""
        data: Dict[str, Any] = {}
        for key, value in (ydict or {}).items():
            key = _HYPHENATED_KEYS.get(key, key)
            if value is None:
                continue
            data[key] = value

        # YAML users naturally write "ubi-version: 9".
        if isinstance(data.get("ubi_version"), int):
            data["ubi_version"] = str(data["ubi_version"])

        return validate.create(cls, data)

    def to_dict(self) -> Dict[str, Any]:
        """Return the request as a plain dictionary, suitable for YAML."""
        return dict(self.__dict__)

    @property
    def image(self) -> str:
        """The container image tag used for this request."""
        if self.image_tag:
            return self.image_tag
        return default_image_tag(self.ubi_version)

    @property
    def srpm_source(self) -> str:
        """Describe where the SRPM comes from, for user-facing messages."""
        if self.srpm:
            return "local SRPM"
        elif self.url:
            return "from URL"
        elif self.version:
            return f"version: {self.version}"
        else:
            return "latest"

    def resolve_paths(self, base_dir: str) -> None:
        """
        Fill in the default output and patches directories.

        :param base_dir:
            Directory the default layout lives under.

        """
        if self.out_directory is None:
            self.out_directory = os.path.join(
                base_dir, rpmglobals.OUT_ROOT, self.ubi_version
            )
        if self.patches_directory is None:
            self.patches_directory = os.path.join(
                base_dir, rpmglobals.PATCHES_ROOT, self.ubi_version, self.package
            )
        self.out_directory = os.path.abspath(self.out_directory)
        self.patches_directory = os.path.abspath(self.patches_directory)
        if self.srpm:
            self.srpm = os.path.abspath(self.srpm)


def default_image_tag(ubi_version: str) -> str:
    """Return the default image tag for a UBI version."""
    if ubi_version == rpmglobals.DEFAULT_UBI_VERSION:
        return rpmglobals.IMAGE_NAME
    return f"{rpmglobals.IMAGE_NAME}-ubi{ubi_version}"
