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

"""Workarounds for build tools missing from the UBI repos."""

__all__ = ("XMLTO_STUB", "apply_xmlto_workaround", "remove_build_requires")


import logging
import os
import pathlib
import re
import stat
from typing import List

from ..utils import rpmglobals
from . import _rundnf

_log = logging.getLogger(__name__)

# Stand-in for xmlto producing placeholder output, so that builds which only
# need it for documentation still succeed.
XMLTO_STUB = """\
#!/bin/bash
# Stub xmlto - creates empty output when real xmlto is unavailable
# Usage: xmlto <format> <input.xml>
format="$1"
input="$2"
output="${input%.xml}"

case "$format" in
    man)
        output="${output}.1"
        echo ".TH \\"${output}\\" 1" > "$output"
        echo ".SH NAME" >> "$output"
        echo "${output} - documentation unavailable (xmlto not installed)" >> "$output"
        ;;
    html|html-nochunks)
        output="${output}.html"
        echo "<html><body><p>Documentation unavailable - xmlto not installed</p></body></html>" > "$output"
        ;;
    *)
        touch "${output}.${format}" 2>/dev/null || touch "$output"
        ;;
esac
exit 0
"""


def remove_build_requires(spec_text: str, dependency: str) -> str:
    """Drop the BuildRequires lines which mention a dependency."""
    pattern = re.compile(
        r"^BuildRequires\s*:.*\b{}\b".format(re.escape(dependency)), re.I
    )
    kept = [
        line
        for line in spec_text.splitlines(keepends=True)
        if not pattern.match(line)
    ]
    return "".join(kept)


def _install_stub(bin_dir: pathlib.Path, name: str, content: str) -> None:
    """Write an executable stub and put its directory first on the PATH."""
    bin_dir.mkdir(parents=True, exist_ok=True)
    stub = bin_dir / name
    stub.write_text(content, encoding="utf-8")
    stub.chmod(stub.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    path = os.environ.get("PATH", "")
    if str(bin_dir) not in path.split(os.pathsep):
        os.environ["PATH"] = os.pathsep.join(p for p in (str(bin_dir), path) if p)
    _log.info("    Created stub %s script at %s", name, stub)


def apply_xmlto_workaround(
    spec: pathlib.Path, topdir: pathlib.Path
) -> List[str]:
    """
    Stub out xmlto if the repos don't provide it.

    The xmlto BuildRequires are removed from the spec, a stub script is put
    on the PATH, and options asking the spec to skip documentation are
    returned.

    :param spec:
        The spec file, edited in place if the workaround is needed.
    :param topdir:
        Top directory of the rpmbuild tree, under which the stub is written.

    :returns:
        Extra rpmbuild options; empty if xmlto is available.

    """
    if _rundnf.is_available("xmlto"):
        return []

    _log.info("INFO: xmlto not available in repos - creating stub script")
    spec.write_text(
        remove_build_requires(spec.read_text(encoding="utf-8"), "xmlto"),
        encoding="utf-8",
    )
    _install_stub(topdir / rpmglobals.STUB_BIN_DIR, "xmlto", XMLTO_STUB)
    return list(rpmglobals.NO_DOCS_BUILD_OPTS)
