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

"""Tool to check the environment and then run the package build."""

import sys
from typing import Any, Dict

from ..utils.config import BuildRequest
from . import check_requirements


def _check_requirements() -> Dict[str, Any]:
    """
    Check that all required python modules and executables are present.
    """
    # Prior to importing the full tool set, check that all requirements are met
    missing_reqs, full_reqs = check_requirements.check_requirements()
    if len(missing_reqs) != 0:
        print(
            "rpmpatch failed: Missing environment requirements {}".format(
                ", ".join(missing_reqs)
            ),
            file=sys.stderr,
        )
        sys.exit(1)
    return full_reqs


def run(request: BuildRequest) -> None:
    """
    Export or rebuild a package in this environment.

    :param request:
        The build request, with resolved paths.

    """
    _check_requirements()
    # Need to import after checking requirements so that we don't import
    # everything else which uses our requirements.
    from . import _coordinate

    sys.exit(_coordinate.run(request))
