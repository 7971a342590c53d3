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

"""Check that the requirements of the rpmpatch builder are met."""

import importlib
import os
import re
import shutil
import subprocess
import sys
from typing import Any, Dict, List, Optional, Tuple

import yaml

_script_dir = os.path.dirname(os.path.abspath(__file__))

_requirements_yaml = os.path.join(_script_dir, "requirements.yaml")


class RequirementsParsingError(Exception):
    """
    Error raised if an error occurs reading in the requirements.

    """

    def __init__(self, description: str) -> None:
        super().__init__(description)
        self.description = description

    def __str__(self) -> str:
        return (
            f"Error parsing the requirements YAML ({_requirements_yaml}):"
            f" {self.description}"
        )


def _get_named_entries(
    requirements: Dict[str, Any], key: str, what: str
) -> List[Dict[str, Any]]:
    """
    Get a list of entries, each a dictionary with a string 'name'.

    :param requirements:
        Requirements as loaded from the requirements YAML.
    :param key:
        Top-level key of the list.
    :param what:
        Description of the entries for error messages.

    """
    entries = requirements.get(key)
    if not isinstance(entries, list):
        raise RequirementsParsingError(f"Couldn't get list of required {what}")
    if not all(
        isinstance(entry, dict) and isinstance(entry.get("name"), str)
        for entry in entries
    ):
        raise RequirementsParsingError(f"Malformed list of {what}")
    return entries


def _get_required_modules(requirements: Dict[str, Any]) -> List[str]:
    """Names of the python modules required by the builder."""
    return [
        module["name"]
        for module in _get_named_entries(
            requirements, "python_modules", "python modules"
        )
    ]


def _get_required_executables(requirements: Dict[str, Any]) -> List[str]:
    """Names of the non-optional executables required by the builder."""
    return [
        executable["name"]
        for executable in _get_named_entries(
            requirements, "executable_requirements", "executables"
        )
        if not executable.get("optional", False)
    ]


def _get_minimum_executable_version(
    executable_name: str,
    requirements: Dict[str, Any],
    display_name: Optional[str] = None,
) -> Tuple[int, int]:
    """
    Parse the requirements to find the minimum required version of the given
    executable.

    :returns:
        Minimum executable version as a tuple of (major-version, minor-version)
    """
    if display_name is None:
        display_name = executable_name

    matching = [
        executable
        for executable in _get_named_entries(
            requirements, "executable_requirements", "executables"
        )
        if executable["name"] == executable_name
    ]
    if len(matching) != 1:
        raise RequirementsParsingError(
            f"Could not find {display_name} version requirements"
        )
    if "min_version" not in matching[0]:
        raise RequirementsParsingError(
            f"Could not find minimum {display_name} version"
        )

    version = re.match(
        r"(?P<major>\d+)\.(?P<minor>\d+)", str(matching[0]["min_version"])
    )
    if not version:
        raise RequirementsParsingError(
            f"Could not parse minimum {display_name} version"
        )
    return int(version.group("major")), int(version.group("minor"))


def _rpm_version() -> Optional[Tuple[int, int]]:
    """Return the installed rpm version, or None if it can't be found."""
    try:
        proc = subprocess.run(
            ["rpm", "--version"],
            stdout=subprocess.PIPE,
            encoding="utf-8",
            errors="replace",
            check=True,
        )
    except (subprocess.CalledProcessError, OSError):
        return None
    match = re.match(
        r"RPM version (?P<major>\d+)\.(?P<minor>\d+)", proc.stdout
    )
    if match is None:
        return None
    return int(match.group("major")), int(match.group("minor"))


def load_requirements(path: str = _requirements_yaml) -> Dict[str, Any]:
    """Load and sanity check the requirements YAML."""
    with open(path, encoding="utf-8") as f:
        requirements = yaml.safe_load(f)
    if not isinstance(requirements, dict):
        raise RequirementsParsingError("Parsed data is not a dictionary")
    if not all(isinstance(key, str) for key in requirements):
        raise RequirementsParsingError(
            "Parsed data is not a dictionary of the expected type"
        )
    return requirements


def check_requirements(
    requirements: Optional[Dict[str, Any]] = None,
) -> Tuple[List[str], Dict[str, Any]]:
    """
    Try to import each python module and find each executable the builder
    needs, returning any that are not available.

    :param requirements:
        Requirements to check; loaded from the packaged YAML if not given.

    :returns:
        Tuple of the list of missing requirements and the full requirements.

    """
    if requirements is None:
        requirements = load_requirements()
    missing_deps: List[str] = []

    for module in _get_required_modules(requirements):
        try:
            importlib.import_module(module)
        except ImportError:
            missing_deps.append(module)

    for exc in _get_required_executables(requirements):
        if shutil.which(exc) is None:
            missing_deps.append(exc)

    min_python = _get_minimum_executable_version(
        "python3", requirements, "python"
    )
    if sys.version_info[:2] < min_python:
        missing_deps.append("python >= {}.{}".format(*min_python))

    min_rpm = _get_minimum_executable_version("rpm", requirements)
    if "rpm" not in missing_deps:
        rpm_version = _rpm_version()
        if rpm_version is None or rpm_version < min_rpm:
            missing_deps.append("rpm >= {}.{}".format(*min_rpm))

    return missing_deps, requirements
