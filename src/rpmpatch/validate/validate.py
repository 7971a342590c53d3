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

"""
Dataclass validation.

Provides :func:`create`, which takes a dataclass type and a dictionary of
raw data (typically loaded from YAML) and returns an instance of the
dataclass populated with data from the dict, after checking that every
value has the type the field is annotated with.

If validation fails, an exception will be raised that inherits from
the :class:`ValidateError` defined in this module. All failing fields are
reported together rather than stopping at the first one.

This module supports typechecking of the following types from the
:mod:`typing` package:

- :obj:`typing.Optional`

- :obj:`typing.Union`

- :obj:`typing.Literal`

along with the :class:`bool` and :class:`str` base python types.
Literal values must match in type as well as value, so a YAML `9` is not
the string `"9"`.

A field with a default value or default factory may be missing from the
input data; any other missing field is an error. Keys in the input data
that don't name a field are errors too.

"""

__all__ = (
    "create",
    "ValidateError",
    "FieldValidateError",
    "MultiValidateError",
)


import dataclasses
import typing
from typing import Any, Dict, List, Type, TypeVar

# Generic type variable used in the API.
T = TypeVar("T")


class ValidateError(Exception):
    """
    Exception raised when a validation error occurs.

    """

    def __init__(self, msg: str):
        self.msg = msg
        super().__init__(f"Validation error: {msg}")


class FieldValidateError(ValidateError):
    """
    Exception raised when a single field of a dataclass fails validation.

    """

    def __init__(self, cls: Type[Any], field: str, msg: str):
        self.cls = cls
        self.field = field
        super().__init__(f"{cls.__name__}.{field}: {msg}")


class MultiValidateError(ValidateError):
    """
    Exception raised when one or more fields of a dataclass fail validation.

    """

    def __init__(self, errors: List[FieldValidateError]):
        assert errors
        self.errors = errors
        lines = [f"{len(errors)} field(s) failed validation:"]
        lines.extend(f"  {e.cls.__name__}.{e.field}: " + _msg(e) for e in errors)
        super().__init__("\n".join(lines))


def _msg(error: FieldValidateError) -> str:
    """Return the message of a field error without its prefix."""
    prefix = f"{error.cls.__name__}.{error.field}: "
    return error.msg[len(prefix) :]


def _get_type_string(type_: Any) -> str:
    """Get a readable name for a type annotation."""
    if isinstance(type_, type):
        return type_.__name__
    return str(type_).replace("typing.", "")


def _check_type(value: Any, type_: Any) -> bool:
    """
    Check a value against a type annotation.

    :param value:
        The value to check.
    :param type_:
        The annotation to check against.

    :returns:
        True if the value matches.

    """
    if type_ is Any:
        return True
    if type_ is type(None):
        return value is None

    origin = typing.get_origin(type_)
    args = typing.get_args(type_)
    if origin is typing.Union:
        return any(_check_type(value, arg) for arg in args)
    if origin is typing.Literal:
        return any(value == arg and type(value) is type(arg) for arg in args)
    if type_ in (bool, str):
        return isinstance(value, type_)
    raise TypeError(f"Unsupported annotation {type_!r}")


def _field_can_be_missing(field: "dataclasses.Field[Any]") -> bool:
    """Return whether the field has a default or default factory."""
    return (
        field.default is not dataclasses.MISSING
        or field.default_factory is not dataclasses.MISSING  # type: ignore
    )


def create(cls: Type[T], data: Dict[str, Any]) -> T:
    """
    Create an instance of a dataclass from a dictionary, validating types.

    :param cls:
        The dataclass type to create.
    :param data:
        The raw data, keyed by field name.

    :raises MultiValidateError:
        If any field is missing, unknown or of the wrong type.

    :returns:
        An instance of cls.

    """
    assert dataclasses.is_dataclass(cls)
    hints = typing.get_type_hints(cls)
    fields = {f.name: f for f in dataclasses.fields(cls) if f.init}
    errors: List[FieldValidateError] = []
    kwargs: Dict[str, Any] = {}

    for key in data:
        if key not in fields:
            errors.append(FieldValidateError(cls, key, "unknown field"))

    for name, field in fields.items():
        if name not in data:
            if not _field_can_be_missing(field):
                errors.append(
                    FieldValidateError(cls, name, "missing required field")
                )
            continue
        type_ = hints[name]
        value = data[name]
        if not _check_type(value, type_):
            errors.append(
                FieldValidateError(
                    cls,
                    name,
                    f"expected {_get_type_string(type_)}, "
                    f"got {type(value).__name__} ({value!r})",
                )
            )
            continue
        kwargs[name] = value

    if errors:
        raise MultiValidateError(errors)
    return cls(**kwargs)  # type: ignore
