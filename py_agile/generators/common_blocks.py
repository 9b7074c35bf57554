"""Parameter assignment to Fortran common blocks.

Engines without a parameter-setting routine are configured by writing their common
blocks. A parameter key names a variable, with a 1-based index for vectors (`PTMIN`,
`MODPDF(1)`); the variable's native type is read from the `ctypes.Structure` that
declares the block, so only declared variables can be set.
"""
import ctypes
import re

from typing_extensions import AbstractSet, Any, Dict, NamedTuple, Optional, Type

from py_agile.exceptions import InvalidValueError, UnknownParameterError

__all__ = ('CommonSetting', 'coerce_common_value', 'apply_common_setting')

_KEY_RE = re.compile(r'^([A-Z][A-Z0-9]*)(?:\(\s*(\d+)\s*\))?$')
_TRUE = frozenset({'1', 'T', 'TRUE', '.TRUE.', 'YES', 'ON'})
_FALSE = frozenset({'0', 'F', 'FALSE', '.FALSE.', 'NO', 'OFF'})


class CommonSetting(NamedTuple):
    """A validated assignment to one common-block variable."""

    block: str
    field: str
    index: Optional[int]
    value: Any


def _field_type(struct: Type[ctypes.Structure], field: str) -> Optional[Any]:
    for name, ctype in struct._fields_:
        if name == field:
            return ctype
    return None


def coerce_common_value(blocks: Dict[str, Type[ctypes.Structure]], key: str, value: str, generator: str,
                        logicals: AbstractSet[str] = frozenset(),
                        excluded: AbstractSet[str] = frozenset()) -> CommonSetting:
    """Validate `key = value` against the declared common-block layouts.

    Args:
        blocks: Block name -> declared layout, searched in order.
        logicals: Variables declared LOGICAL (stored as int, set from T/F).
        excluded: Variables that are outputs or otherwise not user-settable.

    Raises:
        UnknownParameterError: Not a declared variable, missing or out-of-range index.
        InvalidValueError: Value does not convert to the variable's type.
    """
    match = _KEY_RE.match(key.strip().upper().replace(' ', ''))
    if match is None:
        raise UnknownParameterError(key, generator)
    field, index = match.group(1).lower(), match.group(2)
    if field in excluded:
        raise UnknownParameterError(key, generator)
    for block, struct in blocks.items():
        ctype = _field_type(struct, field)
        if ctype is not None:
            break
    else:
        raise UnknownParameterError(key, generator)

    length = getattr(ctype, '_length_', None)
    if (length is None) != (index is None):
        raise UnknownParameterError(key, generator)
    position = None
    if index is not None:
        position = int(index) - 1
        if not 0 <= position < length:
            raise UnknownParameterError(key, generator)
        ctype = ctype._type_

    text = value.strip()
    if field in logicals:
        if text.upper() not in _TRUE | _FALSE:
            raise InvalidValueError(key, value, "a logical (T/F)")
        converted: Any = int(text.upper() in _TRUE)
    elif ctype is ctypes.c_double:
        try:
            converted = float(text.upper().replace('D', 'E'))
        except ValueError:
            raise InvalidValueError(key, value, "a real number") from None
    else:
        try:
            converted = int(text)
        except ValueError:
            raise InvalidValueError(key, value, "an integer") from None
    return CommonSetting(block, field, position, converted)


def apply_common_setting(commons: Dict[str, ctypes.Structure], setting: CommonSetting) -> None:
    block = commons[setting.block]
    if setting.index is None:
        setattr(block, setting.field, setting.value)
    else:
        getattr(block, setting.field)[setting.index] = setting.value
