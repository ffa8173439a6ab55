"""
convert: moving documents between Tot and JSON, YAML or TOML

Everything goes through the untyped tree (`None`, `bool`, `float`, `str`,
`list`, `dict`). Foreign numbers become floats, dates and times become
ISO 8601 strings. Large integers lose precision past 2**53, duplicate keys
keep the last value.
"""

import json
import logging
import datetime

import yaml
import tomlkit

from .errors import CoercionError
from .parser import parse_value
from .ser import encode

log = logging.getLogger(__name__)


def to_tot_value(value, path="root"):
    """Normalise a foreign tree into the untyped Tot tree."""
    if value is None or isinstance(value, (bool, str)):
        return value
    elif isinstance(value, (int, float)):
        return float(value)
    elif isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    elif isinstance(value, (list, tuple)):
        return [to_tot_value(v, "{}[{}]".format(path, n)) for n, v in enumerate(value)]
    elif isinstance(value, dict):
        return {str(k): to_tot_value(v, "{}.{}".format(path, k)) for k, v in value.items()}
    raise CoercionError("Don't know how to convert {} at {}".format(type(value).__name__, path))


def check_root(value, file_type):
    if not isinstance(value, dict):
        raise CoercionError("A {} document must hold an object at the top to become Tot, found {}".format(
            file_type, type(value).__name__))
    return value


def no_nulls(value, path="root"):
    if value is None:
        raise CoercionError("TOML has no null, found one at {}".format(path))
    elif isinstance(value, list):
        for n, v in enumerate(value):
            no_nulls(v, "{}[{}]".format(path, n))
    elif isinstance(value, dict):
        for k, v in value.items():
            no_nulls(v, "{}.{}".format(path, k))
    return value


def load_json(text):
    return json.loads(text)


def dump_json(value):
    return json.dumps(value, indent=4, ensure_ascii=False) + "\n"


def load_yaml(text):
    return yaml.safe_load(text)


def dump_yaml(value):
    return yaml.safe_dump(value, sort_keys=False, allow_unicode=True)


def load_toml(text):
    return tomlkit.parse(text).unwrap()


def dump_toml(value):
    return tomlkit.dumps(no_nulls(value))


formats = {
    'json': (load_json, dump_json),
    'yaml': (load_yaml, dump_yaml),
    'toml': (load_toml, dump_toml),
}


def get_format(file_type):
    if file_type not in formats:
        raise CoercionError("Unknown file type {!r}, expected one of {}".format(
            file_type, ", ".join(formats)))
    return formats[file_type]


def from_foreign(text, file_type):
    """Foreign text in, untyped Tot tree out."""
    load, _ = get_format(file_type)
    value = check_root(to_tot_value(load(text)), file_type)
    log.debug("read %d keys from %s", len(value), file_type)
    return value


def to_foreign(value, file_type):
    _, dump = get_format(file_type)
    return dump(value)


def tot_to(text, file_type):
    """Tot text in, foreign text out."""
    return to_foreign(parse_value(text), file_type)


def tot_from(text, file_type):
    """Foreign text in, pretty Tot text out."""
    return encode(from_foreign(text, file_type))
