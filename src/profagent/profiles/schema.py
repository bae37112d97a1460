"""pprof message classes (``perftools.profiles``).

The message layout mirrors ``google/pprof/proto/profile.proto`` field for
field.  Classes are generated at import time from a ``FileDescriptorProto``
registered in a private descriptor pool, so no protoc step is needed and the
upstream package name never clashes with other copies in the default pool.
"""

from __future__ import annotations

import gzip
from typing import Iterable, Tuple

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "perftools.profiles"

_F = descriptor_pb2.FieldDescriptorProto

# (name, number, type, label, message type name)
_FieldSpec = Tuple[str, int, int, int, str]

_OPT = _F.LABEL_OPTIONAL
_REP = _F.LABEL_REPEATED

_MESSAGES: dict[str, list[_FieldSpec]] = {
    "Profile": [
        ("sample_type", 1, _F.TYPE_MESSAGE, _REP, "ValueType"),
        ("sample", 2, _F.TYPE_MESSAGE, _REP, "Sample"),
        ("mapping", 3, _F.TYPE_MESSAGE, _REP, "Mapping"),
        ("location", 4, _F.TYPE_MESSAGE, _REP, "Location"),
        ("function", 5, _F.TYPE_MESSAGE, _REP, "Function"),
        ("string_table", 6, _F.TYPE_STRING, _REP, ""),
        ("drop_frames", 7, _F.TYPE_INT64, _OPT, ""),
        ("keep_frames", 8, _F.TYPE_INT64, _OPT, ""),
        ("time_nanos", 9, _F.TYPE_INT64, _OPT, ""),
        ("duration_nanos", 10, _F.TYPE_INT64, _OPT, ""),
        ("period_type", 11, _F.TYPE_MESSAGE, _OPT, "ValueType"),
        ("period", 12, _F.TYPE_INT64, _OPT, ""),
        ("comment", 13, _F.TYPE_INT64, _REP, ""),
        ("default_sample_type", 14, _F.TYPE_INT64, _OPT, ""),
    ],
    "ValueType": [
        ("type", 1, _F.TYPE_INT64, _OPT, ""),
        ("unit", 2, _F.TYPE_INT64, _OPT, ""),
    ],
    "Sample": [
        ("location_id", 1, _F.TYPE_UINT64, _REP, ""),
        ("value", 2, _F.TYPE_INT64, _REP, ""),
        ("label", 3, _F.TYPE_MESSAGE, _REP, "Label"),
    ],
    "Label": [
        ("key", 1, _F.TYPE_INT64, _OPT, ""),
        ("str", 2, _F.TYPE_INT64, _OPT, ""),
        ("num", 3, _F.TYPE_INT64, _OPT, ""),
        ("num_unit", 4, _F.TYPE_INT64, _OPT, ""),
    ],
    "Mapping": [
        ("id", 1, _F.TYPE_UINT64, _OPT, ""),
        ("memory_start", 2, _F.TYPE_UINT64, _OPT, ""),
        ("memory_limit", 3, _F.TYPE_UINT64, _OPT, ""),
        ("file_offset", 4, _F.TYPE_UINT64, _OPT, ""),
        ("filename", 5, _F.TYPE_INT64, _OPT, ""),
        ("build_id", 6, _F.TYPE_INT64, _OPT, ""),
        ("has_functions", 7, _F.TYPE_BOOL, _OPT, ""),
        ("has_filenames", 8, _F.TYPE_BOOL, _OPT, ""),
        ("has_line_numbers", 9, _F.TYPE_BOOL, _OPT, ""),
        ("has_inline_frames", 10, _F.TYPE_BOOL, _OPT, ""),
    ],
    "Location": [
        ("id", 1, _F.TYPE_UINT64, _OPT, ""),
        ("mapping_id", 2, _F.TYPE_UINT64, _OPT, ""),
        ("address", 3, _F.TYPE_UINT64, _OPT, ""),
        ("line", 4, _F.TYPE_MESSAGE, _REP, "Line"),
        ("is_folded", 5, _F.TYPE_BOOL, _OPT, ""),
    ],
    "Line": [
        ("function_id", 1, _F.TYPE_UINT64, _OPT, ""),
        ("line", 2, _F.TYPE_INT64, _OPT, ""),
    ],
    "Function": [
        ("id", 1, _F.TYPE_UINT64, _OPT, ""),
        ("name", 2, _F.TYPE_INT64, _OPT, ""),
        ("system_name", 3, _F.TYPE_INT64, _OPT, ""),
        ("filename", 4, _F.TYPE_INT64, _OPT, ""),
        ("start_line", 5, _F.TYPE_INT64, _OPT, ""),
    ],
}


def _file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    fdp = descriptor_pb2.FileDescriptorProto(
        name="profagent/profile.proto", package=PACKAGE, syntax="proto3"
    )
    for msg_name, fields in _MESSAGES.items():
        msg = fdp.message_type.add(name=msg_name)
        for name, number, ftype, label, type_name in fields:
            field = msg.field.add(name=name, number=number, type=ftype, label=label)
            if type_name:
                field.type_name = f".{PACKAGE}.{type_name}"
    return fdp


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_file_descriptor().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


Profile = _message_class("Profile")


def serialize_profile(profile) -> bytes:
    """Serialize and gzip a Profile; ``mtime=0`` keeps the output deterministic."""
    raw = profile.SerializeToString(deterministic=True)
    return gzip.compress(raw, mtime=0)


def decode_profile(data: bytes):
    """Parse profile bytes, gzip-compressed or not, into a Profile message."""
    if data[:2] == b"\x1f\x8b":
        data = gzip.decompress(data)
    profile = Profile()
    profile.ParseFromString(data)
    return profile


def stack_names(profile, sample) -> list[str]:
    """Function names of a sample's stack, leaf first."""
    locations = {loc.id: loc for loc in profile.location}
    functions = {fn.id: fn for fn in profile.function}
    names: list[str] = []
    for loc_id in sample.location_id:
        for line in locations[loc_id].line:
            names.append(profile.string_table[functions[line.function_id].name])
    return names


def iter_value_types(profile) -> Iterable[tuple[str, str]]:
    for vt in profile.sample_type:
        yield profile.string_table[vt.type], profile.string_table[vt.unit]
