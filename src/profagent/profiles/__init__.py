"""Sample data model and pprof encoding."""

from .builder import ProfileBuilder, convert
from .samples import RawFrame, RawSample, SampleMode, SampleSet
from .schema import decode_profile

__all__ = [
    "ProfileBuilder",
    "convert",
    "decode_profile",
    "RawFrame",
    "RawSample",
    "SampleMode",
    "SampleSet",
]
