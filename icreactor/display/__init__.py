"""Display codecs and call-boundary transforms."""

from icreactor.display.codec import (
    BLOB_HEX_THRESHOLD,
    ActorDisplayCodec,
    Codec,
    DisplayCodecBuilder,
    did_to_display_codec,
    did_to_display_codecs,
)
from icreactor.display.transform import (
    TransformResult,
    transform_args_with_codec,
    transform_result_with_codec,
)

__all__ = [
    "BLOB_HEX_THRESHOLD",
    "ActorDisplayCodec",
    "Codec",
    "DisplayCodecBuilder",
    "TransformResult",
    "did_to_display_codec",
    "did_to_display_codecs",
    "transform_args_with_codec",
    "transform_result_with_codec",
]
