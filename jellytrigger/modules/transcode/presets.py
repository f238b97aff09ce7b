import logging
from dataclasses import dataclass

logger = logging.getLogger("jellytrigger.transcode.presets")


@dataclass(frozen=True)
class EncoderPreset:
    encoder: str
    extension: str
    quality: int
    encoder_preset: str = "medium"

    def extra_args(self) -> list[str]:
        return ["--encoder-preset", self.encoder_preset, "--quality", str(self.quality)]


HEVC = EncoderPreset(encoder="x265", extension="mkv", quality=22)
H264 = EncoderPreset(encoder="x264", extension="mp4", quality=20)

_PRESETS: dict[str, EncoderPreset] = {
    "hevc": HEVC,
    "h265": HEVC,
    "h264": H264,
}


def get_preset(output_format: str) -> EncoderPreset:
    preset = _PRESETS.get(output_format.strip().lower())
    if preset is None:
        logger.warning("unknown_output_format_fallback_hevc: %s", output_format)
        return HEVC
    return preset


def build_handbrake_args(
    *,
    input_path: str,
    output_path: str,
    preset: EncoderPreset,
    native_language: str = "nor",
) -> list[str]:
    return [
        "-i",
        input_path,
        "-o",
        output_path,
        "-e",
        preset.encoder,
        *preset.extra_args(),
        "--audio-lang-list",
        "any",
        "--all-audio",
        "--subtitle",
        "scan,1,2,3,4,5",
        "--native-language",
        native_language,
    ]
