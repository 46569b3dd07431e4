# -*- coding: utf-8 -*-
import os
import io
import math
import logging
from typing import Optional, Tuple

import discord
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

import config # Import config for constants

log = logging.getLogger('GreetBot.AudioProcessor')

# Discord voice expects 48kHz stereo signed 16-bit PCM
DISCORD_FRAME_RATE = 48000
DISCORD_CHANNELS = 2
DISCORD_SAMPLE_WIDTH = 2


def is_valid_audio(data: bytes, extension: str = config.SOUND_EXTENSION) -> bool:
    """True if data decodes as the given container. Needs FFmpeg on PATH."""
    if not data:
        return False
    audio_format = extension.lstrip('.').lower()
    try:
        audio = AudioSegment.from_file(io.BytesIO(data), format=audio_format)
    except CouldntDecodeError as decode_err:
        log.info(f"AUDIO: Upload rejected, not decodable as {audio_format}: {decode_err}")
        return False
    except (OSError, ValueError, IndexError) as e:
        log.warning(f"AUDIO: Upload validation failed for {audio_format} ({type(e).__name__}): {e}")
        return False
    log.debug(f"AUDIO: Upload validated as {audio_format} (Duration: {len(audio)}ms)")
    return len(audio) > 0


def trim_segment(segment: AudioSegment, max_ms: int = config.MAX_PLAYBACK_DURATION_MS, label: str = "") -> AudioSegment:
    if len(segment) <= max_ms:
        return segment
    log.info(f"AUDIO: Cutting greeting '{label}' at {max_ms}ms (was {len(segment)}ms).")
    return segment[:max_ms]


def normalize_segment(segment: AudioSegment,
                      target_dbfs: float = config.TARGET_LOUDNESS_DBFS,
                      max_gain_db: float = config.MAX_POSITIVE_GAIN_DB,
                      label: str = "") -> AudioSegment:
    """Moves the peak toward target_dbfs. Quiet clips are boosted by at most max_gain_db."""
    peak = segment.max_dBFS
    if math.isinf(peak) or peak <= -90.0:
        log.warning(f"AUDIO: '{label}' is silent (peak {peak}), leaving level unchanged.")
        return segment
    gain = min(target_dbfs - peak, max_gain_db)
    log.debug(f"AUDIO: '{label}' peak {peak:.2f} dBFS, applying {gain:+.2f} dB.")
    return segment.apply_gain(gain)


def process_audio(sound_path: str) -> Tuple[Optional[discord.PCMAudio], Optional[io.BytesIO]]:
    """
    Decodes sound_path and renders it as a PCM source for the voice client.

    Returns (source, buffer), or (None, None) if the clip cannot be prepared.
    The buffer backs the source and must be closed once playback has ended.
    """
    label = os.path.basename(sound_path)
    if not os.path.exists(sound_path):
        log.error(f"AUDIO: '{sound_path}' does not exist.")
        return None, None

    buffer: Optional[io.BytesIO] = None
    try:
        audio_format = os.path.splitext(sound_path)[1].lower().strip('. ') or config.SOUND_EXTENSION.lstrip('.')
        segment = AudioSegment.from_file(sound_path, format=audio_format)
        segment = trim_segment(segment, label=label)
        segment = normalize_segment(segment, label=label)
        segment = (segment.set_frame_rate(DISCORD_FRAME_RATE)
                          .set_channels(DISCORD_CHANNELS)
                          .set_sample_width(DISCORD_SAMPLE_WIDTH))

        buffer = io.BytesIO()
        segment.export(buffer, format="s16le")
        buffer.seek(0)
        if buffer.getbuffer().nbytes == 0:
            log.error(f"AUDIO: Rendering '{label}' produced no PCM data.")
            buffer.close()
            return None, None
        log.debug(f"AUDIO: Prepared '{label}' ({len(segment)}ms)")
        return discord.PCMAudio(buffer), buffer

    except CouldntDecodeError as decode_err:
        log.error(f"AUDIO: Could not decode '{label}'. Is FFmpeg installed and on PATH? Error: {decode_err}")
    except OSError as e:
        log.error(f"AUDIO: I/O error while preparing '{label}': {e}")
    except Exception as e:
        log.error(f"AUDIO: Unexpected error preparing '{label}': {e}", exc_info=True)
    if buffer is not None and not buffer.closed:
        buffer.close()
    return None, None
