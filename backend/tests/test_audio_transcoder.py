from __future__ import annotations

import io
from unittest import mock

import numpy as np
import pytest
import soundfile as sf

from notetaker.errors import AudioDecodeError
from notetaker.models.audio import AudioBlob
from notetaker.services.audio_transcoder import (
    AudioTranscoder,
    encode_wav,
    is_canonical_wav,
    wav_duration_sec,
    wav_sample_rate,
)


def _flac_bytes(seconds: float = 0.5, rate: int = 22050) -> bytes:
    samples = np.zeros((int(seconds * rate), 2), dtype=np.float32)
    buf = io.BytesIO()
    sf.write(buf, samples, rate, format="FLAC")
    return buf.getvalue()


class TestWavHelpers:
    def test_encode_wav_is_canonical(self):
        data = encode_wav(np.zeros(16000, dtype=np.float32), 16000)
        assert is_canonical_wav(data)
        assert wav_sample_rate(data) == 16000
        assert wav_duration_sec(data) == pytest.approx(1.0)

    def test_encode_wav_clips_out_of_range_samples(self):
        data = encode_wav(np.array([2.0, -2.0], dtype=np.float32), 8000)
        pcm = np.frombuffer(data[44:], dtype="<i2")
        assert list(pcm) == [32767, -32767]

    def test_non_wav_is_not_canonical(self):
        assert not is_canonical_wav(b"\x1aE\xdf\xa3" + b"\x00" * 100)
        assert not is_canonical_wav(b"RIFF")


class TestAudioTranscoder:
    def test_canonical_wav_passes_through(self, wav_bytes):
        blob = AudioBlob(data=wav_bytes, content_type="audio/wav", filename="a.wav")
        assert AudioTranscoder().transcode(blob) is blob

    def test_flac_is_converted_to_wav(self):
        blob = AudioBlob(data=_flac_bytes(), content_type="audio/flac", filename="call.flac")
        out = AudioTranscoder().transcode(blob)
        assert out.content_type == "audio/wav"
        assert out.filename == "call.wav"
        assert is_canonical_wav(out.data)
        assert wav_sample_rate(out.data) == 22050
        assert wav_duration_sec(out.data) == pytest.approx(0.5, abs=0.01)

    def test_resamples_to_target_rate(self):
        blob = AudioBlob(data=_flac_bytes(rate=48000), content_type="audio/flac")
        out = AudioTranscoder(target_sample_rate=16000).transcode(blob)
        assert wav_sample_rate(out.data) == 16000

    def test_undecodable_without_ffmpeg_raises(self):
        blob = AudioBlob(data=b"\x1aE\xdf\xa3not really webm", content_type="audio/webm")
        with mock.patch("notetaker.services.audio_transcoder.shutil.which", return_value=None):
            with pytest.raises(AudioDecodeError, match="audio/webm"):
                AudioTranscoder().transcode(blob)

    def test_ffmpeg_fallback_failure_raises_decode_error(self):
        blob = AudioBlob(data=b"garbage", content_type="audio/webm")
        failed = mock.Mock(returncode=1, stderr="Invalid data found when processing input")
        with mock.patch("notetaker.services.audio_transcoder.subprocess.run", return_value=failed) as run:
            with pytest.raises(AudioDecodeError, match="Invalid data"):
                AudioTranscoder(ffmpeg_path="/usr/bin/ffmpeg").transcode(blob)
        cmd = run.call_args[0][0]
        assert cmd[0] == "/usr/bin/ffmpeg"
        assert "pcm_s16le" in cmd
