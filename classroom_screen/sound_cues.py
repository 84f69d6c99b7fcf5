"""
Sound Cue Engine
Procedural feedback cues (no audio files). Each cue is rendered into a fresh
numpy buffer and handed to a sink; the Streamlit chrome's sink queues the
buffer for st.audio.
"""

import logging
from typing import Callable, Optional

import numpy as np

from .constants import SAMPLE_RATE

logger = logging.getLogger(__name__)

CUE_NAMES = ("correct", "wrong", "clap", "bell", "drum", "quiet")

AudioSink = Callable[[np.ndarray, int], None]


class SoundCue:
    """Capability interface: one method per cue, plus play(name)."""

    def correct(self):
        pass

    def wrong(self):
        pass

    def clap(self):
        pass

    def bell(self):
        pass

    def drum(self):
        pass

    def quiet(self):
        pass

    def play(self, name: str):
        if name not in CUE_NAMES:
            logger.debug("Unknown sound cue %r", name)
            return
        getattr(self, name)()


class SilentSoundCue(SoundCue):
    """No-op backend used when sound is disabled or unavailable."""


# ── Oscillators and envelopes ────────────────────────────────────────────────

def _timeline(duration: float, sample_rate: int) -> np.ndarray:
    return np.arange(int(duration * sample_rate)) / sample_rate


def _exp_envelope(t: np.ndarray, start: float, end: float, duration: float) -> np.ndarray:
    """Exponential ramp from start to end gain over duration seconds."""
    return start * np.power(end / start, np.clip(t / duration, 0.0, 1.0))


def _sweep_phase(t: np.ndarray, f0: float, f1: float, sweep: float, sample_rate: int) -> np.ndarray:
    """Phase of an exponential frequency sweep f0 -> f1 held at f1 after `sweep` seconds."""
    freq = f0 * np.power(f1 / f0, np.clip(t / sweep, 0.0, 1.0))
    return 2 * np.pi * np.cumsum(freq) / sample_rate


def _sawtooth(phase: np.ndarray) -> np.ndarray:
    return 2.0 * ((phase / (2 * np.pi)) % 1.0) - 1.0


def _triangle(phase: np.ndarray) -> np.ndarray:
    return 2.0 * np.abs(_sawtooth(phase)) - 1.0


def _square(phase: np.ndarray) -> np.ndarray:
    return np.sign(np.sin(phase))


class SynthSoundCue(SoundCue):
    """Renders cues with numpy oscillators and hands them to a sink."""

    def __init__(self, sink: AudioSink, sample_rate: int = SAMPLE_RATE,
                 rng: Optional[np.random.Generator] = None):
        self.sink = sink
        self.sample_rate = sample_rate
        self.rng = rng or np.random.default_rng()

    def _emit(self, name: str, render: Callable[[], np.ndarray]):
        try:
            buffer = render().astype(np.float32)
            self.sink(buffer, self.sample_rate)
        except Exception as e:
            # Audio is best effort; the caller never sees a failure
            logger.debug("Sound cue %s unavailable: %s", name, e)

    # ── Cue renderers ────────────────────────────────────────────────────────

    def render_correct(self) -> np.ndarray:
        t = _timeline(0.5, self.sample_rate)
        phase = _sweep_phase(t, 500.0, 1000.0, 0.1, self.sample_rate)
        return np.sin(phase) * _exp_envelope(t, 0.1, 0.01, 0.5)

    def render_wrong(self) -> np.ndarray:
        t = _timeline(0.3, self.sample_rate)
        phase = _sweep_phase(t, 200.0, 100.0, 0.2, self.sample_rate)
        return _sawtooth(phase) * _exp_envelope(t, 0.1, 0.01, 0.3)

    def render_bell(self) -> np.ndarray:
        t = _timeline(1.5, self.sample_rate)
        phase = 2 * np.pi * 800.0 * t
        return _triangle(phase) * _exp_envelope(t, 0.2, 0.001, 1.5)

    def render_drum(self) -> np.ndarray:
        t = _timeline(0.5, self.sample_rate)
        phase = _sweep_phase(t, 150.0, 40.0, 0.5, self.sample_rate)
        return np.sin(phase) * _exp_envelope(t, 0.5, 0.01, 0.5)

    def render_clap(self) -> np.ndarray:
        pulse = 0.05
        total = _timeline(15 * pulse + 0.1, self.sample_rate)
        out = np.zeros_like(total)
        t = _timeline(pulse, self.sample_rate)
        for i in range(15):
            start = int((i * pulse + self.rng.uniform(0.0, 0.02)) * self.sample_rate)
            freq = self.rng.uniform(500.0, 1500.0)
            burst = _square(2 * np.pi * freq * t) * _exp_envelope(t, 0.05, 0.001, pulse)
            end = min(start + len(burst), len(out))
            out[start:end] += burst[:end - start]
        return out

    def render_quiet(self) -> np.ndarray:
        t = _timeline(2.0, self.sample_rate)
        fade_in = np.clip(t / 0.5, 0.0, 1.0)
        fade_out = np.clip((2.0 - t) / 1.5, 0.0, 1.0)
        return np.sin(2 * np.pi * 440.0 * t) * 0.1 * np.minimum(fade_in, fade_out)

    # ── SoundCue interface ───────────────────────────────────────────────────

    def correct(self):
        self._emit("correct", self.render_correct)

    def wrong(self):
        self._emit("wrong", self.render_wrong)

    def clap(self):
        self._emit("clap", self.render_clap)

    def bell(self):
        self._emit("bell", self.render_bell)

    def drum(self):
        self._emit("drum", self.render_drum)

    def quiet(self):
        self._emit("quiet", self.render_quiet)


def build_sound_cue(enabled: bool, sink: Optional[AudioSink] = None) -> SoundCue:
    """Pick the synth backend when sound is enabled and a sink exists."""
    if enabled and sink is not None:
        return SynthSoundCue(sink)
    return SilentSoundCue()
