"""
Texture Encoder.

Packs a SampleBuffer into a fixed-point texture for GPU upload.

Encoding (per channel):
    v in [-A, A]  ->  q = round((v / A + 1) / 2 * 65535)  in [0, 65535]
    hi = q >> 8, lo = q & 0xFF, stored as hi / 255 and lo / 255

Decoding (shader side, and decode() here for verification):
    v = ((hi*255*256 + lo*255) / 65535 * 2 - 1) * A

Each sample becomes one RGBA texel: (x_hi, x_lo, y_hi, y_lo), where x is the
index-normalized position and y the amplitude.
"""

from __future__ import annotations

import math
from typing import Optional, Tuple
import numpy as np
from numpy.typing import NDArray
from loguru import logger

from reactive_engine.audio.analyser import _is_power_of_two
from reactive_engine.core.contracts import EncodedTexture, SampleBuffer
from reactive_engine.core.errors import (
    InvalidConfiguration,
    NonFiniteSample,
    ValueOutOfRange,
)

FIXED_POINT_MAX = 65535
CHANNELS_PER_SAMPLE = 4


class TextureEncoder:
    """
    Fixed-point texture encoder.

    Guarantees:
    - update() is total: out-of-range values are clamped, non-finite ones become 0
    - The texture is rebuilt in place, never reallocated
    - |decode(encode(v)) - v| <= max_amplitude / 65535
    """

    def __init__(
        self,
        buffer_size: int = 512,
        max_amplitude: float = 1.0,
        tolerance: float = 1e-6,
    ):
        """
        Initialize encoder.

        Args:
            buffer_size: Samples per texture (power of two)
            max_amplitude: Channel bound A, must be positive
            tolerance: Relative slack above A that strict encode still clamps
        """
        if not _is_power_of_two(buffer_size):
            raise InvalidConfiguration(f"buffer_size must be a power of two, got {buffer_size}")
        if not math.isfinite(max_amplitude) or max_amplitude <= 0:
            raise InvalidConfiguration(f"max_amplitude must be positive, got {max_amplitude}")
        if not math.isfinite(tolerance) or tolerance < 0:
            raise InvalidConfiguration(f"tolerance must be non-negative, got {tolerance}")

        self.buffer_size = buffer_size
        self.max_amplitude = float(max_amplitude)
        self.tolerance = tolerance

        self._texture = np.zeros(buffer_size * CHANNELS_PER_SAMPLE, dtype=np.float32)
        self._texels = self._texture.reshape(buffer_size, CHANNELS_PER_SAMPLE)

        # Scratch space for update()
        self._scratch = np.zeros(buffer_size, dtype=np.float64)
        self._scaled = np.zeros(buffer_size, dtype=np.float64)
        self._quantized = np.zeros(buffer_size, dtype=np.int64)
        self._byte = np.zeros(buffer_size, dtype=np.int64)

        # Clamp bookkeeping (warn once per run of clamped ticks)
        self._clamping = False
        self.clamped_ticks = 0

        # x channel: index-normalized position, constant for the encoder's life
        positions = np.linspace(-self.max_amplitude, self.max_amplitude, buffer_size)
        self._encode_channel(positions, channel=0)

    # ============================================================
    # PER-TICK
    # ============================================================

    def update(self, samples: SampleBuffer) -> EncodedTexture:
        """
        Encode `samples` into the texture y channel.

        Args:
            samples: Buffer of length buffer_size

        Returns:
            The texture (same array every call)
        """
        values = self._scratch
        n = min(len(samples), self.buffer_size)
        values[:n] = samples[:n]
        values[n:] = 0.0

        np.nan_to_num(values, copy=False, nan=0.0, posinf=0.0, neginf=0.0)

        peak = max(float(values.max()), -float(values.min()))
        if peak > self.max_amplitude:
            self.clamped_ticks += 1
            if not self._clamping:
                logger.warning(
                    f"Samples exceed max amplitude ({peak:.4f} > {self.max_amplitude}), clamping"
                )
            self._clamping = True
        elif self._clamping:
            logger.debug("Samples back within max amplitude")
            self._clamping = False

        np.clip(values, -self.max_amplitude, self.max_amplitude, out=values)
        self._encode_channel(values, channel=2)
        return self._texture

    def _encode_channel(self, values: NDArray[np.float64], channel: int):
        """Quantize `values` (already within [-A, A]) into texel components."""
        scaled = self._scaled
        np.divide(values, self.max_amplitude, out=scaled)
        scaled += 1.0
        scaled *= FIXED_POINT_MAX / 2.0
        np.rint(scaled, out=scaled)
        np.clip(scaled, 0, FIXED_POINT_MAX, out=scaled)

        q = self._quantized
        q[:] = scaled
        byte = self._byte
        np.right_shift(q, 8, out=byte)
        np.divide(byte, 255.0, out=self._texels[:, channel])
        np.bitwise_and(q, 0xFF, out=byte)
        np.divide(byte, 255.0, out=self._texels[:, channel + 1])

    @property
    def texture(self) -> EncodedTexture:
        return self._texture

    # ============================================================
    # STRICT SCALAR ENCODE / DECODE (verification)
    # ============================================================

    def encode_value(self, value: float) -> Tuple[float, float]:
        """
        Strictly encode a single value.

        Returns:
            (hi, lo) components in [0, 1]

        Raises:
            NonFiniteSample: value is NaN or infinite
            ValueOutOfRange: |value| exceeds max_amplitude beyond tolerance
        """
        if not math.isfinite(value):
            raise NonFiniteSample(value)
        bound = self.max_amplitude * (1.0 + self.tolerance)
        if abs(value) > bound:
            raise ValueOutOfRange(value, self.max_amplitude)

        clamped = max(-self.max_amplitude, min(self.max_amplitude, value))
        q = int(round((clamped / self.max_amplitude + 1.0) / 2.0 * FIXED_POINT_MAX))
        q = max(0, min(FIXED_POINT_MAX, q))
        return (q >> 8) / 255.0, (q & 0xFF) / 255.0

    def decode_value(self, hi: float, lo: float) -> float:
        """Decode one (hi, lo) component pair the way the shader does."""
        return ((hi * 255 * 256 + lo * 255) / FIXED_POINT_MAX * 2 - 1) * self.max_amplitude

    def decode(
        self,
        texture: Optional[EncodedTexture] = None,
    ) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        """
        Decode a texture into its (x, y) channels.

        Args:
            texture: Texture to decode (default: the encoder's own)
        """
        if texture is None:
            texture = self._texture
        texels = np.asarray(texture, dtype=np.float64).reshape(-1, CHANNELS_PER_SAMPLE)
        x = self.decode_value(texels[:, 0], texels[:, 1])
        y = self.decode_value(texels[:, 2], texels[:, 3])
        return x, y
