"""
Post-processing Chain
=====================
Ordered full-screen passes applied once per frame to the landscape render.

Why is this file needed?
------------------------
1. Look: the landscape gets its chromatic fringe (RGB shift) and glow (bloom)
   here, after the scene itself has been rendered.
2. Buffers: the chain owns two ping-pong frame buffers, float32 (H, W, 3) in
   linear space, plus the bloom mip chain. They are reallocated only when the
   viewport size really changes, so resizing is idempotent.

Passes (fixed order):
    RenderPass          - renders the scene (with linear fog) into the buffer
    RGBShiftPass        - horizontal channel shift
    GammaCorrectionPass - gamma 1.0 by default, i.e. a no-op
    BloomPass           - bright-pass, blurred mip chain, additive composite
"""
from __future__ import annotations

import logging
import math
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import numpy.typing as npt
from scipy import ndimage

from lightingstudio.config import FogConfig, PostFxConfig
from lightingstudio.controller.shaders import ShaderMaterial, ShaderProgram, smoothstep
from lightingstudio.model.colors import parse_color

logger = logging.getLogger(__name__)

Image = npt.NDArray[np.float32]
SceneRenderer = Callable[[], Tuple[npt.NDArray[Any], Optional[npt.NDArray[Any]]]]

LUMA = np.array([0.299, 0.587, 0.114], dtype=np.float32)


def resize_image(image: Image, height: int, width: int) -> Image:
    """Bilinear resample of an (H, W, C) image to (height, width, C)."""
    h, w = image.shape[:2]
    if (h, w) == (height, width):
        return image
    factors = (height / h, width / w) + (1.0,) * (image.ndim - 2)
    out = ndimage.zoom(image, factors, order=1, mode="nearest", grid_mode=True)
    return out[:height, :width]


def to_uint8(image: Image) -> npt.NDArray[np.uint8]:
    return (np.clip(image, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)


# ------------------------------------------------------------------------------
# Passes
# ------------------------------------------------------------------------------

class Pass:
    name = "pass"

    def __init__(self) -> None:
        self.enabled: bool = True
        self.size: Tuple[int, int] = (0, 0)

    def set_size(self, width: int, height: int) -> None:
        self.size = (width, height)

    def render(self, src: Image, dst: Image) -> None:
        raise NotImplementedError


class RenderPass(Pass):
    """Renders the scene and applies linear fog from the depth image."""
    name = "render"

    def __init__(self, render_scene: SceneRenderer, fog: Optional[FogConfig] = None) -> None:
        super().__init__()
        self.render_scene = render_scene
        self.fog = fog
        self._fog_rgb = np.asarray(parse_color(fog.color), dtype=np.float32) if fog else None

    def render(self, src: Image, dst: Image) -> None:
        color, depth = self.render_scene()
        frame = np.asarray(color)
        if frame.dtype == np.uint8:
            frame = frame.astype(np.float32) / 255.0
        frame = frame[..., :3].astype(np.float32, copy=False)

        h, w = dst.shape[:2]
        if frame.shape[:2] != (h, w):
            logger.debug(f"Scene frame {frame.shape[1]}x{frame.shape[0]} resampled to {w}x{h}.")
            frame = resize_image(frame, h, w)
            if depth is not None:
                depth = resize_image(np.asarray(depth, dtype=np.float32), h, w)

        if self.fog is not None and depth is not None:
            dist = np.abs(np.asarray(depth, dtype=np.float32))
            fog = np.clip((dist - self.fog.near) / (self.fog.far - self.fog.near), 0.0, 1.0)
            # Pixels without geometry have no depth, they show the fog color
            fog = np.where(np.isfinite(fog), fog, 1.0)[..., None]
            np.copyto(dst, frame * (1.0 - fog) + self._fog_rgb * fog)
        else:
            np.copyto(dst, frame)


class ImageProgram(ShaderProgram):
    """A full-screen program evaluated on a whole image."""

    def apply(self, src: Image, dst: Image, uniforms: Dict[str, Any]) -> None:
        raise NotImplementedError


class RGBShiftProgram(ImageProgram):
    name = "rgb_shift"
    default_uniforms: Dict[str, Any] = {"amount": 0.005, "angle": 0.0}

    def apply(self, src: Image, dst: Image, uniforms: Dict[str, Any]) -> None:
        h, w = src.shape[:2]
        amount = float(uniforms["amount"])
        angle = float(uniforms["angle"])
        # uv offset -> pixels; v grows upwards, rows grow downwards
        dx = amount * math.cos(angle) * w
        dy = -amount * math.sin(angle) * h

        # r samples at uv + offset, b at uv - offset
        dst[..., 0] = ndimage.shift(src[..., 0], (-dy, -dx), order=1, mode="nearest")
        dst[..., 1] = src[..., 1]
        dst[..., 2] = ndimage.shift(src[..., 2], (dy, dx), order=1, mode="nearest")


class GammaProgram(ImageProgram):
    name = "gamma"
    default_uniforms: Dict[str, Any] = {"gamma": 1.0}

    def apply(self, src: Image, dst: Image, uniforms: Dict[str, Any]) -> None:
        gamma = float(uniforms["gamma"])
        if gamma == 1.0:
            np.copyto(dst, src)
            return
        np.copyto(dst, np.power(np.clip(src, 0.0, None), 1.0 / gamma))


class ShaderPass(Pass):
    """Runs one ImageProgram with its own material (uniforms)."""

    def __init__(self, program: ImageProgram, **uniforms: Any) -> None:
        super().__init__()
        self.material = ShaderMaterial(program, **uniforms)
        self.name = program.name

    @property
    def uniforms(self) -> Dict[str, Any]:
        return self.material.uniforms

    def render(self, src: Image, dst: Image) -> None:
        self.material.program.apply(src, dst, self.material.uniforms)
        self.material.consume_dirty()


class RGBShiftPass(ShaderPass):
    def __init__(self, amount: float = 0.0012, angle: float = 0.0) -> None:
        super().__init__(RGBShiftProgram(), amount=amount, angle=angle)


class GammaCorrectionPass(ShaderPass):
    def __init__(self, gamma: float = 1.0) -> None:
        super().__init__(GammaProgram(), gamma=gamma)


class BloomPass(Pass):
    """
    Bright-pass filter, blurred mip chain and additive composite.

    Each mip level is half the size of the previous one and is blurred with a
    wider kernel. The levels are weighted by bloom factors that ``radius``
    pushes from "tight" (1.0, 0.8, ...) to "wide" (0.2, 0.4, ...).
    """
    name = "bloom"

    KERNEL_SIGMAS = (3.0, 5.0, 7.0, 9.0, 11.0)
    BLOOM_FACTORS = (1.0, 0.8, 0.6, 0.4, 0.2)
    SMOOTH_WIDTH = 0.01

    def __init__(
        self,
        aspect: float = 1.0,
        strength: float = 0.2,
        radius: float = 0.8,
        threshold: float = 0.0,
        levels: int = 5,
    ) -> None:
        super().__init__()
        self.aspect = aspect
        self.strength = strength
        self.radius = radius
        self.threshold = threshold
        self.levels = min(levels, len(self.KERNEL_SIGMAS))
        self.mips: List[Image] = []

    def set_size(self, width: int, height: int) -> None:
        super().set_size(width, height)
        self.aspect = width / height if height > 0 else 1.0
        self.mips = []
        w, h = width, height
        for _ in range(self.levels):
            w, h = max(1, w // 2), max(1, h // 2)
            self.mips.append(np.zeros((h, w, 3), dtype=np.float32))

    def factors(self) -> List[float]:
        return [f + (1.2 - 2.0 * f) * self.radius for f in self.BLOOM_FACTORS[:self.levels]]

    def bright_pass(self, src: Image) -> Image:
        lum = src @ LUMA
        alpha = smoothstep(self.threshold, self.threshold + self.SMOOTH_WIDTH, lum).astype(np.float32)
        return src * alpha[..., None]

    def render(self, src: Image, dst: Image) -> None:
        h, w = src.shape[:2]
        level_input = self.bright_pass(src)
        glow = np.zeros_like(src)

        for mip, sigma, factor in zip(self.mips, self.KERNEL_SIGMAS, self.factors()):
            mh, mw = mip.shape[:2]
            down = resize_image(level_input, mh, mw)
            np.copyto(mip, ndimage.gaussian_filter(down, sigma=(sigma / 2.0, sigma / 2.0, 0.0), mode="nearest"))
            glow += factor * resize_image(mip, h, w)
            level_input = mip

        np.copyto(dst, src + self.strength * glow)


# ------------------------------------------------------------------------------
# Chain
# ------------------------------------------------------------------------------

class PostProcessChain:
    """Owns the frame buffers and runs the passes in order."""

    def __init__(self, passes: Sequence[Pass]) -> None:
        self._validate_order(passes)
        self.passes: List[Pass] = list(passes)
        self.size: Tuple[int, int] = (0, 0)
        self.read_buffer: Image = np.zeros((0, 0, 3), dtype=np.float32)
        self.write_buffer: Image = np.zeros((0, 0, 3), dtype=np.float32)

    @staticmethod
    def _validate_order(passes: Sequence[Pass]) -> None:
        def index_of(kind: type) -> int:
            return next((i for i, p in enumerate(passes) if isinstance(p, kind)), -1)

        render, shift = index_of(RenderPass), index_of(RGBShiftPass)
        gamma, bloom = index_of(GammaCorrectionPass), index_of(BloomPass)
        if render > 0:
            raise ValueError("RenderPass must be the first pass of the chain.")
        if bloom >= 0 and shift > bloom:
            raise ValueError("RGBShiftPass must run before BloomPass.")
        if bloom >= 0 and gamma > bloom:
            raise ValueError("BloomPass must be queued after GammaCorrectionPass.")

    def get_pass(self, kind: type) -> Optional[Pass]:
        return next((p for p in self.passes if isinstance(p, kind)), None)

    def set_size(self, width: int, height: int) -> bool:
        """
        Resizes every buffer. Calling it again with the same size is a no-op.

        Returns:
            True if the buffers were reallocated.
        """
        width, height = int(width), int(height)
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid viewport size {width}x{height}.")
        if (width, height) == self.size:
            return False

        self.size = (width, height)
        self.read_buffer = np.zeros((height, width, 3), dtype=np.float32)
        self.write_buffer = np.zeros((height, width, 3), dtype=np.float32)
        for p in self.passes:
            p.set_size(width, height)
        logger.debug(f"Post-processing buffers resized to {width}x{height}.")
        return True

    def render(self) -> Image:
        """Runs all enabled passes; returns the final image (owned by the chain)."""
        if self.size == (0, 0):
            raise RuntimeError("PostProcessChain.set_size() must be called before render().")

        for p in self.passes:
            if not p.enabled:
                continue
            p.render(self.read_buffer, self.write_buffer)
            self.read_buffer, self.write_buffer = self.write_buffer, self.read_buffer
        return self.read_buffer


def build_default_chain(
    render_scene: SceneRenderer,
    config: PostFxConfig = PostFxConfig(),
    fog: Optional[FogConfig] = None,
    aspect: float = 1.0,
) -> PostProcessChain:
    return PostProcessChain([
        RenderPass(render_scene, fog=fog),
        RGBShiftPass(amount=config.rgb_shift_amount, angle=config.rgb_shift_angle),
        GammaCorrectionPass(gamma=config.gamma),
        BloomPass(
            aspect=aspect,
            strength=config.bloom_strength,
            radius=config.bloom_radius,
            threshold=config.bloom_threshold,
            levels=config.bloom_levels,
        ),
    ])
