# Copyright 2021 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
Brush stamps that turn a pointer position into a batch of injections.

A drag over the simulation paints dye with a disc brush whose strength falls
off linearly from the center, and pushes the fluid with a small square of
velocity injections. Stamps may hang over the grid edge; the injections that
land outside are dropped when applied.
"""

import math
from typing import List

from jax_smoke.sources import injection


def density_brush(
    cx: int,
    cy: int,
    radius: int = 8,
    strength: float = 8.0,
) -> List[injection.DensityInjection]:
  """
  Dye injections for a disc of `radius` cells centered on `(cx, cy)`.

  Cell `(cx + dx, cy + dy)` receives `strength * (1 - d / radius)` with
  `d = sqrt(dx**2 + dy**2)`, for every `d <= radius`. The rim therefore
  receives zero.

  Args:
    cx: Padded cell index of the brush center along x.
    cy: Padded cell index of the brush center along y.
    radius: Brush radius in cells; must be positive.
    strength: Dye added at the center cell.

  Returns:
    The injections in row-major order of the offsets `(dx, dy)`.
  """
  if radius <= 0:
    raise ValueError(f'brush radius must be > 0: got {radius}')
  stamps = []
  for dx in range(-radius, radius + 1):
    for dy in range(-radius, radius + 1):
      distance = math.sqrt(dx * dx + dy * dy)
      if distance <= radius:
        falloff = 1.0 - distance / radius
        stamps.append(
            injection.DensityInjection(cx + dx, cy + dy, strength * falloff))
  return stamps


def velocity_brush(
    cx: int,
    cy: int,
    vx: float,
    vy: float,
    half_width: int = 1,
) -> List[injection.VelocityInjection]:
  """Adds `(vx, vy)` on the square of cells within `half_width` of the center."""
  return [injection.VelocityInjection(cx + dx, cy + dy, vx, vy)
          for dx in range(-half_width, half_width + 1)
          for dy in range(-half_width, half_width + 1)]
