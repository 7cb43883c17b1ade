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
"""Tests for jax_smoke.base.advection."""

import jax.numpy as jnp
import numpy as np
from numpy import testing as npt

from jax_smoke.base import advection
from jax_smoke.base import grids


def _state(num=6, h=1.0, obstacle_radius=0.0, **fields):
  grid = grids.Grid(num, num, h)
  state = grids.initial_state(grid, obstacle_radius=obstacle_radius)
  return state.replace(**{k: jnp.asarray(np.asarray(v, dtype=np.float32))
                          for k, v in fields.items()})


def test_zero_dye_stays_zero():
  rng = np.random.RandomState(0)
  state = _state(u=rng.randn(8, 8), v=rng.randn(8, 8))
  result = advection.advect_smoke(state, 0.3)
  npt.assert_array_equal(np.asarray(result.m), 0.0)


def test_dye_is_unchanged_without_velocity():
  rng = np.random.RandomState(1)
  m = rng.rand(8, 8)
  state = _state(m=m)
  result = advection.advect_smoke(state, 1.0 / 60.0)
  npt.assert_allclose(np.asarray(result.m), np.asarray(state.m), rtol=1e-6)


def test_uniform_flow_shifts_dye_by_one_cell():
  rng = np.random.RandomState(2)
  m = rng.rand(8, 8).astype(np.float32)
  state = _state(u=np.ones((8, 8)), m=m)
  result = np.asarray(advection.advect_smoke(state, 1.0).m)
  # Cell (i, j) traces back to the center of cell (i - 1, j).
  npt.assert_allclose(result[2:-1, 1:-1], m[1:-2, 1:-1], rtol=1e-6)
  # The border ring is never advected.
  ring = np.asarray(grids.domain_ring_mask(state.grid))
  npt.assert_array_equal(result[ring], m[ring])


def test_shear_flow_is_a_fixed_point_of_velocity_advection():
  profile = np.linspace(-1.0, 1.0, 8).astype(np.float32)
  u = np.tile(profile, (8, 1))
  state = _state(u=u)
  result = advection.advect_velocity(state, 0.5)
  npt.assert_allclose(np.asarray(result.u), u, rtol=1e-6, atol=1e-6)
  npt.assert_array_equal(np.asarray(result.v), 0.0)


def test_faces_outside_the_masks_keep_their_values():
  rng = np.random.RandomState(3)
  state = _state(num=10, h=0.1, obstacle_radius=0.08,
                 u=rng.randn(12, 12), v=rng.randn(12, 12), m=rng.rand(12, 12))
  result = advection.advect_velocity(state, 0.05)
  u_mask = np.asarray(advection.advectable_u_faces(state))
  v_mask = np.asarray(advection.advectable_v_faces(state))
  npt.assert_array_equal(np.asarray(result.u)[~u_mask],
                         np.asarray(state.u)[~u_mask])
  npt.assert_array_equal(np.asarray(result.v)[~v_mask],
                         np.asarray(state.v)[~v_mask])

  # Faces of the solid cells are excluded from both masks.
  for i, j in [(5, 5), (5, 6), (6, 5), (6, 6)]:
    assert not u_mask[i, j] and not u_mask[i + 1, j]
    assert not v_mask[i, j] and not v_mask[i, j + 1]

  smoked = advection.advect_smoke(state, 0.05)
  solid = np.asarray(state.s) == 0
  npt.assert_array_equal(np.asarray(smoked.m)[solid], np.asarray(state.m)[solid])


def test_advectable_face_ranges():
  state = _state(num=4)
  u_mask = np.asarray(advection.advectable_u_faces(state))
  v_mask = np.asarray(advection.advectable_v_faces(state))
  expected_u = np.zeros((6, 6), dtype=bool)
  expected_u[1:, 1:-1] = True
  expected_v = np.zeros((6, 6), dtype=bool)
  expected_v[1:-1, 1:] = True
  npt.assert_array_equal(u_mask, expected_u)
  npt.assert_array_equal(v_mask, expected_v)


def _reference_sample(f, x, y, dx, dy, h):
  """Clamped bilinear lookup of one sample in float64."""
  nx, ny = f.shape
  x = max(min(x, nx * h), h) - dx
  y = max(min(y, ny * h), h) - dy
  x0 = min(int(np.floor(x / h)), nx - 1)
  tx = (x - x0 * h) / h
  x1 = min(x0 + 1, nx - 1)
  y0 = min(int(np.floor(y / h)), ny - 1)
  ty = (y - y0 * h) / h
  y1 = min(y0 + 1, ny - 1)
  return ((1 - tx) * (1 - ty) * f[x0, y0] + tx * (1 - ty) * f[x1, y0]
          + tx * ty * f[x1, y1] + (1 - tx) * ty * f[x0, y1])


def _reference_advect_velocity(u, v, s, h, dt):
  """Face-by-face semi-Lagrangian trace in float64 numpy."""
  u, v = np.array(u, dtype=np.float64), np.array(v, dtype=np.float64)
  new_u, new_v = u.copy(), v.copy()
  nx, ny = s.shape
  for i in range(1, nx):
    for j in range(1, ny):
      if s[i, j] != 0 and s[i - 1, j] != 0 and j < ny - 1:
        v_avg = 0.25 * (v[i - 1, j] + v[i, j] + v[i - 1, j + 1] + v[i, j + 1])
        new_u[i, j] = _reference_sample(
            u, i * h - dt * u[i, j], (j + 0.5) * h - dt * v_avg, 0.0, 0.5 * h, h)
      if s[i, j] != 0 and s[i, j - 1] != 0 and i < nx - 1:
        u_avg = 0.25 * (u[i, j - 1] + u[i, j] + u[i + 1, j - 1] + u[i + 1, j])
        new_v[i, j] = _reference_sample(
            v, (i + 0.5) * h - dt * u_avg, j * h - dt * v[i, j], 0.5 * h, 0.0, h)
  return new_u, new_v


def _reference_advect_smoke(u, v, m, s, h, dt):
  """Cell-by-cell dye trace in float64 numpy."""
  u, v, m = (np.array(a, dtype=np.float64) for a in (u, v, m))
  new_m = m.copy()
  nx, ny = s.shape
  for i in range(1, nx - 1):
    for j in range(1, ny - 1):
      if s[i, j] != 0:
        u_center = 0.5 * (u[i, j] + u[i + 1, j])
        v_center = 0.5 * (v[i, j] + v[i, j + 1])
        new_m[i, j] = _reference_sample(
            m, (i + 0.5) * h - dt * u_center, (j + 0.5) * h - dt * v_center,
            0.5 * h, 0.5 * h, h)
  return new_m


def _random_flow_state(seed):
  # A non-square grid so that swapped axes cannot go unnoticed.
  grid = grids.Grid(10, 8, 0.1)
  state = grids.initial_state(grid, obstacle_radius=0.25)
  rng = np.random.RandomState(seed)
  return state.replace(
      u=jnp.asarray(rng.randn(12, 10).astype(np.float32)),
      v=jnp.asarray(rng.randn(12, 10).astype(np.float32)),
      m=jnp.asarray(rng.rand(12, 10).astype(np.float32)))


def test_velocity_advection_matches_face_by_face_reference():
  state = _random_flow_state(seed=4)
  s = np.asarray(state.s)
  assert (s == 0).sum() > 0
  dt = 0.05
  result = advection.advect_velocity(state, dt)
  expected_u, expected_v = _reference_advect_velocity(
      np.asarray(state.u), np.asarray(state.v), s, 0.1, dt)

  # The trace moves samples by a sizeable fraction of a cell.
  assert np.abs(expected_u - np.asarray(state.u)).max() > 0.1
  assert np.abs(expected_v - np.asarray(state.v)).max() > 0.1
  npt.assert_allclose(np.asarray(result.u), expected_u, rtol=1e-4, atol=1e-4)
  npt.assert_allclose(np.asarray(result.v), expected_v, rtol=1e-4, atol=1e-4)


def test_smoke_advection_matches_cell_by_cell_reference():
  state = _random_flow_state(seed=5)
  dt = 0.05
  result = advection.advect_smoke(state, dt)
  expected = _reference_advect_smoke(
      np.asarray(state.u), np.asarray(state.v), np.asarray(state.m),
      np.asarray(state.s), 0.1, dt)
  assert np.abs(expected - np.asarray(state.m)).max() > 0.05
  npt.assert_allclose(np.asarray(result.m), expected, rtol=1e-4, atol=1e-4)
