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
This `__init__.py` file makes `jax_smoke` a Python package.

`jax_smoke` is a 2D smoke simulator on a staggered (MAC) grid, written in JAX.
Fluid flows around a fixed circular obstacle under gravity; a passive dye is
carried by the flow and slowly fades.

The package is organized into:
- `base`: the grid state and the pure solver stages of one tick.
- `sources`: point injections of dye and momentum, and brush stamps.
- `simulator`: `FluidSimulator`, the stateful front end.
"""

import jax_smoke.base
import jax_smoke.sources
import jax_smoke.simulator
