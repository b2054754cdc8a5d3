"""
Mesh vertex grid and elevation displacement.

The grid is a flat plane of (segments + 1)^2 vertices centred on the origin in
the XY plane. Displacement writes the scaled elevation of every vertex into Z,
then normals and bounds are recomputed from the displaced positions.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np
import trimesh

from .heightfield import HeightField
from .scale import ScaleModel

MESH_RESOLUTIONS = (128, 256, 512, 1024)


@dataclass(frozen=True, eq=False)
class MeshGrid:
    """Undisplaced plane grid. Row 0 lies on the northern edge (+Y)."""

    plane_width: float
    plane_height: float
    segments: int
    vertices: np.ndarray
    faces: np.ndarray

    @classmethod
    def create(cls, plane_width: float, plane_height: float, segments: int) -> "MeshGrid":
        """
        Build a plane grid with segments x segments cells.

        Vertex (i, j) (column i, row j) sits at x = -w/2 + i*w/segments,
        y = h/2 - j*h/segments. Each cell is split into two triangles wound
        counter-clockwise when seen from +Z.
        """
        if segments < 1:
            raise ValueError(f"segments must be at least 1, got {segments}")

        count = segments + 1
        xs = np.linspace(-plane_width / 2, plane_width / 2, count)
        ys = np.linspace(plane_height / 2, -plane_height / 2, count)
        grid_x, grid_y = np.meshgrid(xs, ys)

        vertices = np.zeros((count * count, 3), dtype=np.float32)
        vertices[:, 0] = grid_x.reshape(-1)
        vertices[:, 1] = grid_y.reshape(-1)

        # Indices of each cell's corners
        ix, iy = np.meshgrid(np.arange(segments), np.arange(segments))
        ix = ix.reshape(-1)
        iy = iy.reshape(-1)
        a = ix + count * iy
        b = ix + count * (iy + 1)
        c = (ix + 1) + count * (iy + 1)
        d = (ix + 1) + count * iy

        faces = np.empty((segments * segments * 2, 3), dtype=np.int64)
        faces[0::2] = np.column_stack([a, b, d])
        faces[1::2] = np.column_stack([b, c, d])

        return cls(plane_width, plane_height, segments, vertices, faces)

    @property
    def vertex_count(self) -> int:
        return self.vertices.shape[0]

    def uv(self) -> Tuple[np.ndarray, np.ndarray]:
        """Normalized (u, v) of every vertex in vertex order."""
        count = self.segments + 1
        index = np.arange(count * count)
        u = (index % count) / self.segments
        v = (index // count) / self.segments
        return u, v


@dataclass(frozen=True, eq=False)
class DisplacedMesh:
    """Displaced vertex buffer with recomputed normals and bounds."""

    vertices: np.ndarray
    faces: np.ndarray
    normals: np.ndarray
    bounds: np.ndarray
    min_elevation: float
    max_elevation: float
    base_scale: float
    applied_min: float
    applied_max: float

    @property
    def vertex_count(self) -> int:
        return self.vertices.shape[0]

    def elevation_offsets(self) -> np.ndarray:
        """Z offset of every vertex in scene units."""
        return self.vertices[:, 2]

    def to_trimesh(self) -> trimesh.Trimesh:
        """Build a trimesh object for downstream renderers."""
        return trimesh.Trimesh(
            vertices=self.vertices,
            faces=self.faces,
            vertex_normals=self.normals,
            process=False,
        )


def displace(
    height_field: HeightField,
    grid: MeshGrid,
    scale_model: ScaleModel,
    height_exaggeration: float,
    use_real_scale: bool,
) -> DisplacedMesh:
    """
    Displace a plane grid by a cleaned height field.

    Every vertex samples the height field bilinearly at its UV position, the
    elevation is converted to scene units and written into Z. The grid itself is
    not modified; a new vertex buffer is returned on every call.

    Args:
        height_field: Cleaned elevations in meters
        grid: Plane grid to displace
        scale_model: Scale for the bounding box and plane width
        height_exaggeration: Multiplier applied after scale conversion
        use_real_scale: True for metric 1:1 proportions, False for normalized relief

    Returns:
        DisplacedMesh: Vertex positions, faces, normals and bounds
    """
    min_elevation, max_elevation = height_field.min_max()
    base_scale = scale_model.base_scale(min_elevation, max_elevation, use_real_scale)

    u, v = grid.uv()
    sampled = height_field.sample_bilinear(u, v)
    offsets = ScaleModel.to_scene_units(
        sampled, min_elevation, base_scale, height_exaggeration, use_real_scale
    )

    vertices = grid.vertices.copy()
    vertices[:, 2] = offsets

    mesh = trimesh.Trimesh(vertices=vertices, faces=grid.faces, process=False)
    normals = np.asarray(mesh.vertex_normals, dtype=np.float32)
    bounds = np.asarray(mesh.bounds, dtype=np.float64)

    return DisplacedMesh(
        vertices=vertices,
        faces=grid.faces,
        normals=normals,
        bounds=bounds,
        min_elevation=min_elevation,
        max_elevation=max_elevation,
        base_scale=base_scale,
        applied_min=float(offsets.min()),
        applied_max=float(offsets.max()),
    )
