"""Quadrilateral meshes, boundary tags and uniform refinement."""
import pytest

import numpy as np

from pyADFEM.CPU import QuadMesh, StructuredMesh2D, hyper_cube, hyper_rectangle


def test_hyper_cube_refinement_counts():
    mesh = hyper_cube(0.0, 1.0)
    assert mesh.n_active_cells == 1
    mesh.refine_global(2)
    assert mesh.n_active_cells == 16
    assert mesh.n_vertices == 25
    assert mesh.n_refinements == 2
    assert mesh.area() == pytest.approx(1.0)


def test_refine_zero_times_is_noop_and_negative_raises():
    mesh = hyper_cube()
    cells = mesh.cells.copy()
    mesh.refine_global(0)
    assert np.array_equal(mesh.cells, cells)
    assert mesh.n_refinements == 0
    with pytest.raises(ValueError):
        mesh.refine_global(-1)


def test_children_keep_parent_corners():
    mesh = hyper_cube()
    mesh.refine_global(1)
    parent = mesh.cells.copy()
    vertices = mesh.vertices.copy()
    mesh.refine_global(1)
    for p in range(parent.shape[0]):
        for k in range(4):
            assert mesh.cells[4 * p + k, k] == parent[p, k]
    # existing vertices keep their index and position
    assert np.array_equal(mesh.vertices[: vertices.shape[0]], vertices)


def test_boundary_faces_and_tags():
    mesh = hyper_cube()
    mesh.refine_global(2)
    cells, faces = mesh.boundary_faces()
    assert cells.shape[0] == 16
    assert np.all(mesh.face_tags[cells, faces] == 0)

    # right face of the lower-left child is interior
    mesh = hyper_cube().refine_global(1)
    assert mesh.boundary_tag(0, 1) is None
    assert mesh.boundary_tag(0, 0) == 0


def test_colorized_tags_follow_the_sides():
    mesh = hyper_cube(colorize=True)
    mesh.refine_global(2)
    expected = {0: (0, 0.0), 1: (0, 1.0), 2: (1, 0.0), 3: (1, 1.0)}
    for tag, (axis, coordinate) in expected.items():
        cells, faces = mesh.boundary_faces(tag)
        assert cells.shape[0] == 4
        a = mesh.cells[cells, faces]
        b = mesh.cells[cells, (faces + 1) % 4]
        assert mesh.vertices[a, axis] == pytest.approx(coordinate)
        assert mesh.vertices[b, axis] == pytest.approx(coordinate)


def test_edges_are_shared_by_at_most_two_cells():
    mesh = hyper_cube().refine_global(2)
    edge_vertices, cell_edges = mesh.edges()
    assert edge_vertices.shape[0] == 40
    counts = np.bincount(cell_edges.ravel())
    assert counts.max() == 2
    assert np.all(edge_vertices[:, 0] < edge_vertices[:, 1])


def test_clockwise_cell_raises():
    vertices = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
    with pytest.raises(ValueError):
        QuadMesh(vertices, np.array([[0, 3, 2, 1]]))


def test_unused_vertices_are_removed():
    vertices = np.array([[5.0, 5.0], [0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
    mesh = QuadMesh(vertices, np.array([[1, 2, 3, 4]]))
    assert mesh.n_vertices == 4
    assert np.array_equal(mesh.cells[0], [0, 1, 2, 3])


def test_structured_mesh():
    mesh = StructuredMesh2D(4, 2, 2.0, 1.0, colorize=True)
    assert mesh.n_active_cells == 8
    assert mesh.n_vertices == 15
    assert mesh.dx == pytest.approx(0.5)
    assert mesh.area() == pytest.approx(2.0)
    mesh.refine_global(1)
    assert (mesh.nelx, mesh.nely) == (8, 4)
    assert mesh.n_active_cells == 32
    assert mesh.boundary_faces(1)[0].shape[0] == 4


def test_hyper_rectangle_validates_corners():
    with pytest.raises(ValueError):
        hyper_rectangle((1.0, 0.0), (0.0, 1.0))
    mesh = hyper_rectangle((0.0, 0.0), (2.0, 3.0))
    assert mesh.area() == pytest.approx(6.0)
