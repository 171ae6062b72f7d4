import matplotlib
import matplotlib.pyplot as plt
import numpy as np


def _add_quads(nodes, quads, ax, values=None, **kwargs):
    verts = np.asarray(nodes)[np.asarray(quads)]
    pc = matplotlib.collections.PolyCollection(verts, **kwargs)
    if values is not None:
        pc.set_array(values)
    ax.add_collection(pc)
    ax.autoscale()
    ax.set_aspect("equal")
    ax.set_xlabel("X Axis")
    ax.set_ylabel("Y Axis")
    return pc


def plot_mesh_2D(
    nodes: np.ndarray,
    elements: np.ndarray,
    ax=None,
    face_color="grey",
    edge_color="black",
    face_tags=None,
    tag_colormap="tab10",
    **kwargs
):
    """
    Draw a quadrilateral mesh, optionally with its boundary faces colored by tag.

    Parameters
    ----------
    nodes : ndarray
        Vertex coordinates, shape (n_vertices, 2)
    elements : ndarray
        Counter-clockwise cell vertices, shape (n_cells, 4)
    ax : matplotlib.axes.Axes, optional
        Target axes (default: current axes)
    face_tags : ndarray, optional
        Boundary tag per (cell, face), -1 for interior faces
    tag_colormap : str, optional
        Colormap the tags are drawn with (default: "tab10")
    """
    if nodes.shape[1] != 2:
        raise ValueError("This function only supports 2D meshes")

    if ax is None:
        ax = plt.gca()

    _add_quads(nodes, elements, ax, color=edge_color, facecolor=face_color, **kwargs)

    if face_tags is not None:
        cells, faces = np.nonzero(face_tags >= 0)
        tags = face_tags[cells, faces]
        cmap = plt.get_cmap(tag_colormap)
        start = elements[cells, faces]
        end = elements[cells, (faces + 1) % 4]
        for tag in np.unique(tags):
            color = cmap(int(tag) % cmap.N)
            sel = tags == tag
            segments = np.stack([nodes[start[sel]], nodes[end[sel]]], axis=1)
            ax.add_collection(matplotlib.collections.LineCollection(segments, colors=[color], linewidths=3))
            ax.plot([], [], color=color, label=f"Boundary {tag}", lw=3)
        ax.legend(loc='lower center', bbox_to_anchor=(0.5, -0.15), ncol=4, frameon=False, handlelength=1)

    return ax


def plot_field_2D(
    nodes: np.ndarray,
    elements: np.ndarray,
    field: np.ndarray,
    ax=None,
    edge_color="black",
    colormap='viridis',
    show_colorbar=True,
    colorbar_label=None,
    **kwargs,
):
    """Color every quad by a per-cell field. Nodal fields are averaged over the cell."""
    field = np.asarray(field)
    if field.shape[0] == nodes.shape[0] and field.shape[0] != elements.shape[0]:
        field = field[elements].mean(axis=1)
    if field.shape[0] != elements.shape[0]:
        raise ValueError("field must have one value per node or per element.")

    if ax is None:
        ax = plt.gca()

    pc = _add_quads(nodes, elements, ax, values=field, edgecolor=edge_color, cmap=colormap, **kwargs)

    if show_colorbar:
        cbar = plt.colorbar(pc, ax=ax)
        if colorbar_label:
            cbar.set_label(colorbar_label)

    return ax
