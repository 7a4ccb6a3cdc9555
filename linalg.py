"""
Small linear-algebra and geometry helpers used by the networks and agents.

Matrices are 2-D numpy float arrays, vectors are 1-D arrays or (n x 1)
column matrices. Nothing here touches global state.
"""
import math

import numpy as np


def column_vector(values):
    """Builds an (n x 1) column matrix from a flat sequence."""
    return np.asarray(values, dtype=float).reshape(-1, 1)


def with_bias_column(matrix, bias=1.0):
    """Horizontally concatenates a constant bias column to a matrix."""
    matrix = np.asarray(matrix, dtype=float)
    return np.hstack([matrix, np.full((matrix.shape[0], 1), bias)])


def with_bias_row(column, bias=1.0):
    """Extends a column vector with a constant bias entry at the bottom."""
    column = np.asarray(column, dtype=float)
    return np.vstack([column, np.full((1, column.shape[1]), bias)])


def random_matrix(rows, cols, max_weight, rng):
    """An (rows x cols) matrix of independent draws from [-max_weight, max_weight]."""
    return np.array([[rng.uniform(-max_weight, max_weight) for _ in range(cols)]
                     for _ in range(rows)], dtype=float).reshape(rows, cols)


def diagonal_matrix(diagonal):
    """A square matrix with the given diagonal and zeros elsewhere."""
    return np.diag(np.asarray(diagonal, dtype=float))


def median_of_three(low, value, high):
    """Sorts the triple and returns the middle element."""
    return sorted((low, value, high))[1]


def normalize(vector):
    """
    Returns a vector with the same direction and length 1.
    A zero vector has no direction, so a zero vector of the same size comes back.
    """
    vector = np.asarray(vector, dtype=float)
    magnitude = math.sqrt(float(np.dot(vector, vector)))
    if magnitude == 0:
        return np.zeros_like(vector)
    return vector / magnitude


def distance_to(x1, y1, x2, y2):
    """Euclidean distance between two points."""
    return math.hypot(x2 - x1, y2 - y1)


def directional_vector(theta):
    """Unit vector pointing along angle theta (radians)."""
    return math.cos(theta), math.sin(theta)


def rotate_point(origin, head, theta):
    """Rotates point `head` about point `origin` by theta radians."""
    ox, oy = origin
    hx, hy = head
    sin = math.sin(theta)
    cos = math.cos(theta)
    # Translate to origin, rotate, translate back.
    x = cos * (hx - ox) - sin * (hy - oy) + ox
    y = sin * (hx - ox) + cos * (hy - oy) + oy
    return x, y


def cross(u, v):
    """z component of the cross product of two 2-D vectors."""
    return u[0] * v[1] - u[1] * v[0]
