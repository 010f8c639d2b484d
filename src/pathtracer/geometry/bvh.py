"""Bounding volume hierarchy construction.

The BVH is built on the host from primitives that can report a bounding box
over a time range, then flattened into arrays for the device-side traversal
in ``pathtracer.scene.intersection``.

Construction:
    At every node a split axis is drawn uniformly at random, the items are
    stable-sorted by the minimum of their boxes along that axis and the list
    is split in half. A single item becomes a leaf. Each node's box is the
    surrounding box of its children.

    Halves with at least ``MAX_SEQUENTIAL`` items are built concurrently, one
    on a worker thread and one on the calling thread. Each half gets its own
    generator derived from the parent's, so a fixed seed produces the same
    tree no matter how the threads are scheduled.

Flattened layout:
    Nodes are written in pre-order (node, left subtree, right subtree), so a
    branch's left child is always the next node. ``skip`` holds the index of
    the node that follows the whole subtree, which lets the traversal walk
    the tree without a stack.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Protocol, Sequence, Union

import numpy as np
import numpy.typing as npt

from pathtracer.geometry.aabb import Aabb, surrounding_box

logger = logging.getLogger(__name__)

# Subtrees with at least this many items build their halves concurrently
MAX_SEQUENTIAL = 250


class BvhConstructionError(ValueError):
    """Raised when a BVH cannot be built from the given primitives."""


class Bounded(Protocol):
    """Anything that can report a bounding box over a time range."""

    def bounding_box(self, time0: float, time1: float) -> Aabb | None: ...


@dataclass(frozen=True)
class BvhLeaf:
    """A leaf holding exactly one primitive.

    Attributes:
        index: Position of the primitive in the list passed to build_bvh.
        primitive: The primitive itself.
        box: Bounding box of the primitive.
    """

    index: int
    primitive: Bounded
    box: Aabb


@dataclass(frozen=True)
class BvhBranch:
    """An interior node with exactly two children."""

    left: BvhNode
    right: BvhNode
    box: Aabb


BvhNode = Union[BvhLeaf, BvhBranch]


@dataclass(frozen=True)
class FlatBvh:
    """BVH nodes as flat arrays in pre-order.

    Attributes:
        box_min: (n, 3) float32 minimum corners.
        box_max: (n, 3) float32 maximum corners.
        primitive: (n,) int32 primitive index for leaves, -1 for branches.
        skip: (n,) int32 index of the first node after this node's subtree.
    """

    box_min: npt.NDArray[np.float32]
    box_max: npt.NDArray[np.float32]
    primitive: npt.NDArray[np.int32]
    skip: npt.NDArray[np.int32]

    def __len__(self) -> int:
        return int(self.primitive.shape[0])


@dataclass(frozen=True)
class Bvh:
    """A built hierarchy together with the time range it was built for."""

    root: BvhNode
    time0: float
    time1: float

    def bounding_box(self) -> Aabb:
        """Box around every primitive in the hierarchy."""
        return self.root.box

    @property
    def node_count(self) -> int:
        """Total number of nodes (leaves and branches)."""
        count = 0
        stack: list[BvhNode] = [self.root]
        while stack:
            node = stack.pop()
            count += 1
            if isinstance(node, BvhBranch):
                stack.append(node.left)
                stack.append(node.right)
        return count

    @property
    def depth(self) -> int:
        """Number of nodes on the longest root-to-leaf path."""
        deepest = 0
        stack: list[tuple[BvhNode, int]] = [(self.root, 1)]
        while stack:
            node, level = stack.pop()
            deepest = max(deepest, level)
            if isinstance(node, BvhBranch):
                stack.append((node.left, level + 1))
                stack.append((node.right, level + 1))
        return deepest

    def flatten(self) -> FlatBvh:
        """Flatten the tree into pre-order arrays with skip links."""
        n = self.node_count
        box_min = np.zeros((n, 3), dtype=np.float64)
        box_max = np.zeros((n, 3), dtype=np.float64)
        primitive = np.full(n, -1, dtype=np.int32)
        skip = np.zeros(n, dtype=np.int32)

        next_index = 0
        # (node, index) pairs still to visit; the index is assigned on pop
        # so that a left subtree is numbered before its right sibling
        pending: list[tuple[BvhNode, int]] = []
        stack: list[BvhNode] = [self.root]
        while stack:
            node = stack.pop()
            index = next_index
            next_index += 1
            box_min[index] = node.box.minimum
            box_max[index] = node.box.maximum
            pending.append((node, index))
            if isinstance(node, BvhLeaf):
                primitive[index] = node.index
            else:
                stack.append(node.right)
                stack.append(node.left)

        # A subtree occupies a contiguous range, so its skip target is its
        # index plus its size
        sizes: dict[int, int] = {}
        for node, index in reversed(pending):
            if isinstance(node, BvhLeaf):
                size = 1
            else:
                left_size = sizes[index + 1]
                size = 1 + left_size + sizes[index + 1 + left_size]
            sizes[index] = size
            skip[index] = index + size

        # Round outward so that float32 boxes never clip their primitives
        return FlatBvh(
            box_min=np.nextafter(box_min.astype(np.float32), np.float32(-np.inf)),
            box_max=np.nextafter(box_max.astype(np.float32), np.float32(np.inf)),
            primitive=primitive,
            skip=skip,
        )


def _box_of(item: tuple[int, Bounded], time0: float, time1: float) -> Aabb:
    index, primitive = item
    box = primitive.bounding_box(time0, time1)
    if box is None:
        raise BvhConstructionError(f"Primitive {index} is missing bounding box")
    return box


def _child_generators(rng: np.random.Generator) -> tuple[np.random.Generator, np.random.Generator]:
    seeds = rng.integers(0, 2**63 - 1, size=2)
    return np.random.default_rng(int(seeds[0])), np.random.default_rng(int(seeds[1]))


def _build(
    items: list[tuple[int, Bounded]],
    time0: float,
    time1: float,
    rng: np.random.Generator,
) -> BvhNode:
    if not items:
        raise BvhConstructionError("Scene cannot be empty")

    axis = int(rng.integers(0, 3))
    boxes = [_box_of(item, time0, time1) for item in items]

    if len(items) == 1:
        return BvhLeaf(index=items[0][0], primitive=items[0][1], box=boxes[0])

    # Python's sort is stable
    order = sorted(range(len(items)), key=lambda i: boxes[i].minimum[axis])
    ordered = [items[i] for i in order]

    mid = len(ordered) // 2
    left_items = ordered[:mid]
    right_items = ordered[mid:]
    left_rng, right_rng = _child_generators(rng)

    if len(ordered) < MAX_SEQUENTIAL:
        left = _build(left_items, time0, time1, left_rng)
        right = _build(right_items, time0, time1, right_rng)
    else:
        with ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(_build, right_items, time0, time1, right_rng)
            left = _build(left_items, time0, time1, left_rng)
            right = future.result()

    return BvhBranch(left=left, right=right, box=surrounding_box(left.box, right.box))


def build_bvh(
    primitives: Sequence[Bounded],
    time0: float = 0.0,
    time1: float = 0.0,
    seed: int | None = None,
) -> Bvh:
    """Build a BVH over the given primitives.

    Args:
        primitives: Items exposing ``bounding_box(time0, time1)``.
        time0: Start of the time range boxes must cover.
        time1: End of the time range boxes must cover.
        seed: Seed for the split-axis generator. None draws fresh entropy.

    Returns:
        The built hierarchy. Leaf indices refer to positions in ``primitives``.

    Raises:
        BvhConstructionError: If the list is empty or a primitive has no
            bounding box.
    """
    items = list(enumerate(primitives))
    if not items:
        raise BvhConstructionError("Scene cannot be empty")

    root = _build(items, time0, time1, np.random.default_rng(seed))
    bvh = Bvh(root=root, time0=time0, time1=time1)
    logger.debug(
        "Built BVH over %d primitives: %d nodes, depth %d",
        len(items),
        bvh.node_count,
        bvh.depth,
    )
    return bvh
