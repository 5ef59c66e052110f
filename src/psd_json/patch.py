"""
Id-addressed patching of a layer tree.

A patch spec is a nested mapping shaped like a layer info node::

    {"id": 1, "name": "Renamed", "children": [
        {"id": 2},                                  # existing layer, reused
        {"name": "New", "type": "pixel",            # no id: new layer
         "image": "images/ab12....png"},
    ]}

The root of a patch spec must name an existing layer. Every layer a spec
mentions gets exactly the children the spec lists for it: an existing id is
reused by reference (only its ``name`` is overwritten), anything else becomes
a new layer with a fresh integer id and all of its spec fields. Groups left
without children are dropped. Layers a spec does not reach are untouched.
"""
import copy
import logging
from collections.abc import Mapping
from typing import Any, Optional

from attrs import define, field

from psd_json.exceptions import (
    CyclicPatchError,
    InputFormatError,
    MissingRootIdError,
    UnknownRootIdError,
)
from psd_json.layers import OVERRIDE_KEYS

logger = logging.getLogger(__name__)


def numeric_id(value: Any) -> Optional[int]:
    """Integer value of a layer id, or `None` for non-numeric ids."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


@define
class IdIndex:
    """
    Index of the layers of a tree by id.

    Ids are keyed by their string form, so ``2`` and ``"2"`` name the same
    layer. :py:attr:`max_id` is the largest integral id seen and drives
    :py:meth:`allocate`.
    """

    nodes: dict = field(factory=dict)
    parents: dict = field(factory=dict)
    max_id: int = 0

    @classmethod
    def build(cls, tree: Mapping) -> "IdIndex":
        """Index every layer below `tree` in one pre-order walk."""
        index = cls()
        index._visit(tree)
        return index

    def _visit(self, parent: Mapping) -> None:
        children = parent.get("children")
        if not isinstance(children, list):
            return
        for node in children:
            if not isinstance(node, Mapping):
                continue
            node_id = node.get("id")
            if node_id is not None:
                number = numeric_id(node_id)
                if number is not None:
                    self.max_id = max(self.max_id, number)
                key = str(node_id)
                if key in self.nodes:
                    logger.warning(
                        "Duplicate layer id %s, keeping the first occurrence", key
                    )
                else:
                    self.nodes[key] = node
                    self.parents[key] = parent
            self._visit(node)

    def __contains__(self, node_id: Any) -> bool:
        return node_id is not None and str(node_id) in self.nodes

    def get(self, node_id: Any) -> Optional[dict]:
        return self.nodes.get(str(node_id))

    def parent_of(self, node_id: Any) -> Optional[Mapping]:
        return self.parents.get(str(node_id))

    def allocate(self) -> int:
        """Allocate a fresh integer id above every id seen so far."""
        self.max_id += 1
        return self.max_id


@define
class PatchResult:
    """
    Outcome of :py:func:`apply_patch`.

    .. py:attribute:: target

        The layer addressed by the root of the patch spec.

    .. py:attribute:: created

        Ids allocated for new layers, in allocation order.

    .. py:attribute:: overrides

        ``type``/``image``/``name`` fields of every spec node, keyed by the
        string id of the layer it resolved to.
    """

    target: dict
    created: list = field(factory=list)
    overrides: dict = field(factory=dict)


def _validate_spec(spec: Any, path: str = "spec") -> None:
    if not isinstance(spec, Mapping):
        raise InputFormatError("Invalid %s: expected an object" % path)
    children = spec.get("children")
    if children is None:
        return
    if not isinstance(children, list):
        raise InputFormatError("Invalid %s.children: expected a list" % path)
    for index, child in enumerate(children):
        _validate_spec(child, "%s.children[%d]" % (path, index))


def _is_empty_group(node: Mapping, children: Optional[list]) -> bool:
    return node.get("type") == "group" and not children


@define
class _Plan:
    """Children and names a patch assigns, keyed by node identity."""

    children: dict = field(factory=dict)
    names: dict = field(factory=dict)

    def children_of(self, node: Mapping) -> Optional[list]:
        if id(node) in self.children:
            return self.children[id(node)][1]
        return node.get("children")

    def rename(self, node: dict, spec: Mapping) -> None:
        if isinstance(spec.get("name"), str):
            self.names[id(node)] = (node, spec["name"])

    def check_acyclic(self, node: Mapping, ancestors: set) -> None:
        marker = id(node)
        if marker in ancestors:
            raise CyclicPatchError(
                "Layer %s would become its own descendant" % (node.get("id"),)
            )
        ancestors.add(marker)
        for child in self.children_of(node) or ():
            if isinstance(child, Mapping):
                self.check_acyclic(child, ancestors)
        ancestors.discard(marker)

    def commit(self) -> None:
        for node, children in self.children.values():
            if children:
                node["children"] = children
            else:
                node.pop("children", None)
        for node, name in self.names.values():
            node["name"] = name


@define
class TreePatcher:
    """
    Applies patch specs against one :py:class:`IdIndex`.

    The index is owned by the patcher; ids allocated by one patcher grow
    monotonically across all specs it applies. A spec is resolved into a
    plan first and the tree is only modified once the plan is known to be
    acyclic.
    """

    index: IdIndex

    def apply(self, spec: Mapping) -> PatchResult:
        _validate_spec(spec)
        root_id = spec.get("id")
        if root_id is None:
            raise MissingRootIdError("The root of a patch spec must carry an id")
        if root_id not in self.index:
            raise UnknownRootIdError(root_id)

        target = self.index.get(root_id)
        result = PatchResult(target)
        plan = _Plan()
        max_id = self.index.max_id
        plan.rename(target, spec)
        self._record(spec, target, result)
        self._plan_children(target, spec.get("children"), plan, result)
        try:
            plan.check_acyclic(target, set())
        except CyclicPatchError:
            self.index.max_id = max_id
            raise
        plan.commit()
        return result

    def _resolve(
        self, spec: Mapping, parent: Mapping, plan: _Plan, result: PatchResult
    ) -> dict:
        spec_id = spec.get("id")
        if spec_id in self.index:
            node = self.index.get(spec_id)
            original = self.index.parent_of(spec_id)
            if original is not parent:
                logger.warning(
                    "Layer %s is referenced by the patch but stays under its "
                    "original parent as well",
                    spec_id,
                )
            plan.rename(node, spec)
        else:
            new_id = self.index.allocate()
            node = copy.deepcopy(
                {key: value for key, value in spec.items() if key != "children"}
            )
            node["id"] = new_id
            result.created.append(new_id)
            logger.debug("Allocated layer id %d", new_id)
        self._record(spec, node, result)
        self._plan_children(node, spec.get("children"), plan, result)
        return node

    def _plan_children(
        self, node: dict, specs: Optional[list], plan: _Plan, result: PatchResult
    ) -> None:
        children = []
        for spec in specs or ():
            child = self._resolve(spec, node, plan, result)
            if _is_empty_group(child, plan.children_of(child)):
                logger.debug("Dropping empty group %s", child.get("id"))
                continue
            children.append(child)
        plan.children[id(node)] = (node, children or None)

    @staticmethod
    def _record(spec: Mapping, node: Mapping, result: PatchResult) -> None:
        fields = {key: spec[key] for key in OVERRIDE_KEYS if key in spec}
        if fields:
            result.overrides[str(node["id"])] = fields


def apply_patch(tree: Mapping, spec: Mapping) -> PatchResult:
    """
    Patch `tree` in place with a spec rooted at an existing layer.

    :raise InputFormatError: if the tree or the patch spec is malformed.
    :raise MissingRootIdError: if the root of the patch spec has no id.
    :raise UnknownRootIdError: if the root id is not in the tree.
    :raise CyclicPatchError: if the patch makes a layer its own descendant.
    :return: :py:class:`PatchResult`
    """
    if not isinstance(tree, Mapping):
        raise InputFormatError("Invalid layer tree: expected an object")
    return TreePatcher(IdIndex.build(tree)).apply(spec)
