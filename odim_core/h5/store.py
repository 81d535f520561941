"""Attribute collection of a node, spread over its what/where/how sub-groups."""
from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Tuple, Union

from ..conventions import DEFAULT_CONVENTIONS, Conventions
from .attribute import Attribute, Value
from .errors import ErrorKind, NoSuchAttributeError, TargetKind
from .handle import Handle, acquire, has_child

logger = logging.getLogger(__name__)

SLOTS: Tuple[str, ...] = ("what", "where", "how")
"""Metadata sub-groups, in the order their attributes are discovered."""


class AttributeStore:
    """The attributes of one node.

    The store owns handles to the node itself (`node` slot) and to its
    `what`, `where` and `how` sub-groups (each of them may be absent).
    Attributes found in the sub-groups when the store is opened are listed in
    discovery order, attributes added later are appended.

    Indexing returns `Attribute` objects, assignment writes values:

        store["lat"].get_real()
        store["lat"] = 50.5      # require("lat").set(50.5)
        del store["lat"]

    New names are placed in a sub-group by the convention tables, the
    sub-group is created on the first write.
    """

    def __init__(
        self,
        node: Handle,
        *,
        create: bool = False,
        conventions: Optional[Conventions] = None,
    ):
        self._conventions = conventions or DEFAULT_CONVENTIONS
        self._handles: Dict[str, Handle] = {"node": node}
        self._attrs: List[Attribute] = []
        for slot in SLOTS:
            self._handles[slot] = Handle()
            if create or not has_child(node, slot):
                continue
            hnd = acquire(
                lambda: node[slot],
                operation="open group",
                target=TargetKind.group,
                name=slot,
                location=node,
            )
            self._handles[slot] = hnd
            self._attrs.extend(Attribute(self, slot, name) for name in hnd.attrs.keys())

    def _init_copy(self, other: AttributeStore) -> None:
        self._conventions = other._conventions
        self._handles = {k: h.copy() for k, h in other._handles.items()}
        self._attrs = [a._bind(self) for a in other._attrs]

    def __copy__(self):
        ret = type(self).__new__(type(self))
        ret._init_copy(self)
        return ret

    @property
    def settings(self) -> Conventions:
        """Convention vocabulary used to place new attributes."""
        return self._conventions

    @property
    def handle(self) -> Handle:
        """Handle of the node itself."""
        return self._handles["node"]

    @property
    def path(self) -> Optional[str]:
        return self.handle.path

    def has_slot(self, slot: str) -> bool:
        """Return whether the sub-group (or other slot) is currently open."""
        return bool(self._handles.get(slot))

    def _lookup_slot(self, slot: str) -> Optional[Handle]:
        """Return the handle of a slot, opening a sub-group that appeared on disk."""
        hnd = self._handles.get(slot)
        node = self.handle
        if hnd or slot not in SLOTS or not node or not has_child(node, slot):
            return hnd
        hnd = acquire(
            lambda: node[slot],
            operation="open group",
            target=TargetKind.group,
            name=slot,
            location=node,
        )
        self._handles[slot] = hnd
        return hnd

    def _ensure_slot(self, slot: str) -> Handle:
        """Return the handle for a slot, creating the sub-group if necessary."""
        hnd = self._lookup_slot(slot)
        if hnd or slot not in SLOTS:
            return hnd
        node = self.handle
        logger.debug("creating %s group in %s", slot, node.path)
        hnd = acquire(
            lambda: node.create_group(slot),
            operation="create group",
            target=TargetKind.group,
            name=slot,
            location=node,
            kind=ErrorKind.create,
        )
        self._handles[slot] = hnd
        return hnd

    # ---- lookup ----

    def find(self, name: str) -> Optional[Attribute]:
        """Return the attribute with given name, or None (never creates)."""
        for attr in self._attrs:
            if attr.name == name:
                return attr
        return None

    def require(self, name: str) -> Attribute:
        """Return the attribute with given name, adding a creatable one if missing."""
        attr = self.find(name)
        if attr is None:
            attr = Attribute(
                self, self._conventions.classify(name), name, creatable=True
            )
            self._attrs.append(attr)
        return attr

    def slot_attribute(self, slot: str, name: str) -> Attribute:
        """Return an attribute placed in an explicit slot (not listed in the store).

        Used for attributes outside the metadata sub-groups, such as the root
        `Conventions` attribute (`node` slot).
        """
        return Attribute(self, slot, name, creatable=True)

    def __getitem__(self, name: str) -> Attribute:
        attr = self.find(name)
        if attr is None:
            raise NoSuchAttributeError(
                "lookup attribute",
                name=name,
                target=TargetKind.attribute,
                location=self.handle,
                reason="no such attribute",
            )
        return attr

    def __setitem__(self, name: str, value: Value) -> None:
        self.require(name).set(value)

    def __delitem__(self, name: str) -> None:
        self.erase(self[name])

    def erase(self, key: Union[str, Attribute]) -> None:
        """Delete an attribute from disk and from the store.

        Erasing a name that is not in the store does nothing.
        """
        if isinstance(key, Attribute):
            attr: Optional[Attribute] = key
        else:
            attr = self.find(key)
        if attr is None or attr not in self._attrs:
            return
        attr._delete()
        self._attrs.remove(attr)

    def __contains__(self, name: object) -> bool:
        return any(a.name == name for a in self._attrs)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._attrs)

    def keys(self) -> List[str]:
        return [a.name for a in self._attrs]

    def values(self) -> List[Attribute]:
        return list(self._attrs)

    def items(self) -> List[Tuple[str, Attribute]]:
        return [(a.name, a) for a in self._attrs]

    def close(self) -> None:
        """Release all handles held by this store."""
        for hnd in self._handles.values():
            hnd.close()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.path!r} ({len(self)} attributes)>"
