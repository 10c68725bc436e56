"""Two-level tag taxonomy.

Tags are fetched once per screen mount and never mutated. A tag without a
parent is a top-level category; every other tag hangs directly off one.

Payload formats accepted by ``TagTaxonomy.from_payload``:
    flat:   [{"id": 1, "name": "Business Cards", "parentId": null},
             {"id": 3, "name": "Matte", "parentId": 1}]
    nested: [{"id": 1, "name": "Business Cards",
              "children": [{"id": 3, "name": "Matte"}]}]
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from printshop_catalog.domain.exceptions import InvalidTaxonomyError


@dataclass(frozen=True)
class Tag:
    """A catalog tag.

    Attributes:
        id: Tag ID assigned by the server.
        name: Display name.
        parent_id: ID of the top-level tag this tag belongs to (None for top-level).
    """

    id: int
    name: str
    parent_id: int | None = None

    @property
    def is_top_level(self) -> bool:
        """Check whether this tag is a root category."""
        return self.parent_id is None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], parent_id: int | None = None) -> "Tag":
        """Build a tag from a wire dictionary.

        Args:
            data: Tag payload (``id``, ``name`` and optionally ``parentId``).
            parent_id: Parent ID implied by nesting; overrides ``parentId``.

        Returns:
            Tag instance.
        """
        if parent_id is None:
            raw_parent = data.get("parentId", data.get("parent_id"))
            parent_id = int(raw_parent) if raw_parent is not None else None
        return cls(id=int(data["id"]), name=str(data["name"]), parent_id=parent_id)


@dataclass(frozen=True)
class TagHierarchy:
    """A top-level tag together with its ordered children."""

    top_level_tag: Tag
    children: tuple[Tag, ...] = ()


class TagTaxonomy:
    """Read-only view over the tag hierarchies of one fetch.

    Example usage:
        taxonomy = TagTaxonomy.from_tags(tags)
        cards = taxonomy.find_by_name("Business Cards")
        for child in taxonomy.children_of(cards):
            ...
    """

    def __init__(self, hierarchies: Iterable[TagHierarchy] = ()) -> None:
        """Initialize taxonomy from already-built hierarchies.

        Args:
            hierarchies: Hierarchies in server order.
        """
        self._hierarchies: tuple[TagHierarchy, ...] = tuple(hierarchies)
        self._by_id: dict[int, Tag] = {}
        self._children: dict[int, tuple[Tag, ...]] = {}
        for hierarchy in self._hierarchies:
            top = hierarchy.top_level_tag
            self._by_id[top.id] = top
            self._children[top.id] = hierarchy.children
            for child in hierarchy.children:
                self._by_id[child.id] = child

    @classmethod
    def from_tags(cls, tags: Iterable[Tag]) -> "TagTaxonomy":
        """Build hierarchies from a flat tag list.

        Top-level order and child order both follow the input order.

        Args:
            tags: Flat list of tags.

        Returns:
            Taxonomy instance.

        Raises:
            InvalidTaxonomyError: If a child references an unknown top-level tag.
        """
        tags = list(tags)
        tops = [tag for tag in tags if tag.is_top_level]
        children: dict[int, list[Tag]] = {tag.id: [] for tag in tops}

        for tag in tags:
            if tag.is_top_level:
                continue
            if tag.parent_id not in children:
                raise InvalidTaxonomyError(tag.id, tag.parent_id)
            children[tag.parent_id].append(tag)

        return cls(
            TagHierarchy(top_level_tag=top, children=tuple(children[top.id]))
            for top in tops
        )

    @classmethod
    def from_payload(cls, payload: Any) -> "TagTaxonomy":
        """Build a taxonomy from a ``GET /tag`` response body.

        Args:
            payload: Flat or nested tag list, optionally wrapped in ``{"tags": [...]}``.

        Returns:
            Taxonomy instance.

        Raises:
            InvalidTaxonomyError: If a nested child carries children of its own.
        """
        if isinstance(payload, Mapping):
            payload = payload.get("tags") or []

        tags: list[Tag] = []
        for item in payload:
            tag = Tag.from_dict(item)
            tags.append(tag)
            for child_data in item.get("children") or []:
                child = Tag.from_dict(child_data, parent_id=tag.id)
                grandchildren = child_data.get("children") or []
                if grandchildren:
                    raise InvalidTaxonomyError(
                        int(grandchildren[0]["id"]),
                        child.id,
                        reason="is nested below sub-tag",
                    )
                tags.append(child)
        return cls.from_tags(tags)

    def __iter__(self) -> Iterator[TagHierarchy]:
        return iter(self._hierarchies)

    def __len__(self) -> int:
        return len(self._hierarchies)

    @property
    def hierarchies(self) -> tuple[TagHierarchy, ...]:
        """Get hierarchies in server order."""
        return self._hierarchies

    @property
    def top_level_tags(self) -> list[Tag]:
        """Get top-level tags in server order."""
        return [h.top_level_tag for h in self._hierarchies]

    @property
    def first_top_level(self) -> Tag | None:
        """Get the default top-level tag, if any."""
        return self._hierarchies[0].top_level_tag if self._hierarchies else None

    def get(self, tag_id: int) -> Tag | None:
        """Get tag by ID.

        Args:
            tag_id: Tag ID.

        Returns:
            Tag if found, None otherwise.
        """
        return self._by_id.get(tag_id)

    def find_by_name(self, name: str, parent: Tag | None = None) -> Tag | None:
        """Find a tag by name (case-insensitive).

        Args:
            name: Tag name.
            parent: Restrict the search to children of this top-level tag.

        Returns:
            First matching tag, None if nothing matches.
        """
        wanted = name.strip().lower()
        candidates = self.children_of(parent) if parent else self._by_id.values()
        for tag in candidates:
            if tag.name.lower() == wanted:
                return tag
        return None

    def find_top_level(self, name: str) -> Tag | None:
        """Find a top-level tag by name (case-insensitive).

        Sub-tags sharing the name are never returned.
        """
        wanted = name.strip().lower()
        for tag in self.top_level_tags:
            if tag.name.lower() == wanted:
                return tag
        return None

    def children_of(self, tag: Tag) -> tuple[Tag, ...]:
        """Get children of a top-level tag.

        Args:
            tag: Top-level tag.

        Returns:
            Children in server order (empty for unknown tags).
        """
        return self._children.get(tag.id, ())
