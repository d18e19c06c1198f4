"""Field resolution for record types.

A record is a dataclass, a ``NamedTuple`` or a pydantic model. Its encoded
members are computed once per type: tags are applied, embedded records are
flattened breadth-first, and name conflicts are settled by depth and tagging
before the survivors are put back into declaration order.
"""

from __future__ import annotations

import dataclasses
import itertools
import logging
import numbers
import types
from collections.abc import Collection
from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Any, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel

from .formatting import escape_string
from .types import TAG_METADATA_KEY, EncodeOptions, ShapeHint, Tag

if TYPE_CHECKING:
    from .registry import TypeRegistry

logger = logging.getLogger(__name__)

MISSING = object()

# Punctuation allowed in emitted names besides letters and digits
_TAG_PUNCTUATION = frozenset("!#$%&()*+-./:;<=>?@[]^_{|}~ ")


@dataclass(frozen=True)
class FieldDescriptor:
    """One encoded member of a record type."""

    name: str
    path: tuple[str, ...]
    index: tuple[int, ...]
    tagged: bool
    omit_empty: bool
    annotation: Any
    hint: ShapeHint | None = None
    strict_key: bytes = b""
    html_key: bytes = b""
    human_key: bytes = b""

    def key(self, options: EncodeOptions) -> bytes:
        """Name prefix written before the member's value."""
        if options.human_readable:
            return self.human_key
        return self.html_key if options.escape_html else self.strict_key

    def lookup(self, record: Any) -> Any:
        """Follow ``path`` from ``record``; ``MISSING`` if an embedded record is None."""
        value = record
        last = len(self.path) - 1
        for i, attr in enumerate(self.path):
            value = getattr(value, attr)
            if value is None and i < last:
                return MISSING
        return value


@dataclass
class _Member:
    attr: str
    annotation: Any
    tag: Tag | None


@dataclass
class _Candidate:
    name: str
    path: tuple[str, ...]
    index: tuple[int, ...]
    tagged: bool
    omit_empty: bool
    annotation: Any


def is_record(cls: Any) -> bool:
    """Report whether ``cls`` is a dataclass, NamedTuple or pydantic model class."""
    if not isinstance(cls, type):
        return False
    return dataclasses.is_dataclass(cls) or _is_namedtuple(cls) or issubclass(cls, BaseModel)


def _is_namedtuple(cls: type) -> bool:
    return issubclass(cls, tuple) and isinstance(getattr(cls, "_fields", None), tuple)


def is_valid_tag(name: str) -> bool:
    if not name:
        return False
    for c in name:
        if c in _TAG_PUNCTUATION:
            continue
        if not c.isalpha() and not c.isdecimal():
            return False
    return True


def is_empty_value(value: Any) -> bool:
    """Emptiness as used by ``omitempty``."""
    if value is None:
        return True
    if isinstance(value, bool):
        return not value
    if is_record(type(value)):
        return False
    if isinstance(value, (str, bytes, bytearray, memoryview, Collection)):
        return len(value) == 0
    if isinstance(value, numbers.Number):
        return value == 0
    return False


def _type_hints(cls: type) -> dict[str, Any]:
    try:
        return get_type_hints(cls, include_extras=True)
    except (NameError, TypeError) as e:
        logger.debug(f"Could not resolve annotations of {cls.__qualname__}: {e}")
        return {}


def _annotated_tag(annotation: Any) -> Tag | None:
    if get_origin(annotation) is Annotated:
        for meta in annotation.__metadata__:
            if isinstance(meta, Tag):
                return meta
    return None


def _members(cls: type) -> list[_Member]:
    """List the declared members of a record class with their tags."""
    if issubclass(cls, BaseModel):
        members = []
        for attr, info in cls.model_fields.items():
            if info.exclude is True:
                continue
            tag = next((m for m in info.metadata if isinstance(m, Tag)), None)
            alias = info.serialization_alias or info.alias
            if alias and (tag is None or not tag.name):
                tag = dataclasses.replace(tag or Tag(), name=alias)
            members.append(_Member(attr, info.annotation, tag))
        return members

    hints = _type_hints(cls)
    if dataclasses.is_dataclass(cls):
        members = []
        for f in dataclasses.fields(cls):
            annotation = hints.get(f.name, Any if isinstance(f.type, str) else f.type)
            tag = Tag.coerce(f.metadata.get(TAG_METADATA_KEY)) or _annotated_tag(annotation)
            members.append(_Member(f.name, annotation, tag))
        return members

    return [_Member(attr, hints.get(attr, Any), _annotated_tag(hints.get(attr))) for attr in cls._fields]


def _record_target(annotation: Any) -> type | None:
    """The record class an embedded member points at, looking through Annotated and Optional."""
    while True:
        origin = get_origin(annotation)
        if origin is Annotated:
            annotation = get_args(annotation)[0]
        elif origin is Union or origin is types.UnionType:
            args = [a for a in get_args(annotation) if a is not type(None)]
            if len(args) != 1:
                return None
            annotation = args[0]
        else:
            break
    return annotation if is_record(annotation) else None


def _dominant(group: list[_Candidate]) -> _Candidate | None:
    # Sorted by depth then tagged-first, so the head wins unless the runner-up ties it
    if len(group) > 1 and len(group[0].index) == len(group[1].index) and group[0].tagged == group[1].tagged:
        return None
    return group[0]


def type_fields(record_type: type, registry: TypeRegistry) -> tuple[FieldDescriptor, ...]:
    """
    Compute the encoded members of ``record_type``.

    Args:
        record_type: A record class
        registry: Registry used to pre-resolve the members' shapes

    Returns:
        Field descriptors in declaration order
    """
    found: list[_Candidate] = []
    current: list[tuple[type, tuple[str, ...], tuple[int, ...]]] = []
    following = [(record_type, (), ())]
    count: dict[type, int] = {}
    next_count: dict[type, int] = {}
    visited: set[type] = set()

    while following:
        current, following = following, []
        count, next_count = next_count, {}

        for cls, path, index in current:
            if cls in visited:
                continue
            visited.add(cls)

            for i, member in enumerate(_members(cls)):
                tag = member.tag or Tag()
                if tag.skip:
                    continue
                target = _record_target(member.annotation) if tag.embed else None
                if member.attr.startswith("_") and target is None:
                    continue

                name = tag.name if is_valid_tag(tag.name) else ""
                member_path = path + (member.attr,)
                member_index = index + (i,)

                if name or target is None:
                    candidate = _Candidate(
                        name=name or member.attr,
                        path=member_path,
                        index=member_index,
                        tagged=bool(name),
                        omit_empty=tag.omitempty,
                        annotation=member.annotation,
                    )
                    found.append(candidate)
                    if count.get(cls, 0) > 1:
                        # Embedded more than once at this depth: a duplicate makes the names annihilate
                        found.append(candidate)
                    continue

                next_count[target] = next_count.get(target, 0) + 1
                if next_count[target] == 1:
                    following.append((target, member_path, member_index))

    found.sort(key=lambda c: (c.name, len(c.index), not c.tagged, c.index))

    survivors: list[_Candidate] = []
    for name, group in itertools.groupby(found, key=lambda c: c.name):
        candidates = list(group)
        winner = _dominant(candidates)
        if winner is None:
            logger.debug(f"Dropping ambiguous field {name!r} of {record_type.__qualname__}")
            continue
        survivors.append(winner)

    survivors.sort(key=lambda c: c.index)
    return tuple(_describe(c, registry) for c in survivors)


def _describe(candidate: _Candidate, registry: TypeRegistry) -> FieldDescriptor:
    return FieldDescriptor(
        name=candidate.name,
        path=candidate.path,
        index=candidate.index,
        tagged=candidate.tagged,
        omit_empty=candidate.omit_empty,
        annotation=candidate.annotation,
        hint=registry.hint(candidate.annotation),
        strict_key=b'"' + escape_string(candidate.name).encode("utf-8") + b'":',
        html_key=b'"' + escape_string(candidate.name, escape_html=True).encode("utf-8") + b'":',
        human_key=escape_string(candidate.name).encode("utf-8") + b": ",
    )
