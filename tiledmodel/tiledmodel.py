"""
Copyright (C) 2012-2023, Leif Theden <leif.theden@gmail.com>

This file is part of tiledmodel.

tiledmodel is free software: you can redistribute it and/or modify
it under the terms of the GNU Lesser General Public License as
published by the Free Software Foundation, either version 3 of the
License, or (at your option) any later version.

tiledmodel is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU Lesser General Public License for more details.

You should have received a copy of the GNU Lesser General Public
License along with tiledmodel.  If not, see <https://www.gnu.org/licenses/>.

"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from operator import attrgetter
from string import hexdigits
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    ClassVar,
    Dict,
    Iterator,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

if TYPE_CHECKING:
    from .objects import GroupLayer, LayerType, Tileset

__all__ = (
    "Orientation",
    "RenderOrder",
    "StaggerAxis",
    "StaggerIndex",
    "Color",
    "StringProperty",
    "IntProperty",
    "FloatProperty",
    "BoolProperty",
    "ColorProperty",
    "FileProperty",
    "PropertyValue",
    "PROPERTY_TYPES",
    "MapDocument",
    "freeze_properties",
    "GID_MASK",
)

logger = logging.getLogger(__name__)

# Tiled gid flags
GID_TRANS_FLIPX = 1 << 31
GID_TRANS_FLIPY = 1 << 30
GID_TRANS_ROT = 1 << 29
GID_MASK = GID_TRANS_FLIPX | GID_TRANS_FLIPY | GID_TRANS_ROT

NO_HEX_SIDE_LENGTH = -1


class Orientation(Enum):
    """Grid projection of a map.  Values are the TMX attribute strings."""

    ORTHOGONAL = "orthogonal"
    ISOMETRIC = "isometric"
    STAGGERED = "staggered"
    HEXAGONAL = "hexagonal"


class RenderOrder(Enum):
    """Order in which the tiles of a tile layer are drawn."""

    RIGHT_DOWN = "right-down"
    RIGHT_UP = "right-up"
    LEFT_DOWN = "left-down"
    LEFT_UP = "left-up"


class StaggerAxis(Enum):
    X = "x"
    Y = "y"


class StaggerIndex(Enum):
    EVEN = "even"
    ODD = "odd"


STAGGERED_ORIENTATIONS = frozenset((Orientation.STAGGERED, Orientation.HEXAGONAL))


@dataclass(frozen=True)
class Color:
    """RGBA color, each channel 0-255."""

    r: int
    g: int
    b: int
    a: int = 255

    @classmethod
    def from_hex(cls, text: str) -> Color:
        """Parse a Tiled color string.

        Tiled writes colors as "#AARRGGBB", or "#RRGGBB" when fully opaque.
        The leading "#" is optional.

        Args:
            text (str): Color string.

        Raises:
            ValueError: if `text` is not a valid color.

        Returns:
            Color: The parsed color.

        """
        value = text.strip().lstrip("#")
        if len(value) not in (6, 8) or not all(c in hexdigits for c in value):
            raise ValueError('cannot parse "{}" as a color'.format(text))
        channels = [int(value[i : i + 2], 16) for i in range(0, len(value), 2)]
        if len(value) == 8:
            a, r, g, b = channels
        else:
            r, g, b = channels
            a = 255
        return cls(r, g, b, a)

    def to_hex(self) -> str:
        """Return the color as "#AARRGGBB"."""
        return "#{:02x}{:02x}{:02x}{:02x}".format(self.a, self.r, self.g, self.b)

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return self.r, self.g, self.b, self.a


# The six kinds of custom property value.  Each variant wraps exactly one
# python value; type_name is the TMX "type" attribute that produces it.


@dataclass(frozen=True)
class StringProperty:
    type_name: ClassVar[str] = "string"
    value: str


@dataclass(frozen=True)
class IntProperty:
    type_name: ClassVar[str] = "int"
    value: int


@dataclass(frozen=True)
class FloatProperty:
    type_name: ClassVar[str] = "float"
    value: float


@dataclass(frozen=True)
class BoolProperty:
    type_name: ClassVar[str] = "bool"
    value: bool


@dataclass(frozen=True)
class ColorProperty:
    """Color property.  value is None when the color was left empty."""

    type_name: ClassVar[str] = "color"
    value: Optional[Color]


@dataclass(frozen=True)
class FileProperty:
    type_name: ClassVar[str] = "file"
    value: str


PropertyValue = Union[
    StringProperty,
    IntProperty,
    FloatProperty,
    BoolProperty,
    ColorProperty,
    FileProperty,
]

PROPERTY_TYPES = MappingProxyType(
    {
        cls.type_name: cls
        for cls in (
            StringProperty,
            IntProperty,
            FloatProperty,
            BoolProperty,
            ColorProperty,
            FileProperty,
        )
    }
)


def freeze_properties(
    properties: Optional[Mapping[str, PropertyValue]],
) -> Mapping[str, PropertyValue]:
    """Copy a property mapping into a read-only view.

    Args:
        properties (Optional[Mapping[str, PropertyValue]]): Properties, or None.

    Returns:
        Mapping[str, PropertyValue]: Read-only mapping, empty if None was given.

    """
    return MappingProxyType(dict(properties or {}))


@dataclass(frozen=True, eq=False)
class MapDocument:
    """An immutable, fully decoded Tiled map.

    A MapDocument is a plain value carrier.  The fields that depend on the
    orientation are stored exactly as given:

    * hexsidelength is only meaningful for hexagonal maps and is -1 otherwise
    * staggeraxis and staggerindex are only meaningful for staggered and
      hexagonal maps and are None otherwise

    Keeping these consistent is the job of whoever builds the document (see
    tiledmodel.loader); the constructor does not reject anything.

    layers is flattened in pre-order: group layers come before their
    children, and every layer's parent appears earlier in the tuple.  A
    single forward pass over layers can therefore rebuild the whole tree.

    """

    orientation: Orientation
    renderorder: RenderOrder
    width: int
    height: int
    tilewidth: int
    tileheight: int
    hexsidelength: int
    staggeraxis: Optional[StaggerAxis]
    staggerindex: Optional[StaggerIndex]
    background_color: Optional[Color]
    tilesets: Tuple[Tileset, ...]
    layers: Tuple[LayerType, ...]
    properties: Mapping[str, PropertyValue] = None
    infinite: bool = False
    filename: Optional[str] = None
    _children: Mapping[int, Tuple[LayerType, ...]] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self):
        # frozen dataclass, so the normalized collections go in through object
        object.__setattr__(self, "tilesets", tuple(self.tilesets))
        object.__setattr__(self, "layers", tuple(self.layers))
        object.__setattr__(self, "properties", freeze_properties(self.properties))
        object.__setattr__(self, "_children", self._index_children(self.layers))

        # debug-only checks for decoder bugs; stripped under python -O
        assert (
            self.orientation is Orientation.HEXAGONAL
            or self.hexsidelength == NO_HEX_SIDE_LENGTH
        ), "hexsidelength set on a {} map".format(self.orientation.value)
        assert self.orientation in STAGGERED_ORIENTATIONS or (
            self.staggeraxis is None and self.staggerindex is None
        ), "stagger fields set on a {} map".format(self.orientation.value)

    @staticmethod
    def _index_children(
        layers: Sequence[LayerType],
    ) -> Mapping[int, Tuple[LayerType, ...]]:
        seen = set()
        children: Dict[int, list] = dict()
        for layer in layers:
            parent = layer.parent
            if parent is not None:
                assert id(parent) in seen, 'layer "{}" precedes its parent "{}"'.format(
                    layer.name, parent.name
                )
                children.setdefault(id(parent), []).append(layer)
            seen.add(id(layer))
        return MappingProxyType({k: tuple(v) for k, v in children.items()})

    def __repr__(self):
        if self.filename:
            return '<{0}: "{1}">'.format(self.__class__.__name__, self.filename)
        return "<{0}: {1} {2}x{3}>".format(
            self.__class__.__name__, self.orientation.value, self.width, self.height
        )

    def __iter__(self) -> Iterator[LayerType]:
        return iter(self.layers)

    @property
    def is_staggered(self) -> bool:
        """True if the stagger fields apply to this map's orientation."""
        return self.orientation in STAGGERED_ORIENTATIONS

    @property
    def top_level_layers(self) -> Tuple[LayerType, ...]:
        """Layers that are not inside any group, in document order."""
        return tuple(layer for layer in self.layers if layer.parent is None)

    def get_tilesets(self) -> Tuple[Tileset, ...]:
        return self.tilesets

    def get_layers(self) -> Tuple[LayerType, ...]:
        return self.layers

    def get_properties(self) -> Mapping[str, PropertyValue]:
        return self.properties

    def get_property(self, name: str) -> Optional[PropertyValue]:
        """Return a custom property, or None if the map has no such property.

        Args:
            name (str): The property's name. Case-sensitive!

        Returns:
            Optional[PropertyValue]: The typed property value.

        """
        return self.properties.get(name)

    def get_children(self, group: GroupLayer) -> Tuple[LayerType, ...]:
        """Return the direct children of a group layer, in document order.

        Args:
            group (GroupLayer): A group layer of this map.

        Returns:
            Tuple[LayerType, ...]: The children; empty for non-groups.

        """
        return self._children.get(id(group), ())

    def iter_descendants(self, group: GroupLayer) -> Iterator[LayerType]:
        """Yields every layer nested below a group, in document order."""
        for child in self.get_children(group):
            yield child
            yield from self.iter_descendants(child)

    def get_layer_by_name(self, name: str) -> LayerType:
        """Return the first layer with this name.

        Args:
            name (str): The layer's name. Case-sensitive!

        Raises:
            ValueError: if layer by name does not exist

        """
        for layer in self.layers:
            if layer.name == name:
                return layer
        msg = 'Layer "{0}" not found.'
        logger.debug(msg.format(name))
        raise ValueError(msg.format(name))

    def get_tileset_from_gid(self, gid: int) -> Tileset:
        """Return tileset that owns the gid.

        Flip flags in the gid are ignored.

        Args:
            gid (int): Global tile id, as found in layer data.

        Raises:
            ValueError: if the tileset for gid is not found

        """
        tiled_gid = int(gid) & ~GID_MASK
        if tiled_gid > 0:
            for tileset in sorted(
                self.tilesets, key=attrgetter("firstgid"), reverse=True
            ):
                if tiled_gid >= tileset.firstgid:
                    return tileset
        msg = "Tileset not found for GID {0}"
        logger.debug(msg.format(gid))
        raise ValueError(msg.format(gid))
