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

from dataclasses import dataclass, field
from typing import Iterator, Mapping, Optional, Tuple, Union

from .tiledmodel import Color, PropertyValue, freeze_properties

__all__ = (
    "Tileset",
    "Layer",
    "TileLayer",
    "Chunk",
    "ObjectGroup",
    "MapObject",
    "ImageLayer",
    "GroupLayer",
    "LayerType",
)

Properties = Mapping[str, PropertyValue]
TileData = Tuple[Tuple[int, ...], ...]


class _FrozenProperties:
    """Mixin for frozen dataclasses with a ``properties`` field."""

    def __post_init__(self):
        object.__setattr__(self, "properties", freeze_properties(self.properties))

    def get_property(self, name: str) -> Optional[PropertyValue]:
        return self.properties.get(name)


@dataclass(frozen=True, eq=False)
class Tileset(_FrozenProperties):
    """A tileset, embedded in the map or loaded from a .tsx file.

    Tilesets of one map are ordered by firstgid; the gids of a tileset run
    from firstgid to lastgid.

    """

    firstgid: int
    name: str
    tilewidth: int
    tileheight: int
    spacing: int = 0
    margin: int = 0
    tilecount: int = 0
    columns: int = 0
    source: Optional[str] = None  # path of the .tsx file, if external
    image: Optional[str] = None
    properties: Properties = None

    @property
    def lastgid(self) -> int:
        return self.firstgid + max(self.tilecount, 1) - 1

    def __repr__(self):
        return '<{}[{}]: "{}">'.format(self.__class__.__name__, self.firstgid, self.name)


@dataclass(frozen=True, eq=False)
class Layer(_FrozenProperties):
    """Fields shared by every kind of layer.

    parent is the enclosing GroupLayer, or None for top-level layers.  It is
    a plain reference into the same map's layer tuple; a group does not hold
    its children, ask the map with MapDocument.get_children().

    """

    id: int
    name: str
    visible: bool = True
    opacity: float = 1.0
    offsetx: float = 0.0
    offsety: float = 0.0
    parent: Optional[GroupLayer] = None
    properties: Properties = None

    def __repr__(self):
        return '<{}[{}]: "{}">'.format(self.__class__.__name__, self.id, self.name)


@dataclass(frozen=True, eq=False)
class Chunk:
    x: int
    y: int
    width: int
    height: int
    data: TileData


@dataclass(frozen=True, eq=False)
class TileLayer(Layer):
    """A layer of tiles.

    data holds one tuple of raw gids per row.  For infinite maps data is
    empty and the tiles are in chunks instead.

    """

    width: int = 0
    height: int = 0
    data: TileData = ()
    chunks: Tuple[Chunk, ...] = ()

    def __iter__(self):
        return self.iter_data()

    def iter_data(self) -> Iterator[Tuple[int, int, int]]:
        """Yields X, Y, GID tuples for each tile in the layer.

        Chunks are included, with their coordinates offset by the chunk
        position.

        """
        for y, row in enumerate(self.data):
            for x, gid in enumerate(row):
                yield x, y, gid
        for chunk in self.chunks:
            for y, row in enumerate(chunk.data):
                for x, gid in enumerate(row):
                    yield chunk.x + x, chunk.y + y, gid


@dataclass(frozen=True, eq=False)
class MapObject(_FrozenProperties):
    id: int
    name: Optional[str] = None
    type: Optional[str] = None
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    rotation: float = 0.0
    gid: int = 0
    visible: bool = True
    properties: Properties = None

    def __repr__(self):
        return '<{}[{}]: "{}">'.format(self.__class__.__name__, self.id, self.name)


@dataclass(frozen=True, eq=False)
class ObjectGroup(Layer):
    """A layer of objects.  Iterating it yields its objects."""

    color: Optional[Color] = None
    draworder: str = "topdown"
    objects: Tuple[MapObject, ...] = field(default=())

    def __post_init__(self):
        Layer.__post_init__(self)
        object.__setattr__(self, "objects", tuple(self.objects))

    def __iter__(self) -> Iterator[MapObject]:
        return iter(self.objects)


@dataclass(frozen=True, eq=False)
class ImageLayer(Layer):
    source: Optional[str] = None
    trans: Optional[Color] = None


@dataclass(frozen=True, eq=False)
class GroupLayer(Layer):
    pass


LayerType = Union[TileLayer, ObjectGroup, ImageLayer, GroupLayer]
