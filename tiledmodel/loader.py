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

Build a MapDocument from a Tiled .tmx file.

All checking of the document happens here.  The model classes trust
whatever they are given, so anything inconsistent must be rejected before
MapDocument is constructed.

"""
from __future__ import annotations

import binascii
import gzip
import logging
import os
import struct
import zlib
from base64 import b64decode
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
from xml.etree import ElementTree

from .objects import (
    Chunk,
    GroupLayer,
    ImageLayer,
    LayerType,
    MapObject,
    ObjectGroup,
    TileLayer,
    Tileset,
)
from .tiledmodel import (
    PROPERTY_TYPES,
    STAGGERED_ORIENTATIONS,
    NO_HEX_SIDE_LENGTH,
    Color,
    ColorProperty,
    FileProperty,
    MapDocument,
    Orientation,
    PropertyValue,
    RenderOrder,
    StaggerAxis,
    StaggerIndex,
)

__all__ = (
    "TiledFormatError",
    "load_tmx",
    "parse_tmx",
    "convert_to_bool",
    "parse_properties",
    "unpack_gids",
)

logger = logging.getLogger(__name__)

_REQUIRED = object()


class TiledFormatError(ValueError):
    """The document cannot be turned into a valid map."""


def fail(msg: str) -> TiledFormatError:
    logger.error(msg)
    return TiledFormatError(msg)


@dataclass
class Context:
    filename: Optional[str] = None
    folder: str = ""
    allow_duplicate_names: bool = False
    resolve_paths: bool = True

    def path(self, source: Optional[str], relative_to: Optional[str] = None) -> Optional[str]:
        """Return source joined with the map folder, if enabled"""
        if not source or not self.resolve_paths:
            return source
        if relative_to:
            source = os.path.join(os.path.dirname(relative_to), source)
        return os.path.join(self.folder, source)


def convert_to_bool(value: Any) -> bool:
    """Convert a few common variations of "true" and "false" to boolean

    Args:
        value (Any): Value to test.

    Raises:
        ValueError: If `value` cannot be converted to a boolean.

    Returns:
        bool: The converted boolean.

    """
    value = str(value).strip()
    if value:
        value = value.lower()[0]
        if value in ("1", "y", "t"):
            return True
        if value in ("-", "0", "n", "f"):
            return False
    else:
        return False
    raise ValueError('cannot parse "{}" as bool'.format(value))


def getdefault(node: ElementTree.Element):
    """Return a getter for node attributes, with type casting and a default

    The getter raises TiledFormatError for a missing required attribute or
    for a value that cannot be cast.

    """

    def get(key: str, type: Callable = None, default: Any = None):
        value = node.get(key)
        if value is None:
            if default is _REQUIRED:
                raise fail(
                    '<{}> is missing required attribute "{}"'.format(node.tag, key)
                )
            return default
        if type is None:
            return value
        try:
            return type(value)
        except ValueError as e:
            msg = '<{}> attribute {}="{}" is invalid: {}'.format(node.tag, key, value, e)
            logger.error(msg)
            raise TiledFormatError(msg) from e

    return get


def reshape_data(gids: List[int], width: int) -> Tuple[Tuple[int, ...], ...]:
    """Change 1D list to 2D tuple of rows"""
    if width <= 0:
        return ()
    return tuple(tuple(gids[i : i + width]) for i in range(0, len(gids), width))


def unpack_gids(
    text: str,
    encoding: Optional[str] = None,
    compression: Optional[str] = None,
) -> List[int]:
    """Return all gids from encoded/compressed layer data

    Args:
        text (str): Layer data in text format.
        encoding (Optional[str]): Encoding used.
        compression (Optional[str]): Compression used.

    Raises:
        TiledFormatError: for unsupported or corrupt data.

    Returns:
        List[int]: List of all the GIDs in the layer.

    """
    if encoding == "base64":
        try:
            data = b64decode(text)
            if compression == "gzip":
                data = gzip.decompress(data)
            elif compression == "zlib":
                data = zlib.decompress(data)
            elif compression:
                raise fail(f"layer compression {compression} is not supported.")
        except (binascii.Error, EOFError, OSError, zlib.error) as e:
            msg = f"cannot decode layer data: {e}"
            logger.error(msg)
            raise TiledFormatError(msg) from e
        if len(data) % 4:
            raise fail(f"layer data is {len(data)} bytes, not a multiple of 4")
        fmt = "<%dL" % (len(data) // 4)
        return list(struct.unpack(fmt, data))
    elif encoding == "csv":
        try:
            return [int(i) for i in text.split(",") if i.strip()]
        except ValueError as e:
            raise fail(f"cannot decode csv layer data: {e}") from e
    raise fail(f"layer encoding {encoding} is not supported.")


def read_data(
    data_node: ElementTree.Element,
    node: Optional[ElementTree.Element] = None,
) -> List[int]:
    """Return gids of a <data> node, or of one of its <chunk> nodes

    Chunks use the encoding and compression of the enclosing <data>.

    """
    if node is None:
        node = data_node
    encoding = data_node.get("encoding")
    if encoding is None:
        # plain xml: one <tile> element per cell
        return [getdefault(tile)("gid", int, 0) for tile in node.findall("tile")]
    text = node.text or ""
    return unpack_gids(text.strip(), encoding, data_node.get("compression"))


def new_property(ctx: Context, node: ElementTree.Element) -> PropertyValue:
    """Return the typed value of a <property> node"""
    get = getdefault(node)
    name = get("name", default=_REQUIRED)
    type_name = get("type", default="string")
    try:
        cls = PROPERTY_TYPES[type_name]
    except KeyError:
        raise fail(
            'property "{}" has unsupported type "{}"'.format(name, type_name)
        ) from None

    # multi-line strings are stored as element text instead of an attribute
    raw = node.get("value")
    if raw is None:
        raw = node.text or ""

    if cls is FileProperty:
        return FileProperty(ctx.path(raw))
    if type_name == "string":
        return cls(raw)
    if cls is ColorProperty:
        # tiled writes value="" for a color that was never picked
        if not raw.strip():
            return ColorProperty(None)
        caster = Color.from_hex
    elif type_name == "bool":
        caster = convert_to_bool
    else:
        caster = {"int": int, "float": float}[type_name]
    try:
        return cls(caster(raw))
    except ValueError as e:
        msg = 'property "{}" value "{}" is not a valid {}'.format(name, raw, type_name)
        logger.error(msg)
        raise TiledFormatError(msg) from e


def parse_properties(ctx: Context, node: ElementTree.Element) -> Dict[str, PropertyValue]:
    """Parse the <properties> child of a Tiled xml node and return a dict.

    Args:
        ctx (Context): Loader settings.
        node (ElementTree.Element): Etree element to inspect.

    Raises:
        TiledFormatError: for bad types, bad values or duplicate names.

    Returns:
        Dict[str, PropertyValue]: Dictionary of the properties.

    """
    d = dict()
    for child in node.findall("properties"):
        for subnode in child.findall("property"):
            name = subnode.get("name")
            value = new_property(ctx, subnode)
            if name in d and not ctx.allow_duplicate_names:
                raise fail(
                    'duplicate property "{}" on <{}> "{}"'.format(
                        name, node.tag, node.get("name", "")
                    )
                )
            d[name] = value
    return d


def new_tileset(ctx: Context, node: ElementTree.Element) -> Tileset:
    """Return Tileset for a <tileset> node, loading external .tsx files"""
    get = getdefault(node)
    firstgid = get("firstgid", int, _REQUIRED)
    source = get("source")
    if source:
        # external tilesets don't store firstgid, it stays on the map node
        path = os.path.join(ctx.folder, source)
        logger.debug("loading external tileset %s", path)
        try:
            node = ElementTree.parse(path).getroot()
        except OSError as e:
            msg = "Cannot find tileset file {0} from {1}, should be at {2}".format(
                source, ctx.filename, path
            )
            logger.error(msg)
            raise TiledFormatError(msg) from e
        except ElementTree.ParseError as e:
            msg = "Error loading external tileset: {0}".format(path)
            logger.error(msg)
            raise TiledFormatError(msg) from e
        get = getdefault(node)

    image = None
    image_node = node.find("image")
    if image_node is not None:
        image = ctx.path(image_node.get("source"), relative_to=source)

    return Tileset(
        firstgid=firstgid,
        name=get("name", default=""),
        tilewidth=get("tilewidth", int, _REQUIRED),
        tileheight=get("tileheight", int, _REQUIRED),
        spacing=get("spacing", int, 0),
        margin=get("margin", int, 0),
        tilecount=get("tilecount", int, 0),
        columns=get("columns", int, 0),
        source=ctx.path(source),
        image=image,
        properties=parse_properties(ctx, node),
    )


def layer_attributes(ctx: Context, node: ElementTree.Element, parent) -> Dict:
    get = getdefault(node)
    return dict(
        id=get("id", int, 0),
        name=get("name", default=""),
        visible=get("visible", convert_to_bool, True),
        opacity=get("opacity", float, 1.0),
        offsetx=get("offsetx", float, 0.0),
        offsety=get("offsety", float, 0.0),
        parent=parent,
        properties=parse_properties(ctx, node),
    )


def new_tilelayer(ctx: Context, node: ElementTree.Element, parent) -> TileLayer:
    get = getdefault(node)
    width = get("width", int, 0)
    height = get("height", int, 0)
    data = ()
    chunks = []
    data_node = node.find("data")
    if data_node is not None:
        chunk_nodes = data_node.findall("chunk")
        if chunk_nodes:
            for chunk_node in chunk_nodes:
                get_chunk = getdefault(chunk_node)
                x = get_chunk("x", int, 0)
                y = get_chunk("y", int, 0)
                chunk_width = get_chunk("width", int, _REQUIRED)
                chunk_height = get_chunk("height", int, _REQUIRED)
                gids = read_data(data_node, chunk_node)
                if len(gids) != chunk_width * chunk_height:
                    raise fail(
                        'layer "{}" chunk at ({}, {}) has {} tiles, expected {}x{}'.format(
                            node.get("name", ""), x, y, len(gids), chunk_width, chunk_height
                        )
                    )
                chunks.append(
                    Chunk(
                        x=x,
                        y=y,
                        width=chunk_width,
                        height=chunk_height,
                        data=reshape_data(gids, chunk_width),
                    )
                )
        else:
            gids = read_data(data_node)
            if len(gids) != width * height:
                raise fail(
                    'layer "{}" has {} tiles, expected {}x{}'.format(
                        node.get("name", ""), len(gids), width, height
                    )
                )
            data = reshape_data(gids, width)

    return TileLayer(
        width=width,
        height=height,
        data=data,
        chunks=tuple(chunks),
        **layer_attributes(ctx, node, parent),
    )


def new_object(ctx: Context, node: ElementTree.Element) -> MapObject:
    get = getdefault(node)
    return MapObject(
        id=get("id", int, 0),
        name=get("name"),
        type=get("type") or get("class"),
        x=get("x", float, 0.0),
        y=get("y", float, 0.0),
        width=get("width", float, 0.0),
        height=get("height", float, 0.0),
        rotation=get("rotation", float, 0.0),
        gid=get("gid", int, 0),
        visible=get("visible", convert_to_bool, True),
        properties=parse_properties(ctx, node),
    )


def new_objectgroup(ctx: Context, node: ElementTree.Element, parent) -> ObjectGroup:
    get = getdefault(node)
    return ObjectGroup(
        color=get("color", Color.from_hex),
        draworder=get("draworder", default="topdown"),
        objects=[new_object(ctx, child) for child in node.findall("object")],
        **layer_attributes(ctx, node, parent),
    )


def new_imagelayer(ctx: Context, node: ElementTree.Element, parent) -> ImageLayer:
    source = trans = None
    image_node = node.find("image")
    if image_node is not None:
        get = getdefault(image_node)
        source = ctx.path(get("source"))
        trans = get("trans", Color.from_hex)
    return ImageLayer(
        source=source,
        trans=trans,
        **layer_attributes(ctx, node, parent),
    )


def new_group(ctx: Context, node: ElementTree.Element, parent) -> GroupLayer:
    return GroupLayer(**layer_attributes(ctx, node, parent))


factory = {
    "layer": new_tilelayer,
    "objectgroup": new_objectgroup,
    "imagelayer": new_imagelayer,
    "group": new_group,
}


def read_layers(
    ctx: Context,
    node: ElementTree.Element,
    parent: Optional[GroupLayer],
    layers: List[LayerType],
) -> List[LayerType]:
    """Append the layers below node to layers, groups before their children"""
    for child in node:
        try:
            new = factory[child.tag]
        except KeyError:
            continue
        layer = new(ctx, child, parent)
        layers.append(layer)
        if isinstance(layer, GroupLayer):
            read_layers(ctx, child, layer, layers)
    return layers


def new_map(ctx: Context, node: ElementTree.Element) -> MapDocument:
    """Return a MapDocument for a <map> node"""
    if node.tag != "map":
        raise fail('expected a <map> root element, found <{}>'.format(node.tag))
    get = getdefault(node)

    orientation = get("orientation", Orientation, _REQUIRED)
    renderorder = get("renderorder", RenderOrder, RenderOrder.RIGHT_DOWN)

    # attributes that only mean something for some orientations
    hexsidelength = NO_HEX_SIDE_LENGTH
    if orientation is Orientation.HEXAGONAL:
        hexsidelength = get("hexsidelength", int, _REQUIRED)
        if hexsidelength <= 0:
            raise fail("hexsidelength must be positive, got {}".format(hexsidelength))
    elif node.get("hexsidelength") is not None:
        logger.debug("ignoring hexsidelength on %s map", orientation.value)

    staggeraxis = staggerindex = None
    if orientation in STAGGERED_ORIENTATIONS:
        staggeraxis = get("staggeraxis", StaggerAxis, _REQUIRED)
        staggerindex = get("staggerindex", StaggerIndex, _REQUIRED)
    elif node.get("staggeraxis") or node.get("staggerindex"):
        logger.debug("ignoring stagger attributes on %s map", orientation.value)

    tilewidth = get("tilewidth", int, _REQUIRED)
    tileheight = get("tileheight", int, _REQUIRED)
    if tilewidth <= 0 or tileheight <= 0:
        raise fail(
            "tile size must be positive, got {}x{}".format(tilewidth, tileheight)
        )

    # ***    tilesets must keep their document order    *** #
    tilesets = list()
    for subnode in node.findall("tileset"):
        tileset = new_tileset(ctx, subnode)
        if tilesets and tileset.firstgid <= tilesets[-1].firstgid:
            raise fail(
                'tileset "{}" firstgid {} does not follow "{}" firstgid {}'.format(
                    tileset.name,
                    tileset.firstgid,
                    tilesets[-1].name,
                    tilesets[-1].firstgid,
                )
            )
        tilesets.append(tileset)

    layers = read_layers(ctx, node, None, list())
    logger.debug(
        "read %d tilesets and %d layers from %s", len(tilesets), len(layers), ctx.filename
    )

    return MapDocument(
        orientation=orientation,
        renderorder=renderorder,
        width=get("width", int, 0),
        height=get("height", int, 0),
        tilewidth=tilewidth,
        tileheight=tileheight,
        hexsidelength=hexsidelength,
        staggeraxis=staggeraxis,
        staggerindex=staggerindex,
        background_color=get("backgroundcolor", Color.from_hex),
        tilesets=tilesets,
        layers=layers,
        properties=parse_properties(ctx, node),
        infinite=get("infinite", convert_to_bool, False),
        filename=ctx.filename,
    )


def _context(filename: Optional[str], kwargs: Dict) -> Context:
    # optional keyword arguments checked here
    return Context(
        filename=filename,
        folder=os.path.dirname(filename) if filename else "",
        allow_duplicate_names=kwargs.get("allow_duplicate_names", False),
        resolve_paths=kwargs.get("resolve_paths", True),
    )


def parse_tmx(text: str, filename: Optional[str] = None, **kwargs) -> MapDocument:
    """Return a MapDocument from a TMX xml string.

    Args:
        text (str): The xml document.
        filename (Optional[str]): Where the document came from.  Relative
            paths in the map are resolved against its folder.
        allow_duplicate_names (bool): Let a repeated property name replace
            the earlier one instead of failing.
        resolve_paths (bool): Join tileset, image and file property paths
            with the map folder.

    Raises:
        TiledFormatError: if the document is not a valid map.

    """
    try:
        root = ElementTree.fromstring(text)
    except ElementTree.ParseError as e:
        msg = "Map {0} is not valid xml: {1}".format(filename, e)
        logger.error(msg)
        raise TiledFormatError(msg) from e
    return new_map(_context(filename, kwargs), root)


def load_tmx(filename: str, **kwargs) -> MapDocument:
    """Load a MapDocument from a .tmx file.

    Accepts the same keyword arguments as parse_tmx.

    Raises:
        OSError: if the file cannot be read.
        TiledFormatError: if the file is not a valid map.

    """
    logger.debug("loading map %s", filename)
    try:
        root = ElementTree.parse(filename).getroot()
    except ElementTree.ParseError as e:
        msg = "Map {0} is not valid xml: {1}".format(filename, e)
        logger.error(msg)
        raise TiledFormatError(msg) from e
    return new_map(_context(filename, kwargs), root)
