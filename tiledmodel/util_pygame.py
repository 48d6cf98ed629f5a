# -*- coding: utf-8 -*-
"""
Copyright (C) 2012-2017, Leif Theden <leif.theden@gmail.com>

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
License along with tiledmodel.  If not, see <http://www.gnu.org/licenses/>.
"""
import logging
from typing import Dict, Mapping, Optional, Union

from tiledmodel.tiledmodel import Color, ColorProperty, MapDocument, PropertyValue

logger = logging.getLogger(__name__)

try:
    import pygame
except ImportError:
    logger.error("cannot import pygame (is it installed?)")
    raise

__all__ = ["pygame_color", "get_background_color", "color_properties"]

ColorLike = Union[pygame.Color, tuple, str]


def pygame_color(color: Color) -> pygame.Color:
    """
    Return a new pygame Color with the same channels

    Parameters:
        color: tiledmodel Color

    Returns:
        pygame.Color

    """
    return pygame.Color(color.r, color.g, color.b, color.a)


def get_background_color(
    tiled_map: MapDocument,
    default: Optional[ColorLike] = None,
) -> Optional[pygame.Color]:
    """
    Return the map background as a pygame Color

    Maps without a background color return the default, converted to a
    pygame Color when one is given.  Note the default is not a property of
    the map; an unset background means "draw nothing".

    Parameters:
        tiled_map: the map
        default: fallback when the map has no background color

    Returns:
        pygame.Color, or None

    """
    if tiled_map.background_color is not None:
        return pygame_color(tiled_map.background_color)
    if default is None:
        return None
    return pygame.Color(default)


def color_properties(
    properties: Mapping[str, PropertyValue],
) -> Dict[str, pygame.Color]:
    """
    Return the color properties of a property mapping as pygame Colors

    Color properties left empty in the editor are skipped.

    """
    return {
        name: pygame_color(prop.value)
        for name, prop in properties.items()
        if isinstance(prop, ColorProperty) and prop.value is not None
    }
