"""
Copyright (C) 2012-2021, Leif Theden <leif.theden@gmail.com>

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

from .tiledmodel import *
from .objects import *
from .loader import TiledFormatError, load_tmx, parse_tmx

logger = logging.getLogger(__name__)

try:
    from tiledmodel.util_pygame import get_background_color, pygame_color
except ImportError:
    logger.debug("cannot import pygame tools")

__version__ = (1, 0)
__author__ = "bitcraft"
__author_email__ = "leif.theden@gmail.com"
__description__ = "Immutable object model for Tiled TMX maps - Python 3.7 +"
