"""
Format extractors for event sources.

One extractor per source shape behind the ``EventExtractor`` interface.
"""

from .base import EventExtractor, RawEvent
from .json_ld import JsonLdExtractor
from .ics import IcsExtractor
from .squarespace import SquarespaceExtractor
from .timely import TimelyExtractor
from .bandzoogle import BandzoogleExtractor
from .godaddy import GoDaddyExtractor
from .dusk_fm import DuskFmExtractor
from .elfsight import ElfsightExtractor
from .gigwell import GigwellExtractor
from .prekindle import PrekindleExtractor
from .spothopper import SpotHopperExtractor
from .craftpeak import CraftpeakExtractor
from .square_online import SquareOnlineExtractor
from .vision import VisionExtractor

__all__ = [
    "EventExtractor",
    "RawEvent",
    "JsonLdExtractor",
    "IcsExtractor",
    "SquarespaceExtractor",
    "TimelyExtractor",
    "BandzoogleExtractor",
    "GoDaddyExtractor",
    "DuskFmExtractor",
    "ElfsightExtractor",
    "GigwellExtractor",
    "PrekindleExtractor",
    "SpotHopperExtractor",
    "CraftpeakExtractor",
    "SquareOnlineExtractor",
    "VisionExtractor",
]
