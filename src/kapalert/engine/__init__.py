"""TICKscript codecs: rule -> script generation and script -> rule reversal."""

from kapalert.engine.constants import HTTP_ENDPOINT
from kapalert.engine.generator import TickscriptGenerator, generate
from kapalert.engine.reverse import TickscriptReverser, reverse

__all__ = [
    "HTTP_ENDPOINT",
    "TickscriptGenerator",
    "TickscriptReverser",
    "generate",
    "reverse",
]
