"""
Content-generation providers used by context-aware text generators.
"""

from pm_synth.content.provider import (
    ContentProvider,
    OpenAIContentProvider,
    StaticContentProvider,
)

__all__ = [
    "ContentProvider",
    "OpenAIContentProvider",
    "StaticContentProvider",
]
