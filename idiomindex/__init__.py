"""idiomindex - semantic idiom lookup by embedding similarity.

Associate values with descriptive phrases, then find the values whose phrases
are nearest to a query or to the recent turns of a conversation.
"""

__version__ = "0.1.0"
__author__ = "idiomindex contributors"

from idiomindex.config import Settings, get_settings
from idiomindex.index import Idiom, Index, define_idiom, define_idioms, define_index
from idiomindex.context import AgentContext

__all__ = [
    "AgentContext",
    "Idiom",
    "Index",
    "Settings",
    "define_idiom",
    "define_idioms",
    "define_index",
    "get_settings",
    "__version__",
]
