"""binlayout codec generator."""

from .config import EnvelopeFamily as EnvelopeFamily
from .config import GeneratorConfig as GeneratorConfig
from .config import load_config as load_config
from .inline import InlineFlattener as InlineFlattener
from .layout import LayoutResolver as LayoutResolver
from .loader import load_schema as load_schema
from .loader import parse_entities as parse_entities
from .sizes import EntitySizeInfo as EntitySizeInfo
from .sizes import SizeCalculator as SizeCalculator
from .sizes import SizeInfo as SizeInfo
from .sizes import SizeKind as SizeKind
from .sizes import calculate_sizes as calculate_sizes
from .types import *
