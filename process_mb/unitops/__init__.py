from .mixer import Mixer, mixer
from .splitter import FlowSplitter, flowsplitter
from .species_splitter import ComponentSplitter, componentsplitter
from .stoich_reactor import Reaction, StoichiometricReactor, check_conversions, stoichiometric_reactor
