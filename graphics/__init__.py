from .anovaplot import AnovaPlot, Encoding, Layer, Panel, build_figure_description
from .anovapanelplot import AnovaPanelPlot
from . import other
