from pathlib import Path
from typing import *

import matplotlib.pyplot as plt
import numpy
import pandas
import seaborn
from loguru import logger

from analysis import grouptools


class Encoding:
	""" Maps table columns to the visual channels of a plot.
		Parameters
		----------
		x: str
			The categorical (or, for line charts, numeric) column on the x-axis.
		y: str
			The column of the plotted means.
		color: Optional[str]
			Groups within each x category. Defaults to `x`.
		shape: Optional[str]
			Selects the marker of the points and observations.
		facet: Optional[str]
			One panel is drawn for each level of this column.
		lower, upper: Optional[str]
			The bounds of the error bars.
		label: Optional[str]
			Text drawn above each error bar. Ex. the letter groupings.
		points: Optional[str]
			The column of the raw observations to draw behind the means.
	"""

	def __init__(self, x: str, y: str, color: Optional[str] = None, facet: Optional[str] = None, lower: Optional[str] = None,
			upper: Optional[str] = None, label: Optional[str] = None, points: Optional[str] = None, shape: Optional[str] = None):
		if (lower is None) != (upper is None):
			raise ValueError("Both `lower` and `upper` are required for error bars.")
		self.x = x
		self.y = y
		self.color = color if color else x
		self.shape = shape
		self.facet = facet
		self.lower = lower
		self.upper = upper
		self.label = label
		self.points = points

	def __repr__(self) -> str:
		return f"Encoding(x = '{self.x}', y = '{self.y}', color = '{self.color}', facet = {self.facet!r})"


class Layer:
	def __init__(self, kind: str, data: pandas.DataFrame, x: str, y: str, color: str, lower: Optional[str] = None,
			upper: Optional[str] = None, label: Optional[str] = None, shape: Optional[str] = None):
		self.kind = kind
		self.data = data
		self.x = x
		self.y = y
		self.color = color
		self.shape = shape
		self.lower = lower
		self.upper = upper
		self.label = label

	def __repr__(self) -> str:
		return f"Layer('{self.kind}', rows = {len(self.data)})"


class Panel:
	def __init__(self, title: str, layers: List[Layer], order_x: List[Any], order_color: List[Any], xlabel: str, ylabel: str):
		self.title = title
		self.layers = layers
		self.order_x = order_x
		self.order_color = order_color
		self.xlabel = xlabel
		self.ylabel = ylabel

	def get_layer(self, kind: str) -> Optional[Layer]:
		for layer in self.layers:
			if layer.kind == kind:
				return layer
		return None

	def __repr__(self) -> str:
		return f"Panel('{self.title}', {self.layers})"


def build_figure_description(means: pandas.DataFrame, encoding: Encoding, kind: str = 'bar', observations: Optional[pandas.DataFrame] = None,
		ylabel: Optional[str] = None, label_order_x: Optional[List[str]] = None) -> List[Panel]:
	"""
		Describes the panels of a figure without drawing anything.
	Parameters
	----------
	means: pandas.DataFrame
		The summarized table. Feeds the bars/points/lines, the error bars, and the labels.
	encoding: Encoding
	kind: {'bar', 'point', 'line'}
	observations: Optional[pandas.DataFrame]
		The raw observations, drawn as a strip of points when `encoding.points` is set.
	ylabel: Optional[str]
	label_order_x: Optional[List[str]]
		The order of the x-axis categories. Categories not in the list are added at the end.
	"""
	if kind not in ('bar', 'point', 'line'):
		raise ValueError(f"Unknown plot type '{kind}'")
	if encoding.facet is None:
		facets = [(None, means, observations)]
	else:
		facets = list()
		for level in grouptools.order_levels(means[encoding.facet].astype(str)):
			subset = means[means[encoding.facet].astype(str) == level]
			if observations is not None and encoding.facet in observations.columns:
				observed = observations[observations[encoding.facet].astype(str) == level]
			else:
				observed = observations
			facets.append((level, subset, observed))

	panels = list()
	for level, subset, observed in facets:
		if kind == 'line':
			order_x = sorted(subset[encoding.x].unique())
		else:
			order_x = grouptools.order_levels(subset[encoding.x], label_order_x)
		order_color = grouptools.order_levels(subset[encoding.color], label_order_x if encoding.color == encoding.x else None)

		layers = list()
		if observed is not None and encoding.points is not None:
			# Only keep observations that have a matching mean.
			observed = observed[observed[encoding.x].isin(order_x) & observed[encoding.color].isin(order_color)]
			layers.append(Layer('strip', observed, encoding.x, encoding.points, encoding.color, shape = encoding.shape))
		layers.append(Layer(kind, subset, encoding.x, encoding.y, encoding.color, shape = encoding.shape if kind == 'point' else None))
		if encoding.lower is not None:
			layers.append(Layer('errorbar', subset, encoding.x, encoding.y, encoding.color, encoding.lower, encoding.upper))
		if encoding.label is not None:
			top = encoding.upper if encoding.upper is not None else encoding.y
			layers.append(Layer('text', subset, encoding.x, top, encoding.color, label = encoding.label))

		title = "" if level is None else f"{encoding.facet} = {level}"
		panels.append(Panel(title, layers, order_x, order_color, encoding.x, ylabel if ylabel else encoding.y))
	return panels


class AnovaPlot:
	""" Draws the panels produced by `build_figure_description`."""

	def __init__(self):
		self.dodge_value = 0.8  # The total width shared by the color groups in each x category.
		self.marker_mean = 'D'
		self.markers = ['o', 's', '^', 'v', 'D', 'P']  # Used when the encoding has a `shape` column.
		self.marker_point_size = 12
		self.marker_point_alpha = 0.40  # Controls the transparency of the plotted observations.
		self.jitter = 0.08
		self.errorbar_capsize = 3
		self.label_fontsize = 9

		# Parameters to adjust the appearance of the plots
		self.color_background = "#FFFFFF"
		self.color_axis = '#000000'
		self.color_errorbar = '#333333'
		self.color_palette_key = 'tab10'

	def _get_color_palette(self, labels: List[str]) -> Dict[str, Any]:
		""" Makes sure every layer uses the same color for a given label."""
		color_palette = seaborn.color_palette(self.color_palette_key, len(labels))
		return {label: color for label, color in zip(labels, color_palette)}

	def _positions(self, data: pandas.DataFrame, panel: Panel, x: str, color: str) -> numpy.ndarray:
		""" The x-coordinate of each row. Color groups are dodged within each x category."""
		if x == color:
			offsets = {label: 0.0 for label in panel.order_color}
		else:
			width = self.dodge_value / len(panel.order_color)
			offsets = {label: (index - (len(panel.order_color) - 1) / 2) * width for index, label in enumerate(panel.order_color)}
		index_x = {label: index for index, label in enumerate(panel.order_x)}
		return numpy.array([index_x[i] + offsets[j] for i, j in zip(data[x], data[color])])

	def _marker_groups(self, data: pandas.DataFrame, shape: Optional[str], default: str) -> List[Tuple[str, List[int]]]:
		""" Splits the row positions by the level of the `shape` column, each with its own marker."""
		if shape is None or shape not in data.columns:
			return [(default, list(range(len(data))))]
		levels = grouptools.order_levels(data[shape].astype(str))
		markers = {level: self.markers[index % len(self.markers)] for index, level in enumerate(levels)}
		groups = dict()
		for position, level in enumerate(data[shape].astype(str)):
			groups.setdefault(level, []).append(position)
		return [(markers[level], groups[level]) for level in levels]

	def _bar_width(self, panel: Panel, layer: Layer) -> float:
		if layer.x == layer.color:
			return self.dodge_value
		return self.dodge_value / len(panel.order_color)

	def render_panel(self, panel: Panel, ax: plt.Axes) -> plt.Axes:
		palette = self._get_color_palette(panel.order_color)
		is_line = panel.get_layer('line') is not None
		for layer in panel.layers:
			data = layer.data
			if data.empty:
				continue
			colors = [palette[i] for i in data[layer.color]]
			if is_line:
				positions = data[layer.x].values.astype(float)
			else:
				positions = self._positions(data, panel, layer.x, layer.color)

			if layer.kind == 'strip':
				generator = numpy.random.default_rng(0)
				jittered = positions + generator.uniform(-self.jitter, self.jitter, len(positions))
				for marker, rows in self._marker_groups(data, layer.shape, 'o'):
					ax.scatter(jittered[rows], data[layer.y].values[rows], c = [colors[i] for i in rows], marker = marker,
						s = self.marker_point_size, alpha = self.marker_point_alpha, zorder = 1)
			elif layer.kind == 'bar':
				ax.bar(positions, data[layer.y], width = self._bar_width(panel, layer), color = colors, edgecolor = self.color_axis,
					linewidth = 0.5, zorder = 0)
			elif layer.kind == 'point':
				for marker, rows in self._marker_groups(data, layer.shape, self.marker_mean):
					ax.scatter(positions[rows], data[layer.y].values[rows], c = [colors[i] for i in rows], marker = marker, zorder = 2)
			elif layer.kind == 'line':
				seaborn.lineplot(
					data = data, x = layer.x, y = layer.y, hue = layer.color,
					hue_order = panel.order_color, palette = palette,
					marker = 'o', errorbar = None, ax = ax, zorder = 2
				)
			elif layer.kind == 'errorbar':
				values = data[layer.y].values
				yerr = [values - data[layer.lower].values, data[layer.upper].values - values]
				ax.errorbar(positions, values, yerr = yerr, fmt = 'none', ecolor = self.color_errorbar, capsize = self.errorbar_capsize,
					zorder = 3)
			elif layer.kind == 'text':
				for position, top, label in zip(positions, data[layer.y], data[layer.label]):
					ax.annotate(str(label), (position, top), xytext = (0, 3), textcoords = 'offset points', ha = 'center', va = 'bottom',
						fontsize = self.label_fontsize)
			else:
				message = f"Cannot draw a layer of type '{layer.kind}'"
				raise ValueError(message)

		return self.formatplot(ax, panel, palette, is_line)

	def formatplot(self, ax: plt.Axes, panel: Panel, palette: Dict[str, Any], is_line: bool) -> plt.Axes:
		""" Adds labels to each axis and modifies to colorscheme a bit."""
		ax.set_facecolor(self.color_background)
		if panel.title:
			ax.set_title(panel.title)
		if not is_line:
			ax.set_xticks(range(len(panel.order_x)))
			ax.set_xticklabels(panel.order_x, rotation = 45, ha = 'right')
			if panel.order_x != panel.order_color:
				handles = [plt.Rectangle((0, 0), 1, 1, color = palette[i]) for i in panel.order_color]
				ax.legend(handles, panel.order_color, loc = 'best', framealpha = 0, fontsize = 'small')
		ax.set_xlabel(panel.xlabel)
		ax.set_ylabel(panel.ylabel)
		self.add_figure_axis(ax)
		return ax

	def add_figure_axis(self, ax: plt.Axes) -> plt.Axes:
		""" Only keeps the left and bottom spines."""
		for side in ['left', 'bottom']:
			ax.spines[side].set_visible(True)
			ax.spines[side].set_edgecolor(self.color_axis)
			ax.spines[side].set_linewidth(1)
		for side in ['right', 'top']:
			ax.spines[side].set_linewidth(0)
		return ax

	@staticmethod
	def save_figure(figure: plt.Figure, filename: Path) -> None:
		""" Saves the figure as both a png and svg file."""
		filename_png = filename.with_suffix('.png')
		filename_svg = filename.with_suffix('.svg')
		logger.info(f"Saving as {filename_png}")
		figure.savefig(filename_png, dpi = 300, bbox_inches = 'tight')
		figure.savefig(filename_svg, bbox_inches = 'tight')
