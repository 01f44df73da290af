from pathlib import Path
from typing import *

import matplotlib.pyplot as plt
from loguru import logger

from graphics.anovaplot import AnovaPlot, Panel


class AnovaPanelPlot:
	""" Combines several panels into a single multi-panel figure."""

	def __init__(self, number_of_columns: int = 3):
		self.plotter = AnovaPlot()

		self.number_of_columns = number_of_columns
		self.panel_size = (5, 4.5)
		self.title_size = 16
		self.label_panel_fontsize = 14

	def _calculate_number_of_rows(self, number_of_panels: int) -> int:
		""" Calculates how many rows are needed to plot all of the panels."""
		number_of_rows, remainder = divmod(number_of_panels, self.number_of_columns)
		if remainder:
			number_of_rows += 1
		return max(number_of_rows, 1)

	def plot(self, panels: List[Panel], title: Optional[str] = None, filename: Optional[Path] = None) -> plt.Figure:
		"""
			Draws each panel in its own subplot.
		Parameters
		----------
		panels: List[Panel]
		title: Optional[str]
			The title of the whole figure.
		filename: Optional[Path]
			Where to save the figure. A png and an svg file are written.
		"""
		if not panels:
			raise ValueError("There are no panels to plot.")
		number_of_columns = min(self.number_of_columns, len(panels))
		number_of_rows = self._calculate_number_of_rows(len(panels))
		figsize = (self.panel_size[0] * number_of_columns, self.panel_size[1] * number_of_rows)
		figure: plt.Figure = plt.figure(figsize = figsize)
		grid = plt.GridSpec(number_of_rows, number_of_columns, hspace = 0.8, wspace = 0.35)

		for index, panel in enumerate(panels):
			row, column = divmod(index, number_of_columns)
			logger.trace(f"row = {row}, column = {column}, panel = {panel}")
			ax: plt.Axes = figure.add_subplot(grid[row, column])
			self.plotter.render_panel(panel, ax)
			# Label the panels A, B, C... for the publication figure.
			ax.text(-0.15, 1.08, chr(ord('A') + index), transform = ax.transAxes, fontsize = self.label_panel_fontsize,
				fontweight = 'bold', va = 'bottom')

		if title:
			figure.suptitle(title, size = self.title_size)

		if filename:
			self.plotter.save_figure(figure, filename)
		return figure
