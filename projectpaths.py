from pathlib import Path
from typing import *

import utilities


class Filenames:
	""" Holds the filenames of the tables and figures generated for a single experiment.

		Output File Structure
		<folder>/<experiment>/
			data/
				summary.<response>.tsv
				anova.<response>.tsv
				emmeans.<response>.tsv
				pairwise.<response>.tsv
				pvalues.<response>.tsv
				model.<response>.txt
			figures/
				<experiment>.png
				<experiment>.svg
				qq.<response>.png
	"""

	def __init__(self, folder: Path, experiment: str, table_format: str = '.tsv', figure_format: str = '.png'):
		self.experiment = experiment
		self.table_format = table_format
		self.figure_format = figure_format

		folder = utilities.checkdir(folder)
		self.folder = utilities.checkdir(folder / experiment)
		self.folder_data = utilities.checkdir(self.folder / "data")
		self.folder_figure = utilities.checkdir(self.folder / "figures")

		# The composite figure. Saved as both png and svg.
		self.filename_figure = self.folder_figure / experiment

	def _table(self, prefix: str, response: str) -> Path:
		return self.folder_data / f"{prefix}.{response}{self.table_format}"

	def table_summary(self, response: str) -> Path:
		# Mean and standard deviation of the observations.
		return self._table('summary', response)

	def table_anova(self, response: str) -> Path:
		return self._table('anova', response)

	def table_emmeans(self, response: str) -> Path:
		# Estimated marginal means with the letter groupings.
		return self._table('emmeans', response)

	def table_pairwise(self, response: str) -> Path:
		return self._table('pairwise', response)

	def table_pvalues(self, response: str) -> Path:
		# Square matrix of the adjusted pairwise p-values.
		return self._table('pvalues', response)

	def model_summary(self, response: str) -> Path:
		return self.folder_data / f"model.{response}.txt"

	def figure_qq(self, response: str) -> Path:
		return self.folder_figure / f"qq.{response}{self.figure_format}"
