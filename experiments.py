"""
	Definitions of the five experiments: the columns of each input table, the rows to exclude, how the table is reshaped,
	and the mixed model fitted to each response.
"""
from typing import *

import pandas
from loguru import logger

from analysis import grouptools
from analysis.mixedmodel import ModelSpec, RandomEffects
from analysis.settings import AnalysisSettings
from table_schema import TableSchema
from validation import RowFilter

KEY = grouptools.COMPOSITE_KEY


class Analysis:
	""" A single response of an experiment.
		Parameters
		----------
		spec: ModelSpec
		label: str
			The y-axis label used in the figures.
	"""

	def __init__(self, spec: ModelSpec, label: str):
		self.spec = spec
		self.label = label

	@property
	def name(self) -> str:
		return self.spec.response

	def __repr__(self) -> str:
		return f"Analysis('{self.spec.formula}')"


class Experiment:
	def __init__(self, name: str, schema: TableSchema, analyses: List[Analysis], filters: Iterable[RowFilter] = (),
			drop: Iterable[str] = (), title: Optional[str] = None):
		self.name = name
		self.schema = schema
		self.analyses = list(analyses)
		self.filters = list(filters)
		self.drop = list(drop)
		self.title = title if title else name.replace('_', ' ').capitalize()

	def add_key(self, table: pandas.DataFrame, settings: AnalysisSettings) -> pandas.DataFrame:
		return grouptools.add_composite_key(table, ('species', 'genotype'), KEY, settings.separator)

	def prepare(self, table: pandas.DataFrame, settings: AnalysisSettings) -> pandas.DataFrame:
		""" Converts the validated input table into the table the models are fitted to."""
		return self.add_key(table, settings)

	def progress(self, table: pandas.DataFrame, settings: AnalysisSettings) -> Optional[pandas.DataFrame]:
		""" An optional long table of a response measured over time. Plotted as a line chart."""
		return None

	def __repr__(self) -> str:
		return f"Experiment('{self.name}', {self.analyses})"


class PeritheciaExperiment(Experiment):
	""" Perithecia are scored on a 0-3 scale. Each row holds the number of units in each score class."""
	score_columns = ['score0', 'score1', 'score2', 'score3']
	unit_columns = ['species', 'genotype', KEY, 'isolate', 'substrate', 'replicate']

	def prepare(self, table: pandas.DataFrame, settings: AnalysisSettings) -> pandas.DataFrame:
		table = self.add_key(table, settings)
		long = grouptools.pivot_longer(table, self.score_columns, names_to = 'score', values_to = 'frequency')
		ppi = grouptools.calculate_ppi(long, self.unit_columns, 'score', 'frequency', output_column = 'ppi')
		logger.debug(f"Calculated the PPI of {len(ppi)} units.")
		return ppi


class AggressivenessExperiment(Experiment):
	""" Disease severity (% of spikelets) assessed on each spike at several days after inoculation."""
	day_columns = ['dai7', 'dai14', 'dai21']
	unit_columns = ['species', 'genotype', KEY, 'isolate', 'cultivar', 'spike']

	def _long(self, table: pandas.DataFrame, settings: AnalysisSettings) -> pandas.DataFrame:
		table = self.add_key(table, settings)
		return grouptools.pivot_longer(table, self.day_columns, names_to = 'day', values_to = 'severity')

	def prepare(self, table: pandas.DataFrame, settings: AnalysisSettings) -> pandas.DataFrame:
		long = self._long(table, settings)
		return grouptools.calculate_audpc(long, self.unit_columns, 'day', 'severity', output_column = 'audpc')

	def progress(self, table: pandas.DataFrame, settings: AnalysisSettings) -> Optional[pandas.DataFrame]:
		long = self._long(table, settings)
		return long.assign(day = grouptools.extract_number(long['day']))


def _random_isolate() -> RandomEffects:
	return RandomEffects('isolate')


def get_experiments() -> Dict[str, Experiment]:
	controls = RowFilter('isolate', 'not in', ['control', 'test'])

	perithecia = PeritheciaExperiment(
		'perithecia',
		TableSchema('perithecia', ['species', 'genotype', 'isolate', 'substrate', 'replicate'], PeritheciaExperiment.score_columns),
		[Analysis(ModelSpec('ppi', [KEY, 'substrate'], _random_isolate(), interaction = True), 'PPI')],
		filters = [controls],
		title = 'Perithecia production'
	)

	mycelial_growth = Experiment(
		'mycelial_growth',
		TableSchema('mycelial_growth', ['species', 'genotype', 'isolate', 'temperature', 'replicate'], ['mgr']),
		[Analysis(ModelSpec('mgr', [KEY, 'temperature'], _random_isolate(), interaction = True), 'MGR (mm/day)')],
		filters = [controls],
		title = 'Mycelial growth rate'
	)

	sporulation = Experiment(
		'sporulation',
		TableSchema('sporulation', ['species', 'genotype', 'isolate', 'plate', 'field'], ['spores', 'germination']),
		[
			# Several fields are counted on each plate, so plates are nested in isolates.
			Analysis(ModelSpec('spores', [KEY], RandomEffects('isolate', nested = 'plate')), 'Spores per field'),
			Analysis(ModelSpec('germination', [KEY], _random_isolate()), 'Germination (%)')
		],
		filters = [controls],
		title = 'Sporulation and germination'
	)

	aggressiveness = AggressivenessExperiment(
		'aggressiveness',
		TableSchema('aggressiveness', ['species', 'genotype', 'isolate', 'cultivar', 'spike'], AggressivenessExperiment.day_columns),
		[Analysis(ModelSpec('audpc', [KEY, 'cultivar'], _random_isolate(), interaction = True), 'AUDPC')],
		filters = [RowFilter('isolate', 'not in', ['mock', 'control'])],
		title = 'Aggressiveness'
	)

	fungicide_sensitivity = Experiment(
		'fungicide_sensitivity',
		TableSchema('fungicide_sensitivity', ['species', 'genotype', 'isolate', 'fungicide', 'run'], ['ec50']),
		[Analysis(ModelSpec('ec50', [KEY, 'fungicide'], _random_isolate(), interaction = True, transform = 'log10'), 'log10 EC50 (µg/ml)')],
		filters = [controls],
		title = 'Fungicide sensitivity'
	)

	experiments = [perithecia, mycelial_growth, sporulation, aggressiveness, fungicide_sensitivity]
	return {i.name: i for i in experiments}
