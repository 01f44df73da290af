from pathlib import Path
from typing import *

import matplotlib.pyplot as plt
import pandas
from loguru import logger

import projectoutput
from analysis import anovacalc, grouptools, mixedmodel, pairwise
from analysis.mixedmodel import FittedModel
from analysis.settings import AnalysisSettings
from experiments import Analysis, Experiment
from graphics import AnovaPanelPlot, Encoding, Panel, build_figure_description
from graphics import other
from projectpaths import Filenames
from validation import SchemaError, ValidateTable


class AnalysisResult:
	""" Everything calculated for a single response.
		Parameters
		----------
		stratified_by: List[str]
			The factors the data was split by after a significant interaction. Empty if the full model was used for the post-hoc tests.
		strata_anova: Optional[pandas.DataFrame]
			The ANOVA table of each stratum, with the stratum columns first.
	"""

	def __init__(self, analysis: Analysis, observations: pandas.DataFrame, summary: pandas.DataFrame, model: FittedModel,
			anova: pandas.DataFrame, emmeans: pandas.DataFrame, comparisons: pandas.DataFrame, stratified_by: List[str],
			strata_anova: Optional[pandas.DataFrame] = None):
		self.analysis = analysis
		self.observations = observations
		self.summary = summary
		self.model = model
		self.anova = anova
		self.emmeans = emmeans
		self.comparisons = comparisons
		self.stratified_by = stratified_by
		self.strata_anova = strata_anova

	@property
	def response(self) -> str:
		return self.model.response

	@property
	def is_stratified(self) -> bool:
		return bool(self.stratified_by)


def _insert_columns(table: pandas.DataFrame, values: Dict[str, Any]) -> pandas.DataFrame:
	table = table.copy()
	for index, (column, value) in enumerate(values.items()):
		table.insert(index, column, value)
	return table


class ExperimentAnalysis:
	def __init__(self, experiment: Experiment, settings: Optional[AnalysisSettings] = None):
		self.experiment = experiment
		self.settings = settings if settings is not None else AnalysisSettings()
		self.validator = ValidateTable(experiment.schema)

	def load(self, source: Union[Path, pandas.DataFrame]) -> pandas.DataFrame:
		""" Reads and validates the input table, then removes the rows excluded from the analysis."""
		return self.validator.load(source, self.experiment.filters, self.experiment.drop)

	def posthoc(self, model: FittedModel) -> Tuple[pandas.DataFrame, pandas.DataFrame]:
		""" Estimated marginal means of the focal factor with letter groupings."""
		means = pairwise.estimated_marginal_means(model, self.settings)
		comparisons = pairwise.pairwise_comparisons(means, self.settings)
		table = pairwise.add_letters(means, comparisons, self.settings)
		return table, comparisons

	def analyze(self, table: pandas.DataFrame, analysis: Analysis) -> AnalysisResult:
		"""
			Fits the full model and tests it. If an interaction with the focal factor is significant the table is split by the other
			factor and a simpler model is fitted to each subset before the post-hoc comparisons.
		"""
		spec = analysis.spec
		logger.info(f"[{self.experiment.name}] Fitting {spec.formula}")
		try:
			observations, response = grouptools.transform_response(table, spec.response, spec.transform)
		except ValueError as exception:
			raise SchemaError(f"[{self.experiment.name}] {exception}") from exception
		summary = grouptools.summarize(observations, spec.fixed, response)

		model = mixedmodel.fit_mixed_model(table, spec, self.settings)
		anova = anovacalc.anova_table(model, self.settings)
		factors = anovacalc.stratification_factors(anova, spec, self.settings.alpha)

		if not factors:
			emmeans, comparisons = self.posthoc(model)
			return AnalysisResult(analysis, observations, summary, model, anova, emmeans, comparisons, [])

		logger.info(f"[{self.experiment.name}] Fitting a separate model for each level of {factors}")
		stratum_spec = spec.without(factors)
		tables_anova, tables_emmeans, tables_comparisons = list(), list(), list()
		for key, subset in grouptools.stratify(table, factors).items():
			stratum = dict(zip(factors, key))
			logger.info(f"[{self.experiment.name}] Stratum {stratum}: {len(subset)} rows")
			stratum_model = mixedmodel.fit_mixed_model(subset, stratum_spec, self.settings)
			stratum_anova = anovacalc.anova_table(stratum_model, self.settings)
			stratum_emmeans, stratum_comparisons = self.posthoc(stratum_model)

			tables_anova.append(_insert_columns(stratum_anova.rename_axis('term').reset_index(), stratum))
			tables_emmeans.append(_insert_columns(stratum_emmeans, stratum))
			tables_comparisons.append(_insert_columns(stratum_comparisons, stratum))

		return AnalysisResult(
			analysis, observations, summary, model, anova,
			emmeans = pandas.concat(tables_emmeans, ignore_index = True),
			comparisons = pandas.concat(tables_comparisons, ignore_index = True),
			stratified_by = factors,
			strata_anova = pandas.concat(tables_anova, ignore_index = True)
		)

	def describe_figure(self, results: List[AnalysisResult], progress: Optional[pandas.DataFrame] = None) -> List[Panel]:
		""" Lays out the panels of the experiment figure: the observed means and the estimated means of each response."""
		panels = list()
		for result in results:
			spec = result.analysis.spec
			others = [i for i in spec.fixed if i != spec.focal]
			summary = result.summary.assign(lower = lambda df: df['mean'] - df['sd'], upper = lambda df: df['mean'] + df['sd'])
			encoding_summary = Encoding(
				x = spec.focal, y = 'mean', facet = others[0] if others else None,
				lower = 'lower', upper = 'upper', points = result.response
			)
			panels += build_figure_description(summary, encoding_summary, 'bar', result.observations, ylabel = result.analysis.label)

			encoding_means = Encoding(
				x = spec.focal, y = 'emmean', facet = result.stratified_by[0] if result.stratified_by else None,
				lower = 'lower.CL', upper = 'upper.CL', label = pairwise.COLUMN_GROUP
			)
			panels += build_figure_description(result.emmeans, encoding_means, 'point', ylabel = f"{result.analysis.label} (EMM)")

		if progress is not None:
			focal = self.experiment.analyses[0].spec.focal
			facets = [i for i in self.experiment.analyses[0].spec.fixed if i != focal]
			by = [focal] + facets + ['day']
			severity = grouptools.summarize(progress, by, 'severity')
			severity = severity.assign(lower = lambda df: df['mean'] - df['sd'], upper = lambda df: df['mean'] + df['sd'])
			encoding_progress = Encoding(
				x = 'day', y = 'mean', color = focal, facet = facets[0] if facets else None,
				lower = 'lower', upper = 'upper'
			)
			panels += build_figure_description(severity, encoding_progress, 'line', ylabel = 'Severity (%)')
		return panels

	def run(self, source: Union[Path, pandas.DataFrame], output_folder: Optional[Path] = None) -> List[AnalysisResult]:
		table = self.load(source)
		try:
			prepared = self.experiment.prepare(table, self.settings)
			progress = self.experiment.progress(table, self.settings)
		except SchemaError:
			raise
		except ValueError as exception:
			# Malformed values only show up once the table is reshaped. Ex. a species containing the key separator.
			raise SchemaError(f"Could not prepare the '{self.experiment.name}' table: {exception}") from exception

		results = [self.analyze(prepared, analysis) for analysis in self.experiment.analyses]
		for result in results:
			projectoutput.show_result(self.experiment.title, result)

		if output_folder is not None:
			filenames = Filenames(output_folder, self.experiment.name, self.settings.table_format, self.settings.figure_format)
			for result in results:
				projectoutput.save_result(result, filenames)
				other.plot_qq(result.model, filenames.figure_qq(result.response))
			panels = self.describe_figure(results, progress)
			figure = AnovaPanelPlot().plot(panels, title = self.experiment.title, filename = filenames.filename_figure)
			plt.close(figure)
		return results
