import itertools
import math
from typing import *

import numpy
import pandas
import patsy
from loguru import logger
from scipy import stats
from statsmodels.stats.multitest import multipletests

from analysis.mixedmodel import FittedModel
from analysis.settings import AnalysisSettings

COLUMN_GROUP = '.group'


class MarginalMeans:
	""" Estimated marginal means along with the linear functions of the fixed effects that produced them.
		`table` and `linfct` share the same row order.
	"""

	def __init__(self, model: FittedModel, table: pandas.DataFrame, linfct: pandas.DataFrame, specs: List[str], by: List[str]):
		self.model = model
		self.table = table
		self.linfct = linfct
		self.specs = specs
		self.by = by

	def labels(self) -> List[str]:
		""" The label of each row. Multiple focal factors are joined with a space."""
		return [" ".join(str(i) for i in row) for row in self.table[self.specs].itertuples(index = False)]

	def groups(self) -> List[Tuple[Tuple[str, ...], List[int]]]:
		""" The row positions belonging to each `by` group."""
		if not self.by:
			return [(tuple(), list(range(len(self.table))))]
		keys = [tuple(row) for row in self.table[self.by].itertuples(index = False)]
		result = dict()
		for position, key in enumerate(keys):
			result.setdefault(key, []).append(position)
		return list(result.items())


def reference_grid(model: FittedModel) -> pandas.DataFrame:
	""" Every combination of the levels of the fixed factors."""
	factors = model.spec.fixed
	levels = [sorted(model.data[i].unique()) for i in factors]
	return pandas.DataFrame(list(itertools.product(*levels)), columns = factors)


def estimated_marginal_means(model: FittedModel, settings: AnalysisSettings, specs: Optional[List[str]] = None,
		by: Optional[List[str]] = None) -> MarginalMeans:
	"""
		Calculates the estimated marginal means of `specs`, averaging with equal weights over the other fixed factors.
	Parameters
	----------
	model: FittedModel
	settings: AnalysisSettings
		`settings.confidence` sets the confidence level of the intervals.
	specs: List[str]
		The factor(s) to estimate the means of. Defaults to the focal factor of the model.
	by: List[str]
		Calculate the means of `specs` separately within each level of these factors.
	"""
	if specs is None:
		specs = [model.spec.focal]
	by = list(by) if by else []
	keys = by + list(specs)
	unknown = [i for i in keys if i not in model.spec.fixed]
	if unknown:
		raise ValueError(f"{unknown} are not fixed factors of '{model.spec.formula}'")

	grid = reference_grid(model)
	matrix = patsy.build_design_matrices([model.design_info], grid, return_type = 'dataframe')[0]
	matrix.columns = model.design.columns
	matrix.index = grid.index

	linfct = pandas.concat([grid[keys], matrix], axis = 1).groupby(by = keys, sort = True).mean()
	beta = model.fe_params.values
	covariance = model.cov_fe.values
	estimates = linfct.values @ beta
	standard_errors = numpy.sqrt(numpy.einsum('ij,jk,ik->i', linfct.values, covariance, linfct.values))
	critical = stats.norm.ppf(0.5 + settings.confidence / 2)

	table = linfct.index.to_frame(index = False)
	table['emmean'] = estimates
	table['SE'] = standard_errors
	table['df'] = numpy.inf
	table['lower.CL'] = estimates - critical * standard_errors
	table['upper.CL'] = estimates + critical * standard_errors

	linfct = linfct.reset_index(drop = True)
	logger.debug(f"Estimated marginal means of {specs}{' by ' + str(by) if by else ''}:\n{table}")
	return MarginalMeans(model, table, linfct, list(specs), by)


def adjust_pvalues(pvalues: numpy.ndarray, statistics: numpy.ndarray, number_of_means: int, method: str) -> numpy.ndarray:
	""" Adjusts the pairwise p-values for the number of comparisons within a family."""
	if len(pvalues) == 0 or method == 'none':
		return pvalues
	if method == 'tukey':
		# The studentized range of `number_of_means` means with infinite degrees of freedom.
		return stats.studentized_range.sf(numpy.abs(statistics) * math.sqrt(2), number_of_means, numpy.inf)
	return multipletests(pvalues, method = method)[1]


def pairwise_comparisons(means: MarginalMeans, settings: AnalysisSettings) -> pandas.DataFrame:
	""" Compares every pair of means within each `by` group using Wald z-tests. """
	labels = means.labels()
	linfct = means.linfct.values
	covariance = means.model.cov_fe.values
	estimates = means.table['emmean'].values

	tables = list()
	for key, positions in means.groups():
		rows = list()
		for left, right in itertools.combinations(positions, 2):
			difference = linfct[left] - linfct[right]
			standard_error = math.sqrt(difference @ covariance @ difference)
			estimate = estimates[left] - estimates[right]
			rows.append({
				'contrast': f"{labels[left]} - {labels[right]}",
				'group1':   labels[left],
				'group2':   labels[right],
				'estimate': estimate,
				'SE':       standard_error,
				'z.ratio':  estimate / standard_error
			})
		table = pandas.DataFrame(rows, columns = ['contrast', 'group1', 'group2', 'estimate', 'SE', 'z.ratio'])
		statistics = table['z.ratio'].values.astype(float)
		unadjusted = 2 * stats.norm.sf(numpy.abs(statistics))
		table['p.value'] = adjust_pvalues(unadjusted, statistics, len(positions), settings.adjust)
		table['reject'] = table['p.value'] < settings.alpha
		for column, value in zip(means.by, key):
			table.insert(means.by.index(column), column, value)
		tables.append(table)

	result = pandas.concat(tables, ignore_index = True)
	logger.debug(f"Pairwise comparisons ({settings.adjust} adjustment):\n{result}")
	return result


def _absorb(columns: List[Set[str]]) -> List[Set[str]]:
	""" Removes empty and duplicated columns, and any column contained in another column."""
	unique = list()
	for column in columns:
		if column and column not in unique:
			unique.append(column)
	return [i for i in unique if not any(i < j for j in unique)]


def compact_letter_display(means: Dict[str, float], significant_pairs: Iterable[Tuple[str, str]], letters: str = 'ABCDEFGHIJKLMNOPQRSTUVWXYZ',
		reverse: bool = False) -> Dict[str, str]:
	"""
		Assigns letters to each mean so that two means share a letter only if they are not significantly different.
		Uses the insert-and-absorb procedure, which allows a mean to belong to more than one group.
	Parameters
	----------
	means: Dict[str, float]
		Maps each level to its estimate.
	significant_pairs: Iterable[Tuple[str,str]]
		The pairs of levels that are significantly different.
	letters: str
		The letters to use, in order.
	reverse: bool
		If False the first letter is given to the smallest mean, otherwise to the largest mean.
		Equal means are ordered by their label. `add_letters` passes `AnalysisSettings.reverse_letters`,
		so use `AnalysisSettings(reverse_letters = True)` to label from the largest mean.

	Returns
	-------
	Dict[str,str]
		Maps each level to its letters, in the order of the means.
	"""
	if reverse:
		order = sorted(means, key = lambda s: (-means[s], s))
	else:
		order = sorted(means, key = lambda s: (means[s], s))
	position = {level: index for index, level in enumerate(order)}

	pairs = list()
	for left, right in significant_pairs:
		if left not in position or right not in position:
			raise ValueError(f"The pair ({left}, {right}) refers to a level without a mean.")
		pairs.append(tuple(sorted((left, right), key = position.get)))

	columns = [set(order)]
	for left, right in sorted(set(pairs), key = lambda p: (position[p[0]], position[p[1]])):
		updated = list()
		for column in columns:
			if left in column and right in column:
				updated.append(column - {left})
				updated.append(column - {right})
			else:
				updated.append(column)
		columns = _absorb(updated)

	columns = sorted(columns, key = lambda c: sorted(position[i] for i in c))
	if len(columns) > len(letters):
		raise ValueError(f"{len(columns)} letter groups are needed but only {len(letters)} letters are available.")

	result = dict()
	for level in order:
		result[level] = "".join(letter for letter, column in zip(letters, columns) if level in column)
	return result


def add_letters(means: MarginalMeans, comparisons: pandas.DataFrame, settings: AnalysisSettings) -> pandas.DataFrame:
	""" Adds the compact letter display to the estimated marginal means. Letters are assigned separately within each `by` group."""
	labels = means.labels()
	table = means.table.copy()
	table[COLUMN_GROUP] = ""
	for key, positions in means.groups():
		group_means = {labels[i]: table['emmean'].iloc[i] for i in positions}
		group_comparisons = comparisons
		for column, value in zip(means.by, key):
			group_comparisons = group_comparisons[group_comparisons[column] == value]
		significant = group_comparisons[group_comparisons['reject']]
		significant_pairs = list(zip(significant['group1'], significant['group2']))
		letters = compact_letter_display(group_means, significant_pairs, settings.letters, settings.reverse_letters)
		for position in positions:
			table.iloc[position, table.columns.get_loc(COLUMN_GROUP)] = letters[labels[position]]
	return table


def squareform(pairwise_values: Dict[Tuple[str, str], float], default = math.nan) -> pandas.DataFrame:
	""" Converts a dictionary with all pairwise values for a set of points into a square matrix representation.
	"""
	labels = sorted(set(itertools.chain.from_iterable(pairwise_values.keys())))
	_square_map = dict()
	for left in labels:
		series = dict()
		for right in labels:
			value = pairwise_values.get((left, right), pairwise_values.get((right, left), default))
			series[right] = value
		_square_map[left] = series
	return pandas.DataFrame(_square_map)


def pvalue_matrix(comparisons: pandas.DataFrame) -> pandas.DataFrame:
	""" Converts the pairwise table into a symmetric matrix of adjusted p-values."""
	values = {(row['group1'], row['group2']): row['p.value'] for _, row in comparisons.iterrows()}
	return squareform(values)
