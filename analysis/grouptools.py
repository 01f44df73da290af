from typing import *

import numpy
import pandas
from loguru import logger
from toolz import itertoolz

import equations

COMPOSITE_KEY = 'species_genotype'


def pivot_longer(table: pandas.DataFrame, value_columns: List[str], names_to: str, values_to: str) -> pandas.DataFrame:
	""" Converts the `value_columns` of a wide table into key/value pairs.
		Each wide row becomes `len(value_columns)` consecutive long rows. Every other column is repeated unchanged.
		Parameters
		----------
		table: pandas.DataFrame
		value_columns: List[str]
			The columns to stack. Ex. ['score0', 'score1', 'score2', 'score3']
		names_to: str
			The new column holding the label of the source column.
		values_to: str
			The new column holding the values.
	"""
	missing = [i for i in value_columns if i not in table.columns]
	if missing:
		raise ValueError(f"Cannot pivot the missing columns {missing}")
	for column in (names_to, values_to):
		if column in table.columns:
			raise ValueError(f"The column '{column}' already exists in the table.")
	id_columns = [i for i in table.columns if i not in value_columns]

	long = table.reset_index(drop = True).melt(
		id_vars = id_columns,
		value_vars = value_columns,
		var_name = names_to,
		value_name = values_to,
		ignore_index = False
	)
	# `melt` stacks column by column, so use a stable sort on the original row number to keep the rows of each wide row together.
	long = long.sort_index(kind = 'stable').reset_index(drop = True)
	logger.trace(f"pivot_longer: {table.shape} -> {long.shape}")
	return long


def pivot_wider(table: pandas.DataFrame, id_columns: List[str], names_from: str, values_from: str) -> pandas.DataFrame:
	""" The inverse of `pivot_longer`. Values sharing the same key columns and label are summed.
		The pivoted columns keep the order they first appear in the long table.
	"""
	labels = list(pandas.unique(table[names_from]))
	groups = table.groupby(by = id_columns + [names_from], sort = True, dropna = False)
	wide = groups[values_from].sum(min_count = 1).unstack(names_from)
	wide = wide[labels]
	wide.columns.name = None
	return wide.reset_index()


def add_composite_key(table: pandas.DataFrame, columns: Sequence[str] = ('species', 'genotype'), name: str = COMPOSITE_KEY,
		separator: str = '_') -> pandas.DataFrame:
	""" Joins the categorical `columns` into a single grouping column.
		The components may not contain the separator, otherwise the key could not be split back into its parts.
	"""
	columns = list(columns)
	for column in columns:
		values = table[column].astype(str)
		contains_separator = values.str.contains(separator, regex = False)
		if contains_separator.any():
			bad_values = values[contains_separator].unique().tolist()
			message = f"Cannot join {columns} with '{separator}': the '{column}' column contains the separator {bad_values}"
			raise ValueError(message)

	result = table.copy()
	first, *others = columns
	result[name] = result[first].astype(str).str.cat([result[i].astype(str) for i in others], sep = separator)
	return result


def split_composite_key(table: pandas.DataFrame, columns: Sequence[str] = ('species', 'genotype'), name: str = COMPOSITE_KEY,
		separator: str = '_') -> pandas.DataFrame:
	""" Recovers the source columns from a composite key."""
	columns = list(columns)
	parts = table[name].astype(str).str.split(separator, expand = True, regex = False)
	if parts.shape[1] != len(columns):
		message = f"The '{name}' column does not split into {len(columns)} parts using '{separator}'"
		raise ValueError(message)
	result = table.copy()
	for index, column in enumerate(columns):
		result[column] = parts[index]
	return result


def summarize(table: pandas.DataFrame, by: Union[str, List[str]], column: str) -> pandas.DataFrame:
	""" Calculates the mean and standard deviation of `column` for each group. Used for the descriptive plots."""
	if isinstance(by, str):
		by = [by]
	groups = table.groupby(by = by, sort = True)[column]
	summary = groups.agg(['mean', 'std', 'count']).rename(columns = {'std': 'sd', 'count': 'n'})
	summary['sem'] = summary['sd'] / numpy.sqrt(summary['n'])
	return summary.reset_index()


def stratify(table: pandas.DataFrame, factors: List[str]) -> Dict[Tuple[str, ...], pandas.DataFrame]:
	""" Splits the table into one subset per combination of `factors`.
		Every row ends up in exactly one subset.
	"""
	if not factors:
		return {tuple(): table}
	strata = dict()
	for key, group in table.groupby(by = list(factors), sort = True, dropna = False):
		if not isinstance(key, tuple):
			key = (key,)
		strata[key] = group

	total = sum(len(i) for i in strata.values())
	if total != len(table):
		raise ValueError(f"The strata of {factors} hold {total} rows but the table has {len(table)}")
	logger.debug(f"Stratified by {factors}: {[(key, len(value)) for key, value in strata.items()]}")
	return strata


def extract_number(labels: pandas.Series) -> pandas.Series:
	""" Gets the numeric part of labels such as 'score3' or 'dai14'."""
	numbers = labels.astype(str).str.extract(r'(-?\d+(?:\.\d+)?)', expand = False)
	if numbers.isna().any():
		bad_labels = labels[numbers.isna()].unique().tolist()
		raise ValueError(f"Could not find a number in the labels {bad_labels}")
	return numbers.astype(float)


def calculate_ppi(table: pandas.DataFrame, unit_columns: List[str], score_column: str = 'score', frequency_column: str = 'frequency',
		output_column: str = 'ppi') -> pandas.DataFrame:
	""" Calculates the perithecia production index of each experimental unit from a long table of score frequencies.
		Parameters
		----------
		table: pandas.DataFrame
			A long table with one row per unit and score class.
		unit_columns: List[str]
			Identifies each experimental unit (ex. isolate, substrate and replicate).
	"""
	scores = extract_number(table[score_column])
	# Use the largest possible score across the whole table so every unit is scaled the same way.
	max_score = scores.max()
	table = table.assign(_score = scores)

	rows = list()
	for key, group in table.groupby(by = unit_columns, sort = False):
		if not isinstance(key, tuple):
			key = (key,)
		group = group.dropna(subset = [frequency_column])
		row = dict(zip(unit_columns, key))
		row[output_column] = equations.perithecia_production_index(group['_score'], group[frequency_column], max_score)
		rows.append(row)
	return pandas.DataFrame(rows)


def calculate_audpc(table: pandas.DataFrame, unit_columns: List[str], time_column: str = 'day', severity_column: str = 'severity',
		output_column: str = 'audpc') -> pandas.DataFrame:
	""" Calculates the area under the disease progress curve of each experimental unit (ex. each inoculated spike)."""
	times = extract_number(table[time_column])
	table = table.assign(_time = times)

	rows = list()
	for key, group in table.groupby(by = unit_columns, sort = False):
		if not isinstance(key, tuple):
			key = (key,)
		group = group.dropna(subset = [severity_column])
		row = dict(zip(unit_columns, key))
		row[output_column] = equations.area_under_disease_progress_curve(group['_time'], group[severity_column])
		rows.append(row)
	return pandas.DataFrame(rows)


def transform_response(table: pandas.DataFrame, column: str, transform: Optional[str]) -> Tuple[pandas.DataFrame, str]:
	""" Applies the response transformation and returns the table along with the name of the transformed column."""
	if transform is None:
		return table, column
	if transform != 'log10':
		raise ValueError(f"Unknown transformation '{transform}'")
	values = table[column]
	if (values <= 0).any():
		raise ValueError(f"Cannot log-transform '{column}': it has values <= 0.")
	name = f"log10_{column}"
	return table.assign(**{name: numpy.log10(values)}), name


def order_levels(labels: Iterable[str], preferred: Optional[List[str]] = None) -> List[str]:
	""" Orders category labels using `preferred` first, then any remaining labels in sorted order."""
	labels = list(itertoolz.unique(labels))
	if not preferred:
		return sorted(labels)
	ordered = [i for i in preferred if i in labels]
	return ordered + sorted(i for i in labels if i not in ordered)
