from pathlib import Path
from typing import *

import pandas
from loguru import logger

from table_schema import TableSchema


class SchemaError(ValueError):
	""" Raised when an input table does not match the expected format."""


class RowFilter:
	""" A declarative row filter.
		Parameters
		----------
		column: str
		operator: {'==', '!=', 'in', 'not in'}
		value: Any
			A single value for `==` and `!=`, a collection for `in` and `not in`.
	"""
	operators = ('==', '!=', 'in', 'not in')

	def __init__(self, column: str, operator: str, value: Any):
		if operator not in self.operators:
			raise ValueError(f"Unsupported operator '{operator}'. Expected one of {self.operators}")
		if operator in ('in', 'not in') and isinstance(value, str):
			value = [value]
		self.column = column
		self.operator = operator
		self.value = value

	def mask(self, table: pandas.DataFrame) -> pandas.Series:
		series = table[self.column]
		if self.operator == '==':
			return series == self.value
		elif self.operator == '!=':
			return series != self.value
		elif self.operator == 'in':
			return series.isin(self.value)
		else:
			return ~series.isin(self.value)

	def excluded_values(self) -> List[Any]:
		""" The values that should be absent from the column after the filter is applied."""
		if self.operator == '!=':
			return [self.value]
		elif self.operator == 'not in':
			return list(self.value)
		return []

	def __repr__(self) -> str:
		return f"RowFilter('{self.column}' {self.operator} {self.value!r})"


class ValidateTable:
	# makes sure the table is formatted correctly.
	def __init__(self, schema: TableSchema):
		self.schema = schema

	@staticmethod
	def read_table(filename: Union[str, Path]) -> pandas.DataFrame:
		filename = Path(filename)
		if filename.suffix == '.csv':
			table = pandas.read_csv(filename)
		elif filename.suffix == '.tsv':
			table = pandas.read_csv(filename, sep = '\t')
		elif filename.suffix == '.xlsx' or filename.suffix == '.xls':
			table = pandas.read_excel(filename)
		else:
			message = f"Cannot determine the filetype of '{filename}'"
			raise ValueError(message)
		return table

	def check_table(self, table: Union[Path, pandas.DataFrame]) -> pandas.DataFrame:
		if not isinstance(table, pandas.DataFrame):
			# Assume it is a Pathlike object
			logger.info(f"Reading '{table}'")
			table = self.read_table(table)
		table = table.copy()
		# Some spreadsheets pad the header with whitespace.
		table.columns = [str(i).strip() for i in table.columns]

		self._check_for_missing_columns(table)
		table = self._check_categorical_columns(table)
		table = self._check_numeric_columns(table)
		logger.debug(f"'{self.schema.name}' has {len(table)} rows and {len(table.columns)} columns.")
		return table

	def _check_for_missing_columns(self, table: pandas.DataFrame) -> None:
		missing = [i for i in self.schema.columns if i not in table.columns]
		if missing:
			message = f"The '{self.schema.name}' table is missing the columns {missing}. Got {list(table.columns)}"
			raise SchemaError(message)

	def _check_categorical_columns(self, table: pandas.DataFrame) -> pandas.DataFrame:
		for column in self.schema.categorical:
			is_missing = table[column].isna()
			if is_missing.any():
				rows = list(table.index[is_missing])
				message = f"The '{self.schema.name}' table has missing values in the '{column}' column (rows {rows})"
				raise SchemaError(message)
			# Numeric labels such as temperatures or replicates are still categories.
			table[column] = table[column].astype(str).str.strip()
		return table

	def _check_numeric_columns(self, table: pandas.DataFrame) -> pandas.DataFrame:
		for column in self.schema.numeric:
			converted = pandas.to_numeric(table[column], errors = 'coerce')
			# Values that were present but could not be parsed.
			is_invalid = converted.isna() & table[column].notna()
			if is_invalid.any():
				values = table.loc[is_invalid, column].unique().tolist()
				message = f"The '{column}' column of the '{self.schema.name}' table has non-numeric values: {values}"
				raise SchemaError(message)
			if converted.isna().any():
				logger.warning(f"'{self.schema.name}': {int(converted.isna().sum())} missing values in '{column}'")
			table[column] = converted
		return table

	def apply_filters(self, table: pandas.DataFrame, filters: Iterable[RowFilter]) -> pandas.DataFrame:
		""" Applies each filter in order, then makes sure the excluded values are really gone."""
		filters = list(filters)
		for row_filter in filters:
			if row_filter.column not in table.columns:
				raise SchemaError(f"Cannot filter on '{row_filter.column}': the column is not in the '{self.schema.name}' table.")
			before = len(table)
			table = table[row_filter.mask(table)]
			logger.debug(f"{row_filter} removed {before - len(table)} rows from '{self.schema.name}'")

		for row_filter in filters:
			remaining = table[row_filter.column].isin(row_filter.excluded_values())
			if remaining.any():
				message = f"{row_filter} did not remove every row from '{self.schema.name}'"
				raise SchemaError(message)
		if table.empty:
			raise SchemaError(f"No rows of the '{self.schema.name}' table passed the filters {filters}")

		return table.reset_index(drop = True)

	def drop_columns(self, table: pandas.DataFrame, columns: Iterable[str]) -> pandas.DataFrame:
		columns = list(columns)
		missing = [i for i in columns if i not in table.columns]
		if missing:
			raise SchemaError(f"Cannot drop {missing} from the '{self.schema.name}' table: the columns do not exist.")
		return table.drop(columns = columns)

	def load(self, source: Union[Path, pandas.DataFrame], filters: Iterable[RowFilter] = (), drop: Iterable[str] = ()) -> pandas.DataFrame:
		""" Reads, validates, and filters a table."""
		table = self.check_table(source)
		table = self.apply_filters(table, filters)
		table = self.drop_columns(table, drop)
		return table
