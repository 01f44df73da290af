"""
	Describes the columns of the input tables and reminds how each table produced by the analysis is formatted.
"""
from typing import *


class TableSchema:
	""" The named columns an input table must have.
		Parameters
		----------
		name: str
			Used in error messages.
		categorical: List[str]
			Identifier columns. These are read as strings and may not contain missing values.
		numeric: List[str]
			Response columns. These must be parseable as numbers.
	"""

	def __init__(self, name: str, categorical: List[str], numeric: List[str]):
		self.name = name
		self.categorical = list(categorical)
		self.numeric = list(numeric)

	@property
	def columns(self) -> List[str]:
		return self.categorical + self.numeric

	def __repr__(self) -> str:
		return f"TableSchema('{self.name}', categorical = {self.categorical}, numeric = {self.numeric})"


# Reminder of the format of each table generated by the analysis.
class TableSchemaSummary:
	# One row per group. The group columns come first.
	mean: float
	sd: float
	n: int
	sem: float


class TableSchemaAnova:
	# Indexed by the fixed-effect term. Interactions are named `factor1:factor2`
	Chisq: float
	Df: int
	PR: float  # Actual name is `Pr(>Chisq)`


class TableSchemaEmmeans:
	# The `by` columns (if any) come first, then the columns of the focal factor.
	emmean: float
	SE: float
	df: float  # Always `inf` since the means are based on the asymptotic normal distribution.
	lower_cl: float  # Actual name is `lower.CL`
	upper_cl: float  # Actual name is `upper.CL`
	group: str  # Actual name is `.group`. The compact letter display.


class TableSchemaPairwise:
	contrast: str  # `group1 - group2`
	group1: str
	group2: str
	estimate: float
	SE: float
	z_ratio: float  # Actual name is `z.ratio`
	p_value: float  # Actual name is `p.value`. Adjusted for multiple comparisons.
	reject: bool
