import string
from typing import *


class AnalysisSettings:
	""" Holds every option that affects how the statistics are calculated. A single instance is passed to each stage of the
		analysis so that nothing depends on package-level state.

		Parameters
		----------
		alpha: float
			The significance threshold used for the interaction check, the pairwise comparisons and the letter groupings.
		confidence: float
			The confidence level of the estimated marginal means.
		anova_type: {2, 3}
			Which type of likelihood-ratio ANOVA to calculate.
		reml: bool
			Whether models used for estimation are fitted with restricted maximum likelihood. Models compared
			by likelihood ratio are always refitted with maximum likelihood.
		adjust: {'tukey', 'bonferroni', 'holm', 'none'}
			The multiplicity adjustment applied to the pairwise comparisons.
	"""

	def __init__(self, alpha: float = 0.05, confidence: float = 0.95, anova_type: int = 2, reml: bool = True,
			adjust: str = 'tukey', reverse_letters: bool = False, separator: str = '_', maxiter: int = 500,
			optimizers: Optional[List[str]] = None, figure_format: str = '.png'):
		if not 0 < alpha < 1:
			raise ValueError(f"alpha must be between 0 and 1, got {alpha}")
		if not 0 < confidence < 1:
			raise ValueError(f"confidence must be between 0 and 1, got {confidence}")
		if anova_type not in (2, 3):
			raise ValueError(f"Only type 2 and type 3 ANOVA tables are supported, got {anova_type}")
		if adjust not in ('tukey', 'bonferroni', 'holm', 'none'):
			raise ValueError(f"Unknown p-value adjustment: '{adjust}'")

		self.alpha = alpha
		self.confidence = confidence
		self.anova_type = anova_type
		self.reml = reml
		self.adjust = adjust

		# Letters used for the compact letter display. Lowercase letters are used once the uppercase letters run out.
		self.letters = string.ascii_uppercase + string.ascii_lowercase
		# When False the first letter goes to the smallest mean.
		self.reverse_letters = reverse_letters

		# Joins species and genotype into the `species_genotype` column.
		self.separator = separator

		# Passed to statsmodels one at a time. Each optimizer is tried in order until one converges.
		self.optimizers = optimizers if optimizers is not None else ['lbfgs', 'bfgs', 'powell']
		self.maxiter = maxiter

		self.figure_format = figure_format
		self.table_format = '.tsv'

	@property
	def contrast_coding(self) -> str:
		""" Type III tests are only meaningful with sum-to-zero contrasts."""
		return 'Sum' if self.anova_type == 3 else 'Treatment'

	def __repr__(self) -> str:
		return f"AnalysisSettings(alpha = {self.alpha}, confidence = {self.confidence}, anova_type = {self.anova_type}, " \
			   f"reml = {self.reml}, adjust = '{self.adjust}')"
