from typing import *

import pandas
from loguru import logger
from scipy import stats

from analysis import mixedmodel
from analysis.mixedmodel import FittedModel, ModelSpec
from analysis.settings import AnalysisSettings

COLUMN_STATISTIC = 'Chisq'
COLUMN_DF = 'Df'
COLUMN_PVALUE = 'Pr(>Chisq)'


def _term_factors(term: str) -> Set[str]:
	return set(term.split(':'))


def _comparison_terms(terms: List[str], term: str, typ: int) -> Tuple[List[str], List[str]]:
	""" Selects the terms of the larger and smaller model used to test `term`.
		Type II: every term that does not contain `term`, with and without `term`.
		Type III: every term, with and without `term`.
	"""
	if typ == 3:
		full = list(terms)
	else:
		factors = _term_factors(term)
		full = [i for i in terms if i == term or not factors.issubset(_term_factors(i))]
	reduced = [i for i in full if i != term]
	return full, reduced


def _select_columns(model: FittedModel, terms: List[str]) -> pandas.DataFrame:
	""" The intercept plus the design columns of each term."""
	columns = [i for i in model.design.columns if i == 'Intercept']
	for term in terms:
		columns += model.term_columns(term)
	return model.design[columns]


def anova_table(model: FittedModel, settings: AnalysisSettings, typ: Optional[int] = None) -> pandas.DataFrame:
	"""
		Tests each fixed-effect term with a likelihood-ratio chi-square test.
	Parameters
	----------
	model: FittedModel
		If the model was fitted by REML it is refitted by ML, since REML likelihoods of models with different
		fixed effects are not comparable.
	settings: AnalysisSettings
	typ: {2, 3}
		Defaults to `settings.anova_type`. Type III tests require a model fitted with sum-to-zero contrasts.

	Returns
	-------
	pandas.DataFrame
		Indexed by term, with the columns 'Chisq', 'Df', and 'Pr(>Chisq)'.
	"""
	if typ is None:
		typ = settings.anova_type
	if typ not in (2, 3):
		raise ValueError(f"Only type 2 and type 3 tests are supported, got {typ}")
	coding = 'Sum' if typ == 3 else model.coding
	if coding != model.coding:
		logger.warning(f"Refitting '{model.spec.formula}' with sum-to-zero contrasts for the type III tests.")
	if model.reml:
		logger.warning(f"Refitting '{model.spec.formula}' by ML for the likelihood-ratio tests.")
	model = mixedmodel.refit(model, settings, reml = False, coding = coding)

	terms = model.spec.term_labels
	# Models are shared between terms. Ex. Type II uses the main-effects model for both main effects.
	fitted: Dict[Tuple[str, ...], float] = {tuple(terms): model.llf}

	def loglikelihood(selected: List[str]) -> float:
		key = tuple(selected)
		if key not in fitted:
			design = _select_columns(model, selected)
			logger.trace(f"Fitting the comparison model with the terms {selected}")
			result = mixedmodel.fit_columns(model.data, design, model.response, model.spec.random, settings, reml = False)
			fitted[key] = float(result.llf)
		return fitted[key]

	rows = list()
	for term in terms:
		full, reduced = _comparison_terms(terms, term, typ)
		statistic = 2 * (loglikelihood(full) - loglikelihood(reduced))
		# The optimizer can leave the larger model a hair below the smaller one.
		statistic = max(statistic, 0.0)
		df = len(model.term_columns(term))
		pvalue = stats.chi2.sf(statistic, df)
		rows.append({'term': term, COLUMN_STATISTIC: statistic, COLUMN_DF: df, COLUMN_PVALUE: pvalue})
	table = pandas.DataFrame(rows).set_index('term')
	table.index.name = None
	logger.debug(f"Type {typ} analysis of deviance for '{model.spec.formula}':\n{table}")
	return table


def interaction_terms(report: pandas.DataFrame) -> List[str]:
	return [i for i in report.index if ':' in i]


def significant_terms(report: pandas.DataFrame, alpha: float) -> List[str]:
	return [i for i in report.index if report.loc[i, COLUMN_PVALUE] < alpha]


def stratification_factors(report: pandas.DataFrame, spec: ModelSpec, alpha: float) -> List[str]:
	""" Decides which factors to condition on before the post-hoc comparisons.
		When an interaction with the focal factor is significant the main effect of the focal factor cannot be interpreted on its own,
		so the data is split by the other factor(s) of the interaction and a simpler model is fitted to each subset.

		Returns
		-------
		List[str]
			The factors to stratify by, in the order they appear in the model. Empty when no interaction is significant.
	"""
	significant = set(significant_terms(report, alpha))
	factors = list()
	for term in interaction_terms(report):
		if term not in significant:
			continue
		logger.info(f"The interaction '{term}' is significant (p = {report.loc[term, COLUMN_PVALUE]:.3g} < {alpha})")
		for factor in term.split(':'):
			if factor != spec.focal and factor not in factors:
				factors.append(factor)
	return [i for i in spec.fixed if i in factors]
