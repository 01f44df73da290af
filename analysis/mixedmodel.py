import warnings
from typing import *

import numpy
import pandas
import patsy
from loguru import logger
from statsmodels.regression.mixed_linear_model import MixedLM, MixedLMResults
from statsmodels.tools.sm_exceptions import ConvergenceWarning

from analysis import grouptools
from analysis.settings import AnalysisSettings


class ModelFitError(RuntimeError):
	""" The model could not be fitted with the given data."""


class ModelConvergenceError(ModelFitError):
	""" The optimizer did not reach a stable estimate."""


class RandomEffects:
	""" Random intercepts.
		Parameters
		----------
		groups: str
			The grouping factor. Ex. 'isolate'
		nested: Optional[str]
			A factor whose levels are only meaningful within each level of `groups`. Ex. 'plate' for plates nested in isolates.
			A separate variance component is estimated for it.
	"""

	def __init__(self, groups: str, nested: Optional[str] = None):
		self.groups = groups
		self.nested = nested

	@property
	def factors(self) -> List[str]:
		return [self.groups] if self.nested is None else [self.groups, self.nested]

	@property
	def vc_formula(self) -> Optional[Dict[str, str]]:
		if self.nested is None:
			return None
		return {self.nested: f"0 + C({self.nested})"}

	@property
	def label(self) -> str:
		if self.nested is None:
			return f"(1 | {self.groups})"
		return f"(1 | {self.groups}/{self.nested})"

	def __repr__(self) -> str:
		return f"RandomEffects{self.label}"


class ModelSpec:
	""" Describes a linear mixed model.
		Parameters
		----------
		response: str
			The response column.
		fixed: List[str]
			Categorical fixed-effect factors.
		interaction: bool
			Whether to include the interaction between the two fixed factors.
		random: RandomEffects
		focal: Optional[str]
			The factor compared in the post-hoc tests. Defaults to the first fixed factor.
		transform: Optional[str]
			'log10' to model the log of the response.
	"""

	def __init__(self, response: str, fixed: List[str], random: RandomEffects, interaction: bool = False, focal: Optional[str] = None,
			transform: Optional[str] = None):
		fixed = list(fixed)
		if interaction and len(fixed) != 2:
			raise ValueError(f"An interaction needs exactly two fixed factors, got {fixed}")
		overlap = set(fixed) & set(random.factors)
		if overlap:
			raise ValueError(f"{sorted(overlap)} cannot be both a fixed and a random effect.")
		if focal is None and fixed:
			focal = fixed[0]
		if focal is not None and focal not in fixed:
			raise ValueError(f"The focal factor '{focal}' is not one of the fixed factors {fixed}")

		self.response = response
		self.fixed = fixed
		self.interaction = interaction
		self.random = random
		self.focal = focal
		self.transform = transform

	@property
	def terms(self) -> List[Tuple[str, ...]]:
		terms = [(i,) for i in self.fixed]
		if self.interaction:
			terms.append(tuple(self.fixed))
		return terms

	@property
	def term_labels(self) -> List[str]:
		return [":".join(i) for i in self.terms]

	@property
	def formula(self) -> str:
		joiner = " * " if self.interaction else " + "
		fixed = joiner.join(self.fixed) if self.fixed else "1"
		response = self.response if self.transform is None else f"{self.transform}({self.response})"
		return f"{response} ~ {fixed} + {self.random.label}"

	def without(self, factors: Iterable[str]) -> 'ModelSpec':
		""" The simpler model used after conditioning on `factors`."""
		factors = set(factors)
		fixed = [i for i in self.fixed if i not in factors]
		focal = self.focal if self.focal in fixed else None
		return ModelSpec(self.response, fixed, self.random, interaction = False, focal = focal, transform = self.transform)

	def __repr__(self) -> str:
		return f"ModelSpec('{self.formula}')"


class FittedModel:
	""" A fitted mixed model along with the design used to fit it."""

	def __init__(self, spec: ModelSpec, result: MixedLMResults, data: pandas.DataFrame, design: pandas.DataFrame,
			term_slices: Dict[str, slice], response: str, coding: str, reml: bool):
		self.spec = spec
		self.result = result
		self.data = data
		self.design = design
		self.term_slices = term_slices
		self.response = response
		self.coding = coding
		self.reml = reml

	@property
	def method(self) -> str:
		return 'REML' if self.reml else 'ML'

	@property
	def design_info(self) -> patsy.DesignInfo:
		return self.design.design_info

	@property
	def converged(self) -> bool:
		return bool(self.result.converged)

	@property
	def llf(self) -> float:
		return float(self.result.llf)

	@property
	def fe_params(self) -> pandas.Series:
		return pandas.Series(numpy.asarray(self.result.fe_params), index = self.design.columns)

	@property
	def cov_fe(self) -> pandas.DataFrame:
		""" The covariance matrix of the fixed effects. They come first in the parameter vector."""
		k_fe = len(self.design.columns)
		cov = numpy.asarray(self.result.cov_params())[:k_fe, :k_fe]
		return pandas.DataFrame(cov, index = self.design.columns, columns = self.design.columns)

	def term_columns(self, term: str) -> List[str]:
		return list(self.design.columns[self.term_slices[term]])

	def variance_components(self) -> pandas.Series:
		components = {f"{self.spec.random.groups} (Intercept)": float(numpy.asarray(self.result.cov_re)[0, 0])}
		if self.spec.random.nested is not None:
			label = f"{self.spec.random.nested}:{self.spec.random.groups} (Intercept)"
			components[label] = float(numpy.asarray(self.result.vcomp)[0])
		components['Residual'] = float(self.result.scale)
		return pandas.Series(components, name = 'variance')

	def summary(self) -> str:
		lines = [
			f"Linear mixed model fit by {self.method}",
			f"Formula: {self.spec.formula}",
			f"Observations: {len(self.data)}, groups ({self.spec.random.groups}): {self.data[self.spec.random.groups].nunique()}",
			f"Log-likelihood: {self.llf:.4f}",
			"",
			"Random effects:",
			self.variance_components().to_string(),
			"",
			"Fixed effects:",
			pandas.DataFrame({
				'Estimate':   self.fe_params,
				'Std. Error': numpy.sqrt(numpy.diag(self.cov_fe))
			}).to_string()
		]
		return "\n".join(lines)


def prepare_data(table: pandas.DataFrame, spec: ModelSpec) -> Tuple[pandas.DataFrame, str]:
	""" Selects the columns used by the model and drops observations without a response."""
	table, response = grouptools.transform_response(table, spec.response, spec.transform)
	columns = spec.fixed + spec.random.factors
	missing = [i for i in columns + [response] if i not in table.columns]
	if missing:
		raise ModelFitError(f"The table is missing the model columns {missing}")
	data = table[columns + [response]].dropna(subset = [response]).reset_index(drop = True)
	dropped = len(table) - len(data)
	if dropped:
		logger.warning(f"Dropped {dropped} observations without a value for '{response}'")
	for column in columns:
		data[column] = data[column].astype(str)
	return data, response


def build_design(data: pandas.DataFrame, spec: ModelSpec, coding: str = 'Treatment') -> Tuple[pandas.DataFrame, Dict[str, slice]]:
	""" Dummy-codes the fixed effects. Returns the design matrix and the columns belonging to each term."""
	rhs = " + ".join(":".join(f"C({factor}, {coding})" for factor in term) for term in spec.terms) or "1"
	design = patsy.dmatrix(rhs, data, return_type = 'dataframe')
	info = design.design_info
	# patsy orders the terms by degree, which matches the order of `spec.terms`.
	patsy_terms = [i for i in info.terms if i.factors]
	term_slices = {label: info.term_slices[term] for label, term in zip(spec.term_labels, patsy_terms)}

	rank = numpy.linalg.matrix_rank(design.values)
	if rank < design.shape[1]:
		message = f"The design of '{spec.formula}' is rank deficient ({rank} < {design.shape[1]} columns). " \
				  f"Some combinations of {spec.fixed} are probably missing."
		raise ModelFitError(message)
	return design, term_slices


def fit_columns(data: pandas.DataFrame, design: pandas.DataFrame, response: str, random: RandomEffects, settings: AnalysisSettings,
		reml: bool) -> MixedLMResults:
	""" Fits the mixed model using an explicit set of design columns. This allows terms to be removed from a design without
		patsy recoding the remaining terms.
	"""
	names = [f"fe{index}" for index in range(design.shape[1])]
	model_data = pandas.DataFrame(design.values, columns = names)
	model_data[response] = data[response].values
	for column in random.factors:
		model_data[column] = data[column].values

	formula = f"{response} ~ 0 + " + " + ".join(names) if names else f"{response} ~ 0"
	logger.trace(f"Fitting '{formula}' with groups = '{random.groups}', vc_formula = {random.vc_formula}, reml = {reml}")
	model = MixedLM.from_formula(formula, data = model_data, groups = random.groups, re_formula = "1", vc_formula = random.vc_formula)

	# A variance component on its zero boundary can leave a singular Hessian for one optimizer but not another.
	failures = list()
	not_converged = False
	for method in settings.optimizers:
		with warnings.catch_warnings(record = True) as caught:
			warnings.simplefilter('always', ConvergenceWarning)
			try:
				result = model.fit(reml = reml, method = method, maxiter = settings.maxiter)
			except numpy.linalg.LinAlgError as exception:
				logger.debug(f"{random.label}: the '{method}' optimizer failed ({exception})")
				failures.append(f"{method}: {exception}")
				continue

		for warning in caught:
			if issubclass(warning.category, ConvergenceWarning):
				logger.warning(f"{random.label} ({method}): {warning.message}")

		if result.converged:
			return result
		logger.debug(f"{random.label}: the '{method}' optimizer did not converge")
		failures.append(f"{method}: did not converge")
		not_converged = True

	if not not_converged:
		raise ModelFitError(f"The model could not be fitted with any optimizer: {failures}")
	message = f"The optimizer did not converge ({failures}, maxiter = {settings.maxiter})"
	raise ModelConvergenceError(message)


def fit_mixed_model(table: pandas.DataFrame, spec: ModelSpec, settings: AnalysisSettings, reml: Optional[bool] = None,
		coding: Optional[str] = None) -> FittedModel:
	"""
		Fits a linear mixed model with random intercepts.
	Parameters
	----------
	table: pandas.DataFrame
		The observations.
	spec: ModelSpec
	settings: AnalysisSettings
	reml: Optional[bool]
		Overrides `settings.reml`.
	coding: Optional[str]
		The contrast coding of the fixed effects. Defaults to the coding required by `settings.anova_type`.

	Raises
	------
	ModelConvergenceError
		The optimizer did not converge. The caller decides how to re-specify the model.
	"""
	if reml is None:
		reml = settings.reml
	if coding is None:
		coding = settings.contrast_coding

	data, response = prepare_data(table, spec)
	logger.debug(f"Fitting {spec.formula} to {len(data)} observations ({'REML' if reml else 'ML'}, {coding} contrasts)")
	design, term_slices = build_design(data, spec, coding)

	try:
		result = fit_columns(data, design, response, spec.random, settings, reml)
	except ModelFitError as exception:
		logger.error(f"Could not fit '{spec.formula}': {exception}")
		raise

	return FittedModel(spec, result, data, design, term_slices, response, coding, reml)


def refit(model: FittedModel, settings: AnalysisSettings, reml: bool, coding: Optional[str] = None) -> FittedModel:
	""" Refits the same model with a different estimation method or contrast coding."""
	if coding is None:
		coding = model.coding
	if model.reml == reml and model.coding == coding:
		return model
	if coding == model.coding:
		design, term_slices = model.design, model.term_slices
	else:
		design, term_slices = build_design(model.data, model.spec, coding)
	result = fit_columns(model.data, design, model.response, model.spec.random, settings, reml)
	return FittedModel(model.spec, result, model.data, design, term_slices, model.response, coding, reml)
