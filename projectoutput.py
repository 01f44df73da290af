from pathlib import Path
from typing import *

import pandas
from loguru import logger

import utilities
from analysis import pairwise
from projectpaths import Filenames

if TYPE_CHECKING:
	from analysis.workflow import AnalysisResult


def show_table(title: str, table: pandas.DataFrame):
	print()
	print(title)
	print("-" * len(title))
	print(utilities.format_table(table))


def show_result(experiment: str, result: 'AnalysisResult'):
	""" Prints the statistical tables of a single response to the console."""
	spec = result.analysis.spec
	show_table(f"{experiment}: {spec.formula} (LR chi-square, ML)", result.anova)
	if result.is_stratified:
		print(f"\nThe interaction is significant, so a separate model was fitted for each level of {result.stratified_by}.")
		show_table(f"{experiment}: {result.model.response} by {result.stratified_by}", result.strata_anova)
	show_table(f"{experiment}: estimated marginal means of {spec.focal}", result.emmeans)


def save_table(table: pandas.DataFrame, filename: Path, index: bool = False):
	table.to_csv(filename, sep = "\t", index = index)


def save_anova(result: 'AnalysisResult', filename: Path):
	anova = result.anova.rename_axis('term').reset_index()
	anova.insert(0, 'model', 'full')
	if result.strata_anova is not None:
		strata = result.strata_anova.copy()
		strata.insert(0, 'model', 'stratum')
		anova = pandas.concat([anova, strata], ignore_index = True)
	save_table(anova, filename)


def save_pvalue_matrix(result: 'AnalysisResult', filename: Path):
	""" Saves the adjusted p-values as a square matrix. Stratified results are stacked, one matrix per stratum."""
	if not result.is_stratified:
		matrix = pairwise.pvalue_matrix(result.comparisons)
		save_table(matrix, filename, index = True)
		return
	matrices = list()
	for key, group in result.comparisons.groupby(by = result.stratified_by, sort = True):
		if not isinstance(key, tuple):
			key = (key,)
		matrix = pairwise.pvalue_matrix(group)
		for index, (column, value) in enumerate(zip(result.stratified_by, key)):
			matrix.insert(index, column, value)
		matrices.append(matrix)
	save_table(pandas.concat(matrices), filename, index = True)


def save_regression(result: 'AnalysisResult', filename: Path):
	filename.write_text(result.model.summary())


def save_result(result: 'AnalysisResult', filenames: Filenames):
	response = result.response
	logger.info(f"Saving the tables for '{response}' to {filenames.folder_data}")
	save_table(result.summary, filenames.table_summary(response))
	save_anova(result, filenames.table_anova(response))
	save_table(result.emmeans, filenames.table_emmeans(response))
	save_table(result.comparisons, filenames.table_pairwise(response))
	save_pvalue_matrix(result, filenames.table_pvalues(response))
	save_regression(result, filenames.model_summary(response))
