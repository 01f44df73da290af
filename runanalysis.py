import sys
from pathlib import Path
from typing import *

from loguru import logger
from tqdm import tqdm

import utilities
from analysis import AnalysisSettings, ModelFitError
from analysis.workflow import ExperimentAnalysis
from experiments import get_experiments
from validation import SchemaError


def create_parser(args: List[str] = None):
	import argparse
	parser = argparse.ArgumentParser(
		description = "Fits a mixed model to each experiment, followed by likelihood-ratio tests and estimated marginal means."
	)

	parser.add_argument(
		"folder",
		help = "The folder with the input tables. Each table should be named after its experiment (ex. 'mycelial_growth.csv').",
		type = Path
	)
	parser.add_argument(
		"--output",
		help = "The folder to save all of the output files. If not given, an output folder will be generated based on the current date and time.",
		type = Path,
		default = None
	)
	parser.add_argument(
		"--experiments",
		help = "A comma-separated list of the experiments to analyze. Defaults to all of them.",
		type = str,
		default = None
	)
	parser.add_argument(
		"--alpha",
		help = "The significance threshold for the interaction check, the pairwise comparisons and the letter groupings.",
		type = float,
		default = 0.05
	)
	parser.add_argument(
		"--anova-type",
		help = "The type of likelihood-ratio ANOVA.",
		type = int,
		choices = [2, 3],
		default = 2,
		dest = "anova_type"
	)
	parser.add_argument(
		"--verbose",
		help = "Show the TRACE-level log messages.",
		action = "store_true"
	)
	if args:
		args = parser.parse_args(args)
	else:
		args = parser.parse_args()
	if args.experiments is not None:
		args.experiments = args.experiments.split(',')
	return args


def setup_logging(verbose: bool):
	logger.remove()  # Need to remove the default sink so that the logger doesn't print messages twice.
	# Route messages through tqdm so they don't break the progress bar.
	logger.add(lambda message: tqdm.write(message, end = ""), level = "TRACE" if verbose else "INFO")


def main(args: List[str] = None) -> int:
	args = create_parser(args)
	setup_logging(args.verbose)

	settings = AnalysisSettings(alpha = args.alpha, anova_type = args.anova_type)
	experiments = get_experiments()
	names = args.experiments if args.experiments else list(experiments.keys())
	unknown = [i for i in names if i not in experiments]
	if unknown:
		logger.error(f"Unknown experiments: {unknown}. Expected one of {list(experiments.keys())}")
		return 2

	output_folder = args.output if args.output else args.folder / utilities.get_run_label()
	logger.info(f"Saving the results to {output_folder}")
	logger.debug(settings)

	failed = list()
	for name in tqdm(names, desc = "experiments"):
		workflow = ExperimentAnalysis(experiments[name], settings)
		try:
			filename = utilities.find_table(args.folder, name)
			workflow.run(filename, output_folder)
		except (FileNotFoundError, SchemaError, ModelFitError) as exception:
			# The other experiments are independent and still run.
			logger.error(f"The '{name}' analysis failed: {exception}")
			failed.append(name)

	if failed:
		logger.error(f"{len(failed)} of {len(names)} experiments failed: {failed}")
		return 1
	return 0


if __name__ == "__main__":
	sys.exit(main())
