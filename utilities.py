from pathlib import Path
from typing import *

import pandas

TABLE_SUFFIXES = ['.csv', '.tsv', '.xlsx', '.xls']


def checkdir(path: Union[str, Path]) -> Path:
	path = Path(path)
	if not path.exists():
		path.mkdir(parents = True)
	return path


def get_run_label() -> str:
	""" Generates the name of an output folder based on the current date and time."""
	import datetime
	current_date = datetime.datetime.now()
	date = str(current_date.date())
	time = current_date.time()
	time_string = f"{time.hour}_{time.minute}_{time.second}"

	label = date + 'T' + time_string
	return label


def find_table(folder: Path, name: str) -> Path:
	""" Finds the input table of an experiment. The filename should be the experiment name with any supported extension."""
	for suffix in TABLE_SUFFIXES:
		filename = folder / (name + suffix)
		if filename.exists():
			return filename
	message = f"Could not find a table for '{name}' in '{folder}'. Expected one of {[name + i for i in TABLE_SUFFIXES]}"
	raise FileNotFoundError(message)


def format_table(table: pandas.DataFrame, digits: int = 4) -> str:
	""" Formats a table for the console."""
	with pandas.option_context('display.max_rows', 200, 'display.max_columns', 20, 'display.width', 160):
		return table.to_string(float_format = lambda value: f"{value:.{digits}g}")
