from typing import *

import numpy
from loguru import logger
from scipy.integrate import trapezoid


def perithecia_production_index(scores: Sequence[float], frequencies: Sequence[float], max_score: Optional[float] = None) -> float:
	""" Weighted score-frequency index, scaled to [0, 100].
		PPI = 100 * sum(score * frequency) / (max_score * sum(frequency))
	"""
	scores = numpy.asarray(scores, dtype = float)
	frequencies = numpy.asarray(frequencies, dtype = float)
	if scores.shape != frequencies.shape:
		raise ValueError(f"Got {len(scores)} scores but {len(frequencies)} frequencies.")
	if (frequencies < 0).any():
		raise ValueError(f"Frequencies cannot be negative: {frequencies.tolist()}")
	if max_score is None:
		max_score = scores.max()
	total = frequencies.sum()
	if total == 0 or max_score == 0:
		logger.warning("No scored units, using a PPI of 0.")
		return 0.0

	result = 100 * (scores * frequencies).sum() / (max_score * total)
	return float(result)


def area_under_disease_progress_curve(times: Sequence[float], severities: Sequence[float]) -> float:
	""" Trapezoidal integral of severity over time."""
	times = numpy.asarray(times, dtype = float)
	severities = numpy.asarray(severities, dtype = float)
	if times.shape != severities.shape:
		raise ValueError(f"Got {len(times)} timepoints but {len(severities)} severity values.")
	if len(times) < 2:
		raise ValueError("At least two assessments are needed to calculate the AUDPC.")
	order = numpy.argsort(times)

	return float(trapezoid(severities[order], times[order]))
