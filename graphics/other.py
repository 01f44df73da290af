from pathlib import Path

import matplotlib.pyplot as plt
from loguru import logger
from statsmodels.graphics import gofplots

from analysis.mixedmodel import FittedModel


def plot_qq(model: FittedModel, filename: Path) -> plt.Figure:
	""" QQ plot of the model residuals. Used to judge whether the full model is adequate before interpreting it."""
	figure, ax = plt.subplots(figsize = (5, 5))
	gofplots.qqplot(model.result.resid, fit = True, line = '45', ax = ax)
	ax.set_title(model.spec.formula, fontsize = 9)
	logger.debug(f"Saving the residual QQ plot to {filename}")
	figure.savefig(filename, bbox_inches = 'tight')
	plt.close(figure)
	return figure
