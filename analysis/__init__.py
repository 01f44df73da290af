from .settings import AnalysisSettings
from .mixedmodel import ModelSpec, RandomEffects, FittedModel, ModelFitError, ModelConvergenceError, fit_mixed_model
from .anovacalc import anova_table, stratification_factors
from .pairwise import estimated_marginal_means, pairwise_comparisons, compact_letter_display, add_letters
