import pytest

import equations


@pytest.mark.parametrize(
	"frequencies, expected",
	[
		([10, 0, 0, 0], 0.0),
		([0, 0, 0, 10], 100.0),
		([1, 1, 1, 1], 50.0),
		([0, 5, 5, 0], 50.0)
	]
)
def test_perithecia_production_index(frequencies, expected):
	result = equations.perithecia_production_index([0, 1, 2, 3], frequencies)
	assert result == pytest.approx(expected)


def test_perithecia_production_index_without_units():
	assert equations.perithecia_production_index([0, 1, 2, 3], [0, 0, 0, 0]) == 0.0


def test_perithecia_production_index_uses_the_given_max_score():
	# Scores 0-2 observed but the scale goes to 3.
	result = equations.perithecia_production_index([0, 1, 2], [0, 0, 4], max_score = 3)
	assert result == pytest.approx(200 / 3)


def test_perithecia_production_index_rejects_bad_input():
	with pytest.raises(ValueError):
		equations.perithecia_production_index([0, 1, 2], [1, 1])
	with pytest.raises(ValueError):
		equations.perithecia_production_index([0, 1], [1, -1])


@pytest.mark.parametrize(
	"times, severities, expected",
	[
		([7, 14, 21], [0, 0, 0], 0.0),
		([7, 14, 21], [10, 10, 10], 140.0),
		([7, 14, 21], [0, 10, 20], 140.0),
		# Unsorted assessments are ordered by time first.
		([21, 7, 14], [20, 0, 10], 140.0)
	]
)
def test_area_under_disease_progress_curve(times, severities, expected):
	assert equations.area_under_disease_progress_curve(times, severities) == pytest.approx(expected)


def test_area_under_disease_progress_curve_needs_two_points():
	with pytest.raises(ValueError):
		equations.area_under_disease_progress_curve([7], [10])
