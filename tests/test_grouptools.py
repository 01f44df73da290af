import math

import pandas
import pytest

import constants
from analysis import grouptools


@pytest.fixture
def wide_table() -> pandas.DataFrame:
	table = pandas.DataFrame({
		'isolate':   ['A1', 'A2', 'B1'],
		'substrate': ['rice', 'wheat', 'rice'],
		'score0':    [1, 0, 5],
		'score1':    [2, 3, 0],
		'score2':    [3, 0, 1],
		'score3':    [4, 7, 0]
	})
	return table


@pytest.fixture
def score_columns():
	return ['score0', 'score1', 'score2', 'score3']


def test_pivot_longer_gives_one_row_per_score(wide_table, score_columns):
	result = grouptools.pivot_longer(wide_table, score_columns, names_to = 'score', values_to = 'frequency')

	assert len(result) == 4 * len(wide_table)
	assert list(result.columns) == ['isolate', 'substrate', 'score', 'frequency']
	# The rows of each wide row stay together and keep the order of the score columns.
	assert result['score'].tolist()[:4] == score_columns
	assert result['frequency'].tolist()[:4] == [1, 2, 3, 4]

	for index, row in wide_table.iterrows():
		rows = result.iloc[index * 4:(index + 1) * 4]
		assert set(rows['isolate']) == {row['isolate']}
		assert set(rows['substrate']) == {row['substrate']}
		assert rows['frequency'].tolist() == row[score_columns].tolist()


def test_pivot_longer_round_trip(wide_table, score_columns):
	long = grouptools.pivot_longer(wide_table, score_columns, names_to = 'score', values_to = 'frequency')
	result = grouptools.pivot_wider(long, ['isolate', 'substrate'], names_from = 'score', values_from = 'frequency')

	expected = wide_table.sort_values(by = ['isolate', 'substrate']).reset_index(drop = True)
	result = result.sort_values(by = ['isolate', 'substrate']).reset_index(drop = True)
	assert list(result.columns) == list(expected.columns)
	assert result[score_columns].astype(int).values.tolist() == expected[score_columns].values.tolist()


def test_pivot_longer_rejects_missing_columns(wide_table):
	with pytest.raises(ValueError):
		grouptools.pivot_longer(wide_table, ['score0', 'score9'], names_to = 'score', values_to = 'frequency')


def test_composite_key_round_trip():
	table = constants.generate_mycelial_growth_table(controls = False)
	keyed = grouptools.add_composite_key(table)
	split = grouptools.split_composite_key(keyed.drop(columns = ['species', 'genotype']))

	assert keyed['species_genotype'].nunique() == len(constants.SPECIES_GENOTYPES)
	assert split['species'].tolist() == table['species'].tolist()
	assert split['genotype'].tolist() == table['genotype'].tolist()


def test_composite_key_rejects_the_separator():
	table = pandas.DataFrame({'species': ['F_gra'], 'genotype': ['NIV']})
	with pytest.raises(ValueError):
		grouptools.add_composite_key(table, separator = '_')

	result = grouptools.add_composite_key(table, separator = '|')
	assert result['species_genotype'].tolist() == ['F_gra|NIV']


def test_summarize():
	table = pandas.DataFrame({
		'group': ['a', 'a', 'a', 'b', 'b'],
		'value': [1.0, 2.0, 3.0, 10.0, 20.0]
	})
	result = grouptools.summarize(table, 'group', 'value').set_index('group')

	assert result.loc['a', 'mean'] == 2.0
	assert result.loc['a', 'sd'] == 1.0
	assert result.loc['a', 'n'] == 3
	assert result.loc['b', 'mean'] == 15.0
	assert math.isclose(result.loc['b', 'sem'], result.loc['b', 'sd'] / math.sqrt(2))


def test_stratify_is_disjoint_and_exhaustive():
	table = constants.generate_mycelial_growth_table()
	strata = grouptools.stratify(table, ['temperature'])

	assert sorted(strata.keys()) == [('15',), ('25',)]
	indices = [i for subset in strata.values() for i in subset.index]
	assert len(indices) == len(set(indices))
	assert sorted(indices) == sorted(table.index)
	for (temperature,), subset in strata.items():
		assert set(subset['temperature']) == {temperature}


def test_stratify_without_factors_returns_the_table():
	table = constants.generate_balanced_table()
	strata = grouptools.stratify(table, [])
	assert list(strata.keys()) == [tuple()]
	assert strata[tuple()] is table


def test_calculate_ppi(wide_table, score_columns):
	long = grouptools.pivot_longer(wide_table, score_columns, names_to = 'score', values_to = 'frequency')
	result = grouptools.calculate_ppi(long, ['isolate', 'substrate'], 'score', 'frequency').set_index('isolate')

	# (0*1 + 1*2 + 2*3 + 3*4) / (3 * 10) * 100
	assert math.isclose(result.loc['A1', 'ppi'], 2000 / 30)
	assert math.isclose(result.loc['A2', 'ppi'], (3 + 21) / 30 * 100)
	assert math.isclose(result.loc['B1', 'ppi'], 2 / 18 * 100)
	assert ((result['ppi'] >= 0) & (result['ppi'] <= 100)).all()


def test_calculate_audpc():
	table = pandas.DataFrame({
		'spike':    ['1', '1', '1', '2', '2', '2'],
		'day':      ['dai7', 'dai14', 'dai21', 'dai14', 'dai7', 'dai21'],
		'severity': [10.0, 20.0, 40.0, 0.0, 0.0, 10.0]
	})
	result = grouptools.calculate_audpc(table, ['spike']).set_index('spike')

	assert result.loc['1', 'audpc'] == pytest.approx(7 * (10 + 20) / 2 + 7 * (20 + 40) / 2)
	assert result.loc['2', 'audpc'] == pytest.approx(7 * 10 / 2)


@pytest.mark.parametrize(
	"labels, expected",
	[
		(['score0', 'score3'], [0.0, 3.0]),
		(['dai7', 'dai14'], [7.0, 14.0]),
		(['12.5'], [12.5])
	]
)
def test_extract_number(labels, expected):
	result = grouptools.extract_number(pandas.Series(labels))
	assert result.tolist() == expected


def test_extract_number_without_a_number():
	with pytest.raises(ValueError):
		grouptools.extract_number(pandas.Series(['score']))


def test_transform_response():
	table = pandas.DataFrame({'ec50': [0.1, 1.0, 10.0]})
	result, name = grouptools.transform_response(table, 'ec50', 'log10')
	assert name == 'log10_ec50'
	assert result[name].tolist() == pytest.approx([-1.0, 0.0, 1.0])

	with pytest.raises(ValueError):
		grouptools.transform_response(pandas.DataFrame({'ec50': [0.0, 1.0]}), 'ec50', 'log10')


def test_order_levels():
	assert grouptools.order_levels(['b', 'a', 'c', 'a']) == ['a', 'b', 'c']
	assert grouptools.order_levels(['b', 'a', 'c'], preferred = ['c', 'x']) == ['c', 'a', 'b']
