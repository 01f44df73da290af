import pandas
import pytest

import constants
from table_schema import TableSchema
from validation import RowFilter, SchemaError, ValidateTable


@pytest.fixture
def schema() -> TableSchema:
	return TableSchema('mycelial_growth', ['species', 'genotype', 'isolate', 'temperature', 'replicate'], ['mgr'])


@pytest.fixture
def validator(schema) -> ValidateTable:
	return ValidateTable(schema)


@pytest.fixture
def controls() -> RowFilter:
	return RowFilter('isolate', 'not in', ['control', 'test'])


def test_check_table_casts_the_categorical_columns(validator):
	table = constants.generate_mycelial_growth_table()
	table['temperature'] = table['temperature'].astype(int)
	result = validator.check_table(table)

	assert result['temperature'].tolist() == table['temperature'].astype(str).tolist()
	assert result['mgr'].dtype.kind == 'f'


def test_check_table_strips_the_header(validator):
	table = constants.generate_mycelial_growth_table().rename(columns = {'mgr': ' mgr '})
	result = validator.check_table(table)
	assert 'mgr' in result.columns


def test_missing_columns(validator):
	table = constants.generate_mycelial_growth_table().drop(columns = ['temperature'])
	with pytest.raises(SchemaError, match = 'temperature'):
		validator.check_table(table)


def test_missing_categorical_values(validator):
	table = constants.generate_mycelial_growth_table()
	table.loc[3, 'isolate'] = None
	with pytest.raises(SchemaError):
		validator.check_table(table)


def test_non_numeric_values(validator):
	table = constants.generate_mycelial_growth_table()
	table['mgr'] = table['mgr'].astype(object)
	table.loc[0, 'mgr'] = 'n/a?'
	with pytest.raises(SchemaError, match = 'non-numeric'):
		validator.check_table(table)


def test_missing_numeric_values_are_kept(validator):
	table = constants.generate_mycelial_growth_table()
	table.loc[0, 'mgr'] = None
	result = validator.check_table(table)
	assert len(result) == len(table)
	assert result['mgr'].isna().sum() == 1


def test_control_rows_are_removed(validator, controls):
	table = constants.generate_mycelial_growth_table(controls = True)
	assert (table['isolate'] == 'control').any()

	result = validator.load(table, [controls])
	assert not result['isolate'].isin(['control', 'test']).any()
	assert len(result) == (table['isolate'] != 'control').sum()
	assert list(result.index) == list(range(len(result)))


def test_filter_leaving_no_rows(validator):
	table = constants.generate_mycelial_growth_table()
	with pytest.raises(SchemaError):
		validator.load(table, [RowFilter('isolate', '==', 'not-an-isolate')])


def test_filter_on_an_unknown_column(validator):
	table = constants.generate_mycelial_growth_table()
	with pytest.raises(SchemaError):
		validator.load(table, [RowFilter('plate', '!=', '1')])


def test_drop_columns(validator, controls):
	table = constants.generate_mycelial_growth_table()
	result = validator.load(table, [controls], drop = ['replicate'])
	assert 'replicate' not in result.columns

	with pytest.raises(SchemaError):
		validator.load(table, [controls], drop = ['plate'])


@pytest.mark.parametrize(
	"operator, value, expected",
	[
		('==', 'a', [True, False, False]),
		('!=', 'a', [False, True, True]),
		('in', ['a', 'b'], [True, True, False]),
		('not in', 'c', [True, True, False])
	]
)
def test_row_filter_mask(operator, value, expected):
	table = pandas.DataFrame({'label': ['a', 'b', 'c']})
	assert RowFilter('label', operator, value).mask(table).tolist() == expected


def test_row_filter_rejects_unknown_operators():
	with pytest.raises(ValueError):
		RowFilter('label', '>', 3)


@pytest.mark.parametrize("suffix", ['.csv', '.tsv'])
def test_read_table(tmp_path, validator, suffix):
	table = constants.generate_mycelial_growth_table()
	filename = tmp_path / f"mycelial_growth{suffix}"
	table.to_csv(filename, sep = '\t' if suffix == '.tsv' else ',', index = False)

	result = validator.load(filename)
	assert len(result) == len(table)
	assert result['temperature'].tolist() == table['temperature'].tolist()
