import pytest

import constants
import runanalysis


@pytest.fixture
def data_folder(tmp_path):
	folder = tmp_path / "data"
	folder.mkdir()
	constants.generate_mycelial_growth_table().to_csv(folder / "mycelial_growth.csv", index = False)
	return folder


def test_create_parser(data_folder):
	args = runanalysis.create_parser([str(data_folder), '--experiments', 'sporulation,perithecia', '--anova-type', '3'])
	assert args.folder == data_folder
	assert args.experiments == ['sporulation', 'perithecia']
	assert args.anova_type == 3
	assert args.alpha == 0.05
	assert args.output is None


def test_main(tmp_path, data_folder):
	output = tmp_path / "output"
	result = runanalysis.main([str(data_folder), '--output', str(output), '--experiments', 'mycelial_growth'])
	assert result == 0
	assert (output / "mycelial_growth" / "data" / "anova.mgr.tsv").exists()


def test_main_with_a_missing_table(tmp_path, data_folder):
	output = tmp_path / "output"
	result = runanalysis.main([str(data_folder), '--output', str(output), '--experiments', 'sporulation'])
	assert result == 1


def test_main_with_an_unknown_experiment(tmp_path, data_folder):
	result = runanalysis.main([str(data_folder), '--output', str(tmp_path), '--experiments', 'growthcurves'])
	assert result == 2


def test_main_continues_after_bad_data(tmp_path, data_folder):
	table = constants.generate_sporulation_table()
	table['species'] = table['species'].str.replace('Fgra', 'F_gra')
	table.to_csv(data_folder / "sporulation.csv", index = False)
	output = tmp_path / "output"

	result = runanalysis.main([str(data_folder), '--output', str(output), '--experiments', 'sporulation,mycelial_growth'])

	assert result == 1
	# The failed experiment does not stop the others.
	assert (output / "mycelial_growth" / "data" / "anova.mgr.tsv").exists()
