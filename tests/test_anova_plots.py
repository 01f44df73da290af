import matplotlib.pyplot as plt
import pandas
import pytest

from graphics import AnovaPanelPlot, AnovaPlot, Encoding, build_figure_description


@pytest.fixture
def observations() -> pandas.DataFrame:
	rows = list()
	for group, offset in [('Fgra_15ADON', 0.0), ('Fgra_3ADON', 1.0), ('Fmer_NIV', 2.0)]:
		for temperature, base in [('15', 2.0), ('25', 5.0)]:
			for replicate in range(3):
				rows.append({'species_genotype': group, 'temperature': temperature, 'mgr': base + offset + replicate * 0.1})
	return pandas.DataFrame(rows)


@pytest.fixture
def means(observations) -> pandas.DataFrame:
	table = observations.groupby(by = ['species_genotype', 'temperature'])['mgr'].agg(['mean', 'std']).reset_index()
	table['lower'] = table['mean'] - table['std']
	table['upper'] = table['mean'] + table['std']
	table['.group'] = ['A', 'A', 'B', 'B', 'C', 'C']
	return table


@pytest.fixture
def encoding() -> Encoding:
	return Encoding(
		x = 'species_genotype', y = 'mean', facet = 'temperature', lower = 'lower', upper = 'upper', label = '.group', points = 'mgr'
	)


def test_one_panel_per_facet(means, observations, encoding):
	panels = build_figure_description(means, encoding, 'bar', observations, ylabel = 'MGR')
	assert [i.title for i in panels] == ['temperature = 15', 'temperature = 25']
	for panel in panels:
		assert panel.ylabel == 'MGR'
		assert panel.xlabel == 'species_genotype'
		assert panel.order_x == ['Fgra_15ADON', 'Fgra_3ADON', 'Fmer_NIV']
		assert [i.kind for i in panel.layers] == ['strip', 'bar', 'errorbar', 'text']


def test_errorbars_use_the_means_table(means, observations, encoding):
	panels = build_figure_description(means, encoding, 'bar', observations)
	for panel, temperature in zip(panels, ['15', '25']):
		errorbar = panel.get_layer('errorbar')
		expected = means[means['temperature'] == temperature]
		# One error bar per mean, not one per observation.
		assert len(errorbar.data) == len(expected)
		assert errorbar.data['mean'].tolist() == expected['mean'].tolist()
		assert errorbar.lower == 'lower'
		assert errorbar.upper == 'upper'

		strip = panel.get_layer('strip')
		assert len(strip.data) == len(observations[observations['temperature'] == temperature])


def test_labels_are_drawn_above_the_errorbars(means, encoding):
	panels = build_figure_description(means, encoding, 'point')
	text = panels[0].get_layer('text')
	assert text.y == 'upper'
	assert text.label == '.group'
	assert panels[0].get_layer('strip') is None


def test_without_facets(means):
	encoding = Encoding(x = 'species_genotype', y = 'mean', color = 'temperature')
	panels = build_figure_description(means, encoding, 'point')
	assert len(panels) == 1
	assert panels[0].title == ""
	assert panels[0].order_color == ['15', '25']
	assert [i.kind for i in panels[0].layers] == ['point']


def test_shape_sets_the_markers(means, observations):
	encoding = Encoding(x = 'species_genotype', y = 'mean', shape = 'temperature', points = 'mgr')
	panel = build_figure_description(means, encoding, 'point', observations)[0]
	assert panel.get_layer('strip').shape == 'temperature'
	assert panel.get_layer('point').shape == 'temperature'

	plotter = AnovaPlot()
	groups = plotter._marker_groups(means, 'temperature', 'D')
	assert [i[0] for i in groups] == ['o', 's']
	assert [i[1] for i in groups] == [[0, 2, 4], [1, 3, 5]]
	assert plotter._marker_groups(means, None, 'D') == [('D', [0, 1, 2, 3, 4, 5])]

	figure, ax = plt.subplots()
	plotter.render_panel(panel, ax)
	plt.close(figure)


def test_label_order(means, encoding):
	order = ['Fmer_NIV', 'Fgra_15ADON']
	panels = build_figure_description(means, encoding, 'bar', label_order_x = order)
	assert panels[0].order_x == ['Fmer_NIV', 'Fgra_15ADON', 'Fgra_3ADON']


def test_bad_encodings(means):
	with pytest.raises(ValueError):
		Encoding(x = 'species_genotype', y = 'mean', lower = 'lower')
	with pytest.raises(ValueError):
		build_figure_description(means, Encoding(x = 'species_genotype', y = 'mean'), 'violin')


def test_positions_are_dodged(means):
	encoding = Encoding(x = 'species_genotype', y = 'mean', color = 'temperature')
	panel = build_figure_description(means, encoding, 'bar')[0]
	plotter = AnovaPlot()
	positions = plotter._positions(means, panel, 'species_genotype', 'temperature')
	assert positions.tolist() == pytest.approx([-0.2, 0.2, 0.8, 1.2, 1.8, 2.2])


def test_render_line_panel():
	progress = pandas.DataFrame({
		'species_genotype': ['a', 'a', 'a', 'b', 'b', 'b'],
		'day':              [7.0, 14.0, 21.0, 7.0, 14.0, 21.0],
		'mean':             [1.0, 5.0, 20.0, 2.0, 10.0, 40.0]
	})
	progress['lower'] = progress['mean'] - 1
	progress['upper'] = progress['mean'] + 1
	encoding = Encoding(x = 'day', y = 'mean', color = 'species_genotype', lower = 'lower', upper = 'upper')
	panels = build_figure_description(progress, encoding, 'line')
	assert panels[0].order_x == [7.0, 14.0, 21.0]

	figure, ax = plt.subplots()
	AnovaPlot().render_panel(panels[0], ax)
	plt.close(figure)


def test_panel_plot(tmp_path, means, observations, encoding):
	panels = build_figure_description(means, encoding, 'bar', observations)
	panels += build_figure_description(means, encoding, 'point')
	filename = tmp_path / "figure"

	plotter = AnovaPanelPlot(number_of_columns = 3)
	figure = plotter.plot(panels, title = 'Mycelial growth', filename = filename)

	assert len(figure.axes) == 4
	assert (tmp_path / "figure.png").exists()
	assert (tmp_path / "figure.svg").exists()
	plt.close(figure)


@pytest.mark.parametrize(
	"number_of_panels, expected",
	[(1, 1), (3, 1), (4, 2), (6, 2), (7, 3)]
)
def test_calculate_number_of_rows(number_of_panels, expected):
	assert AnovaPanelPlot(number_of_columns = 3)._calculate_number_of_rows(number_of_panels) == expected


def test_panel_plot_without_panels():
	with pytest.raises(ValueError):
		AnovaPanelPlot().plot([])
