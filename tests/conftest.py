import matplotlib

# The figures are only saved, never shown.
matplotlib.use('Agg')
