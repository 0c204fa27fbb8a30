"""
Useful definitions

"""
import numpy as np

# Object names in the input ROOT files
TABLE_NAME = "npartncoll"
REFERENCE_NAME = "refmult"

# Default parameter grid: (min, max, number of steps), inclusive
NPP_RANGE = (1.0, 4.0, 31)
K_RANGE = (1.0, 4.0, 31)
X_RANGE = (0.1, 0.4, 31)

# Detector model
PP_EFFICIENCY = 0.98
AUAU_EFFICIENCY = 0.84  # 0-5% central AuAu
CENTRAL_MULTIPLICITY = 540.0  # average 0-5% central multiplicity
TRIGGER_BIAS = 1.0

# Fit settings
N_EVENTS = 100_000
N_REFIT_EVENTS = 1_000_000
MIN_MULT = 100.0
SEED = 252452

# Centrality classes, most central first; the 16 bin 0-80% definition
CENTRALITY_LOWER = np.arange(0.0, 80.0, 5.0)
CENTRALITY_UPPER = CENTRALITY_LOWER + 5.0

# Reweighting: weight function is fit below this multiplicity, equal to 1 above
WEIGHT_BOUND = 400.0
WEIGHT_FIT_MIN = 10.0

# The weight function's argument is u = p2 * refmult + p3; these are held fixed in the fit
WEIGHT_SCALE = 1.0
WEIGHT_OFFSET = 0.0

# Variations of the total cross section used for systematics
XSEC_MODS = {"nominal": 0.0, "plus5": 0.05, "minus5": -0.05}
