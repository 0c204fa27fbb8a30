"""
Useful definitions

"""
# Event selection windows
VZ_RANGE = (-30.0, 30.0)
RUN_VZ_RANGE = (-100.0, 100.0)  # run range aware definition
ZDC_RANGE = (0.0, 1e7)

# Run range disabled unless the max run is positive
RUN_RANGE = (-1, -1)

# Number of parameters for each correction
N_ZDC_PARS = 2  # linear in zdc rate / 1000
N_VZ_PARS = 7  # 6th order polynomial in vz
N_WEIGHT_PARS = 7
N_CENTRALITY_BINS = 16

# The weight is 1 above this
WEIGHT_BOUND = 400.0

# How the 9 bin definition is derived from the 16 bin one
NINE_BIN_RULES = {"every_other_plus_last", "every_other"}

# Labels in the centrality definition text file
NOMINAL_LABEL = "nominal_cent"
PLUS5_LABEL = "plus5_cent"
MINUS5_LABEL = "minus5_cent"
WEIGHTS_LABEL = "weights"
BOUND_LABEL = "weight_bound"

# Default names in the input tree
TREE_NAME = "refMultTree"
REFMULT_BRANCH = "refMult"
VZ_BRANCH = "vz"
ZDC_BRANCH = "lumi"
RUN_BRANCH = "runId"
