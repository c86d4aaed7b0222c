"""Grid specification, physical constants, and model default parameters."""

# Grid (degrees) — colatitude rows, local-time columns
COLAT_MIN, COLAT_MAX = 20.0, 70.0   # L ≈ 8.5 down to L ≈ 1.13
DCOLAT = 1.0
N_LON = 48                          # 7.5° = 30 min of local time

# Physical constants
RE_KM = 6400.0                      # Earth radius used for spot distances
RE_M = 6.371e6                      # Earth radius for flux-tube geometry
B0 = 3.12e-5                        # equatorial surface dipole field (T)

# Baseline filling
F_MAX_DEFAULT = 2e12                # particles / m² / s
TAU_CLOSED_DEFAULT = 10 * 86400.0   # s
TAU_OPEN_DEFAULT = 1 * 86400.0      # s

# Saturation curve neq = 10^(A + B·L)  (cm⁻³)
SATURATION_A = 3.9043
SATURATION_B = -0.3145

# Plasmapause (Carpenter & Anderson) and sub-corotation drift
LPP_INTERCEPT = 5.6
LPP_SLOPE = -0.46
DRIFT_LAG_DEG_PER_HOUR_PER_KP = 1.5  # local-time lag per unit Kp at L = 1

# Temporal
DT_OUT_DEFAULT = 900.0              # s between state writes
SPOT_REFRESH_S = 300.0              # s between spot time refreshes
MAX_SUBSTEP_S = 300.0               # s, baseline integration substep

# Spot defaults
SPOT_COLAT_DEFAULT = 30.0           # deg
SPOT_LON_DEFAULT = 315.0            # deg east of local midnight
SPOT_RADIUS_KM_DEFAULT = 1000.0
SPOT_FACTOR_DEFAULT = 10.0
SPOT_START_DT_DEFAULT = 1e31        # s after run start (never)
SPOT_STOP_DT_DEFAULT = -1e31

# Output
OUTPUT_FILE_DEFAULT = "output.dat"
