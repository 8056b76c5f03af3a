"""Numerical defaults and search configuration."""

# Distance tolerance in fractional coordinates, also used as spglib symprec
DEFAULT_TOLERANCE = 1e-3

# Defaults for the configuration search engine
SEARCH_DEFAULTS = {
    # Exhaustive searches above this many magnetic atoms need confirmation
    'large_size_threshold': 20,

    # Number of accepted configurations echoed after a search
    'preview_size': 50,

    # Upper bound on progress events per worker
    'progress_interval': 100000,

    # Randomised sampling mode
    'sampling_max_samples': 1000000,
    'sampling_batch_size': 10000,
    'sampling_target_found': 100,
    'sampling_preview_size': 20,

    # Declining a large exhaustive run offers sampling above this many magnetic atoms
    'sampling_offer_threshold': 25,

    # Candidates per accelerator kernel launch
    'accelerator_batch_size': 65536,
}

# Extensions stripped from structure filenames when naming reports
STRUCTURE_EXTENSIONS = ('.vasp', '.poscar', '.POSCAR', '.cif', '.xyz')

# Seed tensor used to symmetrise the conductivity tensor
CONDUCTIVITY_SEED = (
    (0.18848, -0.52625, 0.047702),
    (0.403317, -0.112371, -0.0564825),
    (-0.352134, 0.350489, 0.0854533),
)

# Spin splitting in eV above which a band structure counts as altermagnetic
BAND_THRESHOLD = 0.01
