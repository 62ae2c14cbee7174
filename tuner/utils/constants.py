# tuner/utils/constants.py

# --- Top-Level Result Directories ---
# Sequentially numbered for proper sorting with clear, self-explanatory names

CONFIG_DIR = "01_RunConfiguration"          # Run config, metadata, seeds
GRID_SEARCH_DIR = "02_GridSearch"           # One-shot grid results
SEQUENTIAL_SEARCH_DIR = "03_SequentialSearch"  # Surrogate guided search results

TOP_LEVEL_RESULT_DIRS = [
    CONFIG_DIR,
    GRID_SEARCH_DIR,
    SEQUENTIAL_SEARCH_DIR,
]

# --- File Names ---
CONFIG_USED_FILE = "config_used.json"
CONFIG_HASH_FILE = "config_hash.txt"
RUN_METADATA_FILE = "run_metadata.json"
PROGRESS_FILE = "fit_progress.jsonl"
METRICS_FILE = "metrics_summary.parquet"
NOTES_FILE = "notes.parquet"
BEST_CONFIG_FILE = "best_configuration.json"
SEARCH_HISTORY_FILE = "search_history.json"

# --- Fit Stages ---
STAGE_PREPROCESSING = "preprocessing"
STAGE_MODEL = "model"
STAGE_PREDICTION = "prediction"
STAGE_METRICS = "metrics"
STAGE_EXTRACT = "extract"

# Stages whose failure means the record has no usable metrics.
FATAL_STAGES = (STAGE_PREPROCESSING, STAGE_MODEL, STAGE_PREDICTION)

# --- Note Severities ---
SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"

# --- Result Table Columns ---
COL_ID = "id"
COL_METRICS = "metrics"
COL_NOTES = "notes"
COL_EXTRACTS = "extracts"
COL_PREDICTIONS = "predictions"
COL_ITERATION = "iteration"
COL_CONFIG = "config"
COL_METRIC = "metric"
COL_ESTIMATOR = "estimator"
COL_ESTIMATE = "estimate"
COL_MEAN = "mean"
COL_N = "n"
COL_STD_ERR = "std_err"
COL_ROW = "row"
COL_PRED = "pred"
COL_EXTRACT = "extract"

# --- Parallel Dispatch ---
PARALLEL_OVER_RESAMPLES = "resamples"
PARALLEL_OVER_EVERYTHING = "everything"
PARALLEL_OVER_CHOICES = (PARALLEL_OVER_RESAMPLES, PARALLEL_OVER_EVERYTHING)

# --- Metric Directions ---
MINIMIZE = "minimize"
MAXIMIZE = "maximize"

# --- Sequential Search Defaults ---
DEFAULT_SEARCH_ITER = 10
DEFAULT_INITIAL = 5
DEFAULT_NO_IMPROVE = 10
DEFAULT_N_CANDIDATES = 5000
DEFAULT_MAX_GRID_SIZE = 5000
