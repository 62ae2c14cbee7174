import json
import os
import hashlib
import sys
import logging
import jsonschema
import psutil
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional
from sklearn.model_selection import ParameterGrid

from tuner.utils.exceptions import ConfigurationError
from tuner.utils import constants


class ConfigurationManager:
    """
    Manages tuning configuration loading, validation, and access.
    Acts as the single source of truth and safety guard for a tuning run.

    Validation happens in layers: JSON schema, logical bounds, resource limits
    (grid size, memory), then seed propagation for reproducibility.
    """

    DEFAULT_MAX_GRID_SIZE = constants.DEFAULT_MAX_GRID_SIZE

    def __init__(self, config_path: str = "config/config.json",
                 schema_path: str = "config/schema.json"):
        """
        Initialize the ConfigurationManager.

        Args:
            config_path (str): Path to the user configuration JSON.
            schema_path (str): Path to the JSON schema definition.
        """
        self.config_path = config_path
        self.schema_path = schema_path
        self.config: Dict[str, Any] = {}
        self.schema: Dict[str, Any] = {}
        self.run_id: Optional[str] = None
        self.logger = logging.getLogger("config_manager")

    def load_and_validate(self) -> Dict[str, Any]:
        """
        Main entry point. Loads config, validates schema/logic/resources
        and propagates seeds.

        Returns:
            Dict[str, Any]: The fully validated and hydrated configuration.

        Raises:
            ConfigurationError: If any validation step fails.
        """
        self.config = self._load_json(self.config_path)
        self.schema = self._load_json(self.schema_path)

        self._validate_schema()
        self._validate_logic()
        self._validate_resources()
        self._propagate_seeds()

        return self.config

    def generate_run_id(self) -> str:
        """
        Generate or retrieve a unique run identifier based on timestamp.
        """
        if not self.run_id:
            self.run_id = datetime.now().strftime("%Y%m%d_%H%M%S")
        return self.run_id

    def save_artifacts(self, output_dir: str) -> None:
        """
        Save configuration artifacts to the run directory for full reproducibility.

        Saves:
        1. config_used.json: The exact config object in memory.
        2. config_hash.txt: SHA256 hash for versioning.
        3. run_metadata.json: Environment details (Python version, Platform, etc.).
        """
        config_dir = Path(output_dir) / constants.CONFIG_DIR
        config_dir.mkdir(parents=True, exist_ok=True)

        with open(config_dir / constants.CONFIG_USED_FILE, 'w') as f:
            json.dump(self.config, f, indent=2)

        config_str = json.dumps(self.config, sort_keys=True)
        config_hash = hashlib.sha256(config_str.encode()).hexdigest()

        with open(config_dir / constants.CONFIG_HASH_FILE, 'w') as f:
            f.write(config_hash)

        metadata = {
            'run_id': self.run_id,
            'start_time': datetime.now().isoformat(),
            'python_version': sys.version,
            'platform': sys.platform,
            'config_hash': config_hash,
            'working_directory': os.getcwd()
        }

        with open(config_dir / constants.RUN_METADATA_FILE, 'w') as f:
            json.dump(metadata, f, indent=2)

    def _load_json(self, path: str) -> Dict[str, Any]:
        """Safely load a JSON file."""
        if not os.path.exists(path):
            raise ConfigurationError(f"File not found: {path}")
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {str(e)}")

    def _validate_schema(self) -> None:
        """Validate config structure against JSON schema."""
        try:
            jsonschema.validate(instance=self.config, schema=self.schema)
        except jsonschema.ValidationError as e:
            raise ConfigurationError(f"Schema validation failed: {e.message}")

    def _validate_logic(self) -> None:
        """Logical validation of the tuning sections."""
        # --- Data Section ---
        data = self.config.get('data', {})
        for key in ['file_path', 'outcome']:
            if not data.get(key):
                raise ConfigurationError(f"Data '{key}' must be specified and non-empty.")

        # --- Resampling Section ---
        resampling = self.config.get('resampling', {})
        strategy = resampling.get('strategy', 'vfold')
        if strategy == 'vfold':
            if resampling.get('v', 10) < 2:
                raise ConfigurationError(f"resampling.v must be >= 2, got {resampling.get('v')}")
            if resampling.get('repeats', 1) < 1:
                raise ConfigurationError(f"resampling.repeats must be >= 1, got {resampling.get('repeats')}")
        elif strategy == 'bootstrap':
            if resampling.get('times', 25) < 1:
                raise ConfigurationError(f"resampling.times must be >= 1, got {resampling.get('times')}")
        elif strategy == 'validation_split':
            prop = resampling.get('prop', 0.75)
            if not (0.0 < prop < 1.0):
                raise ConfigurationError(f"resampling.prop must be between 0 and 1 (exclusive), got {prop}")

        # --- Model Section ---
        if not self.config.get('model', {}).get('name'):
            raise ConfigurationError("Model 'name' must be specified.")

        # --- Grid / Search Sections ---
        grid = self.config.get('grid', {})
        for name, values in grid.get('values', {}).items():
            if not isinstance(values, list) or not values:
                raise ConfigurationError(f"grid.values.{name} must be a non-empty list.")

        search = self.config.get('search', {})
        if search:
            if search.get('iter', constants.DEFAULT_SEARCH_ITER) < 1:
                raise ConfigurationError(f"search.iter must be >= 1, got {search.get('iter')}")
            if search.get('no_improve', constants.DEFAULT_NO_IMPROVE) < 1:
                raise ConfigurationError(f"search.no_improve must be >= 1, got {search.get('no_improve')}")
            initial = search.get('initial', constants.DEFAULT_INITIAL)
            if isinstance(initial, int) and initial < 1:
                raise ConfigurationError(f"search.initial must be >= 1, got {initial}")
            if not search.get('parameters'):
                raise ConfigurationError("search.parameters must describe the parameter space.")

        # --- Control Section ---
        control = self.config.get('control', {})
        parallel_over = control.get('parallel_over', constants.PARALLEL_OVER_RESAMPLES)
        if parallel_over not in constants.PARALLEL_OVER_CHOICES:
            raise ConfigurationError(
                f"control.parallel_over must be one of {constants.PARALLEL_OVER_CHOICES}, got '{parallel_over}'"
            )
        if 'n_jobs' in control:
            n_jobs = control['n_jobs']
            if n_jobs == 0 or n_jobs < -1:
                raise ConfigurationError(f"control.n_jobs must be -1 (all cores) or a positive integer, got {n_jobs}")
        if control.get('timeout') is not None and control['timeout'] <= 0:
            raise ConfigurationError(f"control.timeout must be > 0, got {control['timeout']}")

    def _validate_resources(self) -> None:
        """
        Validate against system resources.
        Calculates total grid size and ensures it fits within safe limits.
        """
        resources = self.config.get('resources', {})

        grid_values = self.config.get('grid', {}).get('values', {})
        if grid_values:
            try:
                grid_size = len(ParameterGrid(grid_values))
            except Exception as e:
                raise ConfigurationError(f"Invalid parameter grid: {str(e)}")

            max_grid = resources.get('max_grid_size', self.DEFAULT_MAX_GRID_SIZE)
            if grid_size > max_grid:
                raise ConfigurationError(
                    f"Grid Explosion Detected! Total candidates ({grid_size}) exceeds "
                    f"safety limit ({max_grid}). Reduce the grid or increase 'resources.max_grid_size'."
                )
            logging.info(f"Grid Size validated: {grid_size} candidates (Limit: {max_grid})")

        system_ram_mb = int(psutil.virtual_memory().total / (1024 * 1024))
        safe_ram_limit = int(system_ram_mb * 0.8)
        config_max_ram = resources.get('max_memory_mb', safe_ram_limit)

        if config_max_ram > system_ram_mb:
            logging.warning(
                f"Configured max_memory_mb ({config_max_ram}MB) exceeds physical system RAM ({system_ram_mb}MB). "
                "This may lead to instability."
            )

        self.config.setdefault('resources', {})['max_memory_mb'] = config_max_ram

    def _propagate_seeds(self) -> None:
        """
        Propagate the master seed to internal components.
        Uses large, non-overlapping offsets to avoid correlation between components.
        """
        master_seed = self.config.get('seed', 42)

        self.config['_internal_seeds'] = {
            'resampling': master_seed,
            'search': master_seed + 1000,
            'surrogate': master_seed + 2000
        }
        self.config.setdefault('resampling', {}).setdefault('seed', master_seed)
        logging.debug(f"Seeds propagated from master ({master_seed}): {self.config['_internal_seeds']}")
