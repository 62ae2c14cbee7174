#!/usr/bin/env python
"""
Resample Tuner - Main Entry Point
Runs grid or sequential (surrogate guided) hyperparameter search from a JSON configuration.
"""
import sys
import logging
import argparse
import traceback
import random
from pathlib import Path

import pandas as pd
import numpy as np

from tuner.config_manager import ConfigurationManager, ControlOptions, SearchOptions
from tuner.logging_config import LoggingConfigurator
from tuner.resampling import ResampleGenerator
from tuner.backend import SklearnBackend
from tuner.metrics import MetricSet
from tuner.candidates import CandidateSet, ParameterSpace
from tuner.grid_search_engine import GridSearchEngine
from tuner.search_engine import SequentialSearchEngine
from tuner.utils import enable_copy_on_write
from tuner.utils.exceptions import TunerException, SurrogateOptimizationFailure
from tuner.utils.file_io import read_dataframe


def parse_arguments(argv=None):
    """
    Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed command-line arguments.
    """
    parser = argparse.ArgumentParser(
        description="Resample Tuner - Grid & Sequential Hyperparameter Search",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        "--config",
        type=str,
        default="config/config.json",
        help="Path to the configuration JSON file"
    )

    parser.add_argument(
        "--schema",
        type=str,
        default="config/schema.json",
        help="Path to the configuration JSON schema"
    )

    parser.add_argument(
        "--mode",
        choices=["grid", "sequential"],
        default="grid",
        help="Search mode"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging and per-fit failure warnings"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and build resamples without fitting anything"
    )

    return parser.parse_args(argv)


def setup_global_determinism(config: dict, logger: logging.Logger):
    """Seed Python and NumPy global generators from the master seed."""
    seed = config.get('seed', 42)
    logger.info(f"Setting Global Deterministic Seed: {seed}")
    random.seed(seed)
    np.random.seed(seed)
    enable_copy_on_write()


def load_dataset(config: dict, logger: logging.Logger) -> pd.DataFrame:
    data_cfg = config['data']
    path = Path(data_cfg['file_path'])
    if not path.exists():
        raise TunerException(f"Data file not found: {path}")
    df = read_dataframe(path)
    drop = [c for c in data_cfg.get('drop_columns', []) if c in df.columns]
    if drop:
        df = df.drop(columns=drop)
    logger.info(f"Data loaded from {path}: {len(df)} rows x {len(df.columns)} columns")
    return df


def main(argv=None):
    """
    Tuning run orchestration.

    Returns:
        int: Exit code (0 for success, 1 for errors)
    """
    logger = None

    try:
        args = parse_arguments(argv)

        print("\n" + "=" * 80)
        print(f"    RESAMPLE TUNER ({args.mode.upper()} SEARCH)")
        print("=" * 80 + "\n")

        # ---------------------------------------------------------------
        # PHASE 0: CONFIGURATION & LOGGING
        # ---------------------------------------------------------------
        config_manager = ConfigurationManager(config_path=args.config, schema_path=args.schema)
        config = config_manager.load_and_validate()

        if args.verbose:
            config.setdefault('logging', {})['level'] = 'DEBUG'
            config.setdefault('control', {})['verbose'] = True

        logging_configurator = LoggingConfigurator(config)
        logging_configurator.setup()
        logger = logging_configurator.get_logger('tuner')

        run_id = config_manager.generate_run_id()
        run_dir = Path(config.setdefault('outputs', {}).get('base_results_dir', 'results')).absolute()
        run_dir.mkdir(parents=True, exist_ok=True)
        config['outputs']['base_results_dir'] = str(run_dir)
        config_manager.save_artifacts(str(run_dir))
        setup_global_determinism(config, logger)

        logger.info(f"Run ID: {run_id}")
        logger.info(f"Output Directory: {run_dir}")

        # ---------------------------------------------------------------
        # PHASE 1: DATA & RESAMPLES
        # ---------------------------------------------------------------
        dataset = load_dataset(config, logger)
        resamples = ResampleGenerator(logger).generate(dataset, config.get('resampling', {}))
        backend = SklearnBackend.from_config(config)
        metrics = MetricSet.from_names(config.get('metrics'))
        control = ControlOptions.from_config(config)

        logger.info(f"{len(resamples)} resamples; tuned parameters: {list(backend.tuned_parameters)}")

        if args.dry_run:
            logger.info("Dry run mode: validation complete. Exiting without fitting.")
            print("\n[SUCCESS] Configuration validated successfully.")
            return 0

        # ---------------------------------------------------------------
        # PHASE 2: SEARCH
        # ---------------------------------------------------------------
        if args.mode == "grid":
            candidates = CandidateSet.from_grid(config.get('grid', {}).get('values', {}))
            engine = GridSearchEngine(config, logger)
            results = engine.execute(dataset, resamples, candidates, backend, metrics, control)
        else:
            options = SearchOptions.from_config(config)
            space = ParameterSpace.from_config(config['search']['parameters'])
            engine = SequentialSearchEngine(config, logger)
            try:
                results = engine.execute(dataset, resamples, space, backend, metrics, control, options)
            except SurrogateOptimizationFailure as e:
                if e.results is None:
                    raise
                logger.error(f"Search ended early: {e}")
                results = e.results

        # ---------------------------------------------------------------
        # COMPLETION
        # ---------------------------------------------------------------
        best = results.show_best(n=5)
        logger.info("\n" + "-" * 60)
        logger.info("TUNING COMPLETED")
        logger.info(f"{results!r}")
        logger.info(f"Top candidates ({metrics.get().name}):\n{best.to_string(index=False)}")
        logger.info("-" * 60 + "\n")

        print(f"\n[SUCCESS] Tuning completed. Results saved to: {run_dir}")
        return 0

    except TunerException as e:
        msg = f"Tuning Error: {str(e)}"
        print(f"\n[ERROR] {msg}")
        if logger:
            logger.critical(msg, exc_info=True)
        else:
            traceback.print_exc()
        return 1

    except KeyboardInterrupt:
        print("\n[INTERRUPTED] Tuning interrupted by user.")
        if logger:
            logger.warning("Tuning interrupted by user (Ctrl+C)")
        return 130

    except Exception as e:
        msg = f"Unexpected Error: {str(e)}"
        print(f"\n[CRITICAL] {msg}")
        if logger:
            logger.critical(msg, exc_info=True)
        else:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
