import logging
from typing import Dict, List, Tuple

from tuner.config_manager.control import SearchOptions


class StoppingCriteria:
    """
    Evaluates whether the sequential search loop should terminate.

    Checked after each aggregation, in order:
    - max_iterations: Stop when the last completed iteration reaches `iter`.
    - no_improve: Stop after `no_improve` consecutive iterations without a strict
      improvement of the best observed value.
    """

    def __init__(self, options: SearchOptions, logger: logging.Logger):
        self.options = options
        self.logger = logger

    def should_stop(self, iteration_history: List[Dict]) -> Tuple[bool, str]:
        """
        Determines if the search should stop based on history.

        Args:
            iteration_history: One summary dict per completed iteration with
                'iteration' and 'n_no_improve' keys.

        Returns:
            (bool, reason_string)
        """
        if not iteration_history:
            return False, ""

        current = iteration_history[-1]

        if current['iteration'] >= self.options.n_iter:
            return True, f"Maximum iterations reached ({self.options.n_iter})"

        if current['n_no_improve'] >= self.options.no_improve:
            return True, f"No improvement for {current['n_no_improve']} iterations"

        if self.options.uncertain is not None and current['n_no_improve'] > 0:
            self.logger.debug(
                f"{current['n_no_improve']} iteration(s) without improvement "
                f"(uncertainty sampling every {self.options.uncertain})"
            )

        return False, ""
