"""
Utility package setup.

Enables pandas Copy-on-Write globally so that train/validation views taken from the
shared base dataset never get written through by a backend. From pandas 3 it is
always on and the option is deprecated, so it is only set on older releases.
"""

import pandas as pd

PANDAS_MAJOR = int(pd.__version__.split(".")[0])


def enable_copy_on_write() -> None:
    # Views of the base dataset must stay read-only for every fit unit.
    if PANDAS_MAJOR < 3:
        pd.options.mode.copy_on_write = True


enable_copy_on_write()
