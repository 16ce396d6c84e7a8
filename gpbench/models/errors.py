"""
Exceptions raised by the model engines
"""


class FitError(RuntimeError):
    """A model fit failed to converge or produced malformed output"""
