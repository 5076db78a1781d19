"""Building blocks and a command line for bootstrapping and managing k0s clusters."""

__version__ = "0.1.0"